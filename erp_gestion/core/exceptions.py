"""Exceptions personnalisees pour ERP Gestion."""


class ERPError(Exception):
    """Exception de base."""

    status_code = 500


class ValidationError(ERPError):
    """Donnees invalides."""

    status_code = 400


class AuthenticationError(ERPError):
    """Utilisateur non authentifie."""

    status_code = 401


class PermissionDeniedError(ERPError):
    """Acces refuse."""

    status_code = 403


class SubscriptionLimitError(PermissionDeniedError):
    """Abonnement inactif ou limite de documents atteinte."""


class NotFoundError(ERPError):
    """Document introuvable (ou appartenant a un autre tenant)."""

    status_code = 404


class ConflictError(ERPError):
    """Operation incompatible avec l'etat courant du document."""

    status_code = 409


class StorageError(ERPError):
    """Erreur de lecture/ecriture du stockage persistant."""


class ConfigError(ERPError):
    """Erreur de configuration."""
