"""Utilitaires pour le traitement des montants (dinar tunisien, 3 decimales)."""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from erp_gestion.core.exceptions import ValidationError

MILLIME = Decimal("0.001")
TOLERANCE = Decimal("0.001")


def to_decimal(valeur, champ: str = "montant") -> Decimal:
    """Convertit un nombre JSON (int, float, str) en Decimal fini."""
    if valeur is None or valeur == "":
        return Decimal("0")
    if isinstance(valeur, Decimal):
        d = valeur
    else:
        try:
            d = Decimal(str(valeur).strip().replace(",", "."))
        except InvalidOperation:
            raise ValidationError(f"Valeur numérique invalide pour {champ} : {valeur!r}")
    if not d.is_finite():
        raise ValidationError(f"Valeur numérique invalide pour {champ} : {valeur!r}")
    return d


def arrondir(montant, decimales: int = 3) -> Decimal:
    """Arrondi commercial (ROUND_HALF_UP), au millime par defaut."""
    quantum = Decimal(1).scaleb(-decimales)
    return to_decimal(montant).quantize(quantum, rounding=ROUND_HALF_UP)
