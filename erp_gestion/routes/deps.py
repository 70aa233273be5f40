"""Dependances FastAPI communes : services, utilisateur courant, tenant."""

from dataclasses import dataclass

from fastapi import Depends, Request

from erp_gestion.config.constants import Role
from erp_gestion.core.exceptions import NotFoundError, PermissionDeniedError
from erp_gestion.core.services import Services
from erp_gestion.security.auth import get_current_user

HEADER_TENANT = "X-Tenant-Id"


def get_services(request: Request) -> Services:
    return request.app.state.services


@dataclass
class Contexte:
    user: dict
    tenant_id: str

    @property
    def est_admin(self) -> bool:
        return self.user.get("role") == Role.ADMIN.value


def get_contexte(request: Request, user: dict = Depends(get_current_user)) -> Contexte:
    """Tenant de l'utilisateur, ou celui demande par l'en-tete X-Tenant-Id.

    Seul un administrateur plateforme peut agir pour le compte d'une autre societe.
    """
    tenant_id = user["tenant_id"]
    demande = (request.headers.get(HEADER_TENANT) or "").strip()
    if demande and demande != tenant_id:
        if user.get("role") != Role.ADMIN.value:
            raise PermissionDeniedError("Acces refuse a cette societe")
        if not get_services(request).db["tenants"].find_all(id=demande):
            raise NotFoundError("Société non trouvée")
        tenant_id = demande
    return Contexte(user=user, tenant_id=tenant_id)


def require_admin(ctx: Contexte = Depends(get_contexte)) -> Contexte:
    if not ctx.est_admin:
        raise PermissionDeniedError(f"Role requis : {Role.ADMIN.value}")
    return ctx


def require_gestion(ctx: Contexte = Depends(get_contexte)) -> Contexte:
    """Administrateur ou gestionnaire (operations de parametrage)."""
    if ctx.user.get("role") not in (Role.ADMIN.value, Role.GESTIONNAIRE.value):
        raise PermissionDeniedError(
            f"Role requis : {Role.ADMIN.value}, {Role.GESTIONNAIRE.value}"
        )
    return ctx
