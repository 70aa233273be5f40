"""Routes d'authentification et de compte utilisateur."""

from fastapi import APIRouter, Depends, Query, Request, Response

from erp_gestion.core.services import Services
from erp_gestion.models.schemas import ChangePasswordRequest, LoginRequest, RegisterRequest
from erp_gestion.routes.deps import Contexte, get_contexte, get_services
from erp_gestion.security.auth import get_current_user

router = APIRouter(tags=["auth"])


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else ""


@router.post("/api/auth/register", status_code=201)
def auth_register(body: RegisterRequest, response: Response,
                  services: Services = Depends(get_services)):
    user = services.auth.register(body.email, body.password, body.nom, body.prenom, body.nom_societe)
    services.abonnements.courant(user["tenant_id"])
    token = services.auth.generate_token(user)
    services.auth.set_auth_cookie(response, token)
    services.audit.log("inscription", user["tenant_id"], user_id=user["id"])
    return {"user": user, "token": token}


@router.post("/api/auth/login")
def auth_login(body: LoginRequest, request: Request, response: Response,
               services: Services = Depends(get_services)):
    user = services.auth.authenticate(
        body.email, body.password,
        ip=_client_ip(request), user_agent=request.headers.get("User-Agent", ""),
    )
    token = services.auth.generate_token(user)
    services.auth.set_auth_cookie(response, token)
    services.audit.log("connexion", user["tenant_id"], user_id=user["id"])
    return {"user": user, "token": token}


@router.post("/api/auth/logout")
def auth_logout(response: Response, services: Services = Depends(get_services)):
    services.auth.clear_auth_cookie(response)
    return {"status": "ok"}


@router.get("/api/auth/me")
def auth_me(user: dict = Depends(get_current_user), services: Services = Depends(get_services)):
    tenant = services.db["tenants"].find_all(id=user["tenant_id"])
    return {**user, "societe": tenant[0].get("nom") if tenant else None}


@router.post("/api/auth/change-password")
def auth_change_password(body: ChangePasswordRequest, ctx: Contexte = Depends(get_contexte),
                         services: Services = Depends(get_services)):
    services.auth.change_password(ctx.user["id"], body.mot_de_passe_actuel, body.nouveau_mot_de_passe)
    services.audit.log("changement_mot_de_passe", ctx.user["tenant_id"], user_id=ctx.user["id"])
    return {"status": "ok", "message": "Mot de passe modifié"}


@router.get("/api/user/login-history")
def login_history(limit: int = Query(20, ge=1), user: dict = Depends(get_current_user),
                  services: Services = Depends(get_services)):
    items = services.auth.login_history(user["id"], limit)
    return {"items": items, "total": len(items)}
