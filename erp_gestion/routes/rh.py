"""Routes RH : employes et pointage."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from erp_gestion.core.pagination import LIMITE_DEFAUT
from erp_gestion.core.services import Services
from erp_gestion.models.schemas import (
    EmployeCreate, EmployeUpdate, PointageRequest, PresenceCreate, PresenceUpdate,
)
from erp_gestion.routes.deps import Contexte, get_contexte, get_services

router = APIRouter(tags=["rh"])


@router.get("/api/hr/employees")
def lister_employes(search: Optional[str] = None, actif: Optional[bool] = None,
                    page: int = Query(1, ge=1), limit: int = Query(LIMITE_DEFAUT, ge=1),
                    ctx: Contexte = Depends(get_contexte), services: Services = Depends(get_services)):
    return services.employes.lister(ctx.tenant_id, search, page, limit, actif)


@router.post("/api/hr/employees", status_code=201)
def creer_employe(body: EmployeCreate, ctx: Contexte = Depends(get_contexte),
                  services: Services = Depends(get_services)):
    employe = services.employes.creer(ctx.tenant_id, body.model_dump(), ctx.user)
    services.audit.log_document("creation_employe", ctx.user, ctx.tenant_id, employe)
    return employe


@router.get("/api/hr/employees/{employe_id}")
def detail_employe(employe_id: str, ctx: Contexte = Depends(get_contexte),
                   services: Services = Depends(get_services)):
    return services.employes.get(ctx.tenant_id, employe_id)


@router.patch("/api/hr/employees/{employe_id}")
def modifier_employe(employe_id: str, body: EmployeUpdate, ctx: Contexte = Depends(get_contexte),
                     services: Services = Depends(get_services)):
    employe = services.employes.modifier(ctx.tenant_id, employe_id, body.model_dump(exclude_unset=True))
    services.audit.log_document("modification_employe", ctx.user, ctx.tenant_id, employe)
    return employe


# ==============================
# POINTAGE
# ==============================

@router.get("/api/hr/attendance")
def lister_presences(employe_id: Optional[str] = None, statut: Optional[str] = None,
                     date_from: Optional[str] = Query(None, alias="from"),
                     date_to: Optional[str] = Query(None, alias="to"),
                     page: int = Query(1, ge=1), limit: int = Query(LIMITE_DEFAUT, ge=1),
                     ctx: Contexte = Depends(get_contexte), services: Services = Depends(get_services)):
    return services.presences.lister(ctx.tenant_id, employe_id, date_from, date_to, statut, page, limit)


@router.post("/api/hr/attendance/check-in", status_code=201)
def pointer_arrivee(body: PointageRequest, ctx: Contexte = Depends(get_contexte),
                    services: Services = Depends(get_services)):
    return services.presences.check_in(ctx.tenant_id, body.model_dump(), ctx.user)


@router.post("/api/hr/attendance", status_code=201)
def creer_presence(body: PresenceCreate, ctx: Contexte = Depends(get_contexte),
                   services: Services = Depends(get_services)):
    return services.presences.creer(ctx.tenant_id, body.model_dump(), ctx.user)


@router.patch("/api/hr/attendance/{presence_id}")
def modifier_presence(presence_id: str, body: PresenceUpdate, ctx: Contexte = Depends(get_contexte),
                      services: Services = Depends(get_services)):
    return services.presences.modifier(
        ctx.tenant_id, presence_id, body.model_dump(exclude_unset=True), ctx.user
    )


@router.post("/api/hr/attendance/{presence_id}/check-out")
def pointer_depart(presence_id: str, body: Optional[PointageRequest] = None,
                   ctx: Contexte = Depends(get_contexte), services: Services = Depends(get_services)):
    data = body.model_dump() if body else {}
    return services.presences.check_out(ctx.tenant_id, presence_id, data, ctx.user)
