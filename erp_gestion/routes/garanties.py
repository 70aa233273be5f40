"""Routes des modeles et certificats de garantie."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from erp_gestion.core.pagination import LIMITE_DEFAUT
from erp_gestion.core.services import Services
from erp_gestion.models.schemas import (
    GarantieCreate, GarantieUpdate, ModeleGarantieCreate, ModeleGarantieUpdate,
)
from erp_gestion.routes.deps import Contexte, get_contexte, get_services, require_gestion

router = APIRouter(tags=["garanties"])


@router.get("/api/settings/warranty-templates")
def lister_modeles(search: Optional[str] = None, page: int = Query(1, ge=1),
                   limit: int = Query(LIMITE_DEFAUT, ge=1),
                   ctx: Contexte = Depends(get_contexte), services: Services = Depends(get_services)):
    return services.modeles_garantie.lister(ctx.tenant_id, search, page, limit)


@router.post("/api/settings/warranty-templates", status_code=201)
def creer_modele(body: ModeleGarantieCreate, ctx: Contexte = Depends(require_gestion),
                 services: Services = Depends(get_services)):
    modele = services.modeles_garantie.creer(ctx.tenant_id, body.model_dump(), ctx.user)
    services.audit.log_document("creation_modele_garantie", ctx.user, ctx.tenant_id, modele)
    return modele


@router.get("/api/settings/warranty-templates/{modele_id}")
def detail_modele(modele_id: str, ctx: Contexte = Depends(get_contexte),
                  services: Services = Depends(get_services)):
    return services.modeles_garantie.get(ctx.tenant_id, modele_id)


@router.put("/api/settings/warranty-templates/{modele_id}")
def modifier_modele(modele_id: str, body: ModeleGarantieUpdate, ctx: Contexte = Depends(require_gestion),
                    services: Services = Depends(get_services)):
    modele = services.modeles_garantie.modifier(
        ctx.tenant_id, modele_id, body.model_dump(exclude_unset=True)
    )
    services.audit.log_document("modification_modele_garantie", ctx.user, ctx.tenant_id, modele)
    return modele


# ==============================
# CERTIFICATS
# ==============================

@router.get("/api/documents/warranties")
def lister_garanties(search: Optional[str] = None, statut: Optional[str] = None,
                     client_id: Optional[str] = None, page: int = Query(1, ge=1),
                     limit: int = Query(LIMITE_DEFAUT, ge=1),
                     ctx: Contexte = Depends(get_contexte), services: Services = Depends(get_services)):
    return services.garanties.lister(ctx.tenant_id, search, statut, client_id, page, limit)


@router.post("/api/documents/warranties", status_code=201)
def creer_garantie(body: GarantieCreate, ctx: Contexte = Depends(get_contexte),
                   services: Services = Depends(get_services)):
    return services.garanties.creer(ctx.tenant_id, body.model_dump(), ctx.user)


@router.get("/api/documents/warranties/{garantie_id}")
def detail_garantie(garantie_id: str, ctx: Contexte = Depends(get_contexte),
                    services: Services = Depends(get_services)):
    return services.garanties.get(ctx.tenant_id, garantie_id)


@router.put("/api/documents/warranties/{garantie_id}")
def modifier_garantie(garantie_id: str, body: GarantieUpdate, ctx: Contexte = Depends(get_contexte),
                      services: Services = Depends(get_services)):
    return services.garanties.modifier(
        ctx.tenant_id, garantie_id, body.model_dump(exclude_unset=True), ctx.user
    )
