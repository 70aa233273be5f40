"""Routes des parametres societe (numerotation, FODEC, timbre)."""

from fastapi import APIRouter, Depends

from erp_gestion.core.services import Services
from erp_gestion.models.schemas import ParametresUpdate
from erp_gestion.routes.deps import Contexte, get_contexte, get_services, require_gestion

router = APIRouter(tags=["parametres"])


@router.get("/api/settings")
def lire_parametres(ctx: Contexte = Depends(get_contexte), services: Services = Depends(get_services)):
    return services.parametres.get(ctx.tenant_id)


@router.patch("/api/settings")
def modifier_parametres(body: ParametresUpdate, ctx: Contexte = Depends(require_gestion),
                        services: Services = Depends(get_services)):
    changes = body.model_dump(exclude_unset=True)
    parametres = services.parametres.update(ctx.tenant_id, changes)
    services.audit.log("modification_parametres", ctx.tenant_id, user_id=ctx.user["id"],
                       details={"champs": sorted(changes)})
    return parametres
