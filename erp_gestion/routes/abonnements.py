"""Routes des plans et abonnements."""

from typing import Optional

from fastapi import APIRouter, Depends

from erp_gestion.abonnements.service import catalogue_plans
from erp_gestion.core.services import Services
from erp_gestion.models.schemas import AbonnementGestion, AbonnementRequest, ApprobationChangementPlan
from erp_gestion.routes.deps import Contexte, get_contexte, get_services, require_admin

router = APIRouter(tags=["abonnements"])


@router.get("/api/plans")
def lister_plans():
    plans = catalogue_plans()
    return {"items": plans, "total": len(plans)}


@router.get("/api/subscriptions")
def abonnement_courant(ctx: Contexte = Depends(get_contexte), services: Services = Depends(get_services)):
    return services.abonnements.courant(ctx.tenant_id)


@router.post("/api/subscriptions")
def demander_plan(body: AbonnementRequest, ctx: Contexte = Depends(get_contexte),
                  services: Services = Depends(get_services)):
    abonnement = services.abonnements.demander_changement(ctx.tenant_id, body.plan)
    services.audit.log("demande_changement_plan", ctx.tenant_id, user_id=ctx.user["id"],
                       details={"plan": body.plan})
    return abonnement


# ==============================
# ADMINISTRATION
# ==============================

@router.get("/api/subscriptions/manage")
def lister_abonnements(statut: Optional[str] = None, plan: Optional[str] = None,
                       search: Optional[str] = None, ctx: Contexte = Depends(require_admin),
                       services: Services = Depends(get_services)):
    return services.abonnements.lister(statut, plan, search)


@router.post("/api/subscriptions/manage")
def definir_abonnement(body: AbonnementGestion, ctx: Contexte = Depends(require_admin),
                       services: Services = Depends(get_services)):
    data = body.model_dump(exclude={"tenant_id", "plan", "statut"})
    abonnement = services.abonnements.definir(body.tenant_id, body.plan or "free", body.statut, **data)
    services.audit.log("definition_abonnement", body.tenant_id, user_id=ctx.user["id"],
                       details={"plan": abonnement["plan"], "statut": abonnement["statut"]})
    return abonnement


@router.patch("/api/subscriptions/manage")
def modifier_abonnement(body: AbonnementGestion, ctx: Contexte = Depends(require_admin),
                        services: Services = Depends(get_services)):
    changes = body.model_dump(exclude={"tenant_id"}, exclude_unset=True)
    abonnement = services.abonnements.modifier(body.tenant_id, changes)
    services.audit.log("modification_abonnement", body.tenant_id, user_id=ctx.user["id"],
                       details=changes)
    return abonnement


@router.post("/api/subscriptions/approve-plan-change")
def approuver_changement(body: ApprobationChangementPlan, ctx: Contexte = Depends(require_admin),
                         services: Services = Depends(get_services)):
    abonnement = services.abonnements.traiter_demande(
        body.tenant_id, body.approve, body.direct_change, body.new_plan, body.motif
    )
    services.audit.log("traitement_changement_plan", body.tenant_id, user_id=ctx.user["id"],
                       details={"approve": body.approve, "plan": abonnement["plan"]})
    return abonnement
