"""Routes du cycle achats : commandes, receptions, factures, paiements."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from erp_gestion.core.pagination import LIMITE_DEFAUT
from erp_gestion.core.services import Services
from erp_gestion.models.schemas import CommandeCreate, ReceptionCreate, ReceptionUpdate
from erp_gestion.routes.commercial import ajouter_routes_factures, ajouter_routes_paiements
from erp_gestion.routes.deps import Contexte, get_contexte, get_services

router = APIRouter(tags=["achats"])


# ==============================
# COMMANDES
# ==============================

@router.get("/api/purchases/orders")
def lister_commandes(search: Optional[str] = None, statut: Optional[str] = None,
                     fournisseur_id: Optional[str] = None, page: int = Query(1, ge=1),
                     limit: int = Query(LIMITE_DEFAUT, ge=1),
                     ctx: Contexte = Depends(get_contexte), services: Services = Depends(get_services)):
    return services.commandes.lister(ctx.tenant_id, search, statut, fournisseur_id, page, limit)


@router.post("/api/purchases/orders", status_code=201)
def creer_commande(body: CommandeCreate, ctx: Contexte = Depends(get_contexte),
                   services: Services = Depends(get_services)):
    return services.commandes.creer(ctx.tenant_id, body.model_dump(), ctx.user)


@router.get("/api/purchases/orders/{commande_id}")
def detail_commande(commande_id: str, ctx: Contexte = Depends(get_contexte),
                    services: Services = Depends(get_services)):
    return services.commandes.get(ctx.tenant_id, commande_id)


@router.post("/api/purchases/orders/{commande_id}/confirm")
def confirmer_commande(commande_id: str, ctx: Contexte = Depends(get_contexte),
                       services: Services = Depends(get_services)):
    return services.commandes.confirmer(ctx.tenant_id, commande_id, ctx.user)


@router.post("/api/purchases/orders/{commande_id}/annuler")
def annuler_commande(commande_id: str, ctx: Contexte = Depends(get_contexte),
                     services: Services = Depends(get_services)):
    return services.commandes.annuler(ctx.tenant_id, commande_id, ctx.user)


@router.post("/api/purchases/orders/{commande_id}/to-reception", status_code=201)
def commande_vers_reception(commande_id: str, ctx: Contexte = Depends(get_contexte),
                            services: Services = Depends(get_services)):
    return services.commandes.vers_reception(ctx.tenant_id, commande_id, ctx.user)


# ==============================
# RECEPTIONS
# ==============================

@router.get("/api/purchases/receptions")
def lister_receptions(search: Optional[str] = None, statut: Optional[str] = None,
                      fournisseur_id: Optional[str] = None, page: int = Query(1, ge=1),
                      limit: int = Query(LIMITE_DEFAUT, ge=1),
                      ctx: Contexte = Depends(get_contexte), services: Services = Depends(get_services)):
    return services.receptions.lister(ctx.tenant_id, search, statut, fournisseur_id, page, limit)


@router.post("/api/purchases/receptions", status_code=201)
def creer_reception(body: ReceptionCreate, ctx: Contexte = Depends(get_contexte),
                    services: Services = Depends(get_services)):
    return services.receptions.creer(ctx.tenant_id, body.model_dump(), ctx.user)


@router.get("/api/purchases/receptions/{reception_id}")
def detail_reception(reception_id: str, ctx: Contexte = Depends(get_contexte),
                     services: Services = Depends(get_services)):
    return services.receptions.get(ctx.tenant_id, reception_id)


@router.put("/api/purchases/receptions/{reception_id}")
def modifier_reception(reception_id: str, body: ReceptionUpdate, ctx: Contexte = Depends(get_contexte),
                       services: Services = Depends(get_services)):
    return services.receptions.modifier(
        ctx.tenant_id, reception_id, body.model_dump(exclude_unset=True), ctx.user
    )


@router.delete("/api/purchases/receptions/{reception_id}")
def supprimer_reception(reception_id: str, ctx: Contexte = Depends(get_contexte),
                        services: Services = Depends(get_services)):
    services.receptions.supprimer(ctx.tenant_id, reception_id, ctx.user)
    return {"status": "ok", "id": reception_id}


@router.post("/api/purchases/receptions/{reception_id}/valider")
def valider_reception(reception_id: str, ctx: Contexte = Depends(get_contexte),
                      services: Services = Depends(get_services)):
    return services.receptions.valider(ctx.tenant_id, reception_id, ctx.user)


@router.post("/api/purchases/receptions/{reception_id}/annuler")
def annuler_reception(reception_id: str, ctx: Contexte = Depends(get_contexte),
                      services: Services = Depends(get_services)):
    return services.receptions.annuler(ctx.tenant_id, reception_id, ctx.user)


# ==============================
# FACTURES ET PAIEMENTS
# ==============================

ajouter_routes_factures(router, "/api/purchases/invoices", "factures_achat", "fournisseur_id")
ajouter_routes_paiements(router, "/api/purchases/payments", "paiements_fournisseurs", "fournisseur_id")
