"""Routes fournisseurs, clients et produits."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from erp_gestion.core.pagination import LIMITE_DEFAUT
from erp_gestion.core.services import Services
from erp_gestion.models.schemas import ProduitCreate, ProduitUpdate, TiersCreate, TiersUpdate
from erp_gestion.routes.deps import Contexte, get_contexte, get_services
from erp_gestion.utils.date_utils import parser_date

router = APIRouter(tags=["tiers"])


def _routes_tiers(prefix: str, attr_tiers: str, attr_paiements: str):
    """Enregistre le CRUD et le solde d'un type de tiers (fournisseurs ou clients)."""

    @router.get(prefix, name=f"lister_{attr_tiers}")
    def lister(search: Optional[str] = None, actif: Optional[bool] = None,
               page: int = Query(1, ge=1), limit: int = Query(LIMITE_DEFAUT, ge=1),
               ctx: Contexte = Depends(get_contexte), services: Services = Depends(get_services)):
        return getattr(services, attr_tiers).lister(ctx.tenant_id, search, page, limit, actif)

    @router.post(prefix, status_code=201, name=f"creer_{attr_tiers}")
    def creer(body: TiersCreate, ctx: Contexte = Depends(get_contexte),
              services: Services = Depends(get_services)):
        tiers = getattr(services, attr_tiers).creer(ctx.tenant_id, body.model_dump(), ctx.user)
        services.audit.log_document(f"creation_{attr_tiers}", ctx.user, ctx.tenant_id, tiers)
        return tiers

    @router.get(prefix + "/{tiers_id}", name=f"detail_{attr_tiers}")
    def detail(tiers_id: str, ctx: Contexte = Depends(get_contexte),
               services: Services = Depends(get_services)):
        return getattr(services, attr_tiers).get(ctx.tenant_id, tiers_id)

    @router.patch(prefix + "/{tiers_id}", name=f"modifier_{attr_tiers}")
    def modifier(tiers_id: str, body: TiersUpdate, ctx: Contexte = Depends(get_contexte),
                 services: Services = Depends(get_services)):
        tiers = getattr(services, attr_tiers).modifier(
            ctx.tenant_id, tiers_id, body.model_dump(exclude_unset=True)
        )
        services.audit.log_document(f"modification_{attr_tiers}", ctx.user, ctx.tenant_id, tiers)
        return tiers

    @router.delete(prefix + "/{tiers_id}", name=f"supprimer_{attr_tiers}")
    def supprimer(tiers_id: str, ctx: Contexte = Depends(get_contexte),
                  services: Services = Depends(get_services)):
        tiers = getattr(services, attr_tiers).supprimer(ctx.tenant_id, tiers_id)
        services.audit.log_document(f"suppression_{attr_tiers}", ctx.user, ctx.tenant_id, tiers)
        return {"status": "ok", "id": tiers_id}

    @router.get(prefix + "/{tiers_id}/balance", name=f"solde_{attr_tiers}")
    def solde(tiers_id: str, date_reference: Optional[str] = None,
              ctx: Contexte = Depends(get_contexte), services: Services = Depends(get_services)):
        return getattr(services, attr_paiements).solde_tiers(
            ctx.tenant_id, tiers_id, parser_date(date_reference)
        )


_routes_tiers("/api/suppliers", "fournisseurs", "paiements_fournisseurs")
_routes_tiers("/api/customers", "clients", "paiements_clients")


# ==============================
# PRODUITS
# ==============================

@router.get("/api/products")
def lister_produits(search: Optional[str] = None, page: int = Query(1, ge=1),
                    limit: int = Query(LIMITE_DEFAUT, ge=1),
                    ctx: Contexte = Depends(get_contexte), services: Services = Depends(get_services)):
    return services.produits.lister(ctx.tenant_id, search, page, limit)


@router.post("/api/products", status_code=201)
def creer_produit(body: ProduitCreate, ctx: Contexte = Depends(get_contexte),
                  services: Services = Depends(get_services)):
    produit = services.produits.creer(ctx.tenant_id, body.model_dump(), ctx.user)
    services.audit.log_document("creation_produit", ctx.user, ctx.tenant_id, produit)
    return produit


@router.get("/api/products/{produit_id}")
def detail_produit(produit_id: str, ctx: Contexte = Depends(get_contexte),
                   services: Services = Depends(get_services)):
    return services.produits.get(ctx.tenant_id, produit_id)


@router.patch("/api/products/{produit_id}")
def modifier_produit(produit_id: str, body: ProduitUpdate, ctx: Contexte = Depends(get_contexte),
                     services: Services = Depends(get_services)):
    produit = services.produits.modifier(ctx.tenant_id, produit_id, body.model_dump(exclude_unset=True))
    services.audit.log_document("modification_produit", ctx.user, ctx.tenant_id, produit)
    return produit


@router.delete("/api/products/{produit_id}")
def supprimer_produit(produit_id: str, ctx: Contexte = Depends(get_contexte),
                      services: Services = Depends(get_services)):
    produit = services.produits.supprimer(ctx.tenant_id, produit_id)
    services.audit.log_document("suppression_produit", ctx.user, ctx.tenant_id, produit)
    return {"status": "ok", "id": produit_id}
