"""Routes des factures et paiements, communes aux achats et aux ventes."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from erp_gestion.core.exceptions import ValidationError
from erp_gestion.core.pagination import LIMITE_DEFAUT
from erp_gestion.core.services import Services
from erp_gestion.models.schemas import FactureCreate, FactureUpdate, PaiementCreate, PaiementUpdate
from erp_gestion.routes.deps import Contexte, get_contexte, get_services


def ajouter_routes_factures(router: APIRouter, prefix: str, attr: str, champ_tiers: str) -> None:

    @router.get(prefix, name=f"lister_{attr}")
    def lister(search: Optional[str] = None, statut: Optional[str] = None,
               tiers_id: Optional[str] = Query(None, alias=champ_tiers),
               date_from: Optional[str] = Query(None, alias="from"),
               date_to: Optional[str] = Query(None, alias="to"),
               page: int = Query(1, ge=1), limit: int = Query(LIMITE_DEFAUT, ge=1),
               ctx: Contexte = Depends(get_contexte), services: Services = Depends(get_services)):
        return getattr(services, attr).lister(
            ctx.tenant_id, search, statut, tiers_id, date_from, date_to, page, limit
        )

    @router.post(prefix, status_code=201, name=f"creer_{attr}")
    def creer(body: FactureCreate, ctx: Contexte = Depends(get_contexte),
              services: Services = Depends(get_services)):
        return getattr(services, attr).creer(ctx.tenant_id, body.model_dump(), ctx.user)

    @router.get(prefix + "/{facture_id}", name=f"detail_{attr}")
    def detail(facture_id: str, ctx: Contexte = Depends(get_contexte),
               services: Services = Depends(get_services)):
        return getattr(services, attr).get(ctx.tenant_id, facture_id)

    @router.put(prefix + "/{facture_id}", name=f"modifier_{attr}")
    def modifier(facture_id: str, body: FactureUpdate, ctx: Contexte = Depends(get_contexte),
                 services: Services = Depends(get_services)):
        return getattr(services, attr).modifier(
            ctx.tenant_id, facture_id, body.model_dump(exclude_unset=True), ctx.user
        )

    @router.delete(prefix + "/{facture_id}", name=f"supprimer_{attr}")
    def supprimer(facture_id: str, ctx: Contexte = Depends(get_contexte),
                  services: Services = Depends(get_services)):
        getattr(services, attr).supprimer(ctx.tenant_id, facture_id, ctx.user)
        return {"status": "ok", "id": facture_id}

    @router.post(prefix + "/{facture_id}/valider", name=f"valider_{attr}")
    def valider(facture_id: str, ctx: Contexte = Depends(get_contexte),
                services: Services = Depends(get_services)):
        return getattr(services, attr).valider(ctx.tenant_id, facture_id, ctx.user)

    @router.post(prefix + "/{facture_id}/annuler", name=f"annuler_{attr}")
    def annuler(facture_id: str, ctx: Contexte = Depends(get_contexte),
                services: Services = Depends(get_services)):
        return getattr(services, attr).annuler(ctx.tenant_id, facture_id, ctx.user)


def ajouter_routes_paiements(router: APIRouter, prefix: str, attr: str, champ_tiers: str) -> None:

    @router.get(prefix + "/unpaid-invoices", name=f"impayes_{attr}")
    def factures_impayees(tiers_id: Optional[str] = Query(None, alias=champ_tiers),
                          ctx: Contexte = Depends(get_contexte),
                          services: Services = Depends(get_services)):
        if not tiers_id:
            raise ValidationError(f"{champ_tiers} est requis")
        service = getattr(services, attr)
        items = service.factures_impayees(ctx.tenant_id, tiers_id)
        return {
            "items": items,
            "total": len(items),
            "avance_disponible": float(service.avance_disponible(ctx.tenant_id, tiers_id)),
        }

    @router.get(prefix, name=f"lister_{attr}")
    def lister(search: Optional[str] = None,
               tiers_id: Optional[str] = Query(None, alias=champ_tiers),
               date_from: Optional[str] = Query(None, alias="from"),
               date_to: Optional[str] = Query(None, alias="to"),
               page: int = Query(1, ge=1), limit: int = Query(LIMITE_DEFAUT, ge=1),
               ctx: Contexte = Depends(get_contexte), services: Services = Depends(get_services)):
        return getattr(services, attr).lister(
            ctx.tenant_id, search, tiers_id, date_from, date_to, page, limit
        )

    @router.post(prefix, status_code=201, name=f"creer_{attr}")
    def creer(body: PaiementCreate, ctx: Contexte = Depends(get_contexte),
              services: Services = Depends(get_services)):
        return getattr(services, attr).creer(ctx.tenant_id, body.model_dump(), ctx.user)

    @router.get(prefix + "/{paiement_id}", name=f"detail_{attr}")
    def detail(paiement_id: str, ctx: Contexte = Depends(get_contexte),
               services: Services = Depends(get_services)):
        return getattr(services, attr).get(ctx.tenant_id, paiement_id)

    @router.patch(prefix + "/{paiement_id}", name=f"modifier_{attr}")
    def modifier(paiement_id: str, body: PaiementUpdate, ctx: Contexte = Depends(get_contexte),
                 services: Services = Depends(get_services)):
        return getattr(services, attr).modifier(
            ctx.tenant_id, paiement_id, body.model_dump(exclude_unset=True), ctx.user
        )

    @router.delete(prefix + "/{paiement_id}", name=f"supprimer_{attr}")
    def supprimer(paiement_id: str, ctx: Contexte = Depends(get_contexte),
                  services: Services = Depends(get_services)):
        getattr(services, attr).supprimer(ctx.tenant_id, paiement_id, ctx.user)
        return {"status": "ok", "id": paiement_id}
