"""Factures fournisseurs."""

from erp_gestion.config.constants import ACHAT
from erp_gestion.core.factures import FactureService


class FactureAchatService(FactureService):
    """Factures d'achat, avec import des lignes de bons de reception valides."""

    def __init__(self, db, numerotation, parametres, abonnements, audit, receptions):
        super().__init__(db, ACHAT, numerotation, parametres, abonnements, audit)
        self.receptions = receptions

    def _lignes_importees(self, tenant_id: str, data: dict) -> list[dict]:
        ids = data.get("bons_reception_ids") or []
        if not ids:
            return []
        return self.receptions.lignes_a_facturer(tenant_id, data["fournisseur_id"], ids)

    def _reserver_sources(self, tenant_id: str, facture: dict) -> None:
        if facture.get("bons_reception_ids"):
            self.receptions.reserver_pour_facture(
                tenant_id, facture["fournisseur_id"], facture["bons_reception_ids"], facture["id"]
            )

    def _liberer_sources(self, tenant_id: str, facture: dict) -> None:
        self.receptions.liberer(tenant_id, facture.get("bons_reception_ids", []))
