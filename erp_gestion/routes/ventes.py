"""Routes du cycle ventes : factures clients et encaissements."""

from fastapi import APIRouter

from erp_gestion.routes.commercial import ajouter_routes_factures, ajouter_routes_paiements

router = APIRouter(tags=["ventes"])

ajouter_routes_factures(router, "/api/sales/invoices", "factures_vente", "client_id")
ajouter_routes_paiements(router, "/api/sales/payments", "paiements_clients", "client_id")
