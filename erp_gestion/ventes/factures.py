"""Factures clients."""

from erp_gestion.config.constants import VENTE
from erp_gestion.core.factures import FactureService


class FactureVenteService(FactureService):

    def __init__(self, db, numerotation, parametres, abonnements, audit):
        super().__init__(db, VENTE, numerotation, parametres, abonnements, audit)
