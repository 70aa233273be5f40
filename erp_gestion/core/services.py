"""Assemblage des services de l'application a partir de la configuration."""

import logging

from erp_gestion.abonnements.service import AbonnementService
from erp_gestion.achats.commandes import CommandeService
from erp_gestion.achats.factures import FactureAchatService
from erp_gestion.achats.receptions import ReceptionService
from erp_gestion.comptabilite.rapports import GenerateurRapports
from erp_gestion.config.constants import ACHAT, VENTE
from erp_gestion.config.settings import AppConfig
from erp_gestion.database.numerotation import Numerotation
from erp_gestion.database.store import Database
from erp_gestion.garanties.service import GarantieService, ModeleGarantieService
from erp_gestion.parametres.service import ParametresService
from erp_gestion.reglements.service import ReglementService
from erp_gestion.rh.presences import EmployeService, PresenceService
from erp_gestion.security.audit_logger import AuditLogger
from erp_gestion.security.auth import AuthService
from erp_gestion.tiers.service import ProduitService, TiersService
from erp_gestion.ventes.factures import FactureVenteService

logger = logging.getLogger("erp_gestion.services")


class Services:
    """Conteneur des services partages par les routes."""

    def __init__(self, config: AppConfig):
        self.config = config
        self.db = Database(config.db_dir)
        self.audit = AuditLogger(config.audit_log_path)
        self.numerotation = Numerotation(self.db)

        self.auth = AuthService(self.db, config.security)
        self.parametres = ParametresService(self.db, config.fiscal, self.numerotation)
        self.abonnements = AbonnementService(self.db)

        self.fournisseurs = TiersService(self.db, ACHAT, (
            "factures_achat", "paiements_fournisseurs", "receptions", "commandes_achat",
        ))
        self.clients = TiersService(self.db, VENTE, (
            "factures_vente", "paiements_clients", "garanties",
        ))
        self.produits = ProduitService(self.db)

        self.receptions = ReceptionService(self.db, self.numerotation, self.parametres,
                                           self.abonnements, self.audit)
        self.commandes = CommandeService(self.db, self.numerotation, self.abonnements,
                                         self.audit, self.receptions)
        self.factures_achat = FactureAchatService(self.db, self.numerotation, self.parametres,
                                                  self.abonnements, self.audit, self.receptions)
        self.factures_vente = FactureVenteService(self.db, self.numerotation, self.parametres,
                                                  self.abonnements, self.audit)
        self.paiements_fournisseurs = ReglementService(self.db, ACHAT, self.numerotation, self.audit)
        self.paiements_clients = ReglementService(self.db, VENTE, self.numerotation, self.audit)

        self.employes = EmployeService(self.db)
        self.presences = PresenceService(self.db, config.rh, self.audit)

        self.modeles_garantie = ModeleGarantieService(self.db)
        self.garanties = GarantieService(self.db, self.numerotation, self.abonnements, self.audit)

        self.rapports = GenerateurRapports(self.db)
        logger.info("Services initialises (donnees: %s)", config.db_dir)
