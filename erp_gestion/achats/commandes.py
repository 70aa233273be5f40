"""Commandes fournisseurs."""

import logging
from datetime import date

from erp_gestion.calculs.statuts import verifier_transition
from erp_gestion.calculs.totaux import calculer_document
from erp_gestion.config.constants import StatutCommande
from erp_gestion.core.exceptions import ConflictError, ValidationError
from erp_gestion.core.pagination import paginer, rechercher
from erp_gestion.database.numerotation import Numerotation
from erp_gestion.database.store import Database
from erp_gestion.security.audit_logger import AuditLogger
from erp_gestion.utils.date_utils import exiger_date

logger = logging.getLogger("erp_gestion.achats.commandes")


class CommandeService:

    def __init__(self, db: Database, numerotation: Numerotation, abonnements,
                 audit: AuditLogger, receptions):
        self.collection = db["commandes_achat"]
        self.fournisseurs = db["fournisseurs"]
        self.produits = db["produits"]
        self.numerotation = numerotation
        self.abonnements = abonnements
        self.audit = audit
        self.receptions = receptions

    def lister(self, tenant_id: str, search: str = None, statut: str = None,
               fournisseur_id: str = None, page: int = 1, limit: int = 20) -> dict:
        filtres = {}
        if statut:
            filtres["statut"] = statut
        if fournisseur_id:
            filtres["fournisseur_id"] = fournisseur_id
        items = rechercher(self.collection.find(tenant_id, **filtres), search,
                           ("numero", "fournisseur_nom", "notes"))
        return paginer(items, page, limit, tri="date_commande")

    def get(self, tenant_id: str, commande_id: str) -> dict:
        return self.collection.get(tenant_id, commande_id)

    def creer(self, tenant_id: str, data: dict, user: dict) -> dict:
        fournisseur = self.fournisseurs.get(tenant_id, data.get("fournisseur_id") or "")
        doc = {k: v for k, v in data.items() if v is not None}
        if not doc.get("lignes"):
            raise ValidationError("La commande doit contenir au moins une ligne")
        for ligne in doc["lignes"]:
            if ligne.get("produit_id"):
                produit = self.produits.get(tenant_id, ligne["produit_id"])
                ligne["designation"] = ligne.get("designation") or produit.get("nom", "")
        doc["date_commande"] = exiger_date(
            doc.get("date_commande") or date.today().isoformat(), "date_commande"
        ).isoformat()
        doc.update({"fodec_actif": False, "timbre_actif": False})
        calculer_document(doc)

        self.abonnements.consommer_document(tenant_id)
        doc.update({
            "fournisseur_nom": fournisseur.get("nom_affiche", ""),
            "numero": self.numerotation.suivant(tenant_id, "ca"),
            "statut": StatutCommande.BROUILLON.value,
            "created_by": user.get("id"),
        })
        commande = self.collection.insert(tenant_id, doc)
        self.audit.log_document("creation_commande", user, tenant_id, commande)
        logger.info("Commande %s creee (tenant %s)", commande["numero"], tenant_id)
        return commande

    def _changer_statut(self, tenant_id: str, commande_id: str, statut: str, user: dict) -> dict:
        commande = self.get(tenant_id, commande_id)
        verifier_transition("commande", commande["statut"], statut)
        commande = self.collection.update(tenant_id, commande_id, {"statut": statut})
        self.audit.log_document(f"commande_{statut.lower()}", user, tenant_id, commande)
        return commande

    def confirmer(self, tenant_id: str, commande_id: str, user: dict) -> dict:
        return self._changer_statut(tenant_id, commande_id, StatutCommande.CONFIRMEE.value, user)

    def annuler(self, tenant_id: str, commande_id: str, user: dict) -> dict:
        return self._changer_statut(tenant_id, commande_id, StatutCommande.ANNULEE.value, user)

    def vers_reception(self, tenant_id: str, commande_id: str, user: dict) -> dict:
        """Cree un bon de reception brouillon reprenant les quantites commandees."""
        commande = self.get(tenant_id, commande_id)
        if commande["statut"] != StatutCommande.CONFIRMEE.value:
            raise ConflictError("Seule une commande confirmée peut être réceptionnée")
        lignes = [{
            "produit_id": l.get("produit_id"),
            "designation": l.get("designation", ""),
            "quantite_commandee": l.get("quantite", 0),
            "qte_recue": l.get("quantite", 0),
            "prix_unitaire_ht": l.get("prix_unitaire_ht", 0),
            "remise_pct": l.get("remise_pct", 0),
            "tva_pct": l.get("tva_pct", 0),
            "unite": l.get("unite"),
        } for l in commande["lignes"]]
        return self.receptions.creer(tenant_id, {
            "fournisseur_id": commande["fournisseur_id"],
            "commande_id": commande_id,
            "lignes": lignes,
            "notes": f"Réception de la commande {commande['numero']}",
        }, user)
