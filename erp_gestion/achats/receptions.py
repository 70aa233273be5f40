"""Bons de reception fournisseurs."""

import logging
from datetime import date

from erp_gestion.calculs.statuts import verifier_modifiable, verifier_transition
from erp_gestion.calculs.totaux import calculer_document
from erp_gestion.config.constants import StatutCommande, StatutReception
from erp_gestion.core.exceptions import ConflictError, ValidationError
from erp_gestion.core.pagination import paginer, rechercher
from erp_gestion.database.numerotation import Numerotation
from erp_gestion.database.store import Database
from erp_gestion.security.audit_logger import AuditLogger
from erp_gestion.utils.date_utils import exiger_date
from erp_gestion.utils.number_utils import to_decimal

logger = logging.getLogger("erp_gestion.achats.receptions")

CHAMPS_LIGNE = ("produit_id", "designation", "quantite_commandee", "qte_recue",
                "prix_unitaire_ht", "remise_pct", "tva_pct", "unite")


class ReceptionService:

    def __init__(self, db: Database, numerotation: Numerotation, parametres, abonnements,
                 audit: AuditLogger):
        self.collection = db["receptions"]
        self.commandes = db["commandes_achat"]
        self.fournisseurs = db["fournisseurs"]
        self.produits = db["produits"]
        self.numerotation = numerotation
        self.parametres = parametres
        self.abonnements = abonnements
        self.audit = audit

    def lister(self, tenant_id: str, search: str = None, statut: str = None,
               fournisseur_id: str = None, page: int = 1, limit: int = 20) -> dict:
        filtres = {}
        if statut:
            filtres["statut"] = statut
        if fournisseur_id:
            filtres["fournisseur_id"] = fournisseur_id
        items = rechercher(self.collection.find(tenant_id, **filtres), search,
                           ("numero", "fournisseur_nom", "notes"))
        return paginer(items, page, limit, tri="date_reception")

    def get(self, tenant_id: str, reception_id: str) -> dict:
        return self.collection.get(tenant_id, reception_id)

    def _preparer(self, tenant_id: str, doc: dict) -> dict:
        lignes = []
        for ligne in doc.get("lignes") or []:
            ligne = {k: ligne.get(k) for k in CHAMPS_LIGNE if ligne.get(k) is not None}
            if to_decimal(ligne.get("qte_recue"), "qte_recue") < 0:
                raise ValidationError("La quantité reçue doit être positive")
            if ligne.get("produit_id"):
                produit = self.produits.get(tenant_id, ligne["produit_id"])
                ligne.setdefault("designation", produit.get("nom", ""))
            lignes.append(ligne)
        if not lignes:
            raise ValidationError("Le bon de réception doit contenir au moins une ligne")
        doc["lignes"] = lignes
        doc["date_reception"] = exiger_date(
            doc.get("date_reception") or date.today().isoformat(), "date_reception"
        ).isoformat()
        doc["remise_globale_pct"] = 0
        calculer_document(doc, champ_quantite="qte_recue")
        return doc

    def creer(self, tenant_id: str, data: dict, user: dict) -> dict:
        fournisseur = self.fournisseurs.get(tenant_id, data.get("fournisseur_id") or "")
        if data.get("commande_id"):
            commande = self.commandes.get(tenant_id, data["commande_id"])
            if commande["fournisseur_id"] != fournisseur["id"]:
                raise ValidationError("La commande n'appartient pas à ce fournisseur")
            if commande["statut"] != StatutCommande.CONFIRMEE.value:
                raise ConflictError("Seule une commande confirmée peut être réceptionnée")

        doc = {k: v for k, v in data.items() if v is not None}
        for cle, valeur in self.parametres.defauts_document(tenant_id).items():
            doc.setdefault(cle, valeur)
        self._preparer(tenant_id, doc)

        self.abonnements.consommer_document(tenant_id)
        doc.update({
            "fournisseur_nom": fournisseur.get("nom_affiche", ""),
            "numero": self.numerotation.suivant(tenant_id, "br"),
            "statut": StatutReception.BROUILLON.value,
            "facture_id": None,
            "created_by": user.get("id"),
        })
        reception = self.collection.insert(tenant_id, doc)
        self.audit.log_document("creation_reception", user, tenant_id, reception)
        logger.info("Bon de reception %s cree (tenant %s)", reception["numero"], tenant_id)
        return reception

    def modifier(self, tenant_id: str, reception_id: str, changes: dict, user: dict) -> dict:
        reception = self.get(tenant_id, reception_id)
        verifier_modifiable("reception", reception)
        changes = {k: v for k, v in changes.items() if v is not None}
        fusion = self._preparer(tenant_id, {**reception, **changes})
        reception = self.collection.update(tenant_id, reception_id, fusion)
        self.audit.log_document("modification_reception", user, tenant_id, reception)
        return reception

    def supprimer(self, tenant_id: str, reception_id: str, user: dict) -> dict:
        reception = self.get(tenant_id, reception_id)
        verifier_modifiable("reception", reception)
        self.collection.delete(tenant_id, reception_id)
        self.audit.log_document("suppression_reception", user, tenant_id, reception)
        return reception

    def valider(self, tenant_id: str, reception_id: str, user: dict) -> dict:
        reception = self.get(tenant_id, reception_id)
        verifier_transition("reception", reception["statut"], StatutReception.VALIDE.value)
        total_recu = sum(to_decimal(l.get("qte_recue")) for l in reception["lignes"])
        if total_recu <= 0:
            raise ValidationError("Aucune quantité reçue : validation impossible")
        commande = None
        if reception.get("commande_id"):
            commande = self.commandes.get(tenant_id, reception["commande_id"])
            verifier_transition("commande", commande["statut"], StatutCommande.RECUE.value)
        reception = self.collection.update(tenant_id, reception_id, {
            "statut": StatutReception.VALIDE.value,
            "date_validation": date.today().isoformat(),
        })
        if commande:
            self.commandes.update(tenant_id, commande["id"], {"statut": StatutCommande.RECUE.value})
        self.audit.log_document("validation_reception", user, tenant_id, reception)
        return reception

    def annuler(self, tenant_id: str, reception_id: str, user: dict) -> dict:
        reception = self.get(tenant_id, reception_id)
        if reception.get("facture_id"):
            raise ConflictError(f"Le bon {reception['numero']} est déjà facturé")
        verifier_transition("reception", reception["statut"], StatutReception.ANNULE.value)
        reception = self.collection.update(tenant_id, reception_id,
                                           {"statut": StatutReception.ANNULE.value})
        self.audit.log_document("annulation_reception", user, tenant_id, reception)
        return reception

    # --- Facturation ---

    def _verifier_facturable(self, reception: dict, fournisseur_id: str) -> None:
        if reception["fournisseur_id"] != fournisseur_id:
            raise ValidationError(f"Le bon {reception['numero']} n'appartient pas à ce fournisseur")
        if reception["statut"] != StatutReception.VALIDE.value:
            raise ConflictError(f"Le bon {reception['numero']} n'est pas validé")
        if reception.get("facture_id"):
            raise ConflictError(f"Le bon {reception['numero']} est déjà facturé")

    def lignes_a_facturer(self, tenant_id: str, fournisseur_id: str,
                          reception_ids: list[str]) -> list[dict]:
        """Lignes de facture issues de bons valides et non encore factures."""
        lignes = []
        for reception_id in dict.fromkeys(reception_ids):
            reception = self.get(tenant_id, reception_id)
            self._verifier_facturable(reception, fournisseur_id)
            for ligne in reception["lignes"]:
                if to_decimal(ligne.get("qte_recue")) <= 0:
                    continue
                lignes.append({
                    "produit_id": ligne.get("produit_id"),
                    "designation": ligne.get("designation", ""),
                    "quantite": ligne.get("qte_recue"),
                    "prix_unitaire_ht": ligne.get("prix_unitaire_ht", 0),
                    "remise_pct": ligne.get("remise_pct", 0),
                    "tva_pct": ligne.get("tva_pct", 0),
                    "unite": ligne.get("unite"),
                    "reception_id": reception_id,
                })
        return lignes

    def reserver_pour_facture(self, tenant_id: str, fournisseur_id: str,
                              reception_ids: list[str], facture_id: str) -> None:
        """Rattache les bons a une facture, sous le verrou des receptions.

        Les controles sont refaits sous le verrou : deux factures ne peuvent
        pas importer le meme bon.
        """
        def _reserver(tx):
            bons = [tx.get(tenant_id, rid) for rid in dict.fromkeys(reception_ids)]
            for reception in bons:
                self._verifier_facturable(reception, fournisseur_id)
            for reception in bons:
                reception["facture_id"] = facture_id
        self.collection.transaction(_reserver)

    def liberer(self, tenant_id: str, reception_ids: list[str]) -> None:
        for reception_id in reception_ids:
            self.collection.update(tenant_id, reception_id, {"facture_id": None})
