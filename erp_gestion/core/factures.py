"""Cycle de vie des factures, commun aux achats et aux ventes.

Une facture est creee en brouillon, numerotee a la creation, puis validee.
Son statut de paiement (PARTIELLEMENT_PAYEE, PAYEE) est ensuite derive des
paiements enregistres par le module reglements.
"""

import logging
from datetime import date

from erp_gestion.calculs.reglements import date_echeance, montant_deja_paye, solde_restant
from erp_gestion.calculs.statuts import (
    verifier_annulable, verifier_modifiable, verifier_transition,
)
from erp_gestion.calculs.totaux import calculer_document
from erp_gestion.config.constants import Cote, StatutFacture
from erp_gestion.core.exceptions import ValidationError
from erp_gestion.core.pagination import paginer, rechercher
from erp_gestion.database.numerotation import Numerotation
from erp_gestion.database.store import Database, nouvel_id
from erp_gestion.security.audit_logger import AuditLogger
from erp_gestion.utils.date_utils import exiger_date, parser_date

logger = logging.getLogger("erp_gestion.factures")

CHAMPS_LIGNE = ("produit_id", "designation", "quantite", "prix_unitaire_ht",
                "remise_pct", "tva_pct", "unite", "reception_id")

CHAMPS_MODIFIABLES = ("numero_externe", "date_facture", "date_echeance", "lignes",
                      "remise_globale_pct", "fodec_actif", "taux_fodec", "timbre_actif",
                      "montant_timbre", "notes")


class FactureService:
    """Factures d'un cote (achat ou vente)."""

    def __init__(self, db: Database, cote: Cote, numerotation: Numerotation,
                 parametres, abonnements, audit: AuditLogger):
        self.db = db
        self.cote = cote
        self.collection = db[cote.collection_factures]
        self.paiements = db[cote.collection_paiements]
        self.tiers = db[cote.collection_tiers]
        self.produits = db["produits"]
        self.numerotation = numerotation
        self.parametres = parametres
        self.abonnements = abonnements
        self.audit = audit

    # --- Lecture ---

    def _enrichir(self, tenant_id: str, facture: dict, paiements: list[dict] = None) -> dict:
        if paiements is None:
            paiements = self.paiements.find(tenant_id)
        paye = montant_deja_paye(paiements, facture["id"])
        facture["montant_paye"] = float(paye)
        facture["solde_restant"] = float(solde_restant(facture.get("total_ttc", 0), paye))
        return facture

    def lister(self, tenant_id: str, search: str = None, statut: str = None,
               tiers_id: str = None, date_from: str = None, date_to: str = None,
               page: int = 1, limit: int = 20) -> dict:
        filtres = {}
        if statut:
            filtres["statut"] = statut
        if tiers_id:
            filtres[self.cote.champ_tiers] = tiers_id
        debut, fin = parser_date(date_from), parser_date(date_to)

        def _periode(f):
            d = parser_date(f.get("date_facture"))
            return (debut is None or (d and d >= debut)) and (fin is None or (d and d <= fin))

        items = self.collection.find(tenant_id, _periode, **filtres)
        items = rechercher(items, search, ("numero", "numero_externe", "tiers_nom", "notes"))
        resultat = paginer(items, page, limit, tri="date_facture")
        paiements = self.paiements.find(tenant_id)
        resultat["items"] = [self._enrichir(tenant_id, f, paiements) for f in resultat["items"]]
        return resultat

    def get(self, tenant_id: str, facture_id: str) -> dict:
        return self._enrichir(tenant_id, self.collection.get(tenant_id, facture_id))

    # --- Construction ---

    def _normaliser_lignes(self, tenant_id: str, lignes: list[dict]) -> list[dict]:
        resultat = []
        for ligne in lignes:
            ligne = {k: ligne.get(k) for k in CHAMPS_LIGNE if ligne.get(k) is not None}
            if ligne.get("produit_id"):
                produit = self.produits.get(tenant_id, ligne["produit_id"])
                ligne.setdefault("designation", produit.get("nom", ""))
                ligne.setdefault("unite", produit.get("unite"))
            if not ligne.get("designation"):
                ligne["designation"] = ""
            resultat.append(ligne)
        return resultat

    def _lignes_importees(self, tenant_id: str, data: dict) -> list[dict]:
        """Lignes supplementaires provenant d'autres documents (bons de reception)."""
        return []

    def _preparer(self, tenant_id: str, doc: dict) -> dict:
        if not doc.get("lignes"):
            raise ValidationError("La facture doit contenir au moins une ligne")
        date_facture = exiger_date(doc.get("date_facture"), "date_facture")
        doc["date_facture"] = date_facture.isoformat()
        if doc.get("date_echeance"):
            echeance = exiger_date(doc["date_echeance"], "date_echeance")
            if echeance < date_facture:
                raise ValidationError("L'échéance ne peut pas précéder la date de facture")
            doc["date_echeance"] = echeance.isoformat()
        calculer_document(doc)
        return doc

    def creer(self, tenant_id: str, data: dict, user: dict) -> dict:
        champ = self.cote.champ_tiers
        tiers_id = data.get(champ)
        if not tiers_id:
            raise ValidationError(f"{champ} est requis")
        tiers = self.tiers.get(tenant_id, tiers_id)

        doc = {k: data.get(k) for k in CHAMPS_MODIFIABLES if data.get(k) is not None}
        for cle, valeur in self.parametres.defauts_document(tenant_id).items():
            doc.setdefault(cle, valeur)
        doc.setdefault("remise_globale_pct", 0)
        doc.setdefault("date_facture", date.today().isoformat())
        doc["lignes"] = self._normaliser_lignes(tenant_id, data.get("lignes") or [])
        doc["lignes"] += self._lignes_importees(tenant_id, data)
        doc["echeance_auto"] = not doc.get("date_echeance")
        if doc["echeance_auto"]:
            doc["date_echeance"] = self._echeance(doc["date_facture"], tiers)
        self._preparer(tenant_id, doc)

        doc.update({
            "id": nouvel_id(),
            champ: tiers_id,
            "tiers_nom": tiers.get("nom_affiche", ""),
            "statut": StatutFacture.BROUILLON.value,
            "bons_reception_ids": list(dict.fromkeys(data.get("bons_reception_ids") or [])),
            "created_by": user.get("id"),
        })
        self._reserver_sources(tenant_id, doc)
        try:
            self.abonnements.consommer_document(tenant_id)
            doc["numero"] = self.numerotation.suivant(tenant_id, self.cote.sequence_facture)
            facture = self.collection.insert(tenant_id, doc)
        except Exception:
            self._liberer_sources(tenant_id, doc)
            raise
        self.audit.log_document(f"creation_facture_{self.cote.nom}", user, tenant_id, facture)
        logger.info("Facture %s creee (tenant %s, TTC %s)", facture["numero"], tenant_id,
                    facture["total_ttc"])
        return self._enrichir(tenant_id, facture)

    def _echeance(self, date_facture: str, tiers: dict) -> str:
        return date_echeance(
            exiger_date(date_facture, "date_facture"), tiers.get("conditions_paiement")
        ).isoformat()

    def _reserver_sources(self, tenant_id: str, facture: dict) -> None:
        """Rattache les documents sources (bons de reception) a la facture."""

    def _liberer_sources(self, tenant_id: str, facture: dict) -> None:
        pass

    def modifier(self, tenant_id: str, facture_id: str, changes: dict, user: dict) -> dict:
        facture = self.collection.get(tenant_id, facture_id)
        verifier_modifiable("facture", facture)
        changes = {k: v for k, v in changes.items() if k in CHAMPS_MODIFIABLES and v is not None}
        if "lignes" in changes:
            changes["lignes"] = self._normaliser_lignes(tenant_id, changes["lignes"])
        if "date_echeance" in changes:
            changes["echeance_auto"] = False
        elif "date_facture" in changes and facture.get("echeance_auto", True):
            tiers = self.tiers.get(tenant_id, facture[self.cote.champ_tiers])
            changes["date_echeance"] = self._echeance(changes["date_facture"], tiers)
        fusion = self._preparer(tenant_id, {**facture, **changes})
        facture = self.collection.update(tenant_id, facture_id, fusion)
        self.audit.log_document(f"modification_facture_{self.cote.nom}", user, tenant_id, facture)
        return self._enrichir(tenant_id, facture)

    def supprimer(self, tenant_id: str, facture_id: str, user: dict) -> dict:
        facture = self.collection.get(tenant_id, facture_id)
        verifier_modifiable("facture", facture)
        self._liberer_sources(tenant_id, facture)
        self.collection.delete(tenant_id, facture_id)
        self.audit.log_document(f"suppression_facture_{self.cote.nom}", user, tenant_id, facture)
        return facture

    # --- Transitions ---

    def valider(self, tenant_id: str, facture_id: str, user: dict) -> dict:
        facture = self.collection.get(tenant_id, facture_id)
        verifier_transition("facture", facture["statut"], StatutFacture.VALIDEE.value)
        if facture.get("total_ttc", 0) <= 0:
            raise ValidationError("Impossible de valider une facture de montant nul")
        facture = self.collection.update(tenant_id, facture_id, {
            "statut": StatutFacture.VALIDEE.value,
            "date_validation": date.today().isoformat(),
            "validee_par": user.get("id"),
        })
        self.audit.log_document(f"validation_facture_{self.cote.nom}", user, tenant_id, facture)
        logger.info("Facture %s validee (tenant %s)", facture["numero"], tenant_id)
        return self._enrichir(tenant_id, facture)

    def annuler(self, tenant_id: str, facture_id: str, user: dict) -> dict:
        def _annuler(tx):
            facture = self.collection.get(tenant_id, facture_id)
            verifier_annulable(facture, montant_deja_paye(tx.find(tenant_id), facture_id))
            return self.collection.update(tenant_id, facture_id, {
                "statut": StatutFacture.ANNULEE.value,
                "date_annulation": date.today().isoformat(),
            })

        # sous le verrou des paiements : aucun reglement ne peut s'intercaler
        facture = self.paiements.transaction(_annuler)
        self._liberer_sources(tenant_id, facture)
        self.audit.log_document(f"annulation_facture_{self.cote.nom}", user, tenant_id, facture)
        return self._enrichir(tenant_id, facture)
