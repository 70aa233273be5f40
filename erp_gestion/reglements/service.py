"""Paiements fournisseurs et encaissements clients.

Un paiement est soit une allocation sur des factures (une ligne par facture),
soit un paiement sur compte qui alimente l'avance du tiers. L'avance peut
ensuite servir a regler des factures (``utiliser_avance``).

La verification des soldes et l'insertion du paiement se font sous le verrou
de la collection des paiements : deux paiements concurrents ne peuvent pas
consommer le meme solde restant.
"""

import logging
from datetime import date
from decimal import Decimal

from erp_gestion.calculs.reglements import (
    date_echeance, jours_retard, montant_deja_paye, solde_avance, solde_restant,
    statut_apres_paiement, tranche_anciennete, verifier_allocation, TRANCHES_ANCIENNETE,
)
from erp_gestion.calculs.statuts import verifier_transition
from erp_gestion.config.constants import (
    Cote, LIBELLE_PAIEMENT_SUR_COMPTE, MODES_PAIEMENT, STATUTS_PAYABLES,
)
from erp_gestion.core.exceptions import ConflictError, ValidationError
from erp_gestion.core.pagination import paginer, rechercher
from erp_gestion.database.numerotation import Numerotation
from erp_gestion.database.store import Database
from erp_gestion.security.audit_logger import AuditLogger
from erp_gestion.utils.date_utils import exiger_date, parser_date
from erp_gestion.utils.number_utils import TOLERANCE, arrondir, to_decimal

logger = logging.getLogger("erp_gestion.reglements")

ZERO = Decimal("0")
CHAMPS_MODIFIABLES = ("mode_paiement", "reference", "notes", "date_paiement")


class ReglementService:
    """Paiements d'un cote (fournisseurs ou clients)."""

    def __init__(self, db: Database, cote: Cote, numerotation: Numerotation, audit: AuditLogger):
        self.cote = cote
        self.collection = db[cote.collection_paiements]
        self.factures = db[cote.collection_factures]
        self.tiers = db[cote.collection_tiers]
        self.numerotation = numerotation
        self.audit = audit

    # --- Lecture ---

    def lister(self, tenant_id: str, search: str = None, tiers_id: str = None,
               date_from: str = None, date_to: str = None, page: int = 1, limit: int = 20) -> dict:
        filtres = {self.cote.champ_tiers: tiers_id} if tiers_id else {}
        debut, fin = parser_date(date_from), parser_date(date_to)

        def _periode(p):
            d = parser_date(p.get("date_paiement"))
            return (debut is None or (d and d >= debut)) and (fin is None or (d and d <= fin))

        items = self.collection.find(tenant_id, _periode, **filtres)
        items = rechercher(items, search, ("numero", "tiers_nom", "reference", "mode_paiement"))
        return paginer(items, page, limit, tri="date_paiement")

    def get(self, tenant_id: str, paiement_id: str) -> dict:
        return self.collection.get(tenant_id, paiement_id)

    def factures_impayees(self, tenant_id: str, tiers_id: str) -> list[dict]:
        """Factures payables du tiers avec leur solde restant, plus anciennes d'abord."""
        self.tiers.get(tenant_id, tiers_id)
        paiements = self.collection.find(tenant_id)
        resultat = []
        for facture in self.factures.find(tenant_id, **{self.cote.champ_tiers: tiers_id}):
            if facture["statut"] not in STATUTS_PAYABLES:
                continue
            paye = montant_deja_paye(paiements, facture["id"])
            restant = solde_restant(facture["total_ttc"], paye)
            if restant <= TOLERANCE:
                continue
            resultat.append({
                "id": facture["id"],
                "numero": facture["numero"],
                "date_facture": facture.get("date_facture"),
                "date_echeance": facture.get("date_echeance"),
                "statut": facture["statut"],
                "total_ttc": facture["total_ttc"],
                "montant_paye": float(paye),
                "solde_restant": float(restant),
            })
        resultat.sort(key=lambda f: f.get("date_facture") or "")
        return resultat

    def avance_disponible(self, tenant_id: str, tiers_id: str) -> Decimal:
        return solde_avance(self.collection.find(tenant_id, **{self.cote.champ_tiers: tiers_id}))

    # --- Creation ---

    def _valider_entete(self, data: dict) -> dict:
        mode = data.get("mode_paiement") or "Virement"
        if mode not in MODES_PAIEMENT:
            raise ValidationError(f"Mode de paiement inconnu : {mode}")
        return {
            "mode_paiement": mode,
            "reference": data.get("reference"),
            "notes": data.get("notes"),
            "date_paiement": exiger_date(
                data.get("date_paiement") or date.today().isoformat(), "date_paiement"
            ).isoformat(),
        }

    def _rafraichir_statuts(self, tenant_id: str, facture_ids, paiements: list[dict]) -> None:
        for facture_id in facture_ids:
            facture = self.factures.get(tenant_id, facture_id)
            paye = montant_deja_paye(paiements, facture_id)
            statut = statut_apres_paiement(facture["total_ttc"], paye, facture["statut"])
            if statut != facture["statut"]:
                verifier_transition("facture", facture["statut"], statut)
                self.factures.update(tenant_id, facture_id, {"statut": statut})
                logger.info("Facture %s : %s -> %s", facture["numero"], facture["statut"], statut)

    def creer(self, tenant_id: str, data: dict, user: dict) -> dict:
        champ = self.cote.champ_tiers
        tiers_id = data.get(champ)
        if not tiers_id:
            raise ValidationError(f"{champ} est requis")
        tiers = self.tiers.get(tenant_id, tiers_id)
        entete = self._valider_entete(data)
        sur_compte = bool(data.get("paiement_sur_compte"))
        utiliser_avance = bool(data.get("utiliser_avance"))
        lignes_demandees = data.get("lignes") or []

        if sur_compte:
            if lignes_demandees:
                raise ValidationError("Un paiement sur compte ne peut pas être alloué à des factures")
            if utiliser_avance:
                raise ValidationError("Un paiement sur compte ne peut pas utiliser l'avance")
            montant_sur_compte = arrondir(to_decimal(data.get("montant_sur_compte"), "montant_sur_compte"))
            if montant_sur_compte <= 0:
                raise ValidationError("Le montant sur compte doit être positif")
        elif not lignes_demandees:
            raise ValidationError("Sélectionnez au moins une facture à payer")

        ids = [l.get("facture_id") for l in lignes_demandees]
        if len(set(ids)) != len(ids):
            raise ValidationError("Une facture ne peut apparaître qu'une seule fois dans un paiement")

        def _enregistrer(tx):
            paiements = tx.find(tenant_id)
            lignes = []
            total = ZERO
            for demande in lignes_demandees:
                facture = self.factures.get(tenant_id, demande.get("facture_id") or "")
                if facture.get(champ) != tiers_id:
                    raise ValidationError(
                        f"La facture {facture['numero']} n'appartient pas à ce {self.cote.libelle_tiers.lower()}"
                    )
                if facture["statut"] not in STATUTS_PAYABLES:
                    raise ConflictError(
                        f"La facture {facture['numero']} n'est pas payable (statut {facture['statut']})"
                    )
                deja_paye = montant_deja_paye(paiements, facture["id"])
                montant = arrondir(to_decimal(demande.get("montant_paye"), "montant_paye"))
                restant_apres = verifier_allocation(
                    montant, facture["total_ttc"], deja_paye, facture["numero"]
                )
                total += montant
                lignes.append({
                    "facture_id": facture["id"],
                    "numero_facture": facture["numero"],
                    "montant_facture": facture["total_ttc"],
                    "montant_deja_paye": float(deja_paye),
                    "montant_paye": float(montant),
                    "solde_restant_apres": float(restant_apres),
                })

            avance_utilisee = ZERO
            if utiliser_avance:
                avance_utilisee = arrondir(to_decimal(data.get("montant_avance"), "montant_avance"))
                disponible = solde_avance(p for p in paiements if p.get(champ) == tiers_id)
                if avance_utilisee <= 0:
                    raise ValidationError("Le montant de l'avance doit être positif")
                if avance_utilisee > disponible + TOLERANCE:
                    raise ValidationError(
                        f"Le montant de l'avance ({avance_utilisee}) dépasse l'avance disponible ({disponible})"
                    )
                if avance_utilisee > total + TOLERANCE:
                    raise ValidationError("L'avance utilisée dépasse le montant du paiement")

            if sur_compte:
                total = montant_sur_compte
                lignes = [{"libelle": LIBELLE_PAIEMENT_SUR_COMPTE, "montant_paye": float(total)}]

            doc = {
                **entete,
                champ: tiers_id,
                "tiers_nom": tiers.get("nom_affiche", ""),
                "numero": self.numerotation.suivant(tenant_id, self.cote.sequence_paiement),
                "lignes": lignes,
                "montant_total": float(total),
                "paiement_sur_compte": sur_compte,
                "montant_sur_compte": float(total) if sur_compte else 0.0,
                "avance_utilisee": float(avance_utilisee),
                "montant_encaisse": float(arrondir(total - avance_utilisee)),
                "created_by": user.get("id"),
            }
            paiement = tx.insert(tenant_id, doc)
            self._rafraichir_statuts(tenant_id, ids, paiements + [paiement])
            return paiement

        paiement = self.collection.transaction(_enregistrer)
        self.audit.log_document(f"creation_paiement_{self.cote.nom}", user, tenant_id, paiement)
        logger.info("Paiement %s enregistre (tenant %s, montant %s)", paiement["numero"], tenant_id,
                    paiement["montant_total"])
        return paiement

    # --- Modification / suppression ---

    def modifier(self, tenant_id: str, paiement_id: str, changes: dict, user: dict) -> dict:
        self.get(tenant_id, paiement_id)
        interdits = [k for k, v in changes.items() if k not in CHAMPS_MODIFIABLES and v is not None]
        if interdits:
            raise ValidationError(
                f"Champs non modifiables : {', '.join(sorted(interdits))}. "
                f"Supprimez et recréez le paiement pour changer les montants."
            )
        changes = {k: v for k, v in changes.items() if v is not None}
        if "mode_paiement" in changes and changes["mode_paiement"] not in MODES_PAIEMENT:
            raise ValidationError(f"Mode de paiement inconnu : {changes['mode_paiement']}")
        if "date_paiement" in changes:
            changes["date_paiement"] = exiger_date(changes["date_paiement"], "date_paiement").isoformat()
        paiement = self.collection.update(tenant_id, paiement_id, changes)
        self.audit.log_document(f"modification_paiement_{self.cote.nom}", user, tenant_id, paiement)
        return paiement

    def supprimer(self, tenant_id: str, paiement_id: str, user: dict) -> dict:
        champ = self.cote.champ_tiers

        def _supprimer(tx):
            paiement = tx.get(tenant_id, paiement_id)
            restants = [p for p in tx.find(tenant_id) if p["id"] != paiement_id]
            du_tiers = [p for p in restants if p.get(champ) == paiement.get(champ)]
            credit = sum((to_decimal(p.get("montant_sur_compte")) for p in du_tiers
                          if p.get("paiement_sur_compte")), ZERO)
            utilise = sum((to_decimal(p.get("avance_utilisee")) for p in du_tiers), ZERO)
            if utilise > credit + TOLERANCE:
                raise ConflictError(
                    f"Suppression impossible : l'avance de ce paiement a déjà été utilisée "
                    f"({arrondir(utilise)} utilisés pour {arrondir(credit)} disponibles)"
                )
            supprime = tx.delete(tenant_id, paiement_id)
            ids = [l["facture_id"] for l in supprime.get("lignes", []) if l.get("facture_id")]
            self._rafraichir_statuts(tenant_id, ids, restants)
            return supprime

        paiement = self.collection.transaction(_supprimer)
        self.audit.log_document(f"suppression_paiement_{self.cote.nom}", user, tenant_id, paiement)
        logger.info("Paiement %s supprime (tenant %s)", paiement["numero"], tenant_id)
        return paiement

    # --- Solde du tiers ---

    def solde_tiers(self, tenant_id: str, tiers_id: str, reference: date = None) -> dict:
        """Factures ouvertes, balance agee et avance nette d'un tiers."""
        tiers = self.tiers.get(tenant_id, tiers_id)
        reference = reference or date.today()
        paiements = self.collection.find(tenant_id)
        par_tranche = {t: ZERO for t in TRANCHES_ANCIENNETE}
        factures = []
        total_du = ZERO
        for facture in self.factures.find(tenant_id, **{self.cote.champ_tiers: tiers_id}):
            if facture["statut"] not in STATUTS_PAYABLES:
                continue
            paye = montant_deja_paye(paiements, facture["id"])
            restant = solde_restant(facture["total_ttc"], paye)
            if restant <= 0:
                continue
            echeance = parser_date(facture.get("date_echeance")) or date_echeance(
                parser_date(facture["date_facture"]), tiers.get("conditions_paiement")
            )
            tranche = tranche_anciennete(echeance, reference)
            par_tranche[tranche] += restant
            total_du += restant
            factures.append({
                "id": facture["id"],
                "numero": facture["numero"],
                "date_facture": facture["date_facture"],
                "date_echeance": echeance.isoformat(),
                "total_ttc": facture["total_ttc"],
                "montant_paye": float(paye),
                "solde_restant": float(restant),
                "jours_retard": jours_retard(echeance, reference),
                "tranche": tranche,
            })
        factures.sort(key=lambda f: f["date_echeance"])
        avance = solde_avance(p for p in paiements if p.get(self.cote.champ_tiers) == tiers_id)
        return {
            self.cote.champ_tiers: tiers_id,
            "nom": tiers.get("nom_affiche", ""),
            "date_reference": reference.isoformat(),
            "factures": factures,
            "total_du": float(arrondir(total_du)),
            "balance_agee": {t: float(arrondir(v)) for t, v in par_tranche.items()},
            "avance_disponible": float(avance),
            "solde_net": float(arrondir(total_du - avance)),
        }
