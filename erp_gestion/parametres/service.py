"""Parametres par societe : numerotation, FODEC, timbre fiscal."""

import logging

from erp_gestion.config.constants import MODELES_NUMEROTATION
from erp_gestion.config.settings import FiscalConfig
from erp_gestion.core.exceptions import ValidationError
from erp_gestion.database.numerotation import Numerotation, valider_modele
from erp_gestion.database.store import Database

logger = logging.getLogger("erp_gestion.parametres")


class ParametresService:

    def __init__(self, db: Database, fiscal: FiscalConfig, numerotation: Numerotation):
        self.collection = db["parametres"]
        self.fiscal = fiscal
        self.numerotation = numerotation

    def _defauts(self) -> dict:
        return {
            "fodec_actif": self.fiscal.fodec_actif,
            "taux_fodec": float(self.fiscal.taux_fodec),
            "timbre_actif": self.fiscal.timbre_actif,
            "montant_timbre": float(self.fiscal.montant_timbre),
            "conditions_paiement": f"{self.fiscal.delai_paiement_jours} jours",
            "devise": self.fiscal.devise,
            "numerotation": {},
        }

    def get(self, tenant_id: str) -> dict:
        """Parametres effectifs : valeurs enregistrees completees par les defauts."""
        parametres = self._defauts()
        stocke = self.collection.find_one(tenant_id)
        if stocke:
            parametres.update({k: v for k, v in stocke.items() if v is not None})
        numerotation = {}
        for sequence, modele in MODELES_NUMEROTATION.items():
            reglage = parametres["numerotation"].get(sequence, {})
            numerotation[sequence] = {
                "modele": reglage.get("modele") or modele,
                "numero_depart": reglage.get("numero_depart") or 1,
                "prochain_numero": self.numerotation.apercu(tenant_id, sequence),
            }
        parametres["numerotation"] = numerotation
        return parametres

    def update(self, tenant_id: str, changes: dict) -> dict:
        changes = {k: v for k, v in changes.items() if v is not None}
        if "numerotation" in changes:
            stocke = self.collection.find_one(tenant_id) or {}
            numerotation = dict(stocke.get("numerotation") or {})
            for sequence, reglage in changes["numerotation"].items():
                if sequence not in MODELES_NUMEROTATION:
                    raise ValidationError(f"Séquence inconnue : {sequence}")
                reglage = {k: v for k, v in reglage.items() if v is not None}
                if "modele" in reglage:
                    valider_modele(reglage["modele"])
                numerotation[sequence] = {**numerotation.get(sequence, {}), **reglage}
            changes["numerotation"] = numerotation

        existant = self.collection.find_one(tenant_id)
        if existant:
            self.collection.update(tenant_id, existant["id"], changes)
        else:
            self.collection.insert(tenant_id, changes)
        logger.info("Parametres mis a jour (tenant %s): %s", tenant_id, ", ".join(sorted(changes)))
        return self.get(tenant_id)

    def defauts_document(self, tenant_id: str) -> dict:
        """Valeurs FODEC / timbre appliquees a un nouveau document."""
        p = self.get(tenant_id)
        return {
            "fodec_actif": p["fodec_actif"],
            "taux_fodec": p["taux_fodec"],
            "timbre_actif": p["timbre_actif"],
            "montant_timbre": p["montant_timbre"],
        }
