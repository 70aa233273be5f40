"""Numerotation des documents par tenant.

Les modeles acceptent les balises {{YYYY}}, {{YY}}, {{MM}}, {{DD}},
{{SEQ:n}} (sequence completee par des zeros) et {{SEQ}}.
"""

import logging
import re
from datetime import date
from typing import Optional

from erp_gestion.config.constants import MODELES_NUMEROTATION
from erp_gestion.core.exceptions import ValidationError
from erp_gestion.database.store import Database, PersistentStore

logger = logging.getLogger("erp_gestion.numerotation")

_RE_SEQ = re.compile(r"\{\{SEQ(?::(\d+))?\}\}")


def formater_numero(modele: str, sequence: int, jour: Optional[date] = None) -> str:
    """Applique un modele de numerotation a une valeur de sequence."""
    jour = jour or date.today()
    resultat = (
        modele.replace("{{YYYY}}", f"{jour.year:04d}")
        .replace("{{YY}}", f"{jour.year % 100:02d}")
        .replace("{{MM}}", f"{jour.month:02d}")
        .replace("{{DD}}", f"{jour.day:02d}")
    )

    def _seq(m: re.Match) -> str:
        largeur = int(m.group(1)) if m.group(1) else 0
        return str(sequence).zfill(largeur)

    return _RE_SEQ.sub(_seq, resultat)


def valider_modele(modele: str) -> None:
    if not modele or not _RE_SEQ.search(modele):
        raise ValidationError("Le modèle de numérotation doit contenir {{SEQ}} ou {{SEQ:n}}")


class Numerotation:
    """Compteurs de sequences par tenant.

    Les compteurs sont conserves dans un store dedie, incrementes sous le
    verrou exclusif : deux requetes concurrentes n'obtiennent jamais le meme
    numero.
    """

    def __init__(self, db: Database):
        self.db = db
        self._compteurs = PersistentStore("compteurs", db.db_dir, default={})

    def _reglages(self, tenant_id: str, sequence: str) -> tuple[str, int]:
        if sequence not in MODELES_NUMEROTATION:
            raise ValidationError(f"Séquence inconnue : {sequence}")
        modele = MODELES_NUMEROTATION[sequence]
        depart = 1
        parametres = self.db["parametres"].find_one(tenant_id)
        if parametres:
            numerotation = parametres.get("numerotation", {}).get(sequence, {})
            modele = numerotation.get("modele") or modele
            depart = int(numerotation.get("numero_depart") or 1)
        return modele, depart

    def suivant(self, tenant_id: str, sequence: str, jour: Optional[date] = None) -> str:
        """Consomme et retourne le prochain numero de la sequence."""
        modele, depart = self._reglages(tenant_id, sequence)

        def _incrementer(data):
            compteurs = data.setdefault(tenant_id, {})
            valeur = max(compteurs.get(sequence, 0) + 1, depart)
            compteurs[sequence] = valeur
            return valeur

        valeur = self._compteurs.update(_incrementer)
        numero = formater_numero(modele, valeur, jour)
        logger.debug("Numero %s attribue (tenant %s, sequence %s)", numero, tenant_id, sequence)
        return numero

    def apercu(self, tenant_id: str, sequence: str, jour: Optional[date] = None) -> str:
        """Prochain numero sans consommer la sequence."""
        modele, depart = self._reglages(tenant_id, sequence)
        courant = self._compteurs.load().get(tenant_id, {}).get(sequence, 0)
        return formater_numero(modele, max(courant + 1, depart), jour)
