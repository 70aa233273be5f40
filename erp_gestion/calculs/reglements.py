"""Allocation des paiements, solde d'avance et echeances."""

import re
from calendar import monthrange
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from dateutil.relativedelta import relativedelta

from erp_gestion.config.constants import StatutFacture
from erp_gestion.core.exceptions import ValidationError
from erp_gestion.utils.number_utils import TOLERANCE, arrondir, to_decimal

ZERO = Decimal("0")
DELAI_PAIEMENT_DEFAUT = 30

TRANCHES_ANCIENNETE = ("0-30", "31-60", "61-90", ">90")

_RE_JOURS = re.compile(r"(\d+)\s*j")
_RE_FIN_DE_MOIS = re.compile(r"fin\s+de\s+mois(?:\s*\+\s*(\d+))?")


def montant_deja_paye(paiements: Iterable[dict], facture_id: str) -> Decimal:
    """Somme des lignes d'allocation d'une facture, tous paiements confondus."""
    total = ZERO
    for paiement in paiements:
        for ligne in paiement.get("lignes", []):
            if ligne.get("facture_id") == facture_id:
                total += to_decimal(ligne.get("montant_paye"))
    return arrondir(total)


def solde_restant(total_ttc, deja_paye) -> Decimal:
    return arrondir(to_decimal(total_ttc) - to_decimal(deja_paye))


def verifier_allocation(montant, total_ttc, deja_paye, numero_facture: str) -> Decimal:
    """Valide le montant alloue a une facture et retourne le solde apres paiement.

    Leve ValidationError si le montant est nul ou negatif, ou s'il depasse le
    solde restant au-dela de la tolerance d'un millime.
    """
    montant = to_decimal(montant, "montant_paye")
    if montant <= 0:
        raise ValidationError(f"Le montant payé pour la facture {numero_facture} doit être positif")
    restant = solde_restant(total_ttc, deja_paye)
    if montant > restant + TOLERANCE:
        raise ValidationError(
            f"Le montant payé ({arrondir(montant)}) dépasse le solde restant "
            f"({restant}) de la facture {numero_facture}"
        )
    return max(arrondir(restant - montant), ZERO)


def statut_apres_paiement(total_ttc, total_paye, statut_actuel: str) -> str:
    """Statut derive du montant paye. Une facture validee ne redevient jamais brouillon."""
    if statut_actuel in (StatutFacture.BROUILLON.value, StatutFacture.ANNULEE.value):
        return statut_actuel
    total_ttc = to_decimal(total_ttc)
    total_paye = to_decimal(total_paye)
    if total_paye > 0 and total_paye >= total_ttc - TOLERANCE:
        return StatutFacture.PAYEE.value
    if total_paye > 0:
        return StatutFacture.PARTIELLEMENT_PAYEE.value
    return StatutFacture.VALIDEE.value


def solde_avance(paiements: Iterable[dict]) -> Decimal:
    """Avance nette d'un tiers : paiements sur compte moins avances deja utilisees."""
    credit = ZERO
    utilise = ZERO
    for paiement in paiements:
        if paiement.get("paiement_sur_compte"):
            credit += to_decimal(paiement.get("montant_sur_compte"))
        utilise += to_decimal(paiement.get("avance_utilisee"))
    return max(arrondir(credit - utilise), ZERO)


def date_echeance(date_facture: date, conditions: Optional[str] = None) -> date:
    """Echeance selon les conditions de paiement du tiers.

    Formats reconnus : "30 jours", "fin de mois", "fin de mois + 15",
    "comptant" / "a reception". Par defaut 30 jours.
    """
    texte = (conditions or "").strip().lower()
    if not texte:
        return date_facture + relativedelta(days=DELAI_PAIEMENT_DEFAUT)
    if "comptant" in texte or "réception" in texte or "reception" in texte:
        return date_facture
    m = _RE_FIN_DE_MOIS.search(texte)
    if m:
        fin_mois = date_facture.replace(day=monthrange(date_facture.year, date_facture.month)[1])
        return fin_mois + relativedelta(days=int(m.group(1) or 0))
    m = _RE_JOURS.search(texte)
    if m:
        return date_facture + relativedelta(days=int(m.group(1)))
    if texte.isdigit():
        return date_facture + relativedelta(days=int(texte))
    return date_facture + relativedelta(days=DELAI_PAIEMENT_DEFAUT)


def jours_retard(echeance: date, reference: date) -> int:
    return max((reference - echeance).days, 0)


def tranche_anciennete(echeance: date, reference: date) -> str:
    jours = jours_retard(echeance, reference)
    if jours <= 30:
        return "0-30"
    if jours <= 60:
        return "31-60"
    if jours <= 90:
        return "61-90"
    return ">90"
