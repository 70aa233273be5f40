"""Moteur d'ecritures comptables.

Genere les ecritures a partir des factures validees et des paiements :
journal des achats (AC), des ventes (VE), de banque (BQ) et de caisse (CA).
"""

import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from erp_gestion.config.constants import ACHAT, PLAN_COMPTABLE, Cote
from erp_gestion.utils.date_utils import parser_date
from erp_gestion.utils.number_utils import TOLERANCE, arrondir, to_decimal

ZERO = Decimal("0.000")

COMPTE_ACHATS = "607"
COMPTE_VENTES = "707"
COMPTE_TVA_DEDUCTIBLE = "4366"
COMPTE_TVA_COLLECTEE = "4367"
COMPTE_FODEC = "4368"
COMPTE_TIMBRE_ACHAT = "6354"
COMPTE_TIMBRE_VENTE = "4371"
COMPTE_BANQUE = "532"
COMPTE_CAISSE = "541"


class TypeJournal(str, Enum):
    ACHATS = "AC"
    VENTES = "VE"
    BANQUE = "BQ"
    CAISSE = "CA"


@dataclass
class LigneEcriture:
    compte: str
    libelle: str
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    piece_ref: str = ""

    @property
    def solde(self) -> Decimal:
        return self.debit - self.credit


@dataclass
class Ecriture:
    id: str = ""
    journal: TypeJournal = TypeJournal.BANQUE
    date_ecriture: date = None
    numero_piece: str = ""
    libelle: str = ""
    lignes: list[LigneEcriture] = field(default_factory=list)

    def __post_init__(self):
        if not self.id:
            self.id = str(uuid.uuid4())
        if self.date_ecriture is None:
            self.date_ecriture = date.today()

    @property
    def est_equilibree(self) -> bool:
        return abs(self.total_debit - self.total_credit) < TOLERANCE

    @property
    def total_debit(self) -> Decimal:
        return sum((l.debit for l in self.lignes), ZERO)

    @property
    def total_credit(self) -> Decimal:
        return sum((l.credit for l in self.lignes), ZERO)

    def ajouter(self, compte: str, libelle: str, debit=ZERO, credit=ZERO) -> None:
        """Ajoute une ligne, ignoree si son montant est nul."""
        debit, credit = arrondir(debit), arrondir(credit)
        if debit == 0 and credit == 0:
            return
        self.lignes.append(LigneEcriture(
            compte=compte, libelle=libelle, debit=debit, credit=credit,
            piece_ref=self.numero_piece,
        ))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "journal": self.journal.value,
            "date": self.date_ecriture.isoformat(),
            "piece": self.numero_piece,
            "libelle": self.libelle,
            "lignes": [{
                "compte": l.compte,
                "libelle_compte": PLAN_COMPTABLE.get(l.compte, ""),
                "libelle": l.libelle,
                "debit": float(l.debit),
                "credit": float(l.credit),
            } for l in self.lignes],
            "total_debit": float(self.total_debit),
            "total_credit": float(self.total_credit),
        }


class MoteurEcritures:
    """Genere les ecritures comptables d'un tenant."""

    def __init__(self):
        self.ecritures: list[Ecriture] = []

    def generer_ecriture_facture(self, facture: dict, cote: Cote) -> Ecriture:
        """Facture d'achat : debit achats + TVA deductible, credit fournisseur.
        Facture de vente : debit client, credit ventes + TVA collectee."""
        est_achat = cote == ACHAT
        net_ht = to_decimal(facture.get("net_ht"))
        fodec = to_decimal(facture.get("fodec"))
        tva = to_decimal(facture.get("total_tva"))
        timbre = to_decimal(facture.get("timbre"))
        ttc = to_decimal(facture.get("total_ttc"))
        tiers = facture.get("tiers_nom") or ""

        ecriture = Ecriture(
            journal=TypeJournal.ACHATS if est_achat else TypeJournal.VENTES,
            date_ecriture=parser_date(facture.get("date_facture")),
            numero_piece=facture.get("numero", ""),
            libelle=f"Facture {facture.get('numero', '')} {tiers}".strip(),
        )
        if est_achat:
            ecriture.ajouter(COMPTE_ACHATS, ecriture.libelle, debit=net_ht + fodec)
            ecriture.ajouter(COMPTE_TVA_DEDUCTIBLE, f"TVA deductible {ecriture.numero_piece}", debit=tva)
            ecriture.ajouter(COMPTE_TIMBRE_ACHAT, f"Timbre fiscal {ecriture.numero_piece}", debit=timbre)
            ecriture.ajouter(cote.compte_tiers, ecriture.libelle, credit=ttc)
        else:
            ecriture.ajouter(cote.compte_tiers, ecriture.libelle, debit=ttc)
            ecriture.ajouter(COMPTE_VENTES, ecriture.libelle, credit=net_ht)
            ecriture.ajouter(COMPTE_FODEC, f"FODEC {ecriture.numero_piece}", credit=fodec)
            ecriture.ajouter(COMPTE_TVA_COLLECTEE, f"TVA collectee {ecriture.numero_piece}", credit=tva)
            ecriture.ajouter(COMPTE_TIMBRE_VENTE, f"Timbre fiscal {ecriture.numero_piece}", credit=timbre)

        self.ecritures.append(ecriture)
        return ecriture

    def generer_ecriture_reglement(self, paiement: dict, cote: Cote) -> Ecriture:
        """Paiement fournisseur ou encaissement client.

        Les paiements sur compte mouvementent le compte d'avance du tiers;
        l'avance utilisee vient en deduction du montant encaisse.
        """
        est_achat = cote == ACHAT
        especes = paiement.get("mode_paiement") == "Espèces"
        total = to_decimal(paiement.get("montant_total"))
        avance = to_decimal(paiement.get("avance_utilisee"))
        encaisse = total - avance
        compte_tresorerie = COMPTE_CAISSE if especes else COMPTE_BANQUE
        compte_contrepartie = cote.compte_avance if paiement.get("paiement_sur_compte") else cote.compte_tiers
        libelle = f"Reglement {paiement.get('numero', '')} {paiement.get('tiers_nom') or ''}".strip()

        ecriture = Ecriture(
            journal=TypeJournal.CAISSE if especes else TypeJournal.BANQUE,
            date_ecriture=parser_date(paiement.get("date_paiement")),
            numero_piece=paiement.get("numero", ""),
            libelle=libelle,
        )
        if est_achat:
            ecriture.ajouter(compte_contrepartie, libelle, debit=total)
            ecriture.ajouter(cote.compte_avance, f"Imputation avance {ecriture.numero_piece}", credit=avance)
            ecriture.ajouter(compte_tresorerie, libelle, credit=encaisse)
        else:
            ecriture.ajouter(compte_tresorerie, libelle, debit=encaisse)
            ecriture.ajouter(cote.compte_avance, f"Imputation avance {ecriture.numero_piece}", debit=avance)
            ecriture.ajouter(compte_contrepartie, libelle, credit=total)

        self.ecritures.append(ecriture)
        return ecriture

    def filtrer(self, date_debut: Optional[date] = None, date_fin: Optional[date] = None,
                type_journal: Optional[TypeJournal] = None) -> list[Ecriture]:
        resultat = []
        for e in self.ecritures:
            if date_debut and e.date_ecriture < date_debut:
                continue
            if date_fin and e.date_ecriture > date_fin:
                continue
            if type_journal and e.journal != type_journal:
                continue
            resultat.append(e)
        return sorted(resultat, key=lambda e: (e.date_ecriture, e.journal.value, e.numero_piece))

    def desequilibrees(self) -> list[str]:
        return [
            f"Ecriture {e.numero_piece} ({e.libelle}) desequilibree: "
            f"D={e.total_debit} C={e.total_credit}"
            for e in self.ecritures if not e.est_equilibree
        ]

    def get_balance(self, ecritures: list[Ecriture] = None) -> list[dict]:
        """Retourne la balance des comptes."""
        totaux: dict[str, dict] = {}
        for e in self.ecritures if ecritures is None else ecritures:
            for l in e.lignes:
                if l.compte not in totaux:
                    totaux[l.compte] = {"total_debit": ZERO, "total_credit": ZERO}
                totaux[l.compte]["total_debit"] += l.debit
                totaux[l.compte]["total_credit"] += l.credit

        balance = []
        for compte in sorted(totaux.keys()):
            t = totaux[compte]
            solde = t["total_debit"] - t["total_credit"]
            balance.append({
                "compte": compte,
                "libelle": PLAN_COMPTABLE.get(compte, ""),
                "total_debit": float(t["total_debit"]),
                "total_credit": float(t["total_credit"]),
                "solde_debiteur": float(solde) if solde > 0 else 0.0,
                "solde_crediteur": float(abs(solde)) if solde < 0 else 0.0,
            })
        return balance
