"""Rapports comptables et fiscaux.

Produit :
- Journal des ecritures et balance des comptes
- Etat de la TVA collectee / deductible par taux
- Export du journal au format Excel (.xlsx)
"""

import io
import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill

from erp_gestion.comptabilite.ecritures import Ecriture, MoteurEcritures
from erp_gestion.config.constants import ACHAT, VENTE, Cote, StatutFacture
from erp_gestion.core.exceptions import ValidationError
from erp_gestion.database.store import Database
from erp_gestion.utils.date_utils import parser_date
from erp_gestion.utils.number_utils import arrondir, to_decimal

logger = logging.getLogger("erp_gestion.comptabilite")

STATUTS_COMPTABILISES = (
    StatutFacture.VALIDEE.value,
    StatutFacture.PARTIELLEMENT_PAYEE.value,
    StatutFacture.PAYEE.value,
)


def _dans_periode(valeur, debut: Optional[date], fin: Optional[date]) -> bool:
    d = parser_date(valeur)
    if d is None:
        return False
    return (debut is None or d >= debut) and (fin is None or d <= fin)


class GenerateurRapports:
    """Genere les rapports comptables d'un tenant a partir de ses documents."""

    def __init__(self, db: Database):
        self.db = db

    def construire_moteur(self, tenant_id: str) -> MoteurEcritures:
        moteur = MoteurEcritures()
        for cote in (ACHAT, VENTE):
            for facture in self.db[cote.collection_factures].find(tenant_id):
                if facture["statut"] in STATUTS_COMPTABILISES:
                    moteur.generer_ecriture_facture(facture, cote)
            for paiement in self.db[cote.collection_paiements].find(tenant_id):
                moteur.generer_ecriture_reglement(paiement, cote)
        erreurs = moteur.desequilibrees()
        for erreur in erreurs:
            logger.error("Tenant %s : %s", tenant_id, erreur)
        return moteur

    def comptabilite(self, tenant_id: str, date_debut: Optional[date] = None,
                     date_fin: Optional[date] = None) -> dict:
        moteur = self.construire_moteur(tenant_id)
        ecritures = moteur.filtrer(date_debut, date_fin)
        return {
            "periode": {
                "from": date_debut.isoformat() if date_debut else None,
                "to": date_fin.isoformat() if date_fin else None,
            },
            "journal": [e.to_dict() for e in ecritures],
            "balance": moteur.get_balance(ecritures),
            "total_debit": float(sum((e.total_debit for e in ecritures), Decimal("0"))),
            "total_credit": float(sum((e.total_credit for e in ecritures), Decimal("0"))),
        }

    def etat_tva(self, tenant_id: str, cote: Cote, date_debut: date, date_fin: date) -> dict:
        """TVA collectee (ventes) ou deductible (achats) par taux sur la periode."""
        if date_debut is None or date_fin is None:
            raise ValidationError("Les paramètres from et to sont requis")
        if date_fin < date_debut:
            raise ValidationError("La date de fin précède la date de début")

        par_taux: dict[str, dict] = {}
        nb_factures = 0
        for facture in self.db[cote.collection_factures].find(tenant_id):
            if facture["statut"] not in STATUTS_COMPTABILISES:
                continue
            if not _dans_periode(facture.get("date_facture"), date_debut, date_fin):
                continue
            nb_factures += 1
            for detail in facture.get("detail_tva", []):
                entree = par_taux.setdefault(detail["code"], {
                    "code": detail["code"], "taux": detail["taux"],
                    "base": Decimal("0"), "tva": Decimal("0"),
                })
                entree["base"] += to_decimal(detail["base"])
                entree["tva"] += to_decimal(detail["tva"])

        lignes = []
        for code in sorted(par_taux, key=lambda c: par_taux[c]["taux"]):
            entree = par_taux[code]
            lignes.append({
                "code": code,
                "taux": entree["taux"],
                "base": float(arrondir(entree["base"])),
                "tva": float(arrondir(entree["tva"])),
            })
        return {
            "type": "collectee" if cote == VENTE else "deductible",
            "from": date_debut.isoformat(),
            "to": date_fin.isoformat(),
            "nb_factures": nb_factures,
            "par_taux": lignes,
            "total_base": float(arrondir(sum((to_decimal(l["base"]) for l in lignes), Decimal("0")))),
            "total_tva": float(arrondir(sum((to_decimal(l["tva"]) for l in lignes), Decimal("0")))),
        }

    def export_journal_xlsx(self, tenant_id: str, date_debut: Optional[date] = None,
                            date_fin: Optional[date] = None) -> bytes:
        """Journal des ecritures au format Excel, une ligne par mouvement."""
        moteur = self.construire_moteur(tenant_id)
        ecritures = moteur.filtrer(date_debut, date_fin)
        return _classeur_journal(ecritures, moteur.get_balance(ecritures))


def _classeur_journal(ecritures: list[Ecriture], balance: list[dict]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Journal"
    entete = ["Date", "Journal", "Pièce", "Compte", "Libellé", "Débit", "Crédit"]
    ws.append(entete)
    gras = Font(bold=True, color="FFFFFF")
    fond = PatternFill("solid", fgColor="1F4E78")
    for cellule in ws[1]:
        cellule.font = gras
        cellule.fill = fond
        cellule.alignment = Alignment(horizontal="center")

    for e in ecritures:
        for l in e.lignes:
            ws.append([
                e.date_ecriture, e.journal.value, e.numero_piece, l.compte, l.libelle,
                float(l.debit), float(l.credit),
            ])
    derniere = ws.max_row
    ws.append(["", "", "", "", "Total", f"=SUM(F2:F{derniere})", f"=SUM(G2:G{derniere})"])
    ws.cell(row=ws.max_row, column=5).font = Font(bold=True)

    for ligne in ws.iter_rows(min_row=2, min_col=6, max_col=7):
        for cellule in ligne:
            cellule.number_format = "#,##0.000"
    for ligne in ws.iter_rows(min_row=2, max_col=1):
        for cellule in ligne:
            cellule.number_format = "DD/MM/YYYY"
    for colonne, largeur in zip("ABCDEFG", (12, 9, 20, 10, 45, 15, 15)):
        ws.column_dimensions[colonne].width = largeur

    wb_balance = wb.create_sheet("Balance")
    wb_balance.append(["Compte", "Libellé", "Total débit", "Total crédit", "Solde débiteur", "Solde créditeur"])
    for cellule in wb_balance[1]:
        cellule.font = gras
        cellule.fill = fond
    for b in balance:
        wb_balance.append([b["compte"], b["libelle"], b["total_debit"], b["total_credit"],
                           b["solde_debiteur"], b["solde_crediteur"]])

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()
