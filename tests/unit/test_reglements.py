"""Tests de l'allocation des paiements, des statuts et des echeances."""

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from datetime import date
from decimal import Decimal

import pytest

from erp_gestion.calculs.reglements import (
    date_echeance, jours_retard, montant_deja_paye, solde_avance,
    statut_apres_paiement, tranche_anciennete, verifier_allocation,
)
from erp_gestion.calculs.statuts import (
    transition_autorisee, verifier_annulable, verifier_modifiable, verifier_transition,
)
from erp_gestion.core.exceptions import ConflictError, ValidationError


class TestAllocation:

    def test_montant_deja_paye(self):
        paiements = [
            {"lignes": [{"facture_id": "f1", "montant_paye": 40}, {"facture_id": "f2", "montant_paye": 5}]},
            {"lignes": [{"facture_id": "f1", "montant_paye": "10.5"}]},
            {"lignes": [{"libelle": "PAIEMENT SUR COMPTE", "montant_paye": 100}]},
        ]
        assert montant_deja_paye(paiements, "f1") == Decimal("50.500")
        assert montant_deja_paye(paiements, "f3") == Decimal("0.000")

    def test_allocation_valide(self):
        assert verifier_allocation(30, 100, 50, "FAC-1") == Decimal("20.000")

    def test_allocation_solde_exact(self):
        assert verifier_allocation("50", 100, 50, "FAC-1") == Decimal("0.000")

    def test_allocation_tolerance_millime(self):
        assert verifier_allocation("50.001", 100, 50, "FAC-1") == Decimal("0.000")

    def test_depassement_refuse(self):
        with pytest.raises(ValidationError, match="dépasse le solde restant") as exc:
            verifier_allocation("50.01", 100, 50, "FAC-2024-00001")
        assert "FAC-2024-00001" in str(exc.value)
        assert "50.000" in str(exc.value)

    def test_montant_nul_refuse(self):
        with pytest.raises(ValidationError, match="positif"):
            verifier_allocation(0, 100, 0, "FAC-1")


class TestStatutApresPaiement:

    def test_partiel_puis_paye(self):
        assert statut_apres_paiement(100, 40, "VALIDEE") == "PARTIELLEMENT_PAYEE"
        assert statut_apres_paiement(100, 100, "PARTIELLEMENT_PAYEE") == "PAYEE"
        assert statut_apres_paiement(100, "99.999", "VALIDEE") == "PAYEE"

    def test_retour_validee_jamais_brouillon(self):
        assert statut_apres_paiement(100, 0, "PAYEE") == "VALIDEE"
        assert statut_apres_paiement(100, 0, "PARTIELLEMENT_PAYEE") == "VALIDEE"

    def test_brouillon_et_annulee_inchanges(self):
        assert statut_apres_paiement(100, 100, "BROUILLON") == "BROUILLON"
        assert statut_apres_paiement(100, 0, "ANNULEE") == "ANNULEE"


class TestAvance:

    def test_solde_avance(self):
        paiements = [
            {"paiement_sur_compte": True, "montant_sur_compte": 500},
            {"paiement_sur_compte": False, "avance_utilisee": 120},
            {"paiement_sur_compte": False, "avance_utilisee": "30.5"},
        ]
        assert solde_avance(paiements) == Decimal("349.500")

    def test_solde_avance_jamais_negatif(self):
        assert solde_avance([{"avance_utilisee": 10}]) == Decimal("0")


class TestEcheances:

    def test_defaut_30_jours(self):
        assert date_echeance(date(2024, 1, 10)) == date(2024, 2, 9)
        assert date_echeance(date(2024, 1, 10), "conditions inconnues") == date(2024, 2, 9)

    def test_n_jours(self):
        assert date_echeance(date(2024, 1, 10), "60 jours") == date(2024, 3, 10)
        assert date_echeance(date(2024, 1, 10), "45") == date(2024, 2, 24)

    def test_fin_de_mois(self):
        assert date_echeance(date(2024, 2, 10), "Fin de mois") == date(2024, 2, 29)
        assert date_echeance(date(2024, 2, 10), "fin de mois + 15") == date(2024, 3, 15)

    def test_comptant(self):
        assert date_echeance(date(2024, 5, 3), "Comptant") == date(2024, 5, 3)
        assert date_echeance(date(2024, 5, 3), "à réception") == date(2024, 5, 3)

    def test_tranches_anciennete(self):
        echeance = date(2024, 1, 1)
        assert jours_retard(echeance, date(2023, 12, 1)) == 0
        assert tranche_anciennete(echeance, date(2024, 1, 31)) == "0-30"
        assert tranche_anciennete(echeance, date(2024, 2, 15)) == "31-60"
        assert tranche_anciennete(echeance, date(2024, 3, 15)) == "61-90"
        assert tranche_anciennete(echeance, date(2024, 6, 1)) == ">90"


class TestTransitions:

    def test_facture(self):
        assert transition_autorisee("facture", "BROUILLON", "VALIDEE")
        assert transition_autorisee("facture", "PAYEE", "VALIDEE")
        assert not transition_autorisee("facture", "PAYEE", "BROUILLON")
        assert not transition_autorisee("facture", "ANNULEE", "VALIDEE")
        assert not transition_autorisee("facture", "BROUILLON", "PAYEE")

    def test_reception_et_commande(self):
        assert transition_autorisee("reception", "VALIDE", "ANNULE")
        assert not transition_autorisee("reception", "ANNULE", "VALIDE")
        assert transition_autorisee("commande", "CONFIRMEE", "RECUE")
        assert not transition_autorisee("commande", "BROUILLON", "RECUE")

    def test_transition_refusee(self):
        with pytest.raises(ConflictError, match="Transition impossible"):
            verifier_transition("facture", "ANNULEE", "VALIDEE")

    def test_brouillon_seul_modifiable(self):
        verifier_modifiable("facture", {"statut": "BROUILLON"})
        with pytest.raises(ConflictError, match="brouillons"):
            verifier_modifiable("facture", {"statut": "VALIDEE", "numero": "FAC-1"})

    def test_annulation_avec_paiements_refusee(self):
        with pytest.raises(ConflictError, match="paiements"):
            verifier_annulable({"statut": "PARTIELLEMENT_PAYEE", "numero": "F"}, Decimal("10"))
        verifier_annulable({"statut": "VALIDEE", "numero": "F"}, Decimal("0"))
