"""Tests du cycle achats/ventes : commandes, receptions, factures, paiements."""

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from concurrent.futures import ThreadPoolExecutor
from datetime import date

import pytest

from erp_gestion.config.settings import AppConfig, SecurityConfig
from erp_gestion.core.exceptions import (
    ConflictError, NotFoundError, SubscriptionLimitError, ValidationError,
)
from erp_gestion.core.services import Services

LIGNES = [
    {"designation": "Papier A4", "quantite": 10, "prix_unitaire_ht": 10, "tva_pct": 19},
]  # HT 100, TVA 19, timbre 1 -> TTC 120


def _services(tmp_path) -> tuple[Services, str, dict]:
    config = AppConfig(base_dir=tmp_path, data_dir=tmp_path / "data",
                       security=SecurityConfig(pbkdf2_iterations=1000))
    services = Services(config)
    user = services.auth.register("gestion@societe.tn", "motdepasse", "Gestion", "", "Societe")
    return services, user["tenant_id"], user


class TestFactures:

    def _preparer(self, tmp_path):
        self.services, self.tenant, self.user = _services(tmp_path)
        self.fournisseur = self.services.fournisseurs.creer(
            self.tenant, {"raison_sociale": "Fournisseur SA"}, self.user
        )

    def _facture(self, **extra) -> dict:
        data = {"fournisseur_id": self.fournisseur["id"], "date_facture": "2024-03-01",
                "lignes": LIGNES, **extra}
        return self.services.factures_achat.creer(self.tenant, data, self.user)

    def test_creation_brouillon_numerotee(self, tmp_path):
        self._preparer(tmp_path)
        facture = self._facture()
        assert facture["statut"] == "BROUILLON"
        assert facture["numero"] == f"FACFO-{date.today().year}-00001"
        assert facture["total_ttc"] == 120.0
        assert facture["date_echeance"] == "2024-03-31"
        assert facture["solde_restant"] == 120.0
        assert facture["tiers_nom"] == "Fournisseur SA"

    def test_facture_sans_ligne_refusee(self, tmp_path):
        self._preparer(tmp_path)
        with pytest.raises(ValidationError, match="au moins une ligne"):
            self._facture(lignes=[])

    def test_modification_apres_validation_refusee(self, tmp_path):
        self._preparer(tmp_path)
        facture = self._facture()
        modifiee = self.services.factures_achat.modifier(
            self.tenant, facture["id"], {"remise_globale_pct": 10}, self.user
        )
        assert modifiee["net_ht"] == 90.0
        self.services.factures_achat.valider(self.tenant, facture["id"], self.user)
        with pytest.raises(ConflictError):
            self.services.factures_achat.modifier(self.tenant, facture["id"], {"notes": "x"}, self.user)
        with pytest.raises(ConflictError):
            self.services.factures_achat.supprimer(self.tenant, facture["id"], self.user)

    def test_paiement_partiel_puis_total(self, tmp_path):
        self._preparer(tmp_path)
        facture = self._facture()
        self.services.factures_achat.valider(self.tenant, facture["id"], self.user)
        paiements = self.services.paiements_fournisseurs

        p1 = paiements.creer(self.tenant, {
            "fournisseur_id": self.fournisseur["id"],
            "lignes": [{"facture_id": facture["id"], "montant_paye": 50}],
        }, self.user)
        assert p1["numero"].startswith("PAFO-")
        assert p1["lignes"][0]["solde_restant_apres"] == 70.0
        assert self.services.factures_achat.get(self.tenant, facture["id"])["statut"] == "PARTIELLEMENT_PAYEE"

        with pytest.raises(ValidationError, match="dépasse le solde restant"):
            paiements.creer(self.tenant, {
                "fournisseur_id": self.fournisseur["id"],
                "lignes": [{"facture_id": facture["id"], "montant_paye": 70.5}],
            }, self.user)

        p2 = paiements.creer(self.tenant, {
            "fournisseur_id": self.fournisseur["id"],
            "lignes": [{"facture_id": facture["id"], "montant_paye": 70}],
        }, self.user)
        facture = self.services.factures_achat.get(self.tenant, facture["id"])
        assert facture["statut"] == "PAYEE"
        assert facture["solde_restant"] == 0.0

        paiements.supprimer(self.tenant, p2["id"], self.user)
        paiements.supprimer(self.tenant, p1["id"], self.user)
        assert self.services.factures_achat.get(self.tenant, facture["id"])["statut"] == "VALIDEE"

    def test_paiement_facture_brouillon_refuse(self, tmp_path):
        self._preparer(tmp_path)
        facture = self._facture()
        with pytest.raises(ConflictError, match="pas payable"):
            self.services.paiements_fournisseurs.creer(self.tenant, {
                "fournisseur_id": self.fournisseur["id"],
                "lignes": [{"facture_id": facture["id"], "montant_paye": 10}],
            }, self.user)

    def test_paiement_autre_fournisseur_refuse(self, tmp_path):
        self._preparer(tmp_path)
        facture = self._facture()
        self.services.factures_achat.valider(self.tenant, facture["id"], self.user)
        autre = self.services.fournisseurs.creer(self.tenant, {"raison_sociale": "Autre"}, self.user)
        with pytest.raises(ValidationError, match="n'appartient pas"):
            self.services.paiements_fournisseurs.creer(self.tenant, {
                "fournisseur_id": autre["id"],
                "lignes": [{"facture_id": facture["id"], "montant_paye": 10}],
            }, self.user)

    def test_avance_sur_compte(self, tmp_path):
        self._preparer(tmp_path)
        facture = self._facture()
        self.services.factures_achat.valider(self.tenant, facture["id"], self.user)
        paiements = self.services.paiements_fournisseurs

        avance = paiements.creer(self.tenant, {
            "fournisseur_id": self.fournisseur["id"],
            "paiement_sur_compte": True, "montant_sur_compte": 80,
        }, self.user)
        assert avance["lignes"][0]["libelle"] == "PAIEMENT SUR COMPTE"
        assert paiements.avance_disponible(self.tenant, self.fournisseur["id"]) == 80

        with pytest.raises(ValidationError, match="avance disponible"):
            paiements.creer(self.tenant, {
                "fournisseur_id": self.fournisseur["id"],
                "lignes": [{"facture_id": facture["id"], "montant_paye": 120}],
                "utiliser_avance": True, "montant_avance": 100,
            }, self.user)

        reglement = paiements.creer(self.tenant, {
            "fournisseur_id": self.fournisseur["id"],
            "lignes": [{"facture_id": facture["id"], "montant_paye": 120}],
            "utiliser_avance": True, "montant_avance": 80,
        }, self.user)
        assert reglement["montant_encaisse"] == 40.0
        assert paiements.avance_disponible(self.tenant, self.fournisseur["id"]) == 0

        with pytest.raises(ConflictError, match="avance"):
            paiements.supprimer(self.tenant, avance["id"], self.user)

    def test_modification_paiement_limitee(self, tmp_path):
        self._preparer(tmp_path)
        avance = self.services.paiements_fournisseurs.creer(self.tenant, {
            "fournisseur_id": self.fournisseur["id"],
            "paiement_sur_compte": True, "montant_sur_compte": 10,
        }, self.user)
        maj = self.services.paiements_fournisseurs.modifier(
            self.tenant, avance["id"], {"reference": "CHQ-42", "mode_paiement": "Chèque"}, self.user
        )
        assert maj["reference"] == "CHQ-42"
        with pytest.raises(ValidationError, match="non modifiables"):
            self.services.paiements_fournisseurs.modifier(
                self.tenant, avance["id"], {"montant_total": 999}, self.user
            )

    def test_solde_fournisseur(self, tmp_path):
        self._preparer(tmp_path)
        facture = self._facture()
        self.services.factures_achat.valider(self.tenant, facture["id"], self.user)
        solde = self.services.paiements_fournisseurs.solde_tiers(
            self.tenant, self.fournisseur["id"], date(2024, 5, 15)
        )
        assert solde["total_du"] == 120.0
        assert solde["factures"][0]["jours_retard"] == 45
        assert solde["balance_agee"]["31-60"] == 120.0
        assert solde["solde_net"] == 120.0

    def test_annulation(self, tmp_path):
        self._preparer(tmp_path)
        facture = self._facture()
        self.services.factures_achat.valider(self.tenant, facture["id"], self.user)
        annulee = self.services.factures_achat.annuler(self.tenant, facture["id"], self.user)
        assert annulee["statut"] == "ANNULEE"
        with pytest.raises(ConflictError):
            self.services.factures_achat.valider(self.tenant, facture["id"], self.user)

    def test_annulation_refusee_si_paiement(self, tmp_path):
        self._preparer(tmp_path)
        facture = self._facture()
        self.services.factures_achat.valider(self.tenant, facture["id"], self.user)
        self.services.paiements_fournisseurs.creer(self.tenant, {
            "fournisseur_id": self.fournisseur["id"],
            "lignes": [{"facture_id": facture["id"], "montant_paye": 20}],
        }, self.user)
        with pytest.raises(ConflictError, match="a des paiements"):
            self.services.factures_achat.annuler(self.tenant, facture["id"], self.user)
        assert self.services.factures_achat.get(self.tenant, facture["id"])["statut"] == "PARTIELLEMENT_PAYEE"

    def test_paiements_concurrents_du_solde(self, tmp_path):
        self._preparer(tmp_path)
        facture = self._facture()
        self.services.factures_achat.valider(self.tenant, facture["id"], self.user)

        def _payer(_):
            try:
                return self.services.paiements_fournisseurs.creer(self.tenant, {
                    "fournisseur_id": self.fournisseur["id"],
                    "lignes": [{"facture_id": facture["id"], "montant_paye": 120}],
                }, self.user)
            except (ValidationError, ConflictError) as e:
                return e

        with ThreadPoolExecutor(max_workers=2) as pool:
            resultats = list(pool.map(_payer, range(2)))
        reussis = [r for r in resultats if isinstance(r, dict)]
        assert len(reussis) == 1
        assert len(self.services.paiements_fournisseurs.lister(self.tenant)["items"]) == 1
        facture = self.services.factures_achat.get(self.tenant, facture["id"])
        assert facture["statut"] == "PAYEE"
        assert facture["solde_restant"] == 0.0

    def test_changement_de_date_recalcule_echeance(self, tmp_path):
        self._preparer(tmp_path)
        facture = self._facture()
        modifiee = self.services.factures_achat.modifier(
            self.tenant, facture["id"], {"date_facture": "2024-05-10"}, self.user
        )
        assert modifiee["date_echeance"] == "2024-06-09"

        fixee = self._facture(date_echeance="2024-12-31")
        modifiee = self.services.factures_achat.modifier(
            self.tenant, fixee["id"], {"date_facture": "2024-05-10"}, self.user
        )
        assert modifiee["date_echeance"] == "2024-12-31"

        modifiee = self.services.factures_achat.modifier(
            self.tenant, facture["id"], {"date_echeance": "2024-07-01"}, self.user
        )
        modifiee = self.services.factures_achat.modifier(
            self.tenant, facture["id"], {"date_facture": "2024-05-20"}, self.user
        )
        assert modifiee["date_echeance"] == "2024-07-01"

    def test_suppression_fournisseur_reference(self, tmp_path):
        self._preparer(tmp_path)
        self._facture()
        with pytest.raises(ConflictError, match="référencé"):
            self.services.fournisseurs.supprimer(self.tenant, self.fournisseur["id"])

    def test_isolation_tenant(self, tmp_path):
        self._preparer(tmp_path)
        facture = self._facture()
        autre = self.services.auth.register("b@autre.tn", "motdepasse", "B", "", "Autre")
        with pytest.raises(NotFoundError):
            self.services.factures_achat.get(autre["tenant_id"], facture["id"])
        assert self.services.factures_achat.lister(autre["tenant_id"])["total"] == 0

    def test_limite_abonnement(self, tmp_path):
        self._preparer(tmp_path)
        self.services.abonnements.definir(self.tenant, "free", documents_utilises=100)
        with pytest.raises(SubscriptionLimitError, match="Limite de 100"):
            self._facture()


class TestCycleAchat:

    def test_commande_reception_facture(self, tmp_path):
        services, tenant, user = _services(tmp_path)
        fournisseur = services.fournisseurs.creer(tenant, {"raison_sociale": "F"}, user)
        commande = services.commandes.creer(tenant, {
            "fournisseur_id": fournisseur["id"],
            "lignes": [{"designation": "Vis", "quantite": 100, "prix_unitaire_ht": 0.5,
                        "remise_pct": 10, "tva_pct": 19}],
        }, user)
        assert commande["numero"].startswith("CA-")
        assert commande["total_ttc"] == 53.55

        with pytest.raises(ConflictError, match="confirmée"):
            services.commandes.vers_reception(tenant, commande["id"], user)
        services.commandes.confirmer(tenant, commande["id"], user)
        reception = services.commandes.vers_reception(tenant, commande["id"], user)
        assert reception["numero"].startswith("BR-")
        assert reception["total_ht"] == 45.0

        with pytest.raises(ConflictError, match="pas validé"):
            services.factures_achat.creer(tenant, {
                "fournisseur_id": fournisseur["id"], "bons_reception_ids": [reception["id"]],
            }, user)

        services.receptions.valider(tenant, reception["id"], user)
        assert services.commandes.get(tenant, commande["id"])["statut"] == "RECUE"

        facture = services.factures_achat.creer(tenant, {
            "fournisseur_id": fournisseur["id"], "bons_reception_ids": [reception["id"]],
        }, user)
        assert facture["lignes"][0]["reception_id"] == reception["id"]
        assert facture["net_ht"] == 45.0
        assert services.receptions.get(tenant, reception["id"])["facture_id"] == facture["id"]
        with pytest.raises(ConflictError, match="déjà facturé"):
            services.receptions.annuler(tenant, reception["id"], user)

        services.factures_achat.supprimer(tenant, facture["id"], user)
        assert services.receptions.get(tenant, reception["id"])["facture_id"] is None

    def test_reception_sans_quantite(self, tmp_path):
        services, tenant, user = _services(tmp_path)
        fournisseur = services.fournisseurs.creer(tenant, {"raison_sociale": "F"}, user)
        reception = services.receptions.creer(tenant, {
            "fournisseur_id": fournisseur["id"],
            "lignes": [{"designation": "X", "qte_recue": 0, "prix_unitaire_ht": 5}],
        }, user)
        with pytest.raises(ValidationError, match="Aucune quantité"):
            services.receptions.valider(tenant, reception["id"], user)

    def _reception_validee(self, services, tenant, user, fournisseur):
        reception = services.receptions.creer(tenant, {
            "fournisseur_id": fournisseur["id"],
            "lignes": [{"designation": "Vis", "qte_recue": 4, "prix_unitaire_ht": 5}],
        }, user)
        return services.receptions.valider(tenant, reception["id"], user)

    def test_reception_d_une_commande_annulee(self, tmp_path):
        services, tenant, user = _services(tmp_path)
        fournisseur = services.fournisseurs.creer(tenant, {"raison_sociale": "F"}, user)
        commande = services.commandes.creer(tenant, {
            "fournisseur_id": fournisseur["id"],
            "lignes": [{"designation": "Vis", "quantite": 10, "prix_unitaire_ht": 1}],
        }, user)
        services.commandes.confirmer(tenant, commande["id"], user)
        reception = services.commandes.vers_reception(tenant, commande["id"], user)
        services.commandes.annuler(tenant, commande["id"], user)

        with pytest.raises(ConflictError, match="Transition impossible"):
            services.receptions.valider(tenant, reception["id"], user)
        assert services.receptions.get(tenant, reception["id"])["statut"] == "BROUILLON"
        assert services.commandes.get(tenant, commande["id"])["statut"] == "ANNULEE"

    def test_bon_facture_une_seule_fois(self, tmp_path):
        services, tenant, user = _services(tmp_path)
        fournisseur = services.fournisseurs.creer(tenant, {"raison_sociale": "F"}, user)
        reception = self._reception_validee(services, tenant, user, fournisseur)
        data = {"fournisseur_id": fournisseur["id"], "bons_reception_ids": [reception["id"]]}

        premiere = services.factures_achat.creer(tenant, data, user)
        with pytest.raises(ConflictError, match="déjà facturé"):
            services.factures_achat.creer(tenant, data, user)
        assert services.receptions.get(tenant, reception["id"])["facture_id"] == premiere["id"]
        assert services.factures_achat.lister(tenant)["total"] == 1

    def test_bon_libere_si_creation_echoue(self, tmp_path):
        services, tenant, user = _services(tmp_path)
        fournisseur = services.fournisseurs.creer(tenant, {"raison_sociale": "F"}, user)
        reception = self._reception_validee(services, tenant, user, fournisseur)
        services.abonnements.definir(tenant, "free", documents_utilises=100)
        with pytest.raises(SubscriptionLimitError):
            services.factures_achat.creer(tenant, {
                "fournisseur_id": fournisseur["id"], "bons_reception_ids": [reception["id"]],
            }, user)
        assert services.receptions.get(tenant, reception["id"])["facture_id"] is None

    def test_factures_concurrentes_sur_un_bon(self, tmp_path):
        services, tenant, user = _services(tmp_path)
        fournisseur = services.fournisseurs.creer(tenant, {"raison_sociale": "F"}, user)
        reception = self._reception_validee(services, tenant, user, fournisseur)

        def _facturer(_):
            try:
                return services.factures_achat.creer(tenant, {
                    "fournisseur_id": fournisseur["id"], "bons_reception_ids": [reception["id"]],
                }, user)
            except ConflictError as e:
                return e

        with ThreadPoolExecutor(max_workers=2) as pool:
            resultats = list(pool.map(_facturer, range(2)))
        reussies = [r for r in resultats if isinstance(r, dict)]
        assert len(reussies) == 1
        assert services.receptions.get(tenant, reception["id"])["facture_id"] == reussies[0]["id"]

    def test_lignes_importees_modifiables(self, tmp_path):
        services, tenant, user = _services(tmp_path)
        fournisseur = services.fournisseurs.creer(tenant, {"raison_sociale": "F"}, user)
        reception = self._reception_validee(services, tenant, user, fournisseur)
        facture = services.factures_achat.creer(tenant, {
            "fournisseur_id": fournisseur["id"], "bons_reception_ids": [reception["id"]],
        }, user)
        lignes = [{**l, "prix_unitaire_ht": 6} for l in facture["lignes"]]
        modifiee = services.factures_achat.modifier(tenant, facture["id"], {"lignes": lignes}, user)
        assert modifiee["lignes"][0]["reception_id"] == reception["id"]
        assert modifiee["net_ht"] == 24.0


class TestVentes:

    def test_facture_client_et_encaissement(self, tmp_path):
        services, tenant, user = _services(tmp_path)
        client = services.clients.creer(tenant, {"type": "particulier", "nom": "Trabelsi",
                                                 "prenom": "Sami",
                                                 "conditions_paiement": "comptant"}, user)
        assert client["nom_affiche"] == "Sami Trabelsi"
        facture = services.factures_vente.creer(tenant, {
            "client_id": client["id"], "date_facture": "2024-04-02", "lignes": LIGNES,
        }, user)
        assert facture["numero"].startswith("FAC-")
        assert facture["date_echeance"] == "2024-04-02"
        services.factures_vente.valider(tenant, facture["id"], user)

        impayees = services.paiements_clients.factures_impayees(tenant, client["id"])
        assert [f["id"] for f in impayees] == [facture["id"]]

        paiement = services.paiements_clients.creer(tenant, {
            "client_id": client["id"], "mode_paiement": "Espèces",
            "lignes": [{"facture_id": facture["id"], "montant_paye": 120}],
        }, user)
        assert paiement["numero"].startswith("PAC-")
        assert services.paiements_clients.factures_impayees(tenant, client["id"]) == []

    def test_mode_paiement_inconnu(self, tmp_path):
        services, tenant, user = _services(tmp_path)
        client = services.clients.creer(tenant, {"raison_sociale": "C"}, user)
        with pytest.raises(ValidationError, match="Mode de paiement"):
            services.paiements_clients.creer(tenant, {
                "client_id": client["id"], "mode_paiement": "Bitcoin",
                "paiement_sur_compte": True, "montant_sur_compte": 10,
            }, user)
