"""Tests des modeles et certificats de garantie."""

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from datetime import date

import pytest

from erp_gestion.config.settings import AppConfig, SecurityConfig
from erp_gestion.core.exceptions import ConflictError, ValidationError
from erp_gestion.core.services import Services
from erp_gestion.garanties.service import (
    rendre_contenu, statut_effectif, valider_donnees, verifier_syntaxe,
)

CHAMPS = [
    {"nom": "numero_serie", "libelle": "Numéro de série", "type": "text", "required": True},
    {"nom": "marque", "libelle": "Marque", "type": "text", "required": False},
]

CONTENU = (
    "Certificat {{ numero }} pour {{ client_nom }}. "
    "Serie {{ numero_serie }}, valable jusqu'au {{ date_expiration }}."
    "{% for a in articles %} [{{ a.designation }}]{% endfor %}"
)


class TestRendu:

    def test_rendu_variables(self):
        texte = rendre_contenu("Bonjour {{ nom }} ({{ articles|length }})",
                               {"nom": "Sami", "articles": [1, 2]})
        assert texte == "Bonjour Sami (2)"

    def test_syntaxe_invalide(self):
        with pytest.raises(ValidationError, match="Modèle de garantie invalide"):
            verifier_syntaxe("{% for x in %}")

    def test_acces_interdit_en_sandbox(self):
        with pytest.raises(ValidationError):
            rendre_contenu("{{ ''.__class__.__mro__[1].__subclasses__() }}", {})

    def test_erreur_execution_convertie(self):
        with pytest.raises(ValidationError, match="Modèle de garantie invalide"):
            rendre_contenu("{{ 1/0 }}", {})
        with pytest.raises(ValidationError, match="Modèle de garantie invalide"):
            rendre_contenu("{{ nom + 1 }}", {"nom": "Sami"})

    def test_cle_self_dans_les_donnees(self):
        assert rendre_contenu("Bonjour {{ nom }}", {"self": "x", "nom": "Sami"}) == "Bonjour Sami"

    def test_champs_obligatoires(self):
        valider_donnees(CHAMPS, {"numero_serie": "SN-1"})
        with pytest.raises(ValidationError, match="Numéro de série"):
            valider_donnees(CHAMPS, {"numero_serie": "  ", "marque": "X"})

    def test_statut_effectif(self):
        garantie = {"statut": "active", "date_expiration": "2024-06-30"}
        assert statut_effectif(garantie, date(2024, 6, 30)) == "active"
        assert statut_effectif(garantie, date(2024, 7, 1)) == "expired"
        assert statut_effectif({**garantie, "statut": "void"}, date(2024, 7, 1)) == "void"
        assert statut_effectif({"statut": "active"}, date(2030, 1, 1)) == "active"


class TestGarantieService:

    def _preparer(self, tmp_path):
        config = AppConfig(base_dir=tmp_path, data_dir=tmp_path / "data",
                           security=SecurityConfig(pbkdf2_iterations=1000))
        services = Services(config)
        user = services.auth.register("sav@societe.tn", "motdepasse", "Sav", "", "Societe")
        tenant = user["tenant_id"]
        client = services.clients.creer(tenant, {"raison_sociale": "Client SARL"}, user)
        modele = services.modeles_garantie.creer(tenant, {
            "nom": "Electromenager", "champs": CHAMPS, "contenu": CONTENU,
        }, user)
        return services, tenant, user, client, modele

    def _garantie(self, services, tenant, user, client, modele, **extra):
        data = {
            "modele_id": modele["id"],
            "client_id": client["id"],
            "date_debut": "2024-01-15",
            "data": {"numero_serie": "SN-42"},
            "articles": [
                {"designation": "Refrigerateur", "periode_garantie": "12 mois"},
                {"designation": "Compresseur", "periode_garantie": "2 ans"},
            ],
        }
        data.update(extra)
        return services.garanties.creer(tenant, data, user)

    def test_creation(self, tmp_path):
        services, tenant, user, client, modele = self._preparer(tmp_path)
        garantie = self._garantie(services, tenant, user, client, modele)
        assert garantie["numero"] == f"GAR-{date.today().year}-00001"
        assert garantie["modele_nom"] == "Electromenager"
        assert garantie["client_nom"] == "Client SARL"
        assert [a["date_expiration"] for a in garantie["articles"]] == ["2025-01-15", "2026-01-15"]
        assert garantie["date_expiration"] == "2026-01-15"
        assert garantie["numero"] in garantie["contenu_rendu"]
        assert "Serie SN-42" in garantie["contenu_rendu"]
        assert "[Compresseur]" in garantie["contenu_rendu"]

    def test_numeros_successifs(self, tmp_path):
        services, tenant, user, client, modele = self._preparer(tmp_path)
        self._garantie(services, tenant, user, client, modele)
        second = self._garantie(services, tenant, user, client, modele)
        assert second["numero"].endswith("-00002")

    def test_periode_invalide(self, tmp_path):
        services, tenant, user, client, modele = self._preparer(tmp_path)
        with pytest.raises(ValidationError, match="Période de garantie invalide"):
            self._garantie(services, tenant, user, client, modele,
                           articles=[{"designation": "X", "periode_garantie": "longtemps"}])
        # aucun numero consomme sur erreur de saisie
        assert self._garantie(services, tenant, user, client, modele)["numero"].endswith("-00001")

    def test_champ_obligatoire_manquant(self, tmp_path):
        services, tenant, user, client, modele = self._preparer(tmp_path)
        with pytest.raises(ValidationError, match="manquants"):
            self._garantie(services, tenant, user, client, modele, data={"marque": "X"})

    def test_modification_recalcule(self, tmp_path):
        services, tenant, user, client, modele = self._preparer(tmp_path)
        garantie = self._garantie(services, tenant, user, client, modele)
        modifiee = services.garanties.modifier(tenant, garantie["id"], {
            "data": {"numero_serie": "SN-99"},
            "articles": [{"designation": "Four", "periode_garantie": "6 mois"}],
        }, user)
        assert modifiee["date_expiration"] == "2024-07-15"
        assert "SN-99" in modifiee["contenu_rendu"]
        assert modifiee["numero"] == garantie["numero"]

    def test_garantie_annulee_non_modifiable(self, tmp_path):
        services, tenant, user, client, modele = self._preparer(tmp_path)
        garantie = self._garantie(services, tenant, user, client, modele)
        services.garanties.modifier(tenant, garantie["id"], {"statut": "void"}, user)
        with pytest.raises(ConflictError, match="annulée"):
            services.garanties.modifier(tenant, garantie["id"], {"notes": "x"}, user)

    def test_statut_expire_en_lecture(self, tmp_path):
        services, tenant, user, client, modele = self._preparer(tmp_path)
        garantie = self._garantie(services, tenant, user, client, modele, date_debut="2020-01-01")
        assert services.garanties.get(tenant, garantie["id"])["statut"] == "expired"
        assert services.garanties.lister(tenant, statut="expired")["total"] == 1
        assert services.garanties.lister(tenant, statut="active")["total"] == 0

    def test_modele_nom_unique(self, tmp_path):
        services, tenant, user, _, _ = self._preparer(tmp_path)
        with pytest.raises(ConflictError):
            services.modeles_garantie.creer(tenant, {"nom": "electromenager", "contenu": ""}, user)

    def test_modele_champs_uniques(self, tmp_path):
        services, tenant, user, _, _ = self._preparer(tmp_path)
        with pytest.raises(ValidationError, match="uniques"):
            services.modeles_garantie.creer(tenant, {
                "nom": "Autre", "champs": [{"nom": "a"}, {"nom": "a"}],
            }, user)

    def test_modele_syntaxe_invalide(self, tmp_path):
        services, tenant, user, _, _ = self._preparer(tmp_path)
        with pytest.raises(ValidationError, match="invalide"):
            services.modeles_garantie.creer(tenant, {"nom": "Casse", "contenu": "{{ x"}, user)

    def test_modele_en_erreur_a_l_execution(self, tmp_path):
        services, tenant, user, client, _ = self._preparer(tmp_path)
        casse = services.modeles_garantie.creer(tenant, {"nom": "Division", "contenu": "{{ 1/0 }}"}, user)
        with pytest.raises(ValidationError, match="Modèle de garantie invalide"):
            self._garantie(services, tenant, user, client, casse)
        modele = services.modeles_garantie.creer(tenant, {"nom": "Simple", "contenu": "N {{ numero }}"}, user)
        garantie = self._garantie(services, tenant, user, client, modele)
        assert garantie["numero"].endswith("-00001")
