"""Tests RH : employes, pointage, retards."""

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from datetime import datetime, timezone

import pytest

from erp_gestion.config.settings import RHConfig
from erp_gestion.core.exceptions import ConflictError, ValidationError
from erp_gestion.database.store import Database
from erp_gestion.rh.presences import (
    EmployeService, PresenceService, deriver_presence, minutes_retard, total_heures,
)
from erp_gestion.security.audit_logger import AuditLogger

USER = {"id": "u1", "email": "rh@societe.tn"}


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class TestCalculsPresence:

    def test_minutes_retard(self):
        config = RHConfig()
        assert minutes_retard(_utc(2024, 3, 4, 7, 55), config) == 0
        assert minutes_retard(_utc(2024, 3, 4, 8, 0), config) == 0
        assert minutes_retard(_utc(2024, 3, 4, 8, 20, 30), config) == 20

    def test_heure_debut_configurable(self):
        config = RHConfig(heure_debut_travail=9, minute_debut_travail=30)
        assert minutes_retard(_utc(2024, 3, 4, 9, 45), config) == 15

    def test_total_heures(self):
        assert total_heures(_utc(2024, 3, 4, 8, 0), _utc(2024, 3, 4, 17, 20)) == 9.33

    def test_deriver_statut(self):
        config = RHConfig()
        record = deriver_presence({"arrivee": "2024-03-04T08:05:00Z"}, config)
        assert record["statut"] == "late"
        assert record["retard_minutes"] == 5
        assert record["total_heures"] is None
        assert deriver_presence({}, config)["statut"] == "absent"
        assert deriver_presence({"statut": "on_leave"}, config)["statut"] == "on_leave"

    def test_depart_avant_arrivee(self):
        with pytest.raises(ValidationError, match="postérieure"):
            deriver_presence({"arrivee": "2024-03-04T10:00:00", "depart": "2024-03-04T09:00:00"},
                             RHConfig())


class TestPointage:

    def _services(self, tmp_path):
        db = Database(tmp_path / "db")
        employes = EmployeService(db)
        presences = PresenceService(db, RHConfig(), AuditLogger(tmp_path / "audit.log"))
        employe = employes.creer("t1", {"nom": "Haddad", "prenom": "Lina", "matricule": "E001",
                                        "email": "rh@societe.tn"}, USER)
        return employes, presences, employe

    def test_matricule_unique(self, tmp_path):
        employes, _, _ = self._services(tmp_path)
        with pytest.raises(ConflictError, match="E001"):
            employes.creer("t1", {"nom": "Autre", "matricule": "E001"}, USER)
        employes.creer("t2", {"nom": "Autre", "matricule": "E001"}, USER)

    def test_check_in_check_out(self, tmp_path):
        _, presences, employe = self._services(tmp_path)
        arrivee = presences.check_in("t1", {"employe_id": employe["id"],
                                            "heure": "2024-03-04T08:20:00Z"}, USER)
        assert arrivee["date"] == "2024-03-04"
        assert arrivee["statut"] == "late"
        assert arrivee["retard_minutes"] == 20
        assert arrivee["employe_nom"] == "Lina Haddad"

        with pytest.raises(ConflictError, match="déjà pointée"):
            presences.check_in("t1", {"employe_id": employe["id"],
                                      "heure": "2024-03-04T09:00:00Z"}, USER)
        with pytest.raises(ValidationError):
            presences.check_out("t1", arrivee["id"], {"heure": "2024-03-04T08:00:00Z"}, USER)

        depart = presences.check_out("t1", arrivee["id"], {"heure": "2024-03-04T17:05:00Z"}, USER)
        assert depart["total_heures"] == 8.75
        with pytest.raises(ConflictError, match="Départ déjà pointé"):
            presences.check_out("t1", arrivee["id"], {"heure": "2024-03-04T18:00:00Z"}, USER)

    def test_check_in_par_email_utilisateur(self, tmp_path):
        _, presences, employe = self._services(tmp_path)
        presence = presences.check_in("t1", {"heure": "2024-03-05T07:50:00Z"}, USER)
        assert presence["employe_id"] == employe["id"]
        assert presence["statut"] == "present"

    def test_check_in_complete_absence(self, tmp_path):
        _, presences, employe = self._services(tmp_path)
        absence = presences.creer("t1", {"employe_id": employe["id"], "date": "2024-03-06"}, USER)
        assert absence["statut"] == "absent"
        presence = presences.check_in("t1", {"employe_id": employe["id"],
                                             "heure": "2024-03-06T08:00:00Z"}, USER)
        assert presence["id"] == absence["id"]
        assert presence["statut"] == "present"

    def test_un_enregistrement_par_jour(self, tmp_path):
        _, presences, employe = self._services(tmp_path)
        presences.creer("t1", {"employe_id": employe["id"], "date": "2024-03-07",
                               "statut": "on_leave"}, USER)
        with pytest.raises(ConflictError, match="existe déjà"):
            presences.creer("t1", {"employe_id": employe["id"], "date": "2024-03-07"}, USER)

    def test_check_out_sans_arrivee(self, tmp_path):
        _, presences, employe = self._services(tmp_path)
        conge = presences.creer("t1", {"employe_id": employe["id"], "date": "2024-03-08",
                                       "statut": "on_leave"}, USER)
        with pytest.raises(ConflictError, match="Aucune arrivée"):
            presences.check_out("t1", conge["id"], {}, USER)

    def test_lister_par_periode(self, tmp_path):
        _, presences, employe = self._services(tmp_path)
        for jour in ("2024-03-01", "2024-03-15", "2024-04-01"):
            presences.creer("t1", {"employe_id": employe["id"], "date": jour}, USER)
        resultat = presences.lister("t1", date_from="2024-03-01", date_to="2024-03-31")
        assert resultat["total"] == 2
