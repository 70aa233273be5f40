"""Tests du stockage persistant et de la numerotation."""

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from concurrent.futures import ThreadPoolExecutor
from datetime import date

import pytest

from erp_gestion.core.exceptions import NotFoundError, StorageError, ValidationError
from erp_gestion.core.pagination import paginer, rechercher
from erp_gestion.database.numerotation import Numerotation, formater_numero, valider_modele
from erp_gestion.database.store import Collection, Database, PersistentStore


class TestPersistentStore:

    def test_fichier_cree_avec_defaut(self, tmp_path):
        store = PersistentStore("essai", tmp_path, default={"a": 1})
        assert (tmp_path / "essai.json").exists()
        assert store.load() == {"a": 1}

    def test_update_atomique(self, tmp_path):
        store = PersistentStore("essai", tmp_path)
        store.update(lambda d: d.setdefault("n", 0))
        store.update(lambda d: d.__setitem__("n", d["n"] + 1))
        assert store.load()["n"] == 1

    def test_update_exception_rien_ecrit(self, tmp_path):
        store = PersistentStore("essai", tmp_path, default={"n": 0})

        def _echec(data):
            data["n"] = 99
            raise ValueError("abandon")

        with pytest.raises(ValueError):
            store.update(_echec)
        assert store.load()["n"] == 0

    def test_fichier_corrompu(self, tmp_path):
        store = PersistentStore("essai", tmp_path)
        store.path.write_text("{pas du json", encoding="utf-8")
        with pytest.raises(StorageError):
            store.load()


class TestCollection:

    def test_isolation_tenants(self, tmp_path):
        col = Collection("clients", tmp_path, libelle="Client")
        doc = col.insert("t1", {"nom": "A"})
        col.insert("t2", {"nom": "B"})
        assert [d["nom"] for d in col.find("t1")] == ["A"]
        assert col.get("t1", doc["id"])["nom"] == "A"
        with pytest.raises(NotFoundError, match="Client non trouvé"):
            col.get("t2", doc["id"])
        with pytest.raises(NotFoundError):
            col.update("t2", doc["id"], {"nom": "pirate"})
        with pytest.raises(NotFoundError):
            col.delete("t2", doc["id"])
        assert len(col.find_all()) == 2

    def test_update_conserve_id_et_tenant(self, tmp_path):
        col = Collection("clients", tmp_path)
        doc = col.insert("t1", {"nom": "A"})
        maj = col.update("t1", doc["id"], {"nom": "B", "id": "autre", "tenant_id": "t2"})
        assert maj["id"] == doc["id"]
        assert maj["tenant_id"] == "t1"
        assert maj["nom"] == "B"

    def test_filtres_et_predicat(self, tmp_path):
        col = Collection("factures", tmp_path)
        for i in range(5):
            col.insert("t1", {"statut": "VALIDEE" if i % 2 else "BROUILLON", "n": i})
        assert col.count("t1", statut="VALIDEE") == 2
        assert col.count("t1", lambda d: d["n"] >= 3) == 2
        assert col.find_one("t1", n=4)["n"] == 4
        assert col.find_one("t1", n=42) is None

    def test_transaction(self, tmp_path):
        col = Collection("clients", tmp_path)
        doc = col.insert("t1", {"compteur": 0})

        def _incrementer(tx):
            stocke = tx.get("t1", doc["id"])
            stocke["compteur"] += 1
            return tx.insert("t1", {"compteur": -1})

        nouveau = col.transaction(_incrementer)
        assert col.get("t1", doc["id"])["compteur"] == 1
        assert col.get("t1", nouveau["id"])["compteur"] == -1

    def test_database_registre(self, tmp_path):
        db = Database(tmp_path / "db")
        assert db["clients"] is db.collection("clients")
        assert db["clients"].libelle == "Client"


class TestNumerotation:

    def test_formater_numero(self):
        jour = date(2024, 3, 7)
        assert formater_numero("FAC-{{YYYY}}-{{SEQ:5}}", 12, jour) == "FAC-2024-00012"
        assert formater_numero("{{YY}}{{MM}}{{DD}}/{{SEQ}}", 7, jour) == "240307/7"
        assert formater_numero("BR-{{SEQ:2}}", 1234, jour) == "BR-1234"

    def test_valider_modele(self):
        valider_modele("X-{{SEQ:3}}")
        with pytest.raises(ValidationError):
            valider_modele("X-{{YYYY}}")
        with pytest.raises(ValidationError):
            valider_modele("")

    def test_sequences_par_tenant(self, tmp_path):
        num = Numerotation(Database(tmp_path / "db"))
        jour = date(2024, 1, 15)
        assert num.suivant("t1", "fac", jour) == "FAC-2024-00001"
        assert num.suivant("t1", "fac", jour) == "FAC-2024-00002"
        assert num.suivant("t2", "fac", jour) == "FAC-2024-00001"
        assert num.suivant("t1", "facfo", jour) == "FACFO-2024-00001"
        assert num.apercu("t1", "fac", jour) == "FAC-2024-00003"
        assert num.suivant("t1", "fac", jour) == "FAC-2024-00003"

    def test_modele_et_numero_depart_du_tenant(self, tmp_path):
        db = Database(tmp_path / "db")
        db["parametres"].insert("t1", {
            "numerotation": {"fac": {"modele": "V{{YY}}/{{SEQ:4}}", "numero_depart": 500}},
        })
        num = Numerotation(db)
        jour = date(2025, 6, 1)
        assert num.suivant("t1", "fac", jour) == "V25/0500"
        assert num.suivant("t1", "fac", jour) == "V25/0501"

    def test_sequence_inconnue(self, tmp_path):
        num = Numerotation(Database(tmp_path / "db"))
        with pytest.raises(ValidationError):
            num.suivant("t1", "inconnue")

    def test_numeros_uniques_en_parallele(self, tmp_path):
        num = Numerotation(Database(tmp_path / "db"))
        jour = date(2024, 1, 15)

        def _tirer(_):
            return [num.suivant("t1", "fac", jour) for _ in range(10)]

        with ThreadPoolExecutor(max_workers=8) as pool:
            numeros = [n for lot in pool.map(_tirer, range(8)) for n in lot]
        assert len(set(numeros)) == 80
        assert num.apercu("t1", "fac", jour) == "FAC-2024-00081"


class TestPagination:

    def test_rechercher_insensible_casse(self):
        items = [{"nom": "Alpha"}, {"nom": "beta"}, {"nom": None}]
        assert rechercher(items, "ALP", ("nom",)) == [{"nom": "Alpha"}]
        assert len(rechercher(items, "  ", ("nom",))) == 3

    def test_paginer(self):
        items = [{"created_at": f"2024-01-{i:02d}"} for i in range(1, 26)]
        page2 = paginer(items, page=2, limit=10)
        assert page2["total"] == 25
        assert page2["page"] == 2
        assert len(page2["items"]) == 10
        assert page2["items"][0]["created_at"] == "2024-01-15"

    def test_limite_bornee(self):
        resultat = paginer([{}] * 5, page=0, limit=10_000)
        assert resultat["page"] == 1
        assert resultat["limit"] == 200
