"""
ERP Gestion - Stockage documentaire persistant.

Chaque collection est un fichier JSON (documents indexes par id).
Compatible multi-worker Gunicorn via file locking : lecture sous verrou
partage, ecriture atomique (fichier temporaire + os.replace) sous verrou
exclusif.
"""
import fcntl
import json
import logging
import os
import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

from erp_gestion.core.exceptions import NotFoundError, StorageError

logger = logging.getLogger("erp_gestion.database")


class PersistentStore:
    """Store JSON persistant avec file locking pour multi-worker."""

    def __init__(self, name: str, data_dir: Path, default: Any = None):
        self.name = name
        data_dir = Path(data_dir)
        data_dir.mkdir(parents=True, exist_ok=True)
        self.path = data_dir / f"{name}.json"
        self.lock_path = data_dir / f"{name}.lock"
        self._default = default if default is not None else {}
        if not self.path.exists():
            self._write(self._default)

    def _fresh_default(self) -> Any:
        return json.loads(json.dumps(self._default))

    def _read_unlocked(self) -> Any:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return self._fresh_default()
        except json.JSONDecodeError as e:
            raise StorageError(f"Store {self.name} corrompu: {e}") from e

    def _write_unlocked(self, data: Any):
        tmp_path = self.path.with_suffix(".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, default=str)
            os.replace(str(tmp_path), str(self.path))
        except OSError as e:
            raise StorageError(f"Ecriture impossible du store {self.name}: {e}") from e

    @contextmanager
    def _lock(self, mode: int):
        with open(self.lock_path, "a+") as lf:
            fcntl.flock(lf, mode)
            try:
                yield
            finally:
                fcntl.flock(lf, fcntl.LOCK_UN)

    def _read(self) -> Any:
        """Lecture avec lock partage."""
        with self._lock(fcntl.LOCK_SH):
            return self._read_unlocked()

    def _write(self, data: Any):
        """Ecriture atomique avec lock exclusif."""
        with self._lock(fcntl.LOCK_EX):
            self._write_unlocked(data)

    def load(self) -> Any:
        return self._read()

    def save(self, data: Any):
        self._write(data)

    def update(self, updater_fn: Callable[[Any], Any]) -> Any:
        """Lecture-modification-ecriture atomique.

        ``updater_fn`` recoit les donnees et les modifie en place. Si elle
        leve une exception rien n'est ecrit.
        """
        with self._lock(fcntl.LOCK_EX):
            data = self._read_unlocked()
            result = updater_fn(data)
            self._write_unlocked(data)
            return result


def _now() -> str:
    return datetime.now().isoformat()


def nouvel_id() -> str:
    return uuid.uuid4().hex


class Collection:
    """Collection de documents cloisonnee par tenant.

    Toute operation prenant un ``tenant_id`` ignore les documents des autres
    tenants : un id etranger se comporte comme un id inexistant.
    """

    def __init__(self, name: str, data_dir: Path, libelle: str = "Document"):
        self.name = name
        self.libelle = libelle
        self._store = PersistentStore(name, data_dir, default={})

    # --- Lecture ---

    def _visible(self, doc: dict, tenant_id: Optional[str]) -> bool:
        return tenant_id is None or doc.get("tenant_id") == tenant_id

    def get(self, tenant_id: Optional[str], doc_id: str) -> dict:
        doc = self._store.load().get(doc_id)
        if doc is None or not self._visible(doc, tenant_id):
            raise NotFoundError(f"{self.libelle} non trouvé")
        return doc

    def find_one(self, tenant_id: Optional[str], predicate: Callable[[dict], bool] = None,
                 **filtres) -> Optional[dict]:
        for doc in self.find(tenant_id, predicate, **filtres):
            return doc
        return None

    def find(self, tenant_id: Optional[str], predicate: Callable[[dict], bool] = None,
             **filtres) -> list[dict]:
        """Documents du tenant satisfaisant les egalites ``filtres`` et ``predicate``."""
        return _filtrer(self._store.load().values(), tenant_id, predicate, filtres)

    def find_all(self, predicate: Callable[[dict], bool] = None, **filtres) -> list[dict]:
        """Recherche tous tenants confondus (administration plateforme)."""
        return self.find(None, predicate, **filtres)

    def count(self, tenant_id: Optional[str], predicate: Callable[[dict], bool] = None,
              **filtres) -> int:
        return len(self.find(tenant_id, predicate, **filtres))

    # --- Ecriture ---

    def insert(self, tenant_id: Optional[str], doc: dict) -> dict:
        def _insert(data):
            return _inserer(data, tenant_id, doc)
        return self._store.update(_insert)

    def update(self, tenant_id: Optional[str], doc_id: str, changes: dict) -> dict:
        def _update(data):
            doc = data.get(doc_id)
            if doc is None or not self._visible(doc, tenant_id):
                raise NotFoundError(f"{self.libelle} non trouvé")
            doc.update({k: v for k, v in changes.items() if k not in ("id", "tenant_id")})
            doc["updated_at"] = _now()
            return dict(doc)
        return self._store.update(_update)

    def delete(self, tenant_id: Optional[str], doc_id: str) -> dict:
        def _delete(data):
            doc = data.get(doc_id)
            if doc is None or not self._visible(doc, tenant_id):
                raise NotFoundError(f"{self.libelle} non trouvé")
            return data.pop(doc_id)
        return self._store.update(_delete)

    def transaction(self, fn: Callable[["CollectionTransaction"], Any]) -> Any:
        """Execute ``fn`` sous le verrou exclusif de la collection.

        Les verifications faites dans ``fn`` et les ecritures qui suivent sont
        donc atomiques vis-a-vis des autres requetes.
        """
        def _run(data):
            return fn(CollectionTransaction(self, data))
        return self._store.update(_run)


class CollectionTransaction:
    """Vue d'une collection a l'interieur d'un verrou exclusif."""

    def __init__(self, collection: Collection, data: dict):
        self._collection = collection
        self._data = data

    def find(self, tenant_id: Optional[str], predicate: Callable[[dict], bool] = None,
             **filtres) -> list[dict]:
        return _filtrer(self._data.values(), tenant_id, predicate, filtres)

    def get(self, tenant_id: Optional[str], doc_id: str) -> dict:
        doc = self._data.get(doc_id)
        if doc is None or (tenant_id is not None and doc.get("tenant_id") != tenant_id):
            raise NotFoundError(f"{self._collection.libelle} non trouvé")
        return doc

    def insert(self, tenant_id: Optional[str], doc: dict) -> dict:
        return _inserer(self._data, tenant_id, doc)

    def delete(self, tenant_id: Optional[str], doc_id: str) -> dict:
        self.get(tenant_id, doc_id)
        return self._data.pop(doc_id)


def _filtrer(docs, tenant_id, predicate, filtres) -> list[dict]:
    result = []
    for doc in docs:
        if tenant_id is not None and doc.get("tenant_id") != tenant_id:
            continue
        if any(doc.get(k) != v for k, v in filtres.items()):
            continue
        if predicate is not None and not predicate(doc):
            continue
        result.append(dict(doc))
    return result


def _inserer(data: dict, tenant_id: Optional[str], doc: dict) -> dict:
    doc = dict(doc)
    doc_id = doc.get("id") or nouvel_id()
    horodatage = _now()
    doc["id"] = doc_id
    if tenant_id is not None:
        doc["tenant_id"] = tenant_id
    doc.setdefault("created_at", horodatage)
    doc["updated_at"] = horodatage
    data[doc_id] = doc
    return dict(doc)


class Database:
    """Registre des collections de l'application."""

    COLLECTIONS = {
        "users": "Utilisateur",
        "login_history": "Connexion",
        "tenants": "Société",
        "parametres": "Paramètres",
        "fournisseurs": "Fournisseur",
        "clients": "Client",
        "produits": "Produit",
        "commandes_achat": "Commande",
        "receptions": "Réception",
        "factures_achat": "Facture",
        "paiements_fournisseurs": "Paiement",
        "factures_vente": "Facture",
        "paiements_clients": "Paiement",
        "employes": "Employé",
        "presences": "Enregistrement de présence",
        "abonnements": "Abonnement",
        "modeles_garantie": "Modèle de garantie",
        "garanties": "Garantie",
    }

    def __init__(self, db_dir: Path):
        self.db_dir = Path(db_dir)
        self.db_dir.mkdir(parents=True, exist_ok=True)
        self._collections: dict[str, Collection] = {}

    def collection(self, name: str) -> Collection:
        if name not in self._collections:
            libelle = self.COLLECTIONS.get(name, "Document")
            self._collections[name] = Collection(name, self.db_dir, libelle=libelle)
        return self._collections[name]

    def __getitem__(self, name: str) -> Collection:
        return self.collection(name)
