"""Fournisseurs, clients et produits."""

import logging

from erp_gestion.config.constants import Cote
from erp_gestion.core.exceptions import ConflictError, ValidationError
from erp_gestion.core.pagination import paginer, rechercher
from erp_gestion.database.store import Database
from erp_gestion.utils.number_utils import to_decimal

logger = logging.getLogger("erp_gestion.tiers")

CHAMPS_RECHERCHE_TIERS = ("nom_affiche", "raison_sociale", "nom", "prenom", "email",
                          "telephone", "matricule_fiscal")


def nom_affiche(tiers: dict) -> str:
    if tiers.get("type") == "particulier":
        return " ".join(p for p in (tiers.get("prenom"), tiers.get("nom")) if p).strip()
    return (tiers.get("raison_sociale") or "").strip()


class TiersService:
    """Fiches fournisseurs ou clients selon le cote."""

    def __init__(self, db: Database, cote: Cote, collections_liees: tuple[str, ...]):
        self.db = db
        self.cote = cote
        self.collection = db[cote.collection_tiers]
        self.collections_liees = collections_liees

    def _valider(self, tiers: dict) -> None:
        if tiers.get("type", "societe") == "societe":
            if not (tiers.get("raison_sociale") or "").strip():
                raise ValidationError("La raison sociale est requise pour une société")
        elif not (tiers.get("nom") or "").strip():
            raise ValidationError("Le nom est requis pour un particulier")

    def lister(self, tenant_id: str, search: str = None, page: int = 1, limit: int = 20,
               actif: bool = None) -> dict:
        items = self.collection.find(tenant_id)
        if actif is not None:
            items = [t for t in items if t.get("actif", True) == actif]
        items = rechercher(items, search, CHAMPS_RECHERCHE_TIERS)
        return paginer(items, page, limit, tri="nom_affiche", decroissant=False)

    def get(self, tenant_id: str, tiers_id: str) -> dict:
        return self.collection.get(tenant_id, tiers_id)

    def creer(self, tenant_id: str, data: dict, user: dict) -> dict:
        data = {**data, "type": data.get("type") or "societe"}
        self._valider(data)
        data["nom_affiche"] = nom_affiche(data)
        data["created_by"] = user.get("id")
        tiers = self.collection.insert(tenant_id, data)
        logger.info("%s %s cree (tenant %s)", self.cote.libelle_tiers, tiers["nom_affiche"], tenant_id)
        return tiers

    def modifier(self, tenant_id: str, tiers_id: str, changes: dict) -> dict:
        existant = self.get(tenant_id, tiers_id)
        fusion = {**existant, **{k: v for k, v in changes.items() if v is not None}}
        self._valider(fusion)
        fusion["nom_affiche"] = nom_affiche(fusion)
        return self.collection.update(tenant_id, tiers_id, fusion)

    def supprimer(self, tenant_id: str, tiers_id: str) -> dict:
        tiers = self.get(tenant_id, tiers_id)
        champ = self.cote.champ_tiers
        for nom in self.collections_liees:
            if self.db[nom].count(tenant_id, **{champ: tiers_id}):
                raise ConflictError(
                    f"{self.cote.libelle_tiers} {tiers.get('nom_affiche')} référencé par des documents : "
                    f"suppression impossible"
                )
        self.collection.delete(tenant_id, tiers_id)
        logger.info("%s %s supprime (tenant %s)", self.cote.libelle_tiers, tiers_id, tenant_id)
        return tiers


class ProduitService:

    def __init__(self, db: Database):
        self.collection = db["produits"]

    def _verifier_sku(self, tenant_id: str, sku: str, exclure_id: str = None) -> str:
        sku = (sku or "").strip()
        if not sku:
            raise ValidationError("Le SKU est requis")
        for produit in self.collection.find(tenant_id, sku=sku):
            if produit["id"] != exclure_id:
                raise ConflictError(f"Le SKU {sku} existe déjà")
        return sku

    def _verifier_tva(self, tva_pct) -> None:
        tva = to_decimal(tva_pct, "tva_pct")
        if tva < 0 or tva > 100:
            raise ValidationError("Le taux de TVA doit être compris entre 0 et 100")

    def lister(self, tenant_id: str, search: str = None, page: int = 1, limit: int = 20) -> dict:
        items = rechercher(self.collection.find(tenant_id), search, ("sku", "nom", "description"))
        return paginer(items, page, limit, tri="nom", decroissant=False)

    def get(self, tenant_id: str, produit_id: str) -> dict:
        return self.collection.get(tenant_id, produit_id)

    def creer(self, tenant_id: str, data: dict, user: dict) -> dict:
        data = dict(data)
        data["sku"] = self._verifier_sku(tenant_id, data.get("sku"))
        self._verifier_tva(data.get("tva_pct", 0))
        data["created_by"] = user.get("id")
        return self.collection.insert(tenant_id, data)

    def modifier(self, tenant_id: str, produit_id: str, changes: dict) -> dict:
        self.get(tenant_id, produit_id)
        changes = {k: v for k, v in changes.items() if v is not None}
        if "sku" in changes:
            changes["sku"] = self._verifier_sku(tenant_id, changes["sku"], exclure_id=produit_id)
        if "tva_pct" in changes:
            self._verifier_tva(changes["tva_pct"])
        return self.collection.update(tenant_id, produit_id, changes)

    def supprimer(self, tenant_id: str, produit_id: str) -> dict:
        return self.collection.delete(tenant_id, produit_id)
