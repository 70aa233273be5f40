"""Modeles de garantie et certificats de garantie.

Le texte d'un certificat est le contenu du modele (ou un contenu specifique)
rendu avec Jinja2 en environnement sandbox, a partir des donnees saisies.
"""

import logging
from datetime import date
from typing import Optional

from jinja2 import TemplateError
from jinja2.sandbox import SandboxedEnvironment

from erp_gestion.config.constants import StatutGarantie
from erp_gestion.core.exceptions import ConflictError, ValidationError
from erp_gestion.core.pagination import paginer, rechercher
from erp_gestion.database.numerotation import Numerotation
from erp_gestion.database.store import Database
from erp_gestion.security.audit_logger import AuditLogger
from erp_gestion.utils.date_utils import ajouter_duree, exiger_date, parser_date

logger = logging.getLogger("erp_gestion.garanties")

_env = SandboxedEnvironment(autoescape=False)


def rendre_contenu(contenu: str, contexte: dict) -> str:
    """Rend le modele en sandbox; les erreurs d'execution deviennent des ValidationError."""
    try:
        return _env.from_string(contenu or "").render(contexte)
    except (TemplateError, ArithmeticError, LookupError, TypeError, ValueError) as e:
        raise ValidationError(f"Modèle de garantie invalide : {e}")


def verifier_syntaxe(contenu: str) -> None:
    try:
        _env.parse(contenu or "")
    except TemplateError as e:
        raise ValidationError(f"Modèle de garantie invalide : {e}")


def valider_donnees(champs: list[dict], data: dict) -> None:
    manquants = []
    for champ in champs:
        if not champ.get("required"):
            continue
        valeur = data.get(champ["nom"])
        if valeur is None or (isinstance(valeur, str) and not valeur.strip()):
            manquants.append(champ.get("libelle") or champ["nom"])
    if manquants:
        raise ValidationError(f"Champs obligatoires manquants : {', '.join(manquants)}")


def statut_effectif(garantie: dict, aujourd_hui: Optional[date] = None) -> str:
    """Une garantie active dont la date d'expiration est passee est expiree."""
    statut = garantie.get("statut", StatutGarantie.ACTIVE.value)
    if statut != StatutGarantie.ACTIVE.value:
        return statut
    expiration = parser_date(garantie.get("date_expiration"))
    if expiration and expiration < (aujourd_hui or date.today()):
        return StatutGarantie.EXPIRED.value
    return statut


class ModeleGarantieService:

    def __init__(self, db: Database):
        self.collection = db["modeles_garantie"]

    def _verifier_nom(self, tenant_id: str, nom: str, exclure_id: str = None) -> str:
        nom = (nom or "").strip()
        if not nom:
            raise ValidationError("Le nom du modèle est requis")
        for modele in self.collection.find(tenant_id):
            if modele["nom"].lower() == nom.lower() and modele["id"] != exclure_id:
                raise ConflictError(f"Un modèle nommé {nom} existe déjà")
        return nom

    def _verifier_champs(self, champs: list[dict]) -> None:
        noms = [c["nom"] for c in champs]
        if len(set(noms)) != len(noms):
            raise ValidationError("Les noms de champs d'un modèle doivent être uniques")

    def lister(self, tenant_id: str, search: str = None, page: int = 1, limit: int = 20) -> dict:
        items = rechercher(self.collection.find(tenant_id), search, ("nom",))
        return paginer(items, page, limit, tri="nom", decroissant=False)

    def get(self, tenant_id: str, modele_id: str) -> dict:
        return self.collection.get(tenant_id, modele_id)

    def creer(self, tenant_id: str, data: dict, user: dict) -> dict:
        data = dict(data)
        data["nom"] = self._verifier_nom(tenant_id, data.get("nom"))
        self._verifier_champs(data.get("champs", []))
        verifier_syntaxe(data.get("contenu", ""))
        data["created_by"] = user.get("id")
        return self.collection.insert(tenant_id, data)

    def modifier(self, tenant_id: str, modele_id: str, changes: dict) -> dict:
        self.get(tenant_id, modele_id)
        changes = {k: v for k, v in changes.items() if v is not None}
        if "nom" in changes:
            changes["nom"] = self._verifier_nom(tenant_id, changes["nom"], exclure_id=modele_id)
        if "champs" in changes:
            self._verifier_champs(changes["champs"])
        if "contenu" in changes:
            verifier_syntaxe(changes["contenu"])
        return self.collection.update(tenant_id, modele_id, changes)


class GarantieService:

    def __init__(self, db: Database, numerotation: Numerotation, abonnements,
                 audit: AuditLogger):
        self.collection = db["garanties"]
        self.modeles = db["modeles_garantie"]
        self.clients = db["clients"]
        self.factures = db["factures_vente"]
        self.numerotation = numerotation
        self.abonnements = abonnements
        self.audit = audit

    def _avec_statut(self, garantie: dict) -> dict:
        garantie["statut"] = statut_effectif(garantie)
        return garantie

    def lister(self, tenant_id: str, search: str = None, statut: str = None,
               client_id: str = None, page: int = 1, limit: int = 20) -> dict:
        filtres = {"client_id": client_id} if client_id else {}
        items = [self._avec_statut(g) for g in self.collection.find(tenant_id, **filtres)]
        if statut:
            items = [g for g in items if g["statut"] == statut]
        items = rechercher(items, search, ("numero", "client_nom", "modele_nom"))
        return paginer(items, page, limit)

    def get(self, tenant_id: str, garantie_id: str) -> dict:
        return self._avec_statut(self.collection.get(tenant_id, garantie_id))

    def _preparer(self, tenant_id: str, doc: dict, modele: dict) -> dict:
        valider_donnees(modele.get("champs", []), doc.get("data") or {})
        debut = exiger_date(doc.get("date_debut") or date.today().isoformat(), "date_debut")
        doc["date_debut"] = debut.isoformat()

        expirations = []
        articles = []
        for article in doc.get("articles") or []:
            article = dict(article)
            if article.get("periode_garantie"):
                fin = ajouter_duree(debut, article["periode_garantie"])
                if fin is None:
                    raise ValidationError(
                        f"Période de garantie invalide : {article['periode_garantie']} (ex. 12 mois, 2 ans)"
                    )
                article["date_expiration"] = fin.isoformat()
                expirations.append(fin)
            articles.append(article)
        doc["articles"] = articles
        doc["date_expiration"] = max(expirations).isoformat() if expirations else None

        contexte = {
            **(doc.get("data") or {}),
            "numero": doc.get("numero", ""),
            "client_nom": doc.get("client_nom", ""),
            "date_debut": doc["date_debut"],
            "date_expiration": doc["date_expiration"] or "",
            "articles": articles,
        }
        doc["contenu_rendu"] = rendre_contenu(doc.get("contenu") or modele.get("contenu", ""), contexte)
        return doc

    def creer(self, tenant_id: str, data: dict, user: dict) -> dict:
        modele = self.modeles.get(tenant_id, data.get("modele_id") or "")
        doc = {k: v for k, v in data.items() if v is not None}
        doc["modele_nom"] = modele["nom"]
        if doc.get("client_id"):
            doc["client_nom"] = self.clients.get(tenant_id, doc["client_id"]).get("nom_affiche", "")
        if doc.get("facture_id"):
            self.factures.get(tenant_id, doc["facture_id"])
        self._preparer(tenant_id, {**doc, "numero": ""}, modele)

        self.abonnements.consommer_document(tenant_id)
        doc["numero"] = self.numerotation.suivant(tenant_id, "garantie")
        doc["statut"] = StatutGarantie.ACTIVE.value
        doc["created_by"] = user.get("id")
        self._preparer(tenant_id, doc, modele)
        garantie = self.collection.insert(tenant_id, doc)
        self.audit.log_document("creation_garantie", user, tenant_id, garantie)
        logger.info("Certificat de garantie %s cree (tenant %s)", garantie["numero"], tenant_id)
        return self._avec_statut(garantie)

    def modifier(self, tenant_id: str, garantie_id: str, changes: dict, user: dict) -> dict:
        garantie = self.collection.get(tenant_id, garantie_id)
        if garantie.get("statut") == StatutGarantie.VOID.value:
            raise ConflictError(f"La garantie {garantie['numero']} est annulée")
        changes = {k: v for k, v in changes.items() if v is not None}
        if changes.get("client_id"):
            changes["client_nom"] = self.clients.get(tenant_id, changes["client_id"]).get("nom_affiche", "")
        modele = self.modeles.get(tenant_id, garantie["modele_id"])
        fusion = self._preparer(tenant_id, {**garantie, **changes}, modele)
        garantie = self.collection.update(tenant_id, garantie_id, fusion)
        self.audit.log_document("modification_garantie", user, tenant_id, garantie)
        return self._avec_statut(garantie)
