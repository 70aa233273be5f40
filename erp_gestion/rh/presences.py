"""Employes et pointage (presences).

Un enregistrement de presence par employe et par jour (UTC). Le retard est
mesure par rapport a l'heure de debut de travail configuree.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from erp_gestion.config.constants import StatutPresence
from erp_gestion.config.settings import RHConfig
from erp_gestion.core.exceptions import ConflictError, ValidationError
from erp_gestion.core.pagination import paginer, rechercher
from erp_gestion.database.store import Database
from erp_gestion.security.audit_logger import AuditLogger
from erp_gestion.utils.date_utils import (
    debut_journee_utc, exiger_date, maintenant_utc, parser_date, parser_datetime,
)
from erp_gestion.utils.number_utils import arrondir

logger = logging.getLogger("erp_gestion.rh")


def minutes_retard(arrivee: datetime, config: RHConfig) -> int:
    debut = debut_journee_utc(arrivee) + timedelta(
        hours=config.heure_debut_travail, minutes=config.minute_debut_travail
    )
    if arrivee <= debut:
        return 0
    return int((arrivee - debut).total_seconds() // 60)


def total_heures(arrivee: datetime, depart: datetime) -> float:
    secondes = Decimal(str((depart - arrivee).total_seconds()))
    return float(arrondir(secondes / Decimal(3600), 2))


def deriver_presence(record: dict, config: RHConfig) -> dict:
    """Recalcule retard_minutes, statut et total_heures a partir des horodatages."""
    arrivee = parser_datetime(record.get("arrivee"))
    depart = parser_datetime(record.get("depart"))
    if depart and not arrivee:
        raise ValidationError("Impossible de pointer un départ sans arrivée")
    if arrivee and depart and depart <= arrivee:
        raise ValidationError("L'heure de départ doit être postérieure à l'heure d'arrivée")

    statut_force = record.get("statut")
    if arrivee:
        retard = minutes_retard(arrivee, config)
        record["arrivee"] = arrivee.isoformat()
        record["retard_minutes"] = retard
        if statut_force not in (StatutPresence.ABSENT.value, StatutPresence.ON_LEAVE.value):
            record["statut"] = StatutPresence.LATE.value if retard > 0 else StatutPresence.PRESENT.value
    else:
        record["retard_minutes"] = 0
        record["statut"] = statut_force or StatutPresence.ABSENT.value
    if depart:
        record["depart"] = depart.isoformat()
        record["total_heures"] = total_heures(arrivee, depart)
    else:
        record["total_heures"] = None
    return record


class EmployeService:

    def __init__(self, db: Database):
        self.collection = db["employes"]

    def lister(self, tenant_id: str, search: str = None, page: int = 1, limit: int = 20,
               actif: Optional[bool] = None) -> dict:
        items = self.collection.find(tenant_id)
        if actif is not None:
            items = [e for e in items if e.get("actif", True) == actif]
        items = rechercher(items, search, ("nom", "prenom", "matricule", "email", "poste"))
        return paginer(items, page, limit, tri="nom", decroissant=False)

    def get(self, tenant_id: str, employe_id: str) -> dict:
        return self.collection.get(tenant_id, employe_id)

    def _verifier_matricule(self, tenant_id: str, matricule: Optional[str], exclure_id: str = None):
        if not matricule:
            return
        for employe in self.collection.find(tenant_id, matricule=matricule):
            if employe["id"] != exclure_id:
                raise ConflictError(f"Le matricule {matricule} est déjà attribué")

    def creer(self, tenant_id: str, data: dict, user: dict) -> dict:
        if not (data.get("nom") or "").strip():
            raise ValidationError("Le nom de l'employé est requis")
        self._verifier_matricule(tenant_id, data.get("matricule"))
        if data.get("date_embauche"):
            data["date_embauche"] = exiger_date(data["date_embauche"], "date_embauche").isoformat()
        return self.collection.insert(tenant_id, {**data, "created_by": user.get("id")})

    def modifier(self, tenant_id: str, employe_id: str, changes: dict) -> dict:
        self.get(tenant_id, employe_id)
        changes = {k: v for k, v in changes.items() if v is not None}
        self._verifier_matricule(tenant_id, changes.get("matricule"), exclure_id=employe_id)
        if "date_embauche" in changes:
            changes["date_embauche"] = exiger_date(changes["date_embauche"], "date_embauche").isoformat()
        return self.collection.update(tenant_id, employe_id, changes)


class PresenceService:

    def __init__(self, db: Database, config: RHConfig, audit: AuditLogger):
        self.collection = db["presences"]
        self.employes = db["employes"]
        self.config = config
        self.audit = audit

    def lister(self, tenant_id: str, employe_id: str = None, date_from: str = None,
               date_to: str = None, statut: str = None, page: int = 1, limit: int = 20) -> dict:
        filtres = {}
        if employe_id:
            filtres["employe_id"] = employe_id
        if statut:
            filtres["statut"] = statut
        debut, fin = parser_date(date_from), parser_date(date_to)

        def _periode(p):
            d = parser_date(p.get("date"))
            return (debut is None or (d and d >= debut)) and (fin is None or (d and d <= fin))

        items = self.collection.find(tenant_id, _periode, **filtres)
        return paginer(items, page, limit, tri="date")

    def _creer_unique(self, tenant_id: str, record: dict) -> dict:
        def _inserer(tx):
            if tx.find(tenant_id, employe_id=record["employe_id"], date=record["date"]):
                raise ConflictError(
                    f"Un pointage existe déjà pour cet employé le {record['date']}"
                )
            return tx.insert(tenant_id, record)
        return self.collection.transaction(_inserer)

    def creer(self, tenant_id: str, data: dict, user: dict) -> dict:
        employe = self.employes.get(tenant_id, data.get("employe_id") or "")
        arrivee = parser_datetime(data.get("arrivee"))
        if data.get("arrivee") and arrivee is None:
            raise ValidationError("Horodatage d'arrivée invalide")
        if data.get("date"):
            jour = exiger_date(data["date"], "date")
        else:
            jour = (arrivee or maintenant_utc()).date()
        record = {
            "employe_id": employe["id"],
            "employe_nom": " ".join(p for p in (employe.get("prenom"), employe.get("nom")) if p),
            "date": jour.isoformat(),
            "arrivee": data.get("arrivee"),
            "depart": data.get("depart"),
            "statut": data.get("statut"),
            "notes": data.get("notes"),
            "created_by": user.get("id"),
        }
        deriver_presence(record, self.config)
        presence = self._creer_unique(tenant_id, record)
        self.audit.log("creation_presence", tenant_id, user_id=user.get("id"), document_id=presence["id"])
        return presence

    def modifier(self, tenant_id: str, presence_id: str, changes: dict, user: dict) -> dict:
        presence = self.collection.get(tenant_id, presence_id)
        changes = {k: v for k, v in changes.items() if v is not None}
        fusion = deriver_presence({**presence, **changes}, self.config)
        presence = self.collection.update(tenant_id, presence_id, fusion)
        self.audit.log("modification_presence", tenant_id, user_id=user.get("id"), document_id=presence_id)
        return presence

    def _employe_du_pointage(self, tenant_id: str, data: dict, user: dict) -> dict:
        if data.get("employe_id"):
            return self.employes.get(tenant_id, data["employe_id"])
        employe = self.employes.find_one(tenant_id, email=user.get("email"))
        if not employe:
            raise ValidationError("employe_id est requis")
        return employe

    def check_in(self, tenant_id: str, data: dict, user: dict) -> dict:
        employe = self._employe_du_pointage(tenant_id, data, user)
        heure = parser_datetime(data.get("heure")) if data.get("heure") else maintenant_utc()
        if heure is None:
            raise ValidationError("Heure de pointage invalide")
        jour = heure.date().isoformat()
        existant = self.collection.find_one(tenant_id, employe_id=employe["id"], date=jour)
        if existant and existant.get("arrivee"):
            raise ConflictError("Arrivée déjà pointée aujourd'hui")
        if existant:
            fusion = deriver_presence({**existant, "arrivee": heure.isoformat(), "statut": None},
                                      self.config)
            return self.collection.update(tenant_id, existant["id"], fusion)
        logger.info("Pointage arrivee employe %s (tenant %s)", employe["id"], tenant_id)
        return self.creer(tenant_id, {
            "employe_id": employe["id"],
            "date": jour,
            "arrivee": heure.isoformat(),
            "notes": data.get("notes"),
        }, user)

    def check_out(self, tenant_id: str, presence_id: str, data: dict, user: dict) -> dict:
        presence = self.collection.get(tenant_id, presence_id)
        if not presence.get("arrivee"):
            raise ConflictError("Aucune arrivée pointée pour cet enregistrement")
        if presence.get("depart"):
            raise ConflictError("Départ déjà pointé")
        heure = parser_datetime(data.get("heure")) if data.get("heure") else maintenant_utc()
        if heure is None:
            raise ValidationError("Heure de pointage invalide")
        logger.info("Pointage depart employe %s (tenant %s)", presence["employe_id"], tenant_id)
        return self.modifier(tenant_id, presence_id, {"depart": heure.isoformat()}, user)
