"""Abonnements : plans, demandes de changement, consommation de documents."""

import logging
from datetime import date, datetime
from typing import Optional

from dateutil.relativedelta import relativedelta

from erp_gestion.config.constants import DOCUMENTS_ILLIMITES, PLANS, StatutAbonnement
from erp_gestion.core.exceptions import NotFoundError, SubscriptionLimitError, ValidationError
from erp_gestion.database.store import Database

logger = logging.getLogger("erp_gestion.abonnements")

DEVISE = "TND"


def catalogue_plans() -> list[dict]:
    plans = []
    for slug, plan in sorted(PLANS.items(), key=lambda kv: kv[1]["ordre"]):
        plans.append({
            **plan,
            "id": slug,
            "prix": float(plan["prix"]),
            "devise": DEVISE,
            "populaire": plan.get("populaire", False),
        })
    return plans


def plan_ou_erreur(slug: str) -> dict:
    if slug not in PLANS:
        raise ValidationError(f"Plan inconnu : {slug}")
    return PLANS[slug]


def date_renouvellement(plan: str, depuis: Optional[date] = None) -> date:
    """1er janvier suivant pour le plan gratuit, un an plus tard sinon."""
    depuis = depuis or date.today()
    if plan == "free":
        return date(depuis.year + 1, 1, 1)
    return depuis + relativedelta(years=1)


class AbonnementService:

    def __init__(self, db: Database):
        self.collection = db["abonnements"]
        self.tenants = db["tenants"]

    def _nouveau(self, plan: str, statut: str = StatutAbonnement.ACTIVE.value) -> dict:
        definition = plan_ou_erreur(plan)
        return {
            "plan": plan,
            "statut": statut,
            "prix": float(definition["prix"]),
            "devise": DEVISE,
            "documents_limite": definition["limites"]["max_documents"],
            "documents_utilises": 0,
            "date_debut": date.today().isoformat(),
            "date_renouvellement": date_renouvellement(plan).isoformat(),
            "changement_demande": False,
            "plan_demande": None,
            "date_demande": None,
            "cancelled_at": None,
        }

    def courant(self, tenant_id: str) -> dict:
        """Abonnement du tenant, un abonnement gratuit est cree au premier acces."""
        def _obtenir(tx):
            existants = tx.find(tenant_id)
            if existants:
                return existants[0]
            logger.info("Creation de l'abonnement gratuit du tenant %s", tenant_id)
            return tx.insert(tenant_id, self._nouveau("free"))
        return self.collection.transaction(_obtenir)

    def demander_changement(self, tenant_id: str, plan: str) -> dict:
        plan_ou_erreur(plan)
        abonnement = self.courant(tenant_id)
        if abonnement["plan"] == plan:
            return abonnement
        logger.info("Demande de changement de plan %s -> %s (tenant %s)",
                    abonnement["plan"], plan, tenant_id)
        return self.collection.update(tenant_id, abonnement["id"], {
            "changement_demande": True,
            "plan_demande": plan,
            "date_demande": datetime.now().isoformat(),
        })

    def consommer_document(self, tenant_id: str) -> dict:
        """Compte un document cree; refuse si l'abonnement est inactif ou la limite atteinte."""
        self.courant(tenant_id)

        def _consommer(tx):
            abonnement = tx.find(tenant_id)[0]
            if abonnement["statut"] != StatutAbonnement.ACTIVE.value:
                raise SubscriptionLimitError("Votre abonnement n'est pas actif")
            limite = abonnement.get("documents_limite", DOCUMENTS_ILLIMITES)
            if limite != DOCUMENTS_ILLIMITES and abonnement["documents_utilises"] >= limite:
                raise SubscriptionLimitError(
                    f"Limite de {limite} documents atteinte pour le plan {abonnement['plan']}"
                )
            stocke = tx.get(tenant_id, abonnement["id"])
            stocke["documents_utilises"] = abonnement["documents_utilises"] + 1
            return dict(stocke)
        return self.collection.transaction(_consommer)

    # --- Administration ---

    def lister(self, statut: str = None, plan: str = None, search: str = None) -> dict:
        tenants = {t["id"]: t for t in self.tenants.find_all()}
        abonnements = []
        for abonnement in self.collection.find_all():
            abonnement["societe"] = tenants.get(abonnement["tenant_id"], {}).get("nom", "")
            abonnements.append(abonnement)

        stats = {
            "total": len(abonnements),
            "actifs": sum(1 for a in abonnements if a["statut"] == StatutAbonnement.ACTIVE.value),
            "demandes_en_attente": sum(1 for a in abonnements if a.get("changement_demande")),
            "par_plan": {slug: sum(1 for a in abonnements if a["plan"] == slug) for slug in PLANS},
        }

        if statut:
            abonnements = [a for a in abonnements if a["statut"] == statut]
        if plan:
            abonnements = [a for a in abonnements if a["plan"] == plan]
        if search:
            texte = search.strip().lower()
            abonnements = [a for a in abonnements
                           if texte in a["societe"].lower() or texte in a["tenant_id"].lower()]

        abonnements.sort(key=lambda a: a.get("created_at", ""), reverse=True)
        abonnements.sort(key=lambda a: not a.get("changement_demande"))
        return {"items": abonnements, "total": len(abonnements), "stats": stats}

    def _pour_tenant(self, tenant_id: str) -> Optional[dict]:
        existants = self.collection.find(tenant_id)
        return existants[0] if existants else None

    def definir(self, tenant_id: str, plan: str, statut: str = None, **extra) -> dict:
        """Cree ou remplace directement l'abonnement d'un tenant."""
        if not self.tenants.find_all(id=tenant_id):
            raise NotFoundError("Société non trouvée")
        doc = self._nouveau(plan, statut or StatutAbonnement.ACTIVE.value)
        doc.update({k: v for k, v in extra.items() if v is not None})
        existant = self._pour_tenant(tenant_id)
        if existant:
            if extra.get("documents_utilises") is None:
                doc["documents_utilises"] = existant["documents_utilises"]
            resultat = self.collection.update(tenant_id, existant["id"], doc)
        else:
            resultat = self.collection.insert(tenant_id, doc)
        logger.info("Abonnement du tenant %s defini sur le plan %s", tenant_id, plan)
        return resultat

    def modifier(self, tenant_id: str, changes: dict) -> dict:
        existant = self._pour_tenant(tenant_id)
        if not existant:
            raise NotFoundError("Abonnement non trouvé")
        changes = {k: v for k, v in changes.items() if v is not None}
        if "plan" in changes and changes["plan"] != existant["plan"]:
            definition = plan_ou_erreur(changes["plan"])
            changes["prix"] = float(definition["prix"])
            changes["documents_limite"] = definition["limites"]["max_documents"]
        statut = changes.get("statut")
        if statut == StatutAbonnement.CANCELLED.value:
            changes["cancelled_at"] = datetime.now().isoformat()
        elif statut == StatutAbonnement.ACTIVE.value:
            changes["cancelled_at"] = None
        return self.collection.update(tenant_id, existant["id"], changes)

    def traiter_demande(self, tenant_id: str, approve: bool = True, direct_change: bool = False,
                        new_plan: str = None, motif: str = None) -> dict:
        """Approuve ou rejette une demande de changement de plan.

        ``direct_change`` permet a l'administrateur d'appliquer ``new_plan``
        sans demande prealable.
        """
        existant = self._pour_tenant(tenant_id)
        if not existant:
            raise NotFoundError("Abonnement non trouvé")

        if direct_change:
            if not new_plan:
                raise ValidationError("new_plan est requis pour un changement direct")
            plan = new_plan
        else:
            if not existant.get("changement_demande"):
                raise ValidationError("Aucune demande de changement en attente")
            plan = existant["plan_demande"]

        reinitialisation = {"changement_demande": False, "plan_demande": None, "date_demande": None}
        if not approve and not direct_change:
            logger.info("Demande de changement rejetee (tenant %s)", tenant_id)
            return self.collection.update(tenant_id, existant["id"],
                                          {**reinitialisation, "motif_rejet": motif})

        definition = plan_ou_erreur(plan)
        logger.info("Plan %s applique au tenant %s", plan, tenant_id)
        return self.collection.update(tenant_id, existant["id"], {
            **reinitialisation,
            "plan": plan,
            "statut": StatutAbonnement.ACTIVE.value,
            "prix": float(definition["prix"]),
            "documents_limite": definition["limites"]["max_documents"],
            "date_renouvellement": date_renouvellement(plan).isoformat(),
            "cancelled_at": None,
        })
