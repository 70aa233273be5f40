"""
Constantes metier ERP Gestion.

Statuts des documents, catalogue des plans d'abonnement, modeles de
numerotation et plan comptable simplifie (Tunisie).
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


# --- Statuts des documents ---

class StatutFacture(str, Enum):
    """Cycle de vie d'une facture (achat ou vente)."""
    BROUILLON = "BROUILLON"
    VALIDEE = "VALIDEE"
    PARTIELLEMENT_PAYEE = "PARTIELLEMENT_PAYEE"
    PAYEE = "PAYEE"
    ANNULEE = "ANNULEE"


class StatutReception(str, Enum):
    """Cycle de vie d'un bon de reception."""
    BROUILLON = "BROUILLON"
    VALIDE = "VALIDE"
    ANNULE = "ANNULE"


class StatutCommande(str, Enum):
    """Cycle de vie d'une commande fournisseur."""
    BROUILLON = "BROUILLON"
    CONFIRMEE = "CONFIRMEE"
    RECUE = "RECUE"
    ANNULEE = "ANNULEE"


STATUTS_PAYABLES = (StatutFacture.VALIDEE.value, StatutFacture.PARTIELLEMENT_PAYEE.value)


class StatutPresence(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    ON_LEAVE = "on_leave"


class StatutGarantie(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    VOID = "void"


class Role(str, Enum):
    ADMIN = "admin"
    GESTIONNAIRE = "gestionnaire"
    COLLABORATEUR = "collaborateur"


MODES_PAIEMENT = ("Espèces", "Virement", "Chèque", "Carte", "Traite", "Compensation")

LIBELLE_PAIEMENT_SUR_COMPTE = "PAIEMENT SUR COMPTE"


# --- Abonnements ---

class StatutAbonnement(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


DOCUMENTS_ILLIMITES = -1

PLANS = {
    "free": {
        "nom": "Gratuit",
        "slug": "free",
        "description": "Parfait pour tester et démarrer",
        "prix": Decimal("0"),
        "limites": {"max_utilisateurs": 1, "max_societes": 1, "max_documents": 100},
        "fonctionnalites": [
            "100 documents par an",
            "Clients et fournisseurs illimités",
            "Facturation de base",
            "Rapports basiques",
            "Support par email",
        ],
        "ordre": 1,
    },
    "starter": {
        "nom": "Starter",
        "slug": "starter",
        "description": "Idéal pour les petites entreprises",
        "prix": Decimal("20"),
        "limites": {"max_utilisateurs": 4, "max_societes": 1, "max_documents": 1000},
        "fonctionnalites": [
            "1,000 documents par an",
            "Clients et fournisseurs illimités",
            "Facturation complète",
            "Rapports détaillés",
            "Support prioritaire",
            "Export de données",
        ],
        "populaire": True,
        "ordre": 2,
    },
    "premium": {
        "nom": "Premium",
        "slug": "premium",
        "description": "Pour les entreprises en croissance",
        "prix": Decimal("40"),
        "limites": {"max_utilisateurs": 10, "max_societes": 3, "max_documents": DOCUMENTS_ILLIMITES},
        "fonctionnalites": [
            "Documents illimités",
            "Clients et fournisseurs illimités",
            "Facturation complète",
            "Rapports avancés",
            "Support prioritaire 24/7",
            "Export de données illimité",
            "Accès API",
        ],
        "ordre": 3,
    },
}


# --- Numerotation ---

MODELES_NUMEROTATION = {
    "fac": "FAC-{{YYYY}}-{{SEQ:5}}",
    "facfo": "FACFO-{{YYYY}}-{{SEQ:5}}",
    "br": "BR-{{YYYY}}-{{SEQ:5}}",
    "ca": "CA-{{YYYY}}-{{SEQ:5}}",
    "pafo": "PAFO-{{YYYY}}-{{SEQ:5}}",
    "pac": "PAC-{{YYYY}}-{{SEQ:5}}",
    "garantie": "GAR-{{YYYY}}-{{SEQ:5}}",
}


# --- Plan comptable (extrait du systeme comptable tunisien) ---

PLAN_COMPTABLE = {
    "401": "Fournisseurs d'exploitation",
    "409": "Fournisseurs débiteurs - avances et acomptes",
    "411": "Clients",
    "419": "Clients créditeurs - avances reçues",
    "4366": "Etat, TVA déductible",
    "4367": "Etat, TVA collectée",
    "4368": "Etat, FODEC collecté",
    "4371": "Etat, droit de timbre à payer",
    "532": "Banques",
    "541": "Caisse",
    "607": "Achats de marchandises",
    "6354": "Droits de timbre",
    "707": "Ventes de marchandises",
}


# --- Cotes achat / vente ---

@dataclass(frozen=True)
class Cote:
    """Parametrage d'un cote du cycle commercial (achats ou ventes)."""
    nom: str
    collection_tiers: str
    champ_tiers: str
    collection_factures: str
    collection_paiements: str
    sequence_facture: str
    sequence_paiement: str
    compte_tiers: str
    compte_avance: str
    libelle_tiers: str


ACHAT = Cote(
    nom="achat",
    collection_tiers="fournisseurs",
    champ_tiers="fournisseur_id",
    collection_factures="factures_achat",
    collection_paiements="paiements_fournisseurs",
    sequence_facture="facfo",
    sequence_paiement="pafo",
    compte_tiers="401",
    compte_avance="409",
    libelle_tiers="Fournisseur",
)

VENTE = Cote(
    nom="vente",
    collection_tiers="clients",
    champ_tiers="client_id",
    collection_factures="factures_vente",
    collection_paiements="paiements_clients",
    sequence_facture="fac",
    sequence_paiement="pac",
    compte_tiers="411",
    compte_avance="419",
    libelle_tiers="Client",
)
