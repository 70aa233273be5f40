"""Modeles pydantic des corps de requete de l'API."""

from typing import Annotated, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Pourcentage = Annotated[float, Field(ge=0, le=100)]


class _Corps(BaseModel):
    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)


# --- Authentification ---

class LoginRequest(_Corps):
    email: str
    password: str


class RegisterRequest(_Corps):
    email: str
    password: str
    nom: str
    prenom: str = ""
    nom_societe: str


class ChangePasswordRequest(_Corps):
    mot_de_passe_actuel: str
    nouveau_mot_de_passe: str


# --- Tiers et produits ---

class TiersCreate(_Corps):
    type: Literal["societe", "particulier"] = "societe"
    raison_sociale: Optional[str] = None
    nom: Optional[str] = None
    prenom: Optional[str] = None
    matricule_fiscal: Optional[str] = None
    email: Optional[str] = None
    telephone: Optional[str] = None
    adresse: Optional[str] = None
    conditions_paiement: Optional[str] = None
    notes: Optional[str] = None
    actif: bool = True


class TiersUpdate(_Corps):
    type: Optional[Literal["societe", "particulier"]] = None
    raison_sociale: Optional[str] = None
    nom: Optional[str] = None
    prenom: Optional[str] = None
    matricule_fiscal: Optional[str] = None
    email: Optional[str] = None
    telephone: Optional[str] = None
    adresse: Optional[str] = None
    conditions_paiement: Optional[str] = None
    notes: Optional[str] = None
    actif: Optional[bool] = None


class ProduitCreate(_Corps):
    sku: str
    nom: str
    description: Optional[str] = None
    unite: str = "U"
    prix_achat_ht: float = Field(default=0, ge=0)
    prix_vente_ht: float = Field(default=0, ge=0)
    tva_pct: float = Field(default=19, ge=0, le=100)
    actif: bool = True


class ProduitUpdate(_Corps):
    sku: Optional[str] = None
    nom: Optional[str] = None
    description: Optional[str] = None
    unite: Optional[str] = None
    prix_achat_ht: Optional[float] = Field(default=None, ge=0)
    prix_vente_ht: Optional[float] = Field(default=None, ge=0)
    tva_pct: Optional[float] = Field(default=None, ge=0, le=100)
    actif: Optional[bool] = None


# --- Documents commerciaux ---

class LigneDocument(_Corps):
    produit_id: Optional[str] = None
    designation: str = ""
    quantite: float = Field(default=1, ge=0)
    prix_unitaire_ht: float = Field(default=0, ge=0)
    remise_pct: Pourcentage = 0
    tva_pct: Pourcentage = 0
    unite: Optional[str] = None
    reception_id: Optional[str] = None


class LigneReception(_Corps):
    produit_id: Optional[str] = None
    designation: str = ""
    quantite_commandee: float = Field(default=0, ge=0)
    qte_recue: float = Field(default=0, ge=0)
    prix_unitaire_ht: float = Field(default=0, ge=0)
    remise_pct: Pourcentage = 0
    tva_pct: Pourcentage = 0
    unite: Optional[str] = None


class CommandeCreate(_Corps):
    fournisseur_id: str
    date_commande: Optional[str] = None
    date_livraison_prevue: Optional[str] = None
    lignes: list[LigneDocument]
    remise_globale_pct: Pourcentage = 0
    notes: Optional[str] = None


class ReceptionCreate(_Corps):
    fournisseur_id: str
    commande_id: Optional[str] = None
    date_reception: Optional[str] = None
    lignes: list[LigneReception]
    fodec_actif: Optional[bool] = None
    taux_fodec: Optional[float] = Field(default=None, ge=0, le=100)
    timbre_actif: Optional[bool] = None
    notes: Optional[str] = None


class ReceptionUpdate(_Corps):
    date_reception: Optional[str] = None
    lignes: Optional[list[LigneReception]] = None
    fodec_actif: Optional[bool] = None
    taux_fodec: Optional[float] = Field(default=None, ge=0, le=100)
    timbre_actif: Optional[bool] = None
    notes: Optional[str] = None


class FactureCreate(_Corps):
    fournisseur_id: Optional[str] = None
    client_id: Optional[str] = None
    numero_externe: Optional[str] = None
    date_facture: Optional[str] = None
    date_echeance: Optional[str] = None
    lignes: list[LigneDocument] = Field(default_factory=list)
    bons_reception_ids: list[str] = Field(default_factory=list)
    remise_globale_pct: Pourcentage = 0
    fodec_actif: Optional[bool] = None
    taux_fodec: Optional[float] = Field(default=None, ge=0, le=100)
    timbre_actif: Optional[bool] = None
    notes: Optional[str] = None


class FactureUpdate(_Corps):
    numero_externe: Optional[str] = None
    date_facture: Optional[str] = None
    date_echeance: Optional[str] = None
    lignes: Optional[list[LigneDocument]] = None
    remise_globale_pct: Optional[float] = Field(default=None, ge=0, le=100)
    fodec_actif: Optional[bool] = None
    taux_fodec: Optional[float] = Field(default=None, ge=0, le=100)
    timbre_actif: Optional[bool] = None
    notes: Optional[str] = None


# --- Paiements ---

class LignePaiement(_Corps):
    facture_id: str
    montant_paye: float


class PaiementCreate(_Corps):
    fournisseur_id: Optional[str] = None
    client_id: Optional[str] = None
    date_paiement: Optional[str] = None
    mode_paiement: str = "Virement"
    reference: Optional[str] = None
    notes: Optional[str] = None
    lignes: list[LignePaiement] = Field(default_factory=list)
    paiement_sur_compte: bool = False
    montant_sur_compte: Optional[float] = None
    utiliser_avance: bool = False
    montant_avance: Optional[float] = None


class PaiementUpdate(_Corps):
    model_config = ConfigDict(extra="forbid")

    mode_paiement: Optional[str] = None
    reference: Optional[str] = None
    notes: Optional[str] = None
    date_paiement: Optional[str] = None


# --- RH ---

class EmployeCreate(_Corps):
    nom: str
    prenom: str = ""
    matricule: Optional[str] = None
    email: Optional[str] = None
    poste: Optional[str] = None
    departement: Optional[str] = None
    date_embauche: Optional[str] = None
    actif: bool = True


class EmployeUpdate(_Corps):
    nom: Optional[str] = None
    prenom: Optional[str] = None
    matricule: Optional[str] = None
    email: Optional[str] = None
    poste: Optional[str] = None
    departement: Optional[str] = None
    date_embauche: Optional[str] = None
    actif: Optional[bool] = None


class PresenceCreate(_Corps):
    employe_id: str
    date: Optional[str] = None
    arrivee: Optional[str] = None
    depart: Optional[str] = None
    statut: Optional[Literal["present", "late", "absent", "on_leave"]] = None
    notes: Optional[str] = None


class PresenceUpdate(_Corps):
    arrivee: Optional[str] = None
    depart: Optional[str] = None
    statut: Optional[Literal["present", "late", "absent", "on_leave"]] = None
    notes: Optional[str] = None


class PointageRequest(_Corps):
    employe_id: Optional[str] = None
    heure: Optional[str] = None
    notes: Optional[str] = None


# --- Abonnements ---

class AbonnementRequest(_Corps):
    plan: str


class AbonnementGestion(_Corps):
    tenant_id: str
    plan: Optional[str] = None
    statut: Optional[Literal["active", "inactive", "cancelled", "expired"]] = None
    documents_utilises: Optional[int] = Field(default=None, ge=0)
    date_renouvellement: Optional[str] = None


class ApprobationChangementPlan(_Corps):
    tenant_id: str
    approve: bool = True
    direct_change: bool = False
    new_plan: Optional[str] = None
    motif: Optional[str] = None


# --- Garanties ---

class ChampModele(_Corps):
    nom: str
    libelle: Optional[str] = None
    type: Literal["text", "textarea", "date", "boolean", "number"] = "text"
    required: bool = False


class ModeleGarantieCreate(_Corps):
    nom: str
    contenu: str = ""
    champs: list[ChampModele] = Field(default_factory=list)
    actif: bool = True


class ModeleGarantieUpdate(_Corps):
    nom: Optional[str] = None
    contenu: Optional[str] = None
    champs: Optional[list[ChampModele]] = None
    actif: Optional[bool] = None


class ArticleGarantie(_Corps):
    produit_id: Optional[str] = None
    designation: str
    numero_serie: Optional[str] = None
    periode_garantie: Optional[str] = None


class GarantieCreate(_Corps):
    modele_id: str
    client_id: Optional[str] = None
    facture_id: Optional[str] = None
    date_debut: Optional[str] = None
    data: dict = Field(default_factory=dict)
    articles: list[ArticleGarantie] = Field(default_factory=list)
    contenu: Optional[str] = None


class GarantieUpdate(_Corps):
    client_id: Optional[str] = None
    date_debut: Optional[str] = None
    data: Optional[dict] = None
    articles: Optional[list[ArticleGarantie]] = None
    contenu: Optional[str] = None
    statut: Optional[Literal["active", "expired", "void"]] = None


# --- Parametres ---

class NumerotationSequence(_Corps):
    modele: Optional[str] = None
    numero_depart: Optional[int] = Field(default=None, ge=1)


class ParametresUpdate(_Corps):
    numerotation: Optional[dict[str, NumerotationSequence]] = None
    fodec_actif: Optional[bool] = None
    taux_fodec: Optional[float] = Field(default=None, ge=0, le=100)
    timbre_actif: Optional[bool] = None
    montant_timbre: Optional[float] = Field(default=None, ge=0)
    conditions_paiement: Optional[str] = None
