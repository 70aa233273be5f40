"""Calcul des totaux des documents commerciaux (factures, bons de reception).

Cascade appliquee :
    ligne_ht = pu x qte - remise ligne
    net_ht   = total_ht - remise globale
    fodec    = net_ht x taux fodec
    tva      = somme par ligne de (ligne_ht apres remise globale) x (1 + fodec) x taux tva
    ttc      = net_ht + fodec + tva + timbre
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable

from erp_gestion.core.exceptions import ValidationError
from erp_gestion.utils.number_utils import arrondir, to_decimal

CENT = Decimal("100")
ZERO = Decimal("0")


@dataclass
class LigneCalcul:
    quantite: Decimal
    prix_unitaire_ht: Decimal
    remise_pct: Decimal = ZERO
    tva_pct: Decimal = ZERO

    @classmethod
    def depuis_dict(cls, ligne: dict, champ_quantite: str = "quantite") -> "LigneCalcul":
        return cls(
            quantite=to_decimal(ligne.get(champ_quantite), champ_quantite),
            prix_unitaire_ht=to_decimal(ligne.get("prix_unitaire_ht"), "prix_unitaire_ht"),
            remise_pct=to_decimal(ligne.get("remise_pct"), "remise_pct"),
            tva_pct=to_decimal(ligne.get("tva_pct"), "tva_pct"),
        )

    def valider(self, index: int) -> None:
        if self.quantite < 0:
            raise ValidationError(f"Ligne {index}: la quantité doit être positive")
        if self.prix_unitaire_ht < 0:
            raise ValidationError(f"Ligne {index}: le prix unitaire doit être positif")
        _valider_pourcentage(self.remise_pct, f"Ligne {index}: remise")
        _valider_pourcentage(self.tva_pct, f"Ligne {index}: TVA")

    @property
    def brut(self) -> Decimal:
        if self.quantite <= 0 or self.prix_unitaire_ht <= 0:
            return ZERO
        return self.prix_unitaire_ht * self.quantite

    @property
    def remise(self) -> Decimal:
        return self.brut * self.remise_pct / CENT

    @property
    def total_ht(self) -> Decimal:
        return self.brut - self.remise


@dataclass
class Totaux:
    total_ht: Decimal = ZERO
    total_remise: Decimal = ZERO
    remise_globale: Decimal = ZERO
    net_ht: Decimal = ZERO
    fodec: Decimal = ZERO
    total_tva: Decimal = ZERO
    timbre: Decimal = ZERO
    total_ttc: Decimal = ZERO
    lignes_ht: list[Decimal] = field(default_factory=list)
    detail_tva: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total_ht": float(self.total_ht),
            "total_remise": float(self.total_remise),
            "remise_globale": float(self.remise_globale),
            "net_ht": float(self.net_ht),
            "fodec": float(self.fodec),
            "total_tva": float(self.total_tva),
            "timbre": float(self.timbre),
            "total_ttc": float(self.total_ttc),
            "detail_tva": self.detail_tva,
        }


def _valider_pourcentage(valeur: Decimal, libelle: str) -> None:
    if valeur < 0 or valeur > CENT:
        raise ValidationError(f"{libelle} doit être comprise entre 0 et 100")


def calculer_totaux(
    lignes: Iterable[LigneCalcul],
    remise_globale_pct=ZERO,
    fodec_actif: bool = False,
    taux_fodec=Decimal("1"),
    timbre_actif: bool = True,
    montant_timbre=Decimal("1.000"),
) -> Totaux:
    """Calcule les totaux d'un document a partir de ses lignes."""
    lignes = list(lignes)
    remise_globale_pct = to_decimal(remise_globale_pct, "remise_globale_pct")
    taux_fodec = to_decimal(taux_fodec, "taux_fodec")
    montant_timbre = to_decimal(montant_timbre, "timbre")
    _valider_pourcentage(remise_globale_pct, "La remise globale")
    _valider_pourcentage(taux_fodec, "Le taux FODEC")
    if montant_timbre < 0:
        raise ValidationError("Le montant du timbre doit être positif")
    for i, ligne in enumerate(lignes, start=1):
        ligne.valider(i)

    total_ht = sum((l.total_ht for l in lignes), ZERO)
    total_remise = sum((l.remise for l in lignes), ZERO)
    remise_globale = total_ht * remise_globale_pct / CENT
    net_ht = total_ht - remise_globale

    facteur_remise = 1 - remise_globale_pct / CENT
    facteur_fodec = 1 + (taux_fodec / CENT if fodec_actif else ZERO)
    fodec = net_ht * taux_fodec / CENT if fodec_actif else ZERO

    par_taux: dict[Decimal, dict] = {}
    for ligne in lignes:
        base = ligne.total_ht * facteur_remise * facteur_fodec
        tva = base * ligne.tva_pct / CENT
        entree = par_taux.setdefault(ligne.tva_pct, {"base": ZERO, "tva": ZERO})
        entree["base"] += base
        entree["tva"] += tva
    total_tva = sum((e["tva"] for e in par_taux.values()), ZERO)

    detail_tva = []
    for taux in sorted(par_taux):
        entree = par_taux[taux]
        if entree["base"] == 0:
            continue
        detail_tva.append({
            "code": f"TN{taux.normalize():f}",
            "taux": float(taux),
            "base": float(arrondir(entree["base"])),
            "tva": float(arrondir(entree["tva"])),
        })

    timbre = montant_timbre if timbre_actif else ZERO

    net_ht_r = arrondir(net_ht)
    fodec_r = arrondir(fodec)
    tva_r = arrondir(total_tva)
    timbre_r = arrondir(timbre)

    return Totaux(
        total_ht=arrondir(total_ht),
        total_remise=arrondir(total_remise),
        remise_globale=arrondir(remise_globale),
        net_ht=net_ht_r,
        fodec=fodec_r,
        total_tva=tva_r,
        timbre=timbre_r,
        total_ttc=net_ht_r + fodec_r + tva_r + timbre_r,
        lignes_ht=[arrondir(l.total_ht) for l in lignes],
        detail_tva=detail_tva,
    )


def calculer_document(doc: dict, champ_quantite: str = "quantite") -> Totaux:
    """Recalcule les totaux d'un document stocke et enrichit ses lignes."""
    lignes = [LigneCalcul.depuis_dict(l, champ_quantite) for l in doc.get("lignes", [])]
    totaux = calculer_totaux(
        lignes,
        remise_globale_pct=doc.get("remise_globale_pct", 0),
        fodec_actif=bool(doc.get("fodec_actif", False)),
        taux_fodec=doc.get("taux_fodec", 1),
        timbre_actif=bool(doc.get("timbre_actif", True)),
        montant_timbre=doc.get("montant_timbre", "1.000"),
    )
    for ligne, montant in zip(doc.get("lignes", []), totaux.lignes_ht):
        ligne["total_ligne_ht"] = float(montant)
    doc.update(totaux.to_dict())
    return totaux
