"""Machine a etats des documents."""

from erp_gestion.config.constants import StatutCommande, StatutFacture, StatutReception
from erp_gestion.core.exceptions import ConflictError

F = StatutFacture
R = StatutReception
C = StatutCommande

TRANSITIONS = {
    "facture": {
        F.BROUILLON.value: {F.VALIDEE.value, F.ANNULEE.value},
        F.VALIDEE.value: {F.PARTIELLEMENT_PAYEE.value, F.PAYEE.value, F.ANNULEE.value},
        F.PARTIELLEMENT_PAYEE.value: {F.PAYEE.value, F.VALIDEE.value},
        F.PAYEE.value: {F.PARTIELLEMENT_PAYEE.value, F.VALIDEE.value},
        F.ANNULEE.value: set(),
    },
    "reception": {
        R.BROUILLON.value: {R.VALIDE.value, R.ANNULE.value},
        R.VALIDE.value: {R.ANNULE.value},
        R.ANNULE.value: set(),
    },
    "commande": {
        C.BROUILLON.value: {C.CONFIRMEE.value, C.ANNULEE.value},
        C.CONFIRMEE.value: {C.RECUE.value, C.ANNULEE.value},
        C.RECUE.value: set(),
        C.ANNULEE.value: set(),
    },
}

BROUILLONS = {"facture": F.BROUILLON.value, "reception": R.BROUILLON.value, "commande": C.BROUILLON.value}


def transition_autorisee(type_document: str, actuel: str, cible: str) -> bool:
    if actuel == cible:
        return True
    return cible in TRANSITIONS[type_document].get(actuel, set())


def verifier_transition(type_document: str, actuel: str, cible: str) -> None:
    if not transition_autorisee(type_document, actuel, cible):
        raise ConflictError(f"Transition impossible de {actuel} vers {cible}")


def verifier_modifiable(type_document: str, doc: dict) -> None:
    """Seuls les brouillons peuvent etre modifies ou supprimes."""
    if doc.get("statut") != BROUILLONS[type_document]:
        raise ConflictError(
            f"Document {doc.get('numero', doc.get('id'))} en statut {doc.get('statut')} : "
            f"seuls les brouillons sont modifiables"
        )


def verifier_annulable(facture: dict, deja_paye) -> None:
    if deja_paye and deja_paye > 0:
        raise ConflictError(
            f"La facture {facture.get('numero')} a des paiements : supprimez-les avant de l'annuler"
        )
    verifier_transition("facture", facture.get("statut"), F.ANNULEE.value)
