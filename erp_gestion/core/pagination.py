"""Recherche plein texte et pagination des listes."""

from typing import Iterable, Sequence

LIMITE_DEFAUT = 20
LIMITE_MAX = 200


def rechercher(items: Iterable[dict], search: str, champs: Sequence[str]) -> list[dict]:
    """Filtre les documents dont un des champs contient le texte (insensible a la casse)."""
    items = list(items)
    texte = (search or "").strip().lower()
    if not texte:
        return items
    return [
        item for item in items
        if any(texte in str(item.get(champ) or "").lower() for champ in champs)
    ]


def paginer(items: list, page: int = 1, limit: int = LIMITE_DEFAUT,
            tri: str = "created_at", decroissant: bool = True) -> dict:
    page = max(int(page or 1), 1)
    limit = max(1, min(int(limit or LIMITE_DEFAUT), LIMITE_MAX))
    items = sorted(items, key=lambda d: str(d.get(tri) or ""), reverse=decroissant)
    debut = (page - 1) * limit
    return {
        "items": items[debut:debut + limit],
        "total": len(items),
        "page": page,
        "limit": limit,
    }
