"""Utilitaires de parsing et manipulation de dates."""

import re
from datetime import date, datetime, timezone
from typing import Optional

from dateutil.relativedelta import relativedelta

from erp_gestion.core.exceptions import ValidationError

FORMATS_DATE = [
    "%Y-%m-%d",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%d.%m.%Y",
    "%Y%m%d",
]

_RE_DUREE = re.compile(r"^\s*(\d+)\s*(jours?|j|semaines?|mois|ans?|annees?|années?)\s*$", re.IGNORECASE)


def parser_date(valeur) -> Optional[date]:
    """Tente de parser une date a partir de differents formats courants."""
    if valeur is None:
        return None
    if isinstance(valeur, datetime):
        return valeur.date()
    if isinstance(valeur, date):
        return valeur
    valeur = str(valeur).strip()
    if not valeur:
        return None

    # Horodatage ISO complet (2024-03-01T10:00:00Z)
    if "T" in valeur:
        dt = parser_datetime(valeur)
        return dt.date() if dt else None

    for fmt in FORMATS_DATE:
        try:
            return datetime.strptime(valeur, fmt).date()
        except ValueError:
            continue
    return None


def exiger_date(valeur, champ: str = "date") -> date:
    d = parser_date(valeur)
    if d is None:
        raise ValidationError(f"Date invalide pour {champ} : {valeur!r}")
    return d


def parser_datetime(valeur) -> Optional[datetime]:
    """Parse un horodatage ISO 8601; les horodatages naifs sont consideres UTC."""
    if valeur is None:
        return None
    if isinstance(valeur, datetime):
        dt = valeur
    else:
        s = str(valeur).strip()
        if not s:
            return None
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(s)
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def maintenant_utc() -> datetime:
    return datetime.now(timezone.utc)


def debut_journee_utc(dt: datetime) -> datetime:
    return dt.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)


def ajouter_duree(debut: date, duree: str) -> Optional[date]:
    """Ajoute une duree libre ("12 mois", "2 ans", "90 jours") a une date."""
    m = _RE_DUREE.match(duree or "")
    if not m:
        return None
    n = int(m.group(1))
    unite = m.group(2).lower()
    if unite.startswith("j"):
        return debut + relativedelta(days=n)
    if unite.startswith("s"):
        return debut + relativedelta(weeks=n)
    if unite == "mois":
        return debut + relativedelta(months=n)
    return debut + relativedelta(years=n)
