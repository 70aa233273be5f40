"""ERP Gestion - ERP multi-societes (achats, ventes, RH, abonnements, garanties)."""

__version__ = "1.0.0"
