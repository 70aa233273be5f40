"""Point d'entree CLI pour ERP Gestion.

Usage :
    erp-gestion serve [--host 0.0.0.0] [--port 8000] [--reload]
    erp-gestion creer-admin email mot_de_passe [--nom NOM] [--societe NOM]
"""

import argparse
import logging
import sys

from erp_gestion import __version__
from erp_gestion.app import configurer_logging
from erp_gestion.config.constants import Role
from erp_gestion.config.settings import AppConfig
from erp_gestion.core.exceptions import ERPError

logger = logging.getLogger("erp_gestion")


def creer_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="erp-gestion",
        description=f"ERP Gestion v{__version__} : achats, ventes, RH, abonnements, garanties.",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Mode verbeux (debug)",
    )
    sous = parser.add_subparsers(dest="commande", required=True)

    serve = sous.add_parser("serve", help="Demarrer le serveur HTTP")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true", help="Rechargement automatique (dev)")

    admin = sous.add_parser("creer-admin", help="Creer un administrateur plateforme")
    admin.add_argument("email")
    admin.add_argument("mot_de_passe")
    admin.add_argument("--nom", default="Administrateur")
    admin.add_argument("--societe", default="Administration plateforme")
    return parser


def creer_admin(config: AppConfig, email: str, mot_de_passe: str, nom: str, societe: str) -> dict:
    """Cree une societe d'administration et son administrateur."""
    from erp_gestion.core.services import Services

    services = Services(config)
    tenant = services.db["tenants"].insert(None, {"nom": societe, "active": True})
    user = services.auth.create_user(email, mot_de_passe, nom, role=Role.ADMIN.value,
                                     tenant_id=tenant["id"])
    services.abonnements.definir(tenant["id"], "premium")
    services.audit.log("creation_admin", tenant["id"], user_id=user["id"])
    return user


def main() -> int:
    """Point d'entree principal."""
    parser = creer_argument_parser()
    args = parser.parse_args()

    config = AppConfig()
    configurer_logging("DEBUG" if args.verbose else config.log_level)

    if args.commande == "serve":
        import uvicorn

        logger.info("Demarrage sur %s:%d (donnees : %s)", args.host, args.port, config.data_dir)
        uvicorn.run("erp_gestion.app:create_app", factory=True, host=args.host, port=args.port,
                    reload=args.reload)
        return 0

    try:
        user = creer_admin(config, args.email, args.mot_de_passe, args.nom, args.societe)
    except ERPError as e:
        logger.error("Creation impossible : %s", e)
        return 1
    logger.info("Administrateur %s cree (tenant %s)", user["email"], user["tenant_id"])
    return 0


if __name__ == "__main__":
    sys.exit(main())
