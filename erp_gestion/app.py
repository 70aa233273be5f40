"""Application web ERP Gestion.

Assemble les routeurs par domaine et traduit les erreurs metier en
reponses JSON ``{"detail": ...}``.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from erp_gestion import __version__
from erp_gestion.config.settings import AppConfig
from erp_gestion.core.exceptions import ERPError
from erp_gestion.core.services import Services
from erp_gestion.routes import (
    abonnements, achats, auth, garanties, parametres, rapports, rh, tiers, ventes,
)

logger = logging.getLogger("erp_gestion.app")

ROUTEURS = (auth, tiers, achats, ventes, rh, abonnements, garanties, parametres, rapports)


def configurer_logging(level: str = "INFO") -> None:
    """Configure le logging de l'application."""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s [%(levelname)-7s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _message_validation(exc: RequestValidationError) -> str:
    erreurs = exc.errors()
    if not erreurs:
        return "Requête invalide"
    premiere = erreurs[0]
    champ = ".".join(str(p) for p in premiere.get("loc", ()) if p not in ("body", "query", "path"))
    message = premiere.get("msg", "valeur invalide")
    return f"Champ invalide ({champ}) : {message}" if champ else f"Requête invalide : {message}"


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    config = config or AppConfig()
    app = FastAPI(
        title="ERP Gestion",
        description="ERP multi-societes : achats, ventes, RH, abonnements, garanties",
        version=__version__,
    )
    app.state.services = Services(config)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ERPError)
    async def _erreur_metier(request: Request, exc: ERPError):
        if exc.status_code >= 500:
            logger.error("%s %s : %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def _erreur_validation(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": _message_validation(exc)})

    @app.exception_handler(Exception)
    async def _erreur_inattendue(request: Request, exc: Exception):
        logger.exception("Erreur inattendue sur %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Erreur interne du serveur"})

    @app.get("/api/health")
    def health():
        return {"status": "ok", "version": __version__}

    for module in ROUTEURS:
        app.include_router(module.router)

    logger.info("ERP Gestion %s pret (donnees : %s)", __version__, config.data_dir)
    return app
