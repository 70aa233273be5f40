"""ERP Gestion - point d'entree web (uvicorn / gunicorn)."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from erp_gestion.app import configurer_logging, create_app
from erp_gestion.config.settings import AppConfig

config = AppConfig()
configurer_logging(config.log_level)
app = create_app(config)
