"""Configuration globale de l'application."""

import os
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path


@dataclass
class SecurityConfig:
    """Configuration securite."""
    secret_key: str = field(
        default_factory=lambda: os.getenv("ERP_SECRET_KEY", "erp-gestion-dev-key-CHANGEZ-EN-PRODUCTION")
    )
    token_expiry_hours: int = field(
        default_factory=lambda: int(os.getenv("ERP_TOKEN_EXPIRY", "24"))
    )
    pbkdf2_iterations: int = 150_000
    longueur_min_mot_de_passe: int = 6
    cookie_name: str = "erp_token"
    cookie_secure: bool = False


@dataclass
class FiscalConfig:
    """Parametres fiscaux par defaut (Tunisie)."""
    devise: str = "TND"
    decimales: int = 3
    tolerance: Decimal = Decimal("0.001")
    taux_fodec: Decimal = Decimal("1")
    fodec_actif: bool = False
    montant_timbre: Decimal = Decimal("1.000")
    timbre_actif: bool = True
    delai_paiement_jours: int = 30


@dataclass
class RHConfig:
    """Parametres RH (pointage)."""
    heure_debut_travail: int = 8
    minute_debut_travail: int = 0


@dataclass
class AppConfig:
    """Configuration principale de l'application."""
    base_dir: Path = field(default_factory=lambda: Path(__file__).parent.parent.parent)
    data_dir: Path = field(default=None)
    db_dir: Path = field(default=None)
    logs_dir: Path = field(default=None)
    audit_log_path: Path = field(default=None)
    log_level: str = field(default_factory=lambda: os.getenv("ERP_LOG_LEVEL", "INFO"))

    security: SecurityConfig = field(default_factory=SecurityConfig)
    fiscal: FiscalConfig = field(default_factory=FiscalConfig)
    rh: RHConfig = field(default_factory=RHConfig)

    def __post_init__(self):
        if self.data_dir is None:
            env_dir = os.getenv("ERP_DATA_DIR")
            self.data_dir = Path(env_dir) if env_dir else self.base_dir / "data"
        self.data_dir = Path(self.data_dir)
        if self.db_dir is None:
            self.db_dir = self.data_dir / "db"
        if self.logs_dir is None:
            self.logs_dir = self.data_dir / "logs"
        if self.audit_log_path is None:
            self.audit_log_path = self.logs_dir / "audit.log"

        # Creer les repertoires si necessaire
        for d in [self.data_dir, self.db_dir, self.logs_dir]:
            d.mkdir(parents=True, exist_ok=True)
