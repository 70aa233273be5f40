"""ERP Gestion - Module d'authentification.

JWT (HMAC-SHA256) + PBKDF2 password hashing (stdlib uniquement).
Utilisateurs, societes (tenants) et historique de connexion sont conserves
dans le stockage persistant.
"""

import base64
import hashlib
import hmac
import json
import logging
import os
import time
from datetime import datetime
from typing import Optional

from fastapi import Request, Response

from erp_gestion.config.constants import Role
from erp_gestion.config.settings import SecurityConfig
from erp_gestion.core.exceptions import (
    AuthenticationError, ConflictError, ValidationError,
)
from erp_gestion.database.store import Database

logger = logging.getLogger("erp_gestion.auth")

PBKDF2_ITERATIONS = 150_000


# =========================================
# PASSWORD HASHING (PBKDF2-SHA256, stdlib)
# =========================================

def hash_password(password: str, iterations: int = PBKDF2_ITERATIONS) -> str:
    salt = os.urandom(16).hex()
    dk = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), iterations)
    return f"{salt}${dk.hex()}"


def verify_password(password: str, stored: str, iterations: int = PBKDF2_ITERATIONS) -> bool:
    parts = stored.split("$", 1)
    if len(parts) != 2:
        return False
    salt = parts[0]
    dk = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), iterations)
    return hmac.compare_digest(f"{salt}${dk.hex()}", stored)


# =========================================
# JWT (HMAC-SHA256, stdlib)
# =========================================

def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def _b64url_decode(s: str) -> bytes:
    s += "=" * (4 - len(s) % 4)
    return base64.urlsafe_b64decode(s)


def jwt_encode(payload: dict, secret: str) -> str:
    header = {"alg": "HS256", "typ": "JWT"}
    h = _b64url_encode(json.dumps(header, separators=(",", ":")).encode())
    p = _b64url_encode(json.dumps(payload, separators=(",", ":"), default=str).encode())
    sig = hmac.new(secret.encode(), f"{h}.{p}".encode(), hashlib.sha256).digest()
    return f"{h}.{p}.{_b64url_encode(sig)}"


def jwt_decode(token: str, secret: str) -> Optional[dict]:
    """Payload du token, ou None si signature invalide, token malforme ou expire."""
    try:
        parts = token.split(".")
        if len(parts) != 3:
            return None
        sig_input = f"{parts[0]}.{parts[1]}".encode()
        expected = hmac.new(secret.encode(), sig_input, hashlib.sha256).digest()
        actual = _b64url_decode(parts[2])
        if not hmac.compare_digest(expected, actual):
            return None
        payload = json.loads(_b64url_decode(parts[1]))
        if payload.get("exp") and payload["exp"] < time.time():
            return None
        return payload
    except (ValueError, TypeError, UnicodeDecodeError):
        return None


def _safe_user(user: dict) -> dict:
    return {k: v for k, v in user.items() if k != "password_hash"}


# =========================================
# SERVICE UTILISATEURS
# =========================================

class AuthService:
    """Comptes utilisateurs, societes et sessions."""

    def __init__(self, db: Database, config: SecurityConfig):
        self.db = db
        self.config = config
        self.users = db["users"]
        self.tenants = db["tenants"]
        self.history = db["login_history"]

    def _verifier_mot_de_passe(self, password: str) -> None:
        if len(password or "") < self.config.longueur_min_mot_de_passe:
            raise ValidationError(
                f"Mot de passe trop court (min. {self.config.longueur_min_mot_de_passe} caracteres)"
            )

    def create_user(self, email: str, password: str, nom: str, prenom: str = "",
                    role: str = Role.COLLABORATEUR.value, tenant_id: str = None) -> dict:
        email = (email or "").strip().lower()
        if "@" not in email:
            raise ValidationError("Adresse email invalide")
        if role not in {r.value for r in Role}:
            raise ValidationError(f"Role inconnu : {role}")
        self._verifier_mot_de_passe(password)
        if tenant_id is None:
            raise ValidationError("Societe (tenant) requise")
        password_hash = hash_password(password, self.config.pbkdf2_iterations)

        def _creer(tx):
            if tx.find(None, email=email):
                raise ConflictError("Email deja utilise")
            return tx.insert(tenant_id, {
                "email": email,
                "nom": nom,
                "prenom": prenom,
                "password_hash": password_hash,
                "role": role,
                "active": True,
            })

        user = self.users.transaction(_creer)
        logger.info("Utilisateur %s cree (tenant %s, role %s)", email, tenant_id, role)
        return _safe_user(user)

    def register(self, email: str, password: str, nom: str, prenom: str,
                 nom_societe: str) -> dict:
        """Cree une societe et son premier utilisateur (gestionnaire)."""
        if not (nom_societe or "").strip():
            raise ValidationError("Le nom de la societe est requis")
        email_norm = (email or "").strip().lower()
        if self.users.find_all(email=email_norm):
            raise ConflictError("Email deja utilise")
        self._verifier_mot_de_passe(password)
        tenant = self.tenants.insert(None, {"nom": nom_societe.strip(), "active": True})
        return self.create_user(email, password, nom, prenom,
                                role=Role.GESTIONNAIRE.value, tenant_id=tenant["id"])

    def _find_raw(self, email: str) -> Optional[dict]:
        found = self.users.find_all(email=(email or "").strip().lower())
        return found[0] if found else None

    def authenticate(self, email: str, password: str, ip: str = "", user_agent: str = "") -> dict:
        user = self._find_raw(email)
        ok = bool(user) and verify_password(password, user["password_hash"],
                                            self.config.pbkdf2_iterations)
        if ok and not user.get("active", True):
            ok = False
        self.history.insert(user["tenant_id"] if user else None, {
            "user_id": user["id"] if user else None,
            "email": (email or "").strip().lower(),
            "succes": ok,
            "ip": ip,
            "user_agent": user_agent,
            "date": datetime.now().isoformat(),
        })
        if not ok:
            logger.warning("Echec de connexion pour %s", email)
            raise AuthenticationError("Email ou mot de passe incorrect")
        return _safe_user(user)

    def get_user(self, user_id: str) -> Optional[dict]:
        found = self.users.find_all(id=user_id)
        return _safe_user(found[0]) if found else None

    def change_password(self, user_id: str, actuel: str, nouveau: str) -> None:
        found = self.users.find_all(id=user_id)
        if not found:
            raise AuthenticationError("Utilisateur inconnu")
        user = found[0]
        if not verify_password(actuel, user["password_hash"], self.config.pbkdf2_iterations):
            raise ValidationError("Mot de passe actuel incorrect")
        self._verifier_mot_de_passe(nouveau)
        if nouveau == actuel:
            raise ValidationError("Le nouveau mot de passe doit etre different de l'actuel")
        self.users.update(None, user_id, {
            "password_hash": hash_password(nouveau, self.config.pbkdf2_iterations),
        })
        logger.info("Mot de passe modifie pour %s", user["email"])

    def login_history(self, user_id: str, limit: int = 20) -> list[dict]:
        limit = max(1, min(int(limit), 100))
        entries = self.history.find_all(user_id=user_id)
        entries.sort(key=lambda e: e.get("date", ""), reverse=True)
        return entries[:limit]

    # --- Tokens ---

    def generate_token(self, user: dict) -> str:
        now = int(time.time())
        return jwt_encode({
            "sub": user["id"],
            "email": user["email"],
            "role": user.get("role", Role.COLLABORATEUR.value),
            "tenant_id": user.get("tenant_id"),
            "exp": now + self.config.token_expiry_hours * 3600,
            "iat": now,
        }, self.config.secret_key)

    def user_from_token(self, token: Optional[str]) -> dict:
        if not token:
            raise AuthenticationError("Non authentifie")
        payload = jwt_decode(token, self.config.secret_key)
        if not payload:
            raise AuthenticationError("Session expiree ou invalide")
        user = self.get_user(payload.get("sub", ""))
        if not user or not user.get("active", True):
            raise AuthenticationError("Utilisateur inconnu")
        return user

    def set_auth_cookie(self, response: Response, token: str):
        response.set_cookie(
            key=self.config.cookie_name,
            value=token,
            httponly=True,
            samesite="lax",
            max_age=self.config.token_expiry_hours * 3600,
            secure=self.config.cookie_secure,
        )

    def clear_auth_cookie(self, response: Response):
        response.delete_cookie(key=self.config.cookie_name)


# =========================================
# FASTAPI DEPENDENCIES
# =========================================

def get_current_user(request: Request) -> dict:
    """Extract and validate JWT from cookie or Authorization header."""
    auth: AuthService = request.app.state.services.auth
    token = request.cookies.get(auth.config.cookie_name)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
    return auth.user_from_token(token)
