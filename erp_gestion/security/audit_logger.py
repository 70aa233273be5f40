"""Journal d'audit immutable pour tracer toutes les mutations."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

logger = logging.getLogger("erp_gestion.audit")


class AuditLogger:
    """Journalise toutes les operations de maniere immutable (append-only, JSONL)."""

    def __init__(self, log_path: Path):
        self.log_path = Path(log_path)
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def log(
        self,
        operation: str,
        tenant_id: Optional[str],
        *,
        user_id: Optional[str] = None,
        document_id: Optional[str] = None,
        details: Optional[dict] = None,
        resultat: str = "succes",
    ) -> None:
        """Ajoute une entree au journal d'audit."""
        entry = {
            "timestamp": datetime.now().isoformat(),
            "tenant_id": tenant_id,
            "operation": operation,
            "resultat": resultat,
        }
        if user_id:
            entry["user_id"] = user_id
        if document_id:
            entry["document_id"] = document_id
        if details:
            entry["details"] = details

        line = json.dumps(entry, ensure_ascii=False, default=str)
        try:
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as e:
            logger.error("Impossible d'ecrire dans le journal d'audit: %s", e)

    def log_document(self, operation: str, user: dict, tenant_id: str, doc: dict) -> None:
        self.log(
            operation,
            tenant_id,
            user_id=user.get("id") if user else None,
            document_id=doc.get("id"),
            details={"numero": doc["numero"]} if doc.get("numero") else None,
        )

    def log_erreur(self, operation: str, tenant_id: Optional[str], erreur: str) -> None:
        self.log(operation, tenant_id, details={"erreur": erreur}, resultat="echec")

    def lire_journal(self, tenant_id: Optional[str] = None) -> list[dict]:
        """Lit les entrees du journal, optionnellement pour un seul tenant."""
        if not self.log_path.exists():
            return []
        entries = []
        with open(self.log_path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                entry = json.loads(line)
                if tenant_id is None or entry.get("tenant_id") == tenant_id:
                    entries.append(entry)
        return entries
