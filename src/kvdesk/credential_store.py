# Credential Store - file-based credential persistence at ~/.kvdesk/credentials/.
# Created: 2026-10-18

from __future__ import annotations

import json
import logging
import os
import stat
from pathlib import Path

from pydantic import ValidationError

from kvdesk.cloudflare.credentials import Credentials, credentials_adapter, dump_credentials
from kvdesk.config import get_config_dir

logger = logging.getLogger(__name__)


def _get_credentials_dir() -> Path:
    """Get/create the credentials directory."""
    d = get_config_dir() / "credentials"
    d.mkdir(exist_ok=True)
    return d


class CredentialStore:
    """File-based store at ~/.kvdesk/credentials/{account_id}.json.

    Files are chmod 0600 (owner-only read/write).
    """

    def save(self, account_id: str, credentials: Credentials) -> None:
        """Save credentials for an account."""
        path = _get_credentials_dir() / f"{account_id}.json"
        path.write_text(json.dumps(dump_credentials(credentials), indent=2))
        os.chmod(path, stat.S_IRUSR | stat.S_IWUSR)
        logger.info("Saved %s credentials for account %s", credentials.type, account_id)

    def load(self, account_id: str) -> Credentials | None:
        """Load credentials for an account. Returns None if not found."""
        path = _get_credentials_dir() / f"{account_id}.json"
        if not path.exists():
            return None

        try:
            return credentials_adapter.validate_json(path.read_text())
        except (OSError, ValidationError) as e:
            logger.warning("Failed to load credentials for %s: %s", account_id, e)
            return None

    def delete(self, account_id: str) -> bool:
        """Delete credentials for an account. Returns True if deleted."""
        path = _get_credentials_dir() / f"{account_id}.json"
        if path.exists():
            path.unlink()
            logger.info("Deleted credentials for account %s", account_id)
            return True
        return False

    def list_accounts(self) -> list[str]:
        """List all accounts with stored credentials."""
        return sorted(f.stem for f in _get_credentials_dir().glob("*.json"))
