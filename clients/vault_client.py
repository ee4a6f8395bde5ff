"""
HashiCorp Vault client for parking API secrets.

Uses AppRole authentication. All paths are scoped to the 'parking/' prefix.
For local development, when VAULT_ADDR is not set, get_database_url() reads
DATABASE_URL from the environment instead.
"""

import os
import logging
from typing import Dict

import hvac
from hvac.exceptions import InvalidPath, Unauthorized, Forbidden

logger = logging.getLogger(__name__)

_SECRET_PREFIX = "parking"

# Singleton instance and cache
_vault_client_instance: "VaultClient | None" = None
_secret_cache: Dict[str, str] = {}


def _ensure_vault_client() -> "VaultClient":
    global _vault_client_instance
    if _vault_client_instance is None:
        _vault_client_instance = VaultClient()
    return _vault_client_instance


class VaultError(Exception):
    """Secrets could not be resolved. The application cannot start without them."""


class VaultClient:
    """Vault client with AppRole auth and env-based config. Fails fast."""

    def __init__(
        self,
        vault_addr: str | None = None,
        vault_namespace: str | None = None,
    ):
        self.vault_addr = vault_addr or os.getenv("VAULT_ADDR")
        self.vault_namespace = vault_namespace or os.getenv("VAULT_NAMESPACE")
        self.vault_role_id = os.getenv("VAULT_ROLE_ID")
        self.vault_secret_id = os.getenv("VAULT_SECRET_ID")

        if not self.vault_addr:
            raise VaultError("VAULT_ADDR environment variable is required")

        if not self.vault_role_id or not self.vault_secret_id:
            raise VaultError(
                "VAULT_ROLE_ID and VAULT_SECRET_ID environment variables are required"
            )

        client_kwargs = {"url": self.vault_addr}
        if self.vault_namespace:
            client_kwargs["namespace"] = self.vault_namespace

        self.client = hvac.Client(**client_kwargs)
        self._login()

        if not self.client.is_authenticated():
            raise VaultError("Vault authentication failed")

        logger.info(f"Vault client initialized: {self.vault_addr}")

    def _login(self) -> None:
        try:
            response = self.client.auth.approle.login(
                role_id=self.vault_role_id,
                secret_id=self.vault_secret_id,
            )
        except (Unauthorized, Forbidden) as e:
            logger.error(f"AppRole login rejected: {e}")
            raise VaultError(f"AppRole login rejected: {e}") from e
        self.client.token = response["auth"]["client_token"]

    def get_secret(self, path: str, field: str) -> str:
        """
        Read one field of a KV v2 secret under 'parking/'.

        Args:
            path: Secret path relative to parking/ (e.g. 'database')
            field: Field within the secret (e.g. 'url')

        Raises:
            VaultError: Path missing, access denied, or field absent.
        """
        full_path = f"{_SECRET_PREFIX}/{path}"

        try:
            response = self.client.secrets.kv.v2.read_secret_version(
                path=full_path, raise_on_deleted_version=True
            )
        except InvalidPath as e:
            logger.error(f"Secret path not found: {full_path}")
            raise VaultError(f"Secret path '{full_path}' not found in Vault") from e
        except (Unauthorized, Forbidden) as e:
            logger.error(f"Access denied to secret {full_path}: {e}")
            raise VaultError(f"Access denied to secret '{full_path}'") from e

        secret_data = response["data"]["data"]
        if field not in secret_data:
            raise VaultError(
                f"Field '{field}' not found in secret '{full_path}'. "
                f"Available: {', '.join(sorted(secret_data))}"
            )
        return secret_data[field]


def get_database_url() -> str:
    """
    PostgreSQL connection URL.

    Read from Vault ('parking/database' field 'url') when VAULT_ADDR is set,
    otherwise from DATABASE_URL.
    """
    cache_key = f"{_SECRET_PREFIX}/database/url"

    if cache_key in _secret_cache:
        return _secret_cache[cache_key]

    if os.getenv("VAULT_ADDR"):
        value = _ensure_vault_client().get_secret("database", "url")
    else:
        value = os.getenv("DATABASE_URL")
        if not value:
            raise VaultError("Neither VAULT_ADDR nor DATABASE_URL is set")
        logger.info("Using DATABASE_URL from environment (Vault not configured)")

    _secret_cache[cache_key] = value
    return value
