"""Process environment backend for headless automation.

A key maps to ``{prefix}{KEY}``: uppercased, with ``-`` and ``:`` turned
into ``_``. So ``email-smtp`` becomes ``UNIFIWATCH_CRED_EMAIL_SMTP``.
``store`` only changes this process's environment. Nothing is persisted,
and processes that are already running never see the value.
"""

from __future__ import annotations

import logging
import os

from unifiwatch.credentials.store import SecretStore, StorageMethod, is_blank

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "UNIFIWATCH_CRED_"


def normalize_key(key: str) -> str:
    return key.upper().replace("-", "_").replace(":", "_")


class EnvironmentVariableStore(SecretStore):
    """Reads and writes secrets as process environment variables."""

    def __init__(self, prefix: str = DEFAULT_PREFIX) -> None:
        self._prefix = prefix
        logger.warning(
            "Using environment variable credential storage. Credentials are NOT "
            "persisted and must be provided on every run."
        )

    @property
    def storage_method(self) -> StorageMethod:
        return StorageMethod.ENVIRONMENT_VARIABLES

    @property
    def storage_method_description(self) -> str:
        return "Environment variables (no persistence - headless only)"

    def variable_name(self, key: str) -> str:
        return f"{self._prefix}{normalize_key(key)}"

    async def store(self, key: str, secret: str, label: str = "") -> bool:
        if is_blank(key) or is_blank(secret):
            logger.warning("store called with empty key or secret")
            return False
        name = self.variable_name(key)
        os.environ[name] = secret
        logger.debug("Credential stored in environment variable %s", name)
        return True

    async def retrieve(self, key: str) -> str | None:
        if is_blank(key):
            logger.warning("retrieve called with empty key")
            return None
        return os.environ.get(self.variable_name(key))

    async def delete(self, key: str) -> bool:
        if is_blank(key):
            logger.warning("delete called with empty key")
            return False
        os.environ.pop(self.variable_name(key), None)
        return True

    async def exists(self, key: str) -> bool:
        if is_blank(key):
            return False
        return self.variable_name(key) in os.environ

    async def list_keys(self) -> set[str]:
        prefix = self._prefix.upper()
        return {
            name[len(prefix):]
            for name in os.environ
            if name.upper().startswith(prefix) and len(name) > len(prefix)
        }
