"""Configuration loader for UnifiWatch credential storage.

Loads settings from a YAML file with built-in defaults. Supports environment
variable overrides using the UNIFIWATCH_ prefix with double-underscore
nesting (e.g., UNIFIWATCH_STORAGE__METHOD=encrypted-file).
"""

from __future__ import annotations

import os
import pathlib
from typing import Any

import yaml
from pydantic import BaseModel, Field

from unifiwatch.credentials.kdf import MIN_ITERATIONS


# ---------------------------------------------------------------------------
# Config sub-models
# ---------------------------------------------------------------------------

class StorageConfig(BaseModel):
    method: str = "auto"
    data_dir: str | None = None
    file_name: str = "credentials.enc.json"
    secret_service_file_name: str = "credentials.enc"


class KeychainConfig(BaseModel):
    service_name: str = "UnifiWatch"
    timeout_seconds: float = Field(default=10.0, gt=0)


class CredentialManagerConfig(BaseModel):
    target_prefix: str = "UnifiWatch"


class EnvironmentConfig(BaseModel):
    prefix: str = "UNIFIWATCH_CRED_"


class EncryptionConfig(BaseModel):
    kdf_iterations: int = Field(default=MIN_ITERATIONS, ge=MIN_ITERATIONS)


# ---------------------------------------------------------------------------
# Top-level settings
# ---------------------------------------------------------------------------

class Settings(BaseModel):
    storage: StorageConfig = Field(default_factory=StorageConfig)
    keychain: KeychainConfig = Field(default_factory=KeychainConfig)
    credential_manager: CredentialManagerConfig = Field(default_factory=CredentialManagerConfig)
    environment: EnvironmentConfig = Field(default_factory=EnvironmentConfig)
    encryption: EncryptionConfig = Field(default_factory=EncryptionConfig)


# ---------------------------------------------------------------------------
# Deep merge helper
# ---------------------------------------------------------------------------

def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *override* into *base*, returning a new dict."""
    merged = dict(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------

_ENV_PREFIX = "UNIFIWATCH_"


def _collect_env_overrides() -> dict[str, Any]:
    """Collect UNIFIWATCH_<SECTION>__<FIELD> env vars into a nested dict.

    Only names containing the ``__`` separator are settings; this keeps
    credentials held by the environment backend (``UNIFIWATCH_CRED_*``)
    out of the configuration.
    Example: UNIFIWATCH_KEYCHAIN__TIMEOUT_SECONDS=5
    becomes  {"keychain": {"timeout_seconds": 5}}
    """
    overrides: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(_ENV_PREFIX):
            continue
        parts = key[len(_ENV_PREFIX) :].lower().split("__")
        if len(parts) < 2:
            continue
        current = overrides
        for part in parts[:-1]:
            current = current.setdefault(part, {})
        # Attempt numeric coercion
        final_value: Any = value
        try:
            final_value = int(value)
        except ValueError:
            try:
                final_value = float(value)
            except ValueError:
                if value.lower() in ("true", "false"):
                    final_value = value.lower() == "true"
        current[parts[-1]] = final_value
    return overrides


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

_BUILTIN_DEFAULTS_PATH = (
    pathlib.Path(__file__).resolve().parents[3] / "config" / "credentials_defaults.yaml"
)


def load_settings(
    config_path: pathlib.Path | None = None,
) -> Settings:
    """Load settings with layered precedence: defaults < file < env vars.

    Parameters
    ----------
    config_path:
        Path to a YAML config file. If ``None``, the built-in defaults file
        is used; if the file does not exist, model defaults apply.
    """
    base: dict[str, Any] = {}

    path = config_path if config_path is not None else _BUILTIN_DEFAULTS_PATH
    if path.exists():
        with open(path) as fh:
            file_data = yaml.safe_load(fh)
        if isinstance(file_data, dict):
            base = _deep_merge(base, file_data)

    env_overrides = _collect_env_overrides()
    if env_overrides:
        base = _deep_merge(base, env_overrides)

    return Settings(**base)
