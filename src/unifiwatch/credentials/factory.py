"""Credential store selection.

``resolve_storage_method`` is a pure mapping from (policy, platform) to a
backend kind; ``create_secret_store`` builds that backend from settings.
An explicit policy that does not fit the host is an error, never silently
replaced by another backend.
"""

from __future__ import annotations

import logging
import pathlib

from unifiwatch.config import Settings, load_settings
from unifiwatch.credentials.errors import PlatformUnsupportedError
from unifiwatch.credentials.store import SecretStore, StorageMethod
from unifiwatch.host import HostPlatform, configuration_directory, current_platform

logger = logging.getLogger(__name__)

_PLATFORM_DEFAULTS: dict[HostPlatform, StorageMethod] = {
    HostPlatform.WINDOWS: StorageMethod.WINDOWS_CREDENTIAL_MANAGER,
    HostPlatform.MACOS: StorageMethod.MACOS_KEYCHAIN,
    HostPlatform.LINUX: StorageMethod.LINUX_SECRET_SERVICE,
}

# Native backends usable only on their own platform.
_NATIVE_PLATFORM: dict[StorageMethod, HostPlatform] = {
    method: host for host, method in _PLATFORM_DEFAULTS.items()
}


def resolve_storage_method(policy: str | None, host: HostPlatform) -> StorageMethod:
    """Map a storage policy string to the backend to use on *host*.

    ``None``, blank, or ``"auto"`` selects the platform default (encrypted
    file on unrecognised platforms).

    Raises
    ------
    PlatformUnsupportedError
        If *policy* is unknown or names a native store of another platform.
    """
    normalized = (policy or "").strip().lower() or StorageMethod.AUTO.value
    try:
        method = StorageMethod(normalized)
    except ValueError:
        raise PlatformUnsupportedError(
            f"Credential storage method '{policy}' is not supported"
        ) from None

    if method is StorageMethod.AUTO:
        return _PLATFORM_DEFAULTS.get(host, StorageMethod.ENCRYPTED_FILE)

    required = _NATIVE_PLATFORM.get(method)
    if required is not None and required is not host:
        raise PlatformUnsupportedError(
            f"Credential storage method '{method}' is not supported on {host}"
        )
    return method


def create_secret_store(
    policy: str | None = None,
    settings: Settings | None = None,
    host: HostPlatform | None = None,
) -> SecretStore:
    """Create the credential store selected by *policy* (or ``settings.storage.method``).

    Without *settings*, the layered configuration from :func:`load_settings`
    is used (built-in YAML defaults, then ``UNIFIWATCH_*`` overrides).
    """
    settings = settings or load_settings()
    host = host or current_platform()
    method = resolve_storage_method(
        policy if policy is not None else settings.storage.method, host,
    )
    logger.info("Using credential storage method %s", method)

    if method is StorageMethod.WINDOWS_CREDENTIAL_MANAGER:
        from unifiwatch.credentials.credman import WindowsCredentialStore

        return WindowsCredentialStore(target_prefix=settings.credential_manager.target_prefix)

    if method is StorageMethod.MACOS_KEYCHAIN:
        from unifiwatch.credentials.keychain import KeychainStore

        return KeychainStore(
            service_name=settings.keychain.service_name,
            timeout=settings.keychain.timeout_seconds,
        )

    if method is StorageMethod.ENVIRONMENT_VARIABLES:
        from unifiwatch.credentials.environment import EnvironmentVariableStore

        return EnvironmentVariableStore(prefix=settings.environment.prefix)

    data_dir = (
        pathlib.Path(settings.storage.data_dir)
        if settings.storage.data_dir
        else configuration_directory(host)
    )

    if method is StorageMethod.LINUX_SECRET_SERVICE:
        from unifiwatch.credentials.secret_service import LinuxSecretServiceStore

        return LinuxSecretServiceStore(
            file_path=data_dir / settings.storage.secret_service_file_name,
            iterations=settings.encryption.kdf_iterations,
        )

    from unifiwatch.credentials.dpapi import default_protector
    from unifiwatch.credentials.encrypted_file import EncryptedFileStore

    logger.warning(
        "Using encrypted file credential storage. For better security, consider "
        "native OS credential storage (Credential Manager, Keychain, or Secret Service)."
    )
    return EncryptedFileStore(
        file_path=data_dir / settings.storage.file_name,
        protector=default_protector(host),
        iterations=settings.encryption.kdf_iterations,
    )
