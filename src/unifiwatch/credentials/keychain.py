"""macOS Keychain backend for credential storage.

Wraps the macOS ``security`` CLI tool to store secrets as generic passwords
in the user's login keychain (service = application name, account = key).
"""

from __future__ import annotations

import asyncio
import logging
import re

from unifiwatch.credentials.errors import ExternalToolError
from unifiwatch.credentials.store import SecretStore, StorageMethod, is_blank
from unifiwatch.host import APP_NAME

logger = logging.getLogger(__name__)

# Exit code when a duplicate item already exists in Keychain
_ERR_DUPLICATE_ITEM = 45
# Exit code when an item is not found in Keychain
_ERR_ITEM_NOT_FOUND = 44

_DEFAULT_TIMEOUT_SECONDS = 10.0

_SERVICE_RE = re.compile(r'"svce"<blob>="(.*?)"')
_ACCOUNT_RE = re.compile(r'"acct"<blob>="(.*?)"')


class KeychainStore(SecretStore):
    """Stores secrets in macOS Keychain via the ``security`` CLI.

    Parameters
    ----------
    service_name:
        The service name used to namespace secrets in Keychain.
    timeout:
        Seconds to wait for each ``security`` invocation before the child
        process is killed.
    """

    def __init__(
        self,
        service_name: str = APP_NAME,
        timeout: float = _DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._service = service_name
        self._timeout = timeout

    @property
    def storage_method(self) -> StorageMethod:
        return StorageMethod.MACOS_KEYCHAIN

    @property
    def storage_method_description(self) -> str:
        return "macOS Keychain"

    async def _run(self, *args: str) -> tuple[int, bytes, bytes]:
        """Run a ``security`` subcommand and return (returncode, stdout, stderr).

        The child is killed if the call times out or the awaiting task is
        cancelled. A timeout or a failure to start ``security`` raises
        :class:`ExternalToolError`.
        """
        try:
            proc = await asyncio.create_subprocess_exec(
                "security",
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise ExternalToolError(f"could not run security {args[0]}: {exc}") from exc
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except (asyncio.TimeoutError, asyncio.CancelledError) as exc:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            if isinstance(exc, asyncio.CancelledError):
                raise
            raise ExternalToolError(
                f"security {args[0]} timed out after {self._timeout:g}s"
            ) from exc
        return proc.returncode or 0, stdout, stderr

    async def store(self, key: str, secret: str, label: str = "") -> bool:
        if is_blank(key) or is_blank(secret):
            logger.warning("store called with empty key or secret")
            return False

        description = label if not is_blank(label) else f"{APP_NAME}: {key}"
        add_args = (
            "add-generic-password",
            "-s", self._service,
            "-a", key,
            "-l", description,
            "-w", secret,
        )
        try:
            returncode, _, stderr = await self._run(*add_args, "-U")
            if returncode == _ERR_DUPLICATE_ITEM:
                # Delete existing and re-add
                await self._run(
                    "delete-generic-password",
                    "-s", self._service,
                    "-a", key,
                )
                returncode, _, stderr = await self._run(*add_args)
        except ExternalToolError:
            logger.error("security failed storing credential for key %s", key, exc_info=True)
            return False

        if returncode != 0:
            logger.error(
                "security add-generic-password failed with exit code %d for key %s: %s",
                returncode, key, stderr.decode("utf-8", errors="replace").strip(),
            )
            return False
        logger.debug("Credential stored for key %s", key)
        return True

    async def retrieve(self, key: str) -> str | None:
        if is_blank(key):
            logger.warning("retrieve called with empty key")
            return None
        try:
            returncode, stdout, _ = await self._run(
                "find-generic-password",
                "-s", self._service,
                "-a", key,
                "-w",
            )
        except ExternalToolError:
            logger.error("security failed retrieving credential for key %s", key, exc_info=True)
            return None

        if returncode != 0:
            if returncode != _ERR_ITEM_NOT_FOUND:
                logger.warning(
                    "security find-generic-password failed with exit code %d for key %s",
                    returncode, key,
                )
            return None

        # -w prints the bare password followed by a newline
        secret = stdout.decode("utf-8", errors="replace").rstrip("\r\n")
        if not secret:
            logger.warning("Retrieved empty credential for key %s", key)
            return None
        return secret

    async def delete(self, key: str) -> bool:
        if is_blank(key):
            logger.warning("delete called with empty key")
            return False
        try:
            returncode, _, _ = await self._run(
                "delete-generic-password",
                "-s", self._service,
                "-a", key,
            )
        except ExternalToolError:
            logger.error("security failed deleting credential for key %s", key, exc_info=True)
            return False

        if returncode in (0, _ERR_ITEM_NOT_FOUND):
            return True
        logger.warning(
            "security delete-generic-password failed with exit code %d for key %s",
            returncode, key,
        )
        return False

    async def exists(self, key: str) -> bool:
        if is_blank(key):
            return False
        try:
            returncode, _, _ = await self._run(
                "find-generic-password",
                "-s", self._service,
                "-a", key,
            )
        except ExternalToolError:
            logger.error("security failed checking credential for key %s", key, exc_info=True)
            return False
        return returncode == 0

    async def list_keys(self) -> set[str]:
        try:
            returncode, stdout, _ = await self._run("dump-keychain")
        except ExternalToolError:
            logger.error("security failed listing keychain items", exc_info=True)
            return set()
        if returncode != 0:
            logger.debug("security dump-keychain exited with %d", returncode)
            return set()
        return self._parse_dump(stdout.decode("utf-8", errors="replace"))

    def _parse_dump(self, output: str) -> set[str]:
        """Collect account names of items whose service matches ours.

        ``dump-keychain`` prints one block per item, each starting with a
        ``keychain:`` or ``class:`` line; attribute order inside a block
        varies, so service and account are matched per block.
        """
        keys: set[str] = set()
        service: str | None = None
        account: str | None = None

        def flush() -> None:
            if service == self._service and account:
                keys.add(account)

        for line in output.splitlines():
            stripped = line.strip()
            if stripped.startswith(("keychain:", "class:")):
                flush()
                service = account = None
                continue
            if (match := _SERVICE_RE.search(stripped)) is not None:
                service = match.group(1)
            elif (match := _ACCOUNT_RE.search(stripped)) is not None:
                account = match.group(1)
        flush()
        return keys
