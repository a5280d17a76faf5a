"""
Hot-reloading TLS server credential.

The webhook certificate is mounted from a secret and rotated by
cert-manager. The listener's context delegates every handshake to the
currently loaded credential through an SNI callback, so a reload only has
to swap one attribute and never restarts the listener.
"""

import asyncio
import logging
import ssl
from pathlib import Path

from watchfiles import Change, awatch

from cain.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Kubernetes updates mounted secrets by swapping this symlink
K8S_ATOMIC_WRITER_DIR = "..data"


def load_credential(cert_path: str, key_path: str) -> ssl.SSLContext:
    """
    Load and parse a certificate/key pair into a server context.

    Raises:
        ssl.SSLError: If the pair cannot be parsed
        OSError: If a file cannot be read
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    context.load_cert_chain(certfile=cert_path, keyfile=key_path)
    return context


class ReloadingTLSCredential:
    """TLS credential reloaded whenever its files change on disk."""

    def __init__(self, cert_path: str, key_path: str):
        """
        Load the initial credential.

        Args:
            cert_path: PEM certificate chain file
            key_path: PEM private key file

        Raises:
            ConfigurationError: If the initial pair cannot be loaded
        """
        self.cert_path = Path(cert_path)
        self.key_path = Path(key_path)
        try:
            self._context = load_credential(cert_path, key_path)
        except (ssl.SSLError, OSError) as e:
            raise ConfigurationError(
                f"loading TLS key pair {cert_path}, {key_path}: {e}",
                user_action="Check TLS_CERT_FILE and TLS_KEY_FILE",
            ) from e
        logger.info(f"Loaded TLS credential from {cert_path}")

    @property
    def current(self) -> ssl.SSLContext:
        """Context of the active credential."""
        return self._context

    def _select_credential(
        self, ssl_obj: ssl.SSLObject, server_name: str | None, listener_ctx: ssl.SSLContext
    ) -> None:
        ssl_obj.context = self._context

    def server_context(self) -> ssl.SSLContext:
        """Return a listener context serving the current credential on every handshake."""
        context = load_credential(str(self.cert_path), str(self.key_path))
        context.sni_callback = self._select_credential
        return context

    def reload(self) -> bool:
        """
        Reload the credential, keeping the previous one on failure.

        Returns:
            True if the new credential is active
        """
        try:
            context = load_credential(str(self.cert_path), str(self.key_path))
        except (ssl.SSLError, OSError) as e:
            logger.error(
                f"Failed to reload TLS credential, keeping the previous one: {e}",
                extra={"component": "tls", "error": str(e)},
            )
            return False

        self._context = context
        logger.info("Reloaded TLS credential", extra={"component": "tls"})
        return True

    def _is_relevant(self, change: Change, path: str) -> bool:
        name = Path(path).name
        return name in (
            self.cert_path.name,
            self.key_path.name,
            K8S_ATOMIC_WRITER_DIR,
        )

    async def run(self, stop_event: asyncio.Event) -> None:
        """
        Watch the credential files until the stop event is set.

        The parent directories are watched rather than the files, so a file
        replaced by remove and create keeps being observed.
        """
        directories = sorted({str(self.cert_path.parent), str(self.key_path.parent)})
        logger.info(f"Watching TLS credential in {', '.join(directories)}")

        async for changes in awatch(
            *directories, watch_filter=self._is_relevant, stop_event=stop_event
        ):
            logger.debug(f"TLS credential files changed: {changes}")
            self.reload()

        logger.info("TLS credential watcher stopped")
