"""
Unit tests for the hot-reloading TLS credential.
"""

import asyncio
import ssl
from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID
from watchfiles import Change

from cain.errors import ConfigurationError
from cain.utils.tls import ReloadingTLSCredential, load_credential


def write_key_pair(directory: Path, common_name: str = "cain.cain.svc") -> tuple[Path, Path]:
    """Write a self-signed certificate and its key as tls.crt and tls.key."""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.now(UTC)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=1))
        .not_valid_after(now + timedelta(days=1))
        .add_extension(
            x509.SubjectAlternativeName([x509.DNSName(common_name)]), critical=False
        )
        .sign(key, hashes.SHA256())
    )

    cert_path = directory / "tls.crt"
    key_path = directory / "tls.key"
    cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    key_path.write_bytes(
        key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    return cert_path, key_path


@pytest.fixture
def key_pair(tmp_path):
    return write_key_pair(tmp_path)


@pytest.fixture
def credential(key_pair):
    cert_path, key_path = key_pair
    return ReloadingTLSCredential(str(cert_path), str(key_path))


class TestLoading:
    """Test the initial load."""

    def test_load_credential(self, key_pair):
        context = load_credential(*map(str, key_pair))
        assert isinstance(context, ssl.SSLContext)
        assert context.minimum_version == ssl.TLSVersion.TLSv1_2

    def test_missing_files_are_a_configuration_error(self, tmp_path):
        with pytest.raises(ConfigurationError, match="loading TLS key pair"):
            ReloadingTLSCredential(str(tmp_path / "tls.crt"), str(tmp_path / "tls.key"))

    def test_garbage_is_a_configuration_error(self, tmp_path):
        (tmp_path / "tls.crt").write_text("not a certificate")
        (tmp_path / "tls.key").write_text("not a key")
        with pytest.raises(ConfigurationError):
            ReloadingTLSCredential(str(tmp_path / "tls.crt"), str(tmp_path / "tls.key"))


class TestReload:
    """Test swapping the active credential."""

    def test_reload_swaps_context(self, credential, tmp_path):
        previous = credential.current
        write_key_pair(tmp_path, common_name="rotated.cain.svc")

        assert credential.reload() is True
        assert credential.current is not previous

    def test_failed_reload_keeps_previous(self, credential, key_pair):
        previous = credential.current
        key_pair[0].write_text("truncated")

        assert credential.reload() is False
        assert credential.current is previous

    def test_handshake_uses_current_credential(self, credential, tmp_path):
        listener = credential.server_context()
        assert listener.sni_callback is not None

        write_key_pair(tmp_path, common_name="rotated.cain.svc")
        credential.reload()

        ssl_obj = MagicMock()
        listener.sni_callback(ssl_obj, "cain.cain.svc", listener)
        assert ssl_obj.context is credential.current


class TestWatch:
    """Test the file watcher."""

    @pytest.mark.parametrize(
        "path,relevant",
        [
            ("/certs/tls.crt", True),
            ("/certs/tls.key", True),
            ("/certs/..data", True),
            ("/certs/..2024_01_01_00_00_00.123", False),
            ("/certs/ca.crt", False),
        ],
    )
    def test_is_relevant(self, credential, path, relevant):
        assert credential._is_relevant(Change.modified, path) is relevant

    @pytest.mark.asyncio
    async def test_run_reloads_on_change(self, credential, key_pair):
        watched = []

        async def fake_awatch(*paths, watch_filter=None, stop_event=None):
            watched.extend(paths)
            yield {(Change.added, str(key_pair[0].parent / "..data"))}

        with (
            patch("cain.utils.tls.awatch", fake_awatch),
            patch.object(credential, "reload") as reload,
        ):
            await credential.run(asyncio.Event())

        assert watched == [str(key_pair[0].parent)]
        reload.assert_called_once_with()
