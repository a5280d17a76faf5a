"""Unit tests for Kubernetes utility functions."""

import json
from unittest.mock import MagicMock

import pytest
from kubernetes import client
from kubernetes.client.rest import ApiException

from cain.errors import ConfigurationError, KubernetesAPIError
from cain.models.policy import CASecretRef
from cain.utils.kubernetes import (
    api_error_message,
    get_pod_namespace,
    group_version_kind,
    load_ca_secret_data,
    to_manifest,
)


def api_exception(status: int, reason: str, body: str | None = None) -> ApiException:
    error = ApiException(status=status, reason=reason)
    error.body = body
    return error


class TestGroupVersionKind:
    def test_core_group(self):
        assert group_version_kind("", "v1", "Secret") == "/v1, Kind=Secret"

    def test_named_group(self):
        assert (
            group_version_kind("cert-manager.io", "v1", "Certificate")
            == "cert-manager.io/v1, Kind=Certificate"
        )


class TestApiErrorMessage:
    """Test extraction of the Status message from API errors."""

    def test_status_message(self):
        body = json.dumps(
            {"kind": "Status", "message": 'secrets "my-ca-app" already exists'}
        )
        assert api_error_message(api_exception(409, "Conflict", body)) == (
            'secrets "my-ca-app" already exists'
        )

    def test_non_json_body(self):
        assert api_error_message(api_exception(500, "Internal", "oops")) == "oops"

    def test_falls_back_to_reason(self):
        assert api_error_message(api_exception(403, "Forbidden")) == "Forbidden"


class TestToManifest:
    def test_camel_case_without_nulls(self):
        secret = client.V1Secret(
            metadata=client.V1ObjectMeta(name="my-ca-app", namespace="default"),
            data={"ca.crt": "Y2E="},
        )
        assert to_manifest(secret) == {
            "metadata": {"name": "my-ca-app", "namespace": "default"},
            "data": {"ca.crt": "Y2E="},
        }


class TestGetPodNamespace:
    """Test execution namespace discovery."""

    def test_configured_namespace_wins(self, tmp_path):
        assert get_pod_namespace("cain", str(tmp_path / "missing")) == "cain"

    def test_read_from_service_account_file(self, tmp_path):
        namespace_file = tmp_path / "namespace"
        namespace_file.write_text("cain-system\n")
        assert get_pod_namespace("", str(namespace_file)) == "cain-system"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="service account namespace"):
            get_pod_namespace("", str(tmp_path / "missing"))

    def test_empty_file(self, tmp_path):
        namespace_file = tmp_path / "namespace"
        namespace_file.write_text("  \n")
        with pytest.raises(ConfigurationError, match="namespace is empty"):
            get_pod_namespace("", str(namespace_file))


class TestLoadCASecretData:
    """Test loading the default CA secret."""

    @pytest.fixture
    def core_api(self):
        core_api = MagicMock()
        core_api.read_namespaced_secret.return_value = client.V1Secret(
            data={"ca.crt": "Y2E=", "intermediate.crt": "aW50", "tls.key": "a2V5"}
        )
        return core_api

    @pytest.mark.asyncio
    async def test_keeps_configured_keys(self, core_api):
        ref = CASecretRef(name="my-ca", keys=("ca.crt", "intermediate.crt"))
        data = await load_ca_secret_data(core_api, ref, "cain")

        assert data == {"ca.crt": "Y2E=", "intermediate.crt": "aW50"}
        core_api.read_namespaced_secret.assert_called_once_with(
            name="my-ca", namespace="cain"
        )

    @pytest.mark.asyncio
    async def test_missing_key(self, core_api):
        ref = CASecretRef(name="my-ca", keys=("root.crt",))
        with pytest.raises(ConfigurationError, match="key=root.crt"):
            await load_ca_secret_data(core_api, ref, "cain")

    @pytest.mark.asyncio
    async def test_api_error(self, core_api):
        core_api.read_namespaced_secret.side_effect = api_exception(404, "Not Found")
        ref = CASecretRef(name="my-ca", keys=("ca.crt",))

        with pytest.raises(KubernetesAPIError) as exc_info:
            await load_ca_secret_data(core_api, ref, "cain")
        assert exc_info.value.status == 404
        assert "cain/my-ca" in str(exc_info.value)
