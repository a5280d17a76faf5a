"""
Unit tests for the admission webhook HTTP surface.

Uses ``aiohttp.test_utils`` to drive the server's aiohttp application with
mocked webhook logic, the TLS listener is not involved.
"""

import base64
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from aiohttp.test_utils import TestClient, TestServer

from cain.errors import UnsupportedOperationError
from cain.models.admission import MutationResult, ValidationResult
from cain.observability.metrics import MetricsCollector
from cain.webhooks.server import WebhookServer, json_patch

from .factories import make_pod

UID = "705ab4f5-6393-11e8-b7cc-42010a800002"


def review(operation: str = "CREATE", obj: dict | None = None) -> dict:
    return {
        "apiVersion": "admission.k8s.io/v1",
        "kind": "AdmissionReview",
        "request": {
            "uid": UID,
            "kind": {"group": "", "version": "v1", "kind": "Pod"},
            "resource": {"group": "", "version": "v1", "resource": "pods"},
            "namespace": "default",
            "name": "test-pod",
            "operation": operation,
            "userInfo": {"username": "admin"},
            "object": obj if obj is not None else make_pod(),
            "dryRun": False,
        },
    }


@pytest.fixture
def validator():
    validator = MagicMock()
    validator.validate = AsyncMock(return_value=ValidationResult())
    return validator


@pytest.fixture
def mutator():
    mutator = MagicMock()
    mutator.mutate = AsyncMock(return_value=MutationResult())
    return mutator


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def webhook_server(validator, mutator, metrics):
    return WebhookServer(validator, mutator, metrics, ssl_context=None, port=0)


@pytest.fixture
def enable_socket(socket_enabled):
    """Enable sockets for aiohttp server tests."""
    pass


@pytest.fixture
async def client(webhook_server, enable_socket):
    server = TestServer(webhook_server.app)
    async with TestClient(server) as cli:
        yield cli


class TestJsonPatch:
    """Test patch computation."""

    def test_unchanged_object_has_no_patch(self):
        pod = make_pod()
        assert json_patch(pod, dict(pod)) is None

    def test_patch_is_base64_json_patch(self):
        pod = make_pod()
        mutated = json.loads(json.dumps(pod))
        mutated["spec"]["volumes"] = [{"name": "ca-certs", "emptyDir": {}}]

        operations = json.loads(base64.b64decode(json_patch(pod, mutated)))
        assert operations == [
            {"op": "add", "path": "/spec/volumes", "value": [{"name": "ca-certs", "emptyDir": {}}]}
        ]


class TestValidateEndpoint:
    """Tests for ``POST /inject/validate``."""

    @pytest.mark.asyncio
    async def test_allowed(self, client, validator):
        resp = await client.post("/inject/validate", json=review())
        assert resp.status == 200
        body = await resp.json()

        assert body == {
            "apiVersion": "admission.k8s.io/v1",
            "kind": "AdmissionReview",
            "response": {"uid": UID, "allowed": True},
        }
        admission = validator.validate.await_args.args[0]
        assert admission.operation == "CREATE"
        assert admission.namespace == "default"

    @pytest.mark.asyncio
    async def test_warnings_and_message(self, client, validator):
        validator.validate.return_value = ValidationResult(
            message="No root object found for Pod: x", warnings=["careful"]
        )
        body = await (await client.post("/inject/validate", json=review())).json()

        assert body["response"]["allowed"] is True
        assert body["response"]["warnings"] == ["careful"]
        assert body["response"]["status"]["message"] == "No root object found for Pod: x"

    @pytest.mark.asyncio
    async def test_unsupported_operation_denied(self, client, validator):
        validator.validate.side_effect = UnsupportedOperationError("UPDATE")
        resp = await client.post("/inject/validate", json=review("UPDATE"))
        assert resp.status == 200
        body = await resp.json()

        assert body["response"]["uid"] == UID
        assert body["response"]["allowed"] is False
        assert body["response"]["status"]["code"] == 500
        assert "unsupported operation" in body["response"]["status"]["message"]

    @pytest.mark.asyncio
    async def test_malformed_body(self, client):
        resp = await client.post("/inject/validate", data=b"{not json")
        assert resp.status == 400

    @pytest.mark.asyncio
    async def test_review_without_request(self, client):
        resp = await client.post(
            "/inject/validate",
            json={"apiVersion": "admission.k8s.io/v1", "kind": "AdmissionReview"},
        )
        assert resp.status == 400

    @pytest.mark.asyncio
    async def test_review_metrics(self, client, metrics):
        await client.post("/inject/validate", json=review())
        assert (
            metrics.registry.get_sample_value(
                "cainjector_admission_reviews_total",
                {"webhook": "validate", "operation": "CREATE", "result": "success"},
            )
            == 1
        )


class TestMutateEndpoint:
    """Tests for ``POST /inject/mutate``."""

    @pytest.mark.asyncio
    async def test_patch_returned(self, client, mutator):
        pod = make_pod()
        mutated = json.loads(json.dumps(pod))
        mutated["spec"]["initContainers"] = [{"name": "ca-cert-gen", "image": "init"}]
        mutator.mutate.return_value = MutationResult(mutated_object=mutated)

        body = await (await client.post("/inject/mutate", json=review(obj=pod))).json()
        response = body["response"]

        assert response["allowed"] is True
        assert response["patchType"] == "JSONPatch"
        operations = json.loads(base64.b64decode(response["patch"]))
        assert operations == [
            {
                "op": "add",
                "path": "/spec/initContainers",
                "value": [{"name": "ca-cert-gen", "image": "init"}],
            }
        ]

    @pytest.mark.asyncio
    async def test_no_mutation_has_no_patch(self, client, mutator):
        mutator.mutate.return_value = MutationResult(
            warnings=["Pod already mutated for CA injection"]
        )
        body = await (await client.post("/inject/mutate", json=review())).json()

        assert body["response"] == {
            "uid": UID,
            "allowed": True,
            "warnings": ["Pod already mutated for CA injection"],
        }

    @pytest.mark.asyncio
    async def test_malformed_body(self, client):
        resp = await client.post("/inject/mutate", json=["not", "a", "review"])
        assert resp.status == 400


class TestHealthzEndpoint:
    """Tests for ``GET /healthz``."""

    @pytest.mark.asyncio
    async def test_healthz_returns_200_ok(self, client):
        resp = await client.get("/healthz")
        assert resp.status == 200
        assert await resp.text() == "ok"
