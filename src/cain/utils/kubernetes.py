"""
Kubernetes utilities for the CA injector.

This module provides helper functions for interacting with the Kubernetes API:

Key functionality:
- Kubernetes client management and configuration
- Execution namespace discovery
- Loading the default CA secret data
- Serialising client models to their manifest form
- Extracting messages from API errors
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from cain.constants import SERVICE_ACCOUNT_NAMESPACE_FILE
from cain.errors import ConfigurationError, KubernetesAPIError
from cain.models.policy import CASecretRef

logger = logging.getLogger(__name__)

# Used only for model serialisation, never for requests
_serializer = client.ApiClient()


def get_kubernetes_client() -> client.ApiClient:
    """
    Get configured Kubernetes API client.

    This function handles both in-cluster and local development configurations.

    Returns:
        Configured Kubernetes API client
    """
    try:
        # Try in-cluster config first (when running in a pod)
        config.load_incluster_config()
        logger.debug("Loaded in-cluster Kubernetes configuration")
    except config.ConfigException:
        try:
            # Fall back to local kubeconfig (for development)
            config.load_kube_config()
            logger.debug("Loaded kubeconfig from local environment")
        except config.ConfigException as e:
            logger.error(f"Failed to load Kubernetes configuration: {e}")
            raise

    return client.ApiClient()


def get_pod_namespace(
    configured: str = "", namespace_file: str = SERVICE_ACCOUNT_NAMESPACE_FILE
) -> str:
    """
    Determine the namespace the injector runs in.

    Args:
        configured: Namespace from the downward API, used when set
        namespace_file: Service account namespace file read otherwise

    Returns:
        The execution namespace

    Raises:
        ConfigurationError: If the namespace cannot be determined
    """
    if configured:
        return configured

    try:
        namespace = Path(namespace_file).read_text().strip()
    except OSError as e:
        raise ConfigurationError(
            f"reading service account namespace file: {e}",
            user_action="Set POD_NAMESPACE or mount the service account token",
        ) from e

    if not namespace:
        raise ConfigurationError("namespace is empty")
    return namespace


def to_manifest(model: Any) -> Any:
    """Convert a kubernetes client model into its camelCase JSON form."""
    return _serializer.sanitize_for_serialization(model)


def group_version_kind(group: str, version: str, kind: str) -> str:
    """Render a GroupVersionKind the way the API machinery prints it."""
    return f"{group}/{version}, Kind={kind}"


def api_error_message(error: ApiException) -> str:
    """Extract the Status message from an API error, falling back to the reason."""
    if error.body:
        try:
            body = json.loads(error.body)
        except (TypeError, ValueError):
            return str(error.body)
        if isinstance(body, dict) and body.get("message"):
            return body["message"]
    return error.reason or f"HTTP {error.status}"


async def load_ca_secret_data(
    core_api: client.CoreV1Api, ca_secret: CASecretRef, namespace: str
) -> dict[str, str]:
    """
    Read the default CA secret and keep only the configured keys.

    Args:
        core_api: CoreV1 API client
        ca_secret: Configured CA secret reference
        namespace: Namespace of the injector

    Returns:
        Base64 encoded secret data for each configured key

    Raises:
        KubernetesAPIError: If the secret cannot be read
        ConfigurationError: If a configured key is missing
    """
    try:
        secret = await asyncio.to_thread(
            core_api.read_namespaced_secret, name=ca_secret.name, namespace=namespace
        )
    except ApiException as e:
        raise KubernetesAPIError(
            f"Failed to read default CA secret {namespace}/{ca_secret.name}",
            reason=e.reason,
            status=e.status,
            cause=e,
        ) from e

    data = secret.data or {}
    ca_data = {}
    for key in ca_secret.keys:
        if key not in data:
            raise ConfigurationError(
                f"default CA secret value for key={key}: secret is missing key",
                user_action=f"Add key {key!r} to secret {namespace}/{ca_secret.name}",
            )
        ca_data[key] = data[key]

    logger.info(
        f"Loaded default CA secret {namespace}/{ca_secret.name} "
        f"with keys {', '.join(ca_secret.keys)}"
    )
    return ca_data
