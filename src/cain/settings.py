"""Centralized injector settings using pydantic-settings.

This module provides a single source of truth for all webhook configuration
loaded from environment variables. Uses pydantic for automatic validation,
type coercion, and documentation.
"""

from functools import lru_cache

from kubernetes.utils import parse_quantity
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cain import __version__
from cain.errors import ConfigurationError
from cain.models.policy import CASecretRef, InitImages


class Settings(BaseSettings):
    """Injector configuration loaded from environment variables.

    ``CA_ISSUER``, ``CA_SECRET``, ``TRUSTSTORE_PASSWORD`` and ``JVM_ENV_VAR``
    are required, everything else has a production default.
    """

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Servers
    port: int = Field(
        default=8443,
        validation_alias="PORT",
        description="The webhook HTTPS port",
    )
    metrics_port: int = Field(
        default=8080,
        validation_alias="METRICS_PORT",
        description="The metrics HTTP port",
    )
    host: str = Field(
        default="0.0.0.0",
        validation_alias="HOST",
        description="Host address to bind both servers",
    )
    tls_cert_file: str = Field(
        default="/run/secrets/tls/tls.crt",
        validation_alias="TLS_CERT_FILE",
        description="Path to the file containing the TLS Certificate",
    )
    tls_key_file: str = Field(
        default="/run/secrets/tls/tls.key",
        validation_alias="TLS_KEY_FILE",
        description="Path to the file containing the TLS Key",
    )

    # Logging configuration
    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(
        default=True,
        validation_alias="JSON_LOGS",
        description="Enable JSON formatted logging for structured log aggregation",
    )
    correlation_ids: bool = Field(
        default=True,
        validation_alias="CORRELATION_IDS",
        description="Enable correlation IDs in logs for request tracing",
    )

    # Injection behaviour
    metadata_domain: str = Field(
        default="weisshorn.cyd",
        validation_alias="METADATA_DOMAIN",
        description=(
            "The domain of the labels and annotations, "
            "this can allow multiple instances of the injector"
        ),
    )
    ca_issuer: str = Field(
        ...,
        validation_alias="CA_ISSUER",
        description="The CA issuer to use when creating Certificate resources",
    )
    ca_secret: str = Field(
        ...,
        validation_alias="CA_SECRET",
        description="The default CA secret to use, <secret name>/<CA key>[,<CA key>...]",
    )
    truststore_password: str = Field(
        ...,
        validation_alias="TRUSTSTORE_PASSWORD",
        description="The password to use for the JVM truststore",
    )
    jvm_env_var: str = Field(
        ...,
        validation_alias="JVM_ENV_VAR",
        description="The ENV variable to use for JVM containers",
    )

    # Init container images
    redhat_init_image: str = Field(
        default="ghcr.io/weisshorn-cyd/cain-redhat-init",
        validation_alias="REDHAT_INIT_IMAGE",
        description="The container image to use for the RedHat family init containers",
    )
    redhat_init_tag: str = Field(
        default="",
        validation_alias="REDHAT_INIT_TAG",
        description="The container image tag to use for the RedHat family init containers",
    )
    debian_init_image: str = Field(
        default="ghcr.io/weisshorn-cyd/cain-debian-init",
        validation_alias="DEBIAN_INIT_IMAGE",
        description="The container image to use for the Debian family init containers",
    )
    debian_init_tag: str = Field(
        default="",
        validation_alias="DEBIAN_INIT_TAG",
        description="The container image tag to use for the Debian family init containers",
    )

    # Init container resources
    cpu_limit: str = Field(
        default="500m",
        validation_alias="CPU_LIMIT",
        description="The CPU limit for the cain initcontainer",
    )
    mem_limit: str = Field(
        default="50Mi",
        validation_alias="MEM_LIMIT",
        description="The memory limit for the cain initcontainer",
    )
    cpu_request: str = Field(
        default="",
        validation_alias="CPU_REQUEST",
        description="The CPU request for the cain initcontainer, defaults to CPU_LIMIT",
    )
    mem_request: str = Field(
        default="",
        validation_alias="MEM_REQUEST",
        description="The memory request for the cain initcontainer, defaults to MEM_LIMIT",
    )

    # Metrics and observability
    metrics_subsystem: str = Field(
        default="",
        validation_alias="METRICS_SUBSYSTEM",
        description="The subsystem for the metrics",
    )

    # Pod identification (from downward API)
    pod_namespace: str = Field(
        default="",
        validation_alias="POD_NAMESPACE",
        description="Namespace of the injector pod, read from the service account when empty",
    )

    @field_validator("ca_secret")
    @classmethod
    def _validate_ca_secret(cls, value: str) -> str:
        try:
            CASecretRef.parse(value)
        except ConfigurationError as e:
            raise ValueError(str(e)) from e
        return value

    @field_validator("cpu_limit", "mem_limit", "cpu_request", "mem_request")
    @classmethod
    def _validate_quantity(cls, value: str) -> str:
        if value:
            try:
                parse_quantity(value)
            except ValueError as e:
                raise ValueError(f"invalid resource quantity {value!r}") from e
        return value

    @property
    def ca_secret_ref(self) -> CASecretRef:
        """Parsed CA secret reference."""
        return CASecretRef.parse(self.ca_secret)

    @property
    def init_images(self) -> InitImages:
        """Init container images, tagged with the injector version by default."""
        return InitImages(
            debian=f"{self.debian_init_image}:{self.debian_init_tag or __version__}",
            redhat=f"{self.redhat_init_image}:{self.redhat_init_tag or __version__}",
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load the settings once per process."""
    return Settings()
