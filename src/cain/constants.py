"""
Constants used throughout the CA injector.

This module defines all constant values used by the webhook including:
- Label and annotation key templates
- Reserved container and volume names
- Default paths and environment variable names
- Resource naming suffixes
"""

# Metadata key templates, formatted with the configured metadata domain
ENABLED_LABEL = "cain.{domain}/enabled"
EXTRA_SECRETS_ANNOTATION = "cain.{domain}/extra-ca-secrets"
FAMILY_ANNOTATION = "cain.{domain}/family"
JVM_ANNOTATION = "cain.{domain}/jvm"
PYTHON_ANNOTATION = "cain.{domain}/python"
CA_VOLUME_NAME_ANNOTATION = "cain.{domain}/ca-volume-name"
SECRET_VOLUME_NAME_ANNOTATION = "cain.{domain}/secret-volume-name"
JVM_COMMON_NAME_ANNOTATION = "cain.{domain}/jvm-common-name"
TRUSTSTORE_PASSWORD_ANNOTATION = "cain.{domain}/truststore-password"
JVM_PATH_ANNOTATION = "cain.{domain}/jvm-path"

# Value a boolean label/annotation must carry to be considered enabled
ENABLED_VALUE = "true"

# X.509 common name length limit
MAX_COMMON_NAME_LENGTH = 63

# Default volume names
DEFAULT_SECRET_VOLUME_NAME = "ca"
DEFAULT_CA_VOLUME_NAME = "ca-certs"

# Default JVM truststore location
DEFAULT_TRUSTSTORE_MOUNT_PATH = "/jvm-truststore/"
DEFAULT_TRUSTSTORE_FILE = "truststore.jks"

# Reserved names used by the mutating webhook
CA_INIT_CONTAINER_NAME = "ca-cert-gen"
CA_TRUSTSTORE_VOLUME_NAME = "cain-truststore"

# Projected/secret volume file mode (0644)
FILE_DEFAULT_MODE = 420

# Python CA environment variables
REQUESTS_CA_BUNDLE_ENV_VAR = "REQUESTS_CA_BUNDLE"
SSL_CERT_FILE_ENV_VAR = "SSL_CERT_FILE"

# Namespaces never mutated regardless of labels
EXCLUDED_NAMESPACES = frozenset({"kube-system"})

# Resource naming patterns
TRUSTSTORE_CERT_SUFFIX = "-truststore-cert"
TRUSTSTORE_PASSWORD_SUFFIX = "-truststore-password"
TRUSTSTORE_PASSWORD_KEY = "password"

# cert-manager Certificate resource
CERT_MANAGER_GROUP = "cert-manager.io"
CERT_MANAGER_VERSION = "v1"
CERTIFICATE_KIND = "Certificate"
CERTIFICATE_PLURAL = "certificates"
CLUSTER_ISSUER_KIND = "ClusterIssuer"

# Owner chain walk bound, real hierarchies are at most three levels deep
MAX_OWNER_CHAIN_DEPTH = 10

# Timeout constants (in seconds)
SERVER_SHUTDOWN_TIMEOUT = 10.0

# Service account namespace file used when POD_NAMESPACE is not set
SERVICE_ACCOUNT_NAMESPACE_FILE = "/var/run/secrets/kubernetes.io/serviceaccount/namespace"

# Admission review
ADMISSION_API_VERSION = "admission.k8s.io/v1"
ADMISSION_KIND = "AdmissionReview"
OPERATION_CREATE = "CREATE"
OPERATION_DELETE = "DELETE"

# Warning and message templates
WARNING_NOT_A_POD = "Provided resource was not a Pod"
WARNING_ALREADY_MUTATED = "Pod already mutated for CA injection"
WARNING_CA_VOLUMES_FAILED = "adding CA secret volumes failed"
WARNING_JVM_FAILED = "adding JVM secret and ENV failed"
WARNING_TRUSTSTORE_PRESENT = "Pod already has a JVM truststore volume"
WARNING_PYTHON_FAILED = "adding Python ENV failed"
MESSAGE_NO_ROOT_OBJECT = "No root object found for Pod: {}"
