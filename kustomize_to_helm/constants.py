"""Constants for kustomize-to-helm

Centralized location for kinds, API versions, group names and chart layout.
"""
import os

KUSTOMIZE_TO_HELM_LOGLEVEL = os.environ.get("KUSTOMIZE_TO_HELM_LOGLEVEL", "INFO").upper()
KUSTOMIZE_TO_HELM_FORCE_ENV = "KUSTOMIZE_TO_HELM_FORCE"

# Kubernetes kinds
KIND_NAMESPACE = 'Namespace'
KIND_CRD = 'CustomResourceDefinition'
KIND_SERVICE_ACCOUNT = 'ServiceAccount'
KIND_ROLE = 'Role'
KIND_CLUSTER_ROLE = 'ClusterRole'
KIND_ROLE_BINDING = 'RoleBinding'
KIND_CLUSTER_ROLE_BINDING = 'ClusterRoleBinding'
KIND_SERVICE = 'Service'
KIND_DEPLOYMENT = 'Deployment'
KIND_CERTIFICATE = 'Certificate'
KIND_ISSUER = 'Issuer'
KIND_VALIDATING_WEBHOOK = 'ValidatingWebhookConfiguration'
KIND_MUTATING_WEBHOOK = 'MutatingWebhookConfiguration'
KIND_SERVICE_MONITOR = 'ServiceMonitor'

RBAC_KINDS = (
    KIND_SERVICE_ACCOUNT,
    KIND_ROLE,
    KIND_CLUSTER_ROLE,
    KIND_ROLE_BINDING,
    KIND_CLUSTER_ROLE_BINDING,
)
WEBHOOK_KINDS = (KIND_VALIDATING_WEBHOOK, KIND_MUTATING_WEBHOOK)

# API versions that gate categorization
CERT_MANAGER_API_VERSION = 'cert-manager.io/v1'
MONITORING_API_VERSION = 'monitoring.coreos.com/v1'

# Function groups, in output order
GROUP_NAMESPACE = 'namespace'
GROUP_CRD = 'crd'
GROUP_RBAC = 'rbac'
GROUP_MANAGER = 'manager'
GROUP_METRICS = 'metrics'
GROUP_WEBHOOK = 'webhook'
GROUP_CERT_MANAGER = 'cert-manager'
GROUP_PROMETHEUS = 'prometheus'
GROUP_EXTRAS = 'extras'

GROUP_ORDER = [
    GROUP_NAMESPACE,
    GROUP_CRD,
    GROUP_RBAC,
    GROUP_MANAGER,
    GROUP_METRICS,
    GROUP_WEBHOOK,
    GROUP_CERT_MANAGER,
    GROUP_PROMETHEUS,
    GROUP_EXTRAS,
]

# Groups written as one file per resource
SPLIT_GROUPS = {GROUP_CRD, GROUP_CERT_MANAGER, GROUP_WEBHOOK, GROUP_PROMETHEUS, GROUP_RBAC}

# Chart layout
CHART_DIR_NAME = 'chart'
TEMPLATES_DIR_NAME = 'templates'
CHART_FILE = 'Chart.yaml'
VALUES_FILE = 'values.yaml'
HELMIGNORE_FILE = '.helmignore'
HELPERS_FILE = '_helpers.tpl'
NOTES_FILE = 'NOTES.txt'
TESTS_DIR_NAME = 'tests'
TEST_MANAGER_READY_FILE = 'test-manager-ready.yaml'
NAMESPACE_FILE = 'namespace.yaml'

# Files owned by the user once they exist; never rewritten, even with force
NEVER_OVERWRITE = frozenset({CHART_FILE})

# Naming conventions of the upstream scaffolding
CONTROLLER_MANAGER_SUFFIX = '-controller-manager'
NAMESPACE_SUFFIX = '-system'
RBAC_HELPER_MARKERS = ('admin-role', 'editor-role', 'viewer-role')
METRICS_MARKER = 'metrics'
WEBHOOK_MARKER = 'webhook'

# Manager flags that are rebuilt by the templater instead of exposed as manager.args
METRICS_BIND_FLAG = '--metrics-bind-address'
HEALTH_PROBE_FLAG = '--health-probe-bind-address'
WEBHOOK_CERT_FLAG = '--webhook-cert-path'
METRICS_CERT_FLAG = '--metrics-cert-path'
DEFAULT_METRICS_PORT = 8443
DEFAULT_WEBHOOK_PORT = 9443

# Labels and annotations rewritten by the templater
MANAGED_BY_LABEL = 'app.kubernetes.io/managed-by'
NAME_LABEL = 'app.kubernetes.io/name'
CHART_LABEL = 'helm.sh/chart'
INSTANCE_LABEL = 'app.kubernetes.io/instance'
INJECT_CA_ANNOTATION = 'cert-manager.io/inject-ca-from'
DEFAULT_CONTAINER_ANNOTATION = 'kubectl.kubernetes.io/default-container'
DEFAULT_CONTAINER_NAME = 'manager'

# Paths inside a Deployment
POD_TEMPLATE_METADATA_PATH = ['spec', 'template', 'metadata']
POD_TEMPLATE_SPEC_PATH = ['spec', 'template', 'spec']
CONTAINERS_PATH = POD_TEMPLATE_SPEC_PATH + ['containers']

# Image defaults used when the Deployment does not say otherwise
DEFAULT_IMAGE_REPOSITORY = 'controller'
DEFAULT_IMAGE_TAG = 'latest'
DEFAULT_PULL_POLICY = 'IfNotPresent'

# values.yaml schema
VALUES_MANAGER = 'manager'
VALUES_RBAC_HELPERS = 'rbacHelpers'
VALUES_CRD = 'crd'
VALUES_METRICS = 'metrics'
VALUES_WEBHOOK = 'webhook'
VALUES_CERT_MANAGER = 'certManager'
VALUES_PROMETHEUS = 'prometheus'

# Optional manager sub-maps captured verbatim from a previous values.yaml
MANAGER_USER_MAPS = ('labels', 'annotations', 'podLabels', 'podAnnotations')

KNOWN_MANAGER_KEYS = frozenset({
    'replicas',
    'args',
    'image',
    'env',
    'imagePullSecrets',
    'podSecurityContext',
    'securityContext',
    'resources',
    'nodeSelector',
    'affinity',
    'tolerations',
}) | frozenset(MANAGER_USER_MAPS)

KNOWN_TOP_LEVEL_KEYS = frozenset({
    VALUES_MANAGER,
    VALUES_RBAC_HELPERS,
    VALUES_CRD,
    VALUES_METRICS,
    VALUES_WEBHOOK,
    VALUES_CERT_MANAGER,
    VALUES_PROMETHEUS,
})

# Custom manager fields the value injector knows how to render
INJECTABLE_CONTAINER_LISTS = ('ports', 'volumeMounts')
INJECTABLE_POD_LISTS = ('volumes', 'initContainers')
INJECTABLE_POD_SCALARS = ('hostNetwork', 'dnsPolicy', 'priorityClassName')
