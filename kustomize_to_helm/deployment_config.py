"""
Deployment configuration extraction

Reads the controller Deployment's tunable fields so values.yaml defaults
render the same workload the manifests describe.
"""
from typing import Any, Dict, List, Optional, Tuple

from .constants import (
    CONTAINERS_PATH,
    DEFAULT_CONTAINER_ANNOTATION,
    DEFAULT_CONTAINER_NAME,
    DEFAULT_IMAGE_REPOSITORY,
    DEFAULT_IMAGE_TAG,
    DEFAULT_METRICS_PORT,
    DEFAULT_PULL_POLICY,
    DEFAULT_WEBHOOK_PORT,
    HEALTH_PROBE_FLAG,
    METRICS_BIND_FLAG,
    METRICS_CERT_FLAG,
    POD_TEMPLATE_METADATA_PATH,
    POD_TEMPLATE_SPEC_PATH,
    WEBHOOK_CERT_FLAG,
    WEBHOOK_MARKER,
)
from .resource import Resource


def split_image(image: str) -> Tuple[str, str, str]:
    """Split an image reference into (repository, tag, digest)

    A digest follows the last '@'. A tag follows the last ':' that comes
    after the last '/', so registry ports are not mistaken for tags.

    Examples:
        >>> split_image('ctl:v1')
        ('ctl', 'v1', '')
        >>> split_image('localhost:5000/ctl')
        ('localhost:5000/ctl', '', '')
    """
    if not image:
        return '', '', ''
    if '@' in image:
        repository, digest = image.rsplit('@', 1)
        return repository, '', digest
    last_slash = image.rfind('/')
    last_colon = image.rfind(':')
    if last_colon > last_slash:
        return image[:last_colon], image[last_colon + 1:], ''
    return image, '', ''


def default_container_index(deployment: Resource) -> int:
    """Index of the container the chart parameterizes

    The container named by the default-container annotation, else the one
    named 'manager', else the first one. -1 if there are no containers.
    """
    containers = deployment.get(*CONTAINERS_PATH) or []
    if not containers:
        return -1
    names = [c.get('name') if isinstance(c, dict) else None for c in containers]
    annotations = deployment.get(*POD_TEMPLATE_METADATA_PATH, 'annotations') or {}
    preferred = annotations.get(DEFAULT_CONTAINER_ANNOTATION)
    for candidate in (preferred, DEFAULT_CONTAINER_NAME):
        if candidate and candidate in names:
            return names.index(candidate)
    return 0


def default_container(deployment: Resource) -> Dict[str, Any]:
    index = default_container_index(deployment)
    if index < 0:
        return {}
    container = deployment.get(*CONTAINERS_PATH, index)
    return container if isinstance(container, dict) else {}


def extract_deployment_config(deployment: Optional[Resource]) -> Dict[str, Any]:
    """Build the default 'manager' values section from a Deployment"""
    if deployment is None:
        return {
            'replicas': 1,
            'args': [],
            'image': {
                'repository': DEFAULT_IMAGE_REPOSITORY,
                'tag': DEFAULT_IMAGE_TAG,
                'digest': '',
                'pullPolicy': DEFAULT_PULL_POLICY,
            },
            'env': [],
            'imagePullSecrets': [],
            'podSecurityContext': {},
            'securityContext': {},
            'resources': {},
            'nodeSelector': {},
            'affinity': {},
            'tolerations': [],
        }

    container = default_container(deployment)
    repository, tag, digest = split_image(container.get('image') or '')
    if not repository:
        repository = DEFAULT_IMAGE_REPOSITORY
    if not tag and not digest:
        tag = DEFAULT_IMAGE_TAG

    pod_spec = deployment.get(*POD_TEMPLATE_SPEC_PATH) or {}
    replicas = deployment.get('spec', 'replicas')

    return {
        'replicas': replicas if replicas is not None else 1,
        'args': manager_args(container),
        'image': {
            'repository': repository,
            'tag': tag,
            'digest': digest,
            'pullPolicy': container.get('imagePullPolicy') or DEFAULT_PULL_POLICY,
        },
        'env': [],
        'imagePullSecrets': _list_or_empty(pod_spec.get('imagePullSecrets')),
        'podSecurityContext': _dict_or_empty(pod_spec.get('securityContext')),
        'securityContext': _dict_or_empty(container.get('securityContext')),
        'resources': _dict_or_empty(container.get('resources')),
        'nodeSelector': _dict_or_empty(pod_spec.get('nodeSelector')),
        'affinity': _dict_or_empty(pod_spec.get('affinity')),
        'tolerations': _list_or_empty(pod_spec.get('tolerations')),
    }


def _dict_or_empty(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _list_or_empty(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _flag_name(arg: Any) -> str:
    return str(arg).split('=', 1)[0]


def manager_args(container: Dict[str, Any]) -> List[Any]:
    """Container args minus the flags the templater rebuilds

    The metrics and health probe bind addresses and the certificate paths
    stay in the Deployment template; everything else moves to manager.args.
    """
    rebuilt = (METRICS_BIND_FLAG, HEALTH_PROBE_FLAG, WEBHOOK_CERT_FLAG, METRICS_CERT_FLAG)
    return [arg for arg in _list_or_empty(container.get('args')) if _flag_name(arg) not in rebuilt]


def port_from_address(address: str) -> Optional[int]:
    """Port of a bind address such as ':8443' or '0.0.0.0:8443', None if absent or invalid"""
    if ':' not in address:
        return None
    try:
        port = int(address.rsplit(':', 1)[1])
    except ValueError:
        return None
    return port if 0 < port <= 65535 else None


def extract_ports(deployment: Optional[Resource]) -> Dict[str, int]:
    """Metrics and webhook ports the manager listens on

    The metrics port comes from --metrics-bind-address, the webhook port from
    the first container port whose name mentions 'webhook'. Only ports that
    were found are returned.
    """
    if deployment is None:
        return {}
    container = default_container(deployment)
    ports: Dict[str, int] = {}
    for arg in _list_or_empty(container.get('args')):
        if _flag_name(arg) == METRICS_BIND_FLAG and '=' in str(arg):
            port = port_from_address(str(arg).split('=', 1)[1])
            if port is not None:
                ports.setdefault('metrics', port)
    for entry in _list_or_empty(container.get('ports')):
        if not isinstance(entry, dict) or WEBHOOK_MARKER not in str(entry.get('name') or ''):
            continue
        if isinstance(entry.get('containerPort'), int):
            ports.setdefault('webhook', entry['containerPort'])
    return ports


def metrics_port(deployment: Optional[Resource]) -> int:
    return extract_ports(deployment).get('metrics', DEFAULT_METRICS_PORT)


def webhook_port(deployment: Optional[Resource]) -> int:
    return extract_ports(deployment).get('webhook', DEFAULT_WEBHOOK_PORT)
