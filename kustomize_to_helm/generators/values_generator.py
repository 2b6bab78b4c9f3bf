"""
Values generator

Builds values.yaml from the controller Deployment, the detected optional
components and the user-added values of a previous run.
"""
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..constants import (
    GROUP_CERT_MANAGER,
    GROUP_METRICS,
    GROUP_PROMETHEUS,
    GROUP_WEBHOOK,
    VALUES_CERT_MANAGER,
    VALUES_CRD,
    VALUES_FILE,
    VALUES_MANAGER,
    VALUES_METRICS,
    VALUES_PROMETHEUS,
    VALUES_RBAC_HELPERS,
    VALUES_WEBHOOK,
)
from ..deployment_config import extract_deployment_config, extract_ports, metrics_port, webhook_port
from ..filesystem import Filesystem
from ..resource import Resource
from ..values_parser import UserAddedValues
from ..yaml_text import dump_yaml, indent_text
from .base_generator import BaseGenerator

MANAGER_COMMENTS = {
    'replicas': 'Number of controller manager replicas',
    'args': 'Extra manager arguments; bind addresses and certificate paths are set by the chart',
    'image': 'Controller manager image; a digest takes precedence over the tag',
    'env': 'Extra environment variables appended to the manager container',
    'imagePullSecrets': 'Secrets used to pull the manager image',
    'podSecurityContext': 'Pod-level security settings of the manager pod',
    'securityContext': 'Security settings of the manager container',
    'resources': 'Resource requests and limits of the manager container',
    'nodeSelector': 'Node selector for the manager pod',
    'affinity': 'Affinity rules for the manager pod',
    'tolerations': 'Tolerations for the manager pod',
}

SECTION_COMMENTS = {
    VALUES_MANAGER: 'Configure the controller manager deployment',
    VALUES_RBAC_HELPERS: 'Install the admin/editor/viewer helper roles for the custom resources',
    VALUES_CRD: 'Install the CustomResourceDefinitions with the chart',
    VALUES_METRICS: 'Expose the controller metrics endpoint',
    VALUES_WEBHOOK: 'Port the webhook server listens on',
    VALUES_CERT_MANAGER: 'Issue webhook and metrics certificates with cert-manager',
    VALUES_PROMETHEUS: 'Create a ServiceMonitor for the Prometheus Operator',
}


def build_values(deployment: Optional[Resource], groups: Dict[str, List[Resource]],
                 added: Optional[UserAddedValues] = None) -> Dict[str, Any]:
    """Assemble the values tree, user-added values merged in"""
    added = added or UserAddedValues()

    manager = extract_deployment_config(deployment)
    manager['env'] = list(added.env)
    manager.update(added.manager_maps())
    for key, value in added.custom_manager_fields.items():
        manager[key] = value

    values: Dict[str, Any] = {
        VALUES_MANAGER: manager,
        VALUES_RBAC_HELPERS: {'enable': False},
        VALUES_CRD: {'enable': True},
        VALUES_METRICS: {'enable': bool(groups.get(GROUP_METRICS)), 'port': metrics_port(deployment)},
        VALUES_CERT_MANAGER: {'enable': bool(groups.get(GROUP_CERT_MANAGER))},
        VALUES_PROMETHEUS: {'enable': bool(groups.get(GROUP_PROMETHEUS))},
    }
    if groups.get(GROUP_WEBHOOK) or 'webhook' in extract_ports(deployment):
        values[VALUES_WEBHOOK] = {'port': webhook_port(deployment)}
    for key, value in added.custom_fields.items():
        values[key] = value
    return values


def render_values(values: Dict[str, Any]) -> str:
    """Render the values tree as commented YAML text"""
    sections = []
    for key, value in values.items():
        comment = SECTION_COMMENTS.get(key)
        header = f'## {comment}\n##\n' if comment else ''
        if key == VALUES_MANAGER and isinstance(value, dict):
            sections.append(header + _render_manager(value))
        else:
            sections.append(header + dump_yaml({key: value}))
    return '\n'.join(sections)


def _render_manager(manager: Dict[str, Any]) -> str:
    parts = []
    for key, value in manager.items():
        comment = MANAGER_COMMENTS.get(key)
        text = indent_text(dump_yaml({key: value}).rstrip('\n'), 2) + '\n'
        if comment:
            text = f'  # {comment}\n' + text
        parts.append(text)
    return f'{VALUES_MANAGER}:\n' + '\n'.join(parts)


class ValuesGenerator(BaseGenerator):
    """Writes chart/values.yaml"""

    HEADER = '''# Default values for {name}.
# This is a YAML-formatted file.
# Declare variables to be passed into your templates.

'''

    def __init__(self, chart_name: str, chart_dir: Path, force: bool = False, fs: Optional[Filesystem] = None):
        super().__init__(chart_dir, force, fs)
        self.chart_name = chart_name

    def generate(self, deployment: Optional[Resource], groups: Dict[str, List[Resource]],
                 added: Optional[UserAddedValues] = None) -> Dict[str, Any]:
        values = build_values(deployment, groups, added)
        content = self.HEADER.format(name=self.chart_name) + render_values(values)
        self._write_file(self.chart_dir / VALUES_FILE, content)
        return values
