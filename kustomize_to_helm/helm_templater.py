"""
Helm templater

Turns the serialized YAML of one resource into a Helm template. Every rule
is a text rewrite that does nothing when its pattern is absent, so resources
the rules were not written for pass through untouched.

Rule order matters: escaping runs first so later rules can emit template
expressions, the conditional wrapper is in place before anything edits
inner lines, and guard normalization runs last.
"""
import re
from typing import List, Optional

from .constants import (
    CERT_MANAGER_API_VERSION,
    CHART_LABEL,
    CONTAINERS_PATH,
    DEFAULT_METRICS_PORT,
    DEFAULT_WEBHOOK_PORT,
    HEALTH_PROBE_FLAG,
    INJECT_CA_ANNOTATION,
    INSTANCE_LABEL,
    KIND_CERTIFICATE,
    KIND_CRD,
    KIND_DEPLOYMENT,
    KIND_ISSUER,
    KIND_NAMESPACE,
    KIND_SERVICE,
    KIND_SERVICE_MONITOR,
    MANAGED_BY_LABEL,
    METRICS_BIND_FLAG,
    METRICS_CERT_FLAG,
    METRICS_MARKER,
    MONITORING_API_VERSION,
    NAME_LABEL,
    POD_TEMPLATE_SPEC_PATH,
    RBAC_HELPER_MARKERS,
    RBAC_KINDS,
    WEBHOOK_CERT_FLAG,
    WEBHOOK_MARKER,
)
from .deployment_config import default_container_index
from .resource import ProjectIdentity, Resource
from .yaml_text import (
    block_end,
    find_key,
    find_path,
    indent_of,
    join_lines,
    key_col,
    list_items,
    parse_key,
    parent_key,
    replace_value,
    split_lines,
    wrap_lines,
)

RELEASE_NAMESPACE = '{{ .Release.Namespace }}'
RELEASE_SERVICE = '{{ .Release.Service }}'

CRD_ENABLED = '.Values.crd.enable'
CERT_MANAGER_ENABLED = '.Values.certManager.enable'
METRICS_ENABLED = '.Values.metrics.enable'
PROMETHEUS_ENABLED = '.Values.prometheus.enable'
RBAC_HELPERS_ENABLED = '.Values.rbacHelpers.enable'
CERT_MANAGER_AND_METRICS = f'and {CERT_MANAGER_ENABLED} {METRICS_ENABLED}'

IMAGE_EXPR = (
    '"{{ .Values.manager.image.repository }}'
    '{{ if .Values.manager.image.digest }}@{{ .Values.manager.image.digest }}'
    '{{ else }}:{{ .Values.manager.image.tag }}{{ end }}"'
)
PULL_POLICY_EXPR = '"{{ .Values.manager.image.pullPolicy }}"'
REPLICAS_EXPR = '{{ .Values.manager.replicas }}'
METRICS_PORT_EXPR = '{{ .Values.metrics.port }}'
WEBHOOK_PORT_EXPR = '{{ .Values.webhook.port }}'
MANAGER_ARGS = [
    '{{- range .Values.manager.args }}',
    '- {{ . | quote }}',
    '{{- end }}',
]

CERT_ARGS = {
    WEBHOOK_CERT_FLAG: CERT_MANAGER_ENABLED,
    METRICS_CERT_FLAG: CERT_MANAGER_AND_METRICS,
}
CERT_VOLUMES = {
    'webhook-certs': CERT_MANAGER_ENABLED,
    'metrics-certs': CERT_MANAGER_AND_METRICS,
}
POD_WITH_FIELDS = ('imagePullSecrets', 'nodeSelector', 'affinity', 'tolerations')

_OPEN_PLACEHOLDER = '__HELM_OPEN__'
_CLOSE_PLACEHOLDER = '__HELM_CLOSE__'
_BLANK_AFTER_OPEN_RE = re.compile(r'^([ \t]*\{\{-? *(?:if|with|range)\b[^\n]*\}\}\n)[ \t]*\n', re.MULTILINE)
_BLANK_BEFORE_END_RE = re.compile(r'\n[ \t]*\n([ \t]*\{\{-? *end\b)')
_METRICS_BIND_PORT_RE = re.compile(re.escape(METRICS_BIND_FLAG) + r'''(=[^\s'"]*:)\d+''')


def escape_template_syntax(text: str) -> str:
    """Make pre-existing '{{ }}' text render literally through Helm

    Uses {{ "{{" }} syntax instead of backticks to avoid conflicts with
    backticks used within Go template expressions.
    """
    result = text.replace('{{', _OPEN_PLACEHOLDER).replace('}}', _CLOSE_PLACEHOLDER)
    return result.replace(_OPEN_PLACEHOLDER, '{{ "{{" }}').replace(_CLOSE_PLACEHOLDER, '{{ "}}" }}')


def normalize_guards(text: str) -> str:
    """Drop a single blank line right after an opening guard or right before an end"""
    text = _BLANK_AFTER_OPEN_RE.sub(r'\1', text)
    return _BLANK_BEFORE_END_RE.sub(r'\n\1', text)


def guard_condition(resource: Resource) -> Optional[str]:
    """Condition a whole resource is wrapped in, None when it is always rendered"""
    kind = resource.kind
    name = resource.name
    api_version = resource.api_version
    is_metrics = METRICS_MARKER in name

    if kind == KIND_CRD:
        return CRD_ENABLED
    if kind == KIND_CERTIFICATE and api_version == CERT_MANAGER_API_VERSION:
        return CERT_MANAGER_AND_METRICS if is_metrics else CERT_MANAGER_ENABLED
    if kind == KIND_ISSUER and api_version == CERT_MANAGER_API_VERSION:
        return CERT_MANAGER_ENABLED
    if kind == KIND_SERVICE_MONITOR and api_version == MONITORING_API_VERSION:
        return PROMETHEUS_ENABLED
    if kind in RBAC_KINDS:
        if any(marker in name for marker in RBAC_HELPER_MARKERS):
            return RBAC_HELPERS_ENABLED
        if is_metrics:
            return METRICS_ENABLED
        return None
    if kind == KIND_SERVICE and is_metrics:
        return METRICS_ENABLED
    return None


class HelmTemplater:
    """Rewrites serialized resources into Helm templates for one project"""

    def __init__(self, identity: ProjectIdentity, metrics_port: int = DEFAULT_METRICS_PORT,
                 webhook_port: int = DEFAULT_WEBHOOK_PORT):
        self.identity = identity
        self.chart_name = identity.name
        self.prefix = identity.prefix
        self.namespace = identity.namespace
        self.metrics_port = metrics_port
        self.webhook_port = webhook_port

    def rewrite(self, text: str, resource: Resource) -> str:
        if resource.kind == KIND_NAMESPACE:
            return self._rewrite_namespace(text)

        text = escape_template_syntax(text)
        text = self.add_conditional_wrapper(text, resource)
        text = self.substitute_namespace(text)
        text = self.substitute_cert_manager_references(text, resource)
        if resource.kind == KIND_DEPLOYMENT:
            text = self.template_deployment(text, resource)
        elif resource.kind == KIND_SERVICE:
            text = self.template_service_ports(text, resource)
        text = self.substitute_resource_names(text)
        text = self.substitute_labels(text)
        text = self.add_standard_labels(text)
        return normalize_guards(text)

    def resource_name_expr(self, suffix: str) -> str:
        return f'{{{{ include "{self.chart_name}.resourceName" (dict "suffix" "{suffix}" "context" $) }}}}'

    # ------------------------------------------------------------------
    # Generic rules
    # ------------------------------------------------------------------

    def add_conditional_wrapper(self, text: str, resource: Resource) -> str:
        condition = guard_condition(resource)
        if condition is None:
            return text
        if not text.endswith('\n'):
            text += '\n'
        return f'{{{{- if {condition} }}}}\n{text}{{{{- end }}}}\n'

    def substitute_namespace(self, text: str) -> str:
        """Replace the controller namespace literal with the release namespace

        Only namespace fields, '<ns>/<name>' references and '.<ns>.' DNS
        segments whose value is exactly the controller namespace are touched.
        """
        if not self.namespace:
            return text
        ns = re.escape(self.namespace)
        text = re.sub(rf'(?m)^( *(?:- )?namespace: +){ns} *$',
                      lambda m: m.group(1) + RELEASE_NAMESPACE, text)
        text = re.sub(rf'(?<![\w.-]){ns}/', lambda m: RELEASE_NAMESPACE + '/', text)
        text = re.sub(rf'\.{ns}(?![\w-])', lambda m: '.' + RELEASE_NAMESPACE, text)
        return text

    def substitute_cert_manager_references(self, text: str, resource: Resource) -> str:
        prefix = re.escape(self.prefix)

        text = re.sub(
            rf'(?m)^( *{re.escape(INJECT_CA_ANNOTATION)}: *.*/){prefix}-([A-Za-z0-9-]+) *$',
            lambda m: m.group(1) + self.resource_name_expr(m.group(2)), text)
        text = self._guard_inject_ca(text)

        if resource.kind != KIND_CERTIFICATE or resource.api_version != CERT_MANAGER_API_VERSION:
            return text

        if METRICS_MARKER in resource.name:
            service_suffix = 'controller-manager-metrics-service'
        else:
            service_suffix = 'webhook-service'
        text = re.sub(r'(?m)^( *- )SERVICE_NAME(?=\.)',
                      lambda m: m.group(1) + self.resource_name_expr(service_suffix), text)
        text = text.replace('SERVICE_NAMESPACE', RELEASE_NAMESPACE)
        text = re.sub(rf'(?m)^( *- ){prefix}-([A-Za-z0-9-]+)(?=\.)',
                      lambda m: m.group(1) + self.resource_name_expr(m.group(2)), text)
        return text

    def _guard_inject_ca(self, text: str) -> str:
        lines, trailing_newline = split_lines(text)
        marker = INJECT_CA_ANNOTATION + ':'
        for i in reversed(range(len(lines))):
            if lines[i].lstrip(' ').startswith(marker):
                lines = wrap_lines(lines, i, i + 1, CERT_MANAGER_ENABLED, indent_of(lines[i]))
        return join_lines(lines, trailing_newline)

    def substitute_resource_names(self, text: str) -> str:
        """Turn '<prefix>-<suffix>' values of any *name/*Name field into computed names"""
        prefix = re.escape(self.prefix)
        return re.sub(rf'(?m)^( *(?:- )?[a-zA-Z]*[Nn]ame: +){prefix}-([a-zA-Z0-9-]+) *$',
                      lambda m: m.group(1) + self.resource_name_expr(m.group(2)), text)

    def substitute_labels(self, text: str) -> str:
        text = re.sub(rf'(?m)^( *{re.escape(MANAGED_BY_LABEL)}: *)kustomize *$',
                      lambda m: m.group(1) + RELEASE_SERVICE, text)
        names = sorted({re.escape(self.prefix), re.escape(self.chart_name)}, key=len, reverse=True)
        return re.sub(rf'(?m)^( *{re.escape(NAME_LABEL)}: *)(?:{"|".join(names)}) *$',
                      lambda m: m.group(1) + f'{{{{ include "{self.chart_name}.name" . }}}}', text)

    def add_standard_labels(self, text: str) -> str:
        """Append the helm.sh/chart and instance labels to every metadata.labels block

        Selectors never hold a 'labels' key, so they keep their immutable
        kustomize labels.
        """
        standard = [
            (CHART_LABEL, f'{{{{ include "{self.chart_name}.chart" . }}}}'),
            (INSTANCE_LABEL, '{{ .Release.Name }}'),
        ]
        lines, trailing_newline = split_lines(text)
        for idx in reversed(range(len(lines))):
            parsed = parse_key(lines[idx])
            if not parsed or parsed[1] != 'labels':
                continue
            parent = parent_key(lines, idx)
            if parent < 0 or parse_key(lines[parent])[1] != 'metadata':
                continue
            value = lines[idx].split(':', 1)[1].strip()
            if value and value != '{}':
                continue
            col = parsed[0] + 2
            lines[idx] = re.match(r'^( *(?:- )?)', lines[idx]).group(1) + 'labels:'
            end = block_end(lines, idx)
            existing = {key[1] for key in map(parse_key, lines[idx + 1:end]) if key and key[0] == col}
            lines[end:end] = [f'{" " * col}{label}: {expr}' for label, expr in standard if label not in existing]
        return join_lines(lines, trailing_newline)

    def _rewrite_namespace(self, text: str) -> str:
        text = escape_template_syntax(text)
        lines, trailing_newline = split_lines(text)
        idx = find_path(lines, ['metadata', 'name'])
        if idx >= 0:
            lines[idx] = replace_value(lines[idx], RELEASE_NAMESPACE)
        text = self.substitute_labels(join_lines(lines, trailing_newline))
        return normalize_guards(self.add_standard_labels(text))

    # ------------------------------------------------------------------
    # Ports
    # ------------------------------------------------------------------

    def template_service_ports(self, text: str, resource: Resource) -> str:
        """Point metrics and webhook Service ports at the chart's port values

        Only ports equal to the manager's listening port are templated, so a
        Service exposing a different front port keeps it.
        """
        if METRICS_MARKER in resource.name:
            rules = {'port': (self.metrics_port, METRICS_PORT_EXPR),
                     'targetPort': (self.metrics_port, METRICS_PORT_EXPR)}
        elif WEBHOOK_MARKER in resource.name:
            rules = {'targetPort': (self.webhook_port, WEBHOOK_PORT_EXPR)}
        else:
            return text
        lines, trailing_newline = split_lines(text)
        ports = find_path(lines, ['spec', 'ports'])
        if ports < 0:
            return text
        for start, end in list_items(lines, ports):
            col = key_col(lines[start])
            for i in range(start, end):
                parsed = parse_key(lines[i])
                if not parsed or parsed[0] != col or parsed[1] not in rules:
                    continue
                port, expr = rules[parsed[1]]
                if lines[i].split(':', 1)[1].strip() == str(port):
                    lines[i] = replace_value(lines[i], expr)
        return join_lines(lines, trailing_newline)

    # ------------------------------------------------------------------
    # Deployment rules
    # ------------------------------------------------------------------

    def template_deployment(self, text: str, resource: Resource) -> str:
        lines, trailing_newline = split_lines(text)
        lines = self._template_replicas(lines)

        index = default_container_index(resource)
        if index >= 0 and self._locate_container(lines, index) is not None:
            lines = self._template_image(lines, index)
            lines = self._template_resources(lines, index)
            lines = self._template_args(lines, index)
            lines = self._template_container_ports(lines, index)
        if find_path(lines, POD_TEMPLATE_SPEC_PATH) >= 0:
            lines = self._template_pod_fields(lines)
        lines = self._guard_cert_volumes(lines)
        return join_lines(lines, trailing_newline)

    @staticmethod
    def _locate_container(lines: List[str], index: int):
        containers = find_path(lines, CONTAINERS_PATH)
        if containers < 0:
            return None
        items = list_items(lines, containers)
        if index >= len(items):
            return None
        start, end = items[index]
        return start, end, key_col(lines[start])

    @staticmethod
    def _key_prefix(line: str) -> str:
        return re.match(r'^( *(?:- )?)', line).group(1)

    def _template_replicas(self, lines: List[str]) -> List[str]:
        spec = find_key(lines, 'spec', 0)
        if spec < 0:
            return lines
        idx = find_key(lines, 'replicas', 2, spec + 1, block_end(lines, spec))
        if idx >= 0:
            lines[idx] = replace_value(lines[idx], REPLICAS_EXPR)
        else:
            lines.insert(spec + 1, f'  replicas: {REPLICAS_EXPR}')
        return lines

    def _template_image(self, lines: List[str], index: int) -> List[str]:
        start, end, col = self._locate_container(lines, index)
        image = find_key(lines, 'image', col, start, end)
        if image >= 0:
            lines[image] = replace_value(lines[image], IMAGE_EXPR)

        policy = find_key(lines, 'imagePullPolicy', col, start, end)
        if policy >= 0:
            lines[policy] = replace_value(lines[policy], PULL_POLICY_EXPR)
        elif image >= 0:
            lines.insert(image + 1, ' ' * col + f'imagePullPolicy: {PULL_POLICY_EXPR}')
        return lines

    def _template_resources(self, lines: List[str], index: int) -> List[str]:
        start, end, col = self._locate_container(lines, index)
        inner = ' ' * (col + 2)
        body = [
            f'{inner}{{{{- if .Values.manager.resources }}}}',
            f'{inner}{{{{- toYaml .Values.manager.resources | nindent {col + 2} }}}}',
            f'{inner}{{{{- else }}}}',
            f'{inner}{{}}',
            f'{inner}{{{{- end }}}}',
        ]
        idx = find_key(lines, 'resources', col, start, end)
        if idx >= 0:
            head = self._key_prefix(lines[idx]) + 'resources:'
            lines[idx:block_end(lines, idx)] = [head] + body
        else:
            lines[end:end] = [' ' * col + 'resources:'] + body
        return lines

    def _template_args(self, lines: List[str], index: int) -> List[str]:
        """Rebuild the manager args around .Values.manager.args

        The metrics bind address follows metrics.enable and metrics.port, the
        health probe address stays literal and each certificate path keeps
        its own guard. Every other arg lives in values.yaml.
        """
        start, end, col = self._locate_container(lines, index)
        args = find_key(lines, 'args', col, start, end)
        if args < 0:
            return lines
        items = list_items(lines, args)
        if not items:
            return lines
        pad = ' ' * indent_of(lines[items[0][0]])

        metrics, health, certs = [], [], []
        for item_start, item_end in items:
            item = lines[item_start:item_end]
            flag = item[0].strip()[2:].strip().strip('\'"').split('=', 1)[0]
            if flag == METRICS_BIND_FLAG:
                item[0] = _METRICS_BIND_PORT_RE.sub(
                    lambda m: METRICS_BIND_FLAG + m.group(1) + METRICS_PORT_EXPR, item[0])
                metrics = [f'{pad}{{{{- if {METRICS_ENABLED} }}}}'] + item + [
                    f'{pad}{{{{- else }}}}',
                    f'{pad}- {METRICS_BIND_FLAG}=0',
                    f'{pad}{{{{- end }}}}',
                ]
            elif flag == HEALTH_PROBE_FLAG:
                health = item
            elif flag in CERT_ARGS:
                certs += [f'{pad}{{{{- if {CERT_ARGS[flag]} }}}}'] + item + [f'{pad}{{{{- end }}}}']

        rebuilt = metrics + health + [pad + line for line in MANAGER_ARGS] + certs
        head = self._key_prefix(lines[args]) + 'args:'
        lines[args:block_end(lines, args)] = [head] + rebuilt
        return lines

    def _template_container_ports(self, lines: List[str], index: int) -> List[str]:
        start, end, col = self._locate_container(lines, index)
        ports = find_key(lines, 'ports', col, start, end)
        if ports < 0:
            return lines
        for item_start, item_end in list_items(lines, ports):
            item_col = key_col(lines[item_start])
            name = find_key(lines, 'name', item_col, item_start, item_end)
            port = find_key(lines, 'containerPort', item_col, item_start, item_end)
            if name < 0 or port < 0 or WEBHOOK_MARKER not in lines[name].split(':', 1)[1]:
                continue
            if lines[port].split(':', 1)[1].strip() == str(self.webhook_port):
                lines[port] = replace_value(lines[port], WEBHOOK_PORT_EXPR)
        return lines

    def _template_pod_fields(self, lines: List[str]) -> List[str]:
        for field in POD_WITH_FIELDS:
            pod = find_path(lines, POD_TEMPLATE_SPEC_PATH)
            pod_end = block_end(lines, pod)
            col = key_col(lines[pod]) + 2
            pad = ' ' * col
            block = [
                f'{pad}{{{{- with .Values.manager.{field} }}}}',
                f'{pad}{field}:',
                f'{pad}  {{{{- toYaml . | nindent {col + 2} }}}}',
                f'{pad}{{{{- end }}}}',
            ]
            idx = find_key(lines, field, col, pod + 1, pod_end)
            if idx >= 0:
                lines[idx:block_end(lines, idx)] = block
            else:
                lines[pod_end:pod_end] = block
        return lines

    def _guard_cert_volumes(self, lines: List[str]) -> List[str]:
        keys = [i for i, line in enumerate(lines)
                if (parse_key(line) or (0, None, False))[1] in ('volumes', 'volumeMounts')]
        for idx in reversed(keys):
            for item_start, item_end in reversed(list_items(lines, idx)):
                condition = self._cert_volume_condition(lines, item_start, item_end)
                if condition:
                    lines = wrap_lines(lines, item_start, item_end, condition, indent_of(lines[item_start]))
        return lines

    @staticmethod
    def _cert_volume_condition(lines: List[str], start: int, end: int) -> Optional[str]:
        col = key_col(lines[start])
        for i in range(start, end):
            parsed = parse_key(lines[i])
            if parsed and parsed[0] == col and parsed[1] == 'name':
                value = lines[i].split(':', 1)[1].strip().strip('\'"')
                return CERT_VOLUMES.get(value)
        return None
