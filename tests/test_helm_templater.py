"""
Tests for HelmTemplater module
"""
import pytest
import yaml

from kustomize_to_helm.helm_templater import (
    CERT_MANAGER_AND_METRICS,
    IMAGE_EXPR,
    HelmTemplater,
    escape_template_syntax,
    guard_condition,
    normalize_guards,
)
from kustomize_to_helm.manifest_parser import ManifestParser
from kustomize_to_helm.resource import ProjectIdentity, Resource
from kustomize_to_helm.yaml_text import dump_yaml

from conftest import (
    CONFIG_MAP,
    CRD,
    DEPLOYMENT,
    EDITOR_ROLE,
    ISSUER,
    LEADER_ELECTION_BINDING,
    MANAGER_ROLE,
    METRICS_CERT,
    METRICS_READER_ROLE,
    METRICS_SERVICE,
    MUTATING_WEBHOOK,
    NAMESPACE,
    SERVICE_ACCOUNT,
    SERVICE_MONITOR,
    SERVING_CERT,
    WEBHOOK_SERVICE,
)

IDENTITY = ProjectIdentity('demo', 'demo', 'demo-system')


def _resource(text):
    return Resource(yaml.safe_load(text))


def _render(text, identity=IDENTITY):
    resource = _resource(text)
    return HelmTemplater(identity).rewrite(dump_yaml(resource.to_dict()), resource)


def _name(suffix):
    return f'{{{{ include "demo.resourceName" (dict "suffix" "{suffix}" "context" $) }}}}'


class TestConditionalWrapper:
    """Test whole-resource guards"""

    @pytest.mark.parametrize('text,condition', [
        (CRD, '.Values.crd.enable'),
        (SERVING_CERT, '.Values.certManager.enable'),
        (METRICS_CERT, CERT_MANAGER_AND_METRICS),
        (ISSUER, '.Values.certManager.enable'),
        (SERVICE_MONITOR, '.Values.prometheus.enable'),
        (EDITOR_ROLE, '.Values.rbacHelpers.enable'),
        (METRICS_READER_ROLE, '.Values.metrics.enable'),
        (METRICS_SERVICE, '.Values.metrics.enable'),
    ])
    def test_guarded_resources(self, text, condition):
        output = _render(text)
        assert output.startswith(f'{{{{- if {condition} }}}}\n')
        assert output.endswith('{{- end }}\n')

    @pytest.mark.parametrize('text', [MANAGER_ROLE, LEADER_ELECTION_BINDING, WEBHOOK_SERVICE, CONFIG_MAP])
    def test_unguarded_resources(self, text):
        assert guard_condition(_resource(text)) is None
        assert not _render(text).startswith('{{- if')

    def test_foreign_certificate_not_guarded(self):
        assert guard_condition(Resource({'apiVersion': 'example.io/v1', 'kind': 'Certificate',
                                         'metadata': {'name': 'x'}})) is None

    def test_no_blank_lines_inside_guard(self):
        output = _render(CRD)
        assert '}}\n\n' not in output
        assert '\n\n{{- end }}' not in output


class TestNamespaceSubstitution:
    """Test that only controller-namespace references become the release namespace"""

    def test_metadata_namespace(self):
        output = _render(WEBHOOK_SERVICE)
        assert '  namespace: {{ .Release.Namespace }}\n' in output
        assert 'demo-system' not in output

    def test_cross_namespace_role_binding(self):
        """Test that a binding living elsewhere keeps its own namespace"""
        binding = LEADER_ELECTION_BINDING.replace('  namespace: demo-system\nroleRef',
                                                  '  namespace: kube-system\nroleRef')
        output = _render(binding)
        assert '  namespace: kube-system\n' in output
        assert '  namespace: {{ .Release.Namespace }}\n' in output

    def test_mixed_namespace_subjects(self):
        """Test that only subjects in the controller namespace are rewritten"""
        binding = LEADER_ELECTION_BINDING + (
            '- kind: ServiceAccount\n'
            '  name: other-ns-reader\n'
            '  namespace: other-ns\n'
            '- kind: ServiceAccount\n'
            '  name: auditor\n'
            '  namespace: demo-system-extra\n'
            '- kind: ServiceAccount\n'
            '  name: default\n'
            '  namespace: demo-system\n'
        )
        output = _render(binding)
        # metadata.namespace plus two controller-namespace subjects
        assert output.count('{{ .Release.Namespace }}') == 3
        assert output.count('  namespace: {{ .Release.Namespace }}\n') == 3
        assert output.count('other-ns') == binding.count('other-ns')
        assert output.count('demo-system-extra') == binding.count('demo-system-extra')
        assert '  namespace: other-ns\n' in output
        assert '  namespace: demo-system-extra\n' in output
        assert 'demo-system\n' not in output

    def test_similar_values_untouched(self):
        text = CONFIG_MAP.replace('greeting: hello', 'greeting: demo-system-extra')
        output = _render(text)
        assert 'greeting: demo-system-extra' in output

    def test_dns_segments(self):
        output = _render(SERVING_CERT)
        assert f'- {_name("webhook-service")}.{{{{ .Release.Namespace }}}}.svc\n' in output
        assert f'- {_name("webhook-service")}.{{{{ .Release.Namespace }}}}.svc.cluster.local\n' in output


class TestCertManagerReferences:
    """Test cert-manager rewrites"""

    def test_inject_ca_guarded_and_templated(self):
        output = _render(MUTATING_WEBHOOK)
        lines = output.split('\n')
        idx = next(i for i, line in enumerate(lines) if 'inject-ca-from' in line)
        assert lines[idx] == (
            f'    cert-manager.io/inject-ca-from: {{{{ .Release.Namespace }}}}/{_name("serving-cert")}')
        assert lines[idx - 1] == '    {{- if .Values.certManager.enable }}'
        assert lines[idx + 1] == '    {{- end }}'

    def test_webhook_client_config(self):
        output = _render(MUTATING_WEBHOOK)
        assert f'      name: {_name("webhook-service")}\n' in output
        assert '      namespace: {{ .Release.Namespace }}\n' in output
        assert '  name: mwidget-v1.kb.io\n' in output

    def test_issuer_ref(self):
        output = _render(SERVING_CERT)
        assert f'    name: {_name("selfsigned-issuer")}\n' in output
        assert 'secretName: webhook-server-cert' in output

    def test_kustomize_placeholders(self):
        text = SERVING_CERT.replace('  - demo-webhook-service.demo-system.svc\n',
                                    '  - SERVICE_NAME.SERVICE_NAMESPACE.svc\n')
        output = _render(text)
        assert f'- {_name("webhook-service")}.{{{{ .Release.Namespace }}}}.svc\n' in output
        assert 'SERVICE_NAME' not in output
        assert 'SERVICE_NAMESPACE' not in output

    def test_metrics_certificate_dns_name(self):
        output = _render(METRICS_CERT)
        assert f'- {_name("controller-manager-metrics-service")}.{{{{ .Release.Namespace }}}}.svc\n' in output


class TestResourceNames:
    """Test computed resource names"""

    def test_prefixed_name(self):
        output = _render(WEBHOOK_SERVICE)
        assert f'  name: {_name("webhook-service")}\n' in output

    def test_role_ref_and_subject(self):
        output = _render(LEADER_ELECTION_BINDING)
        assert f'  name: {_name("leader-election-role")}\n' in output
        assert f'- kind: ServiceAccount\n  name: {_name("controller-manager")}\n' in output

    def test_unprefixed_name_untouched(self):
        output = _render(CONFIG_MAP.replace('name: demo-extra-config', 'name: extra-config'))
        assert '  name: extra-config\n' in output

    def test_different_prefix(self):
        identity = ProjectIdentity('demo', 'acme', 'demo-system')
        output = _render(WEBHOOK_SERVICE.replace('demo-webhook-service', 'acme-webhook-service'), identity)
        assert f'  name: {_name("webhook-service")}\n' in output


class TestLabels:
    """Test label rewrites"""

    def test_managed_by_and_name(self):
        output = _render(METRICS_SERVICE)
        assert '    app.kubernetes.io/managed-by: {{ .Release.Service }}\n' in output
        assert '    app.kubernetes.io/name: {{ include "demo.name" . }}\n' in output
        assert 'control-plane: controller-manager' in output

    def test_other_name_label_untouched(self):
        text = METRICS_SERVICE.replace('    app.kubernetes.io/name: demo\n    control',
                                       '    app.kubernetes.io/name: something-else\n    control')
        output = _render(text)
        assert 'app.kubernetes.io/name: something-else' in output


class TestEscaping:
    """Test literal '{{ }}' preservation"""

    def test_escape(self):
        assert escape_template_syntax('a: {{ .Foo }}') == 'a: {{ "{{" }} .Foo {{ "}}" }}'

    def test_escaped_config_map(self):
        output = _render(CONFIG_MAP.replace('greeting: hello', "greeting: '{{ .Name }}'"))
        assert '{{ "{{" }} .Name {{ "}}" }}' in output
        assert '{{ .Name }}' not in output


class TestNormalizeGuards:
    """Test guard whitespace cleanup"""

    def test_blank_lines_removed(self):
        text = '{{- if .Values.a }}\n\nfoo: bar\n\n{{- end }}\n'
        assert normalize_guards(text) == '{{- if .Values.a }}\nfoo: bar\n{{- end }}\n'

    def test_idempotent(self):
        text = '{{- if .Values.a }}\nfoo: bar\n{{- end }}\n'
        assert normalize_guards(normalize_guards(text)) == text


class TestNamespaceResource:
    """Test the Namespace rewrite"""

    def test_namespace_name(self):
        output = _render(NAMESPACE)
        assert '  name: {{ .Release.Namespace }}\n' in output
        assert '    app.kubernetes.io/managed-by: {{ .Release.Service }}\n' in output
        assert 'demo-system' not in output


class TestDeployment:
    """Test the controller Deployment rewrites"""

    @pytest.fixture
    def output(self):
        return _render(DEPLOYMENT)

    def test_replicas(self, output):
        assert '  replicas: {{ .Values.manager.replicas }}\n' in output

    def test_image(self, output):
        assert f'        image: {IMAGE_EXPR}\n' in output
        assert 'ctl:v1' not in output

    def test_pull_policy_inserted_after_image(self, output):
        lines = output.split('\n')
        idx = lines.index(f'        image: {IMAGE_EXPR}')
        assert lines[idx + 1] == '        imagePullPolicy: "{{ .Values.manager.image.pullPolicy }}"'

    def test_existing_pull_policy_replaced(self):
        text = DEPLOYMENT.replace('        image: ctl:v1\n', '        image: ctl:v1\n        imagePullPolicy: Always\n')
        output = _render(text)
        assert output.count('imagePullPolicy:') == 1
        assert 'Always' not in output

    def test_resources(self, output):
        assert (
            '        resources:\n'
            '          {{- if .Values.manager.resources }}\n'
            '          {{- toYaml .Values.manager.resources | nindent 10 }}\n'
            '          {{- else }}\n'
            '          {}\n'
            '          {{- end }}\n'
        ) in output
        assert '500m' not in output

    def test_args(self, output):
        assert (
            '      - args:\n'
            '        {{- if .Values.metrics.enable }}\n'
            '        - --metrics-bind-address=:{{ .Values.metrics.port }}\n'
            '        {{- else }}\n'
            '        - --metrics-bind-address=0\n'
            '        {{- end }}\n'
            '        - --health-probe-bind-address=:8081\n'
            '        {{- range .Values.manager.args }}\n'
            '        - {{ . | quote }}\n'
            '        {{- end }}\n'
            '        {{- if and .Values.certManager.enable .Values.metrics.enable }}\n'
            '        - --metrics-cert-path=/tmp/k8s-metrics-server/metrics-certs\n'
            '        {{- end }}\n'
            '        {{- if .Values.certManager.enable }}\n'
            '        - --webhook-cert-path=/tmp/k8s-webhook-server/serving-certs\n'
            '        {{- end }}\n'
            '        command:\n'
        ) in output
        assert '--leader-elect' not in output

    def test_metrics_bind_address_with_host(self):
        output = _render(DEPLOYMENT.replace('=:8443', '=0.0.0.0:8443'))
        assert '        - --metrics-bind-address=0.0.0.0:{{ .Values.metrics.port }}\n' in output

    def test_args_without_rebuilt_flags(self):
        text = DEPLOYMENT.replace('        - --metrics-bind-address=:8443\n', '') \
            .replace('        - --health-probe-bind-address=:8081\n', '')
        output = _render(text)
        assert 'metrics-bind-address' not in output
        assert '      - args:\n        {{- range .Values.manager.args }}\n' in output

    def test_webhook_container_port(self, output):
        assert '        - containerPort: {{ .Values.webhook.port }}\n          name: webhook-server\n' in output

    def test_other_container_port_untouched(self):
        output = _render(DEPLOYMENT.replace('name: webhook-server', 'name: grpc'))
        assert '        - containerPort: 9443\n' in output

    def test_cert_volumes_guarded(self, output):
        assert (
            '      {{- if .Values.certManager.enable }}\n'
            '      - name: webhook-certs\n'
            '        secret:\n'
            '          secretName: webhook-server-cert\n'
            '      {{- end }}\n'
        ) in output
        assert (
            '        {{- if and .Values.certManager.enable .Values.metrics.enable }}\n'
            '        - mountPath: /tmp/k8s-metrics-server/metrics-certs\n'
        ) in output

    def test_pod_fields(self, output):
        for field in ('imagePullSecrets', 'nodeSelector', 'affinity', 'tolerations'):
            assert (
                f'      {{{{- with .Values.manager.{field} }}}}\n'
                f'      {field}:\n'
                '        {{- toYaml . | nindent 8 }}\n'
                '      {{- end }}\n'
            ) in output

    def test_existing_pod_field_replaced(self):
        text = DEPLOYMENT.replace('      serviceAccountName:', '      nodeSelector:\n        disk: ssd\n'
                                  '      serviceAccountName:')
        output = _render(text)
        assert 'disk: ssd' not in output
        assert output.count('nodeSelector:') == 1

    def test_names_and_namespace(self, output):
        assert f'  name: {_name("controller-manager")}\n' in output
        assert f'      serviceAccountName: {_name("controller-manager")}\n' in output
        assert '  namespace: {{ .Release.Namespace }}\n' in output
        assert '        name: manager\n' in output

    def test_security_context_kept(self, output):
        assert '        securityContext:\n          allowPrivilegeEscalation: false\n' in output
        assert '      securityContext:\n        runAsNonRoot: true\n' in output

    def test_guards_balanced(self, output):
        opened = sum(output.count(f'{{{{- {word} ') for word in ('if', 'with', 'range'))
        assert opened == output.count('{{- end }}')

    def test_without_containers(self):
        text = '''apiVersion: apps/v1
kind: Deployment
metadata:
  name: demo-controller-manager
  namespace: demo-system
spec:
  template:
    spec:
      serviceAccountName: demo-controller-manager
'''
        output = _render(text)
        assert '  replicas: {{ .Values.manager.replicas }}\n' in output
        assert 'image:' not in output


class TestStandardLabels:
    """Test helm.sh/chart and app.kubernetes.io/instance labels"""

    def test_metadata_labels(self):
        output = _render(METRICS_SERVICE)
        assert (
            '    control-plane: controller-manager\n'
            '    helm.sh/chart: {{ include "demo.chart" . }}\n'
            '    app.kubernetes.io/instance: {{ .Release.Name }}\n'
            '  name: '
        ) in output

    def test_selector_untouched(self):
        output = _render(METRICS_SERVICE)
        assert output.endswith(
            '  selector:\n'
            '    app.kubernetes.io/name: {{ include "demo.name" . }}\n'
            '    control-plane: controller-manager\n'
            '{{- end }}\n')

    def test_deployment_labels(self):
        output = _render(DEPLOYMENT)
        assert output.count('helm.sh/chart:') == 2
        assert output.count('app.kubernetes.io/instance:') == 2
        assert (
            '    matchLabels:\n'
            '      app.kubernetes.io/name: {{ include "demo.name" . }}\n'
            '      control-plane: controller-manager\n'
            '  template:\n'
        ) in output
        assert (
            '        control-plane: controller-manager\n'
            '        helm.sh/chart: {{ include "demo.chart" . }}\n'
            '        app.kubernetes.io/instance: {{ .Release.Name }}\n'
            '    spec:\n'
        ) in output

    def test_namespace_labels(self):
        output = _render(NAMESPACE)
        assert '    app.kubernetes.io/instance: {{ .Release.Name }}\n' in output

    def test_existing_label_kept(self):
        text = SERVICE_ACCOUNT.replace('    app.kubernetes.io/name: demo\n',
                                       '    app.kubernetes.io/name: demo\n    app.kubernetes.io/instance: prod\n')
        output = _render(text)
        assert output.count('app.kubernetes.io/instance:') == 1
        assert 'app.kubernetes.io/instance: prod' in output

    def test_empty_labels(self):
        output = _render(SERVICE_ACCOUNT.replace(
            '  labels:\n    app.kubernetes.io/managed-by: kustomize\n    app.kubernetes.io/name: demo\n',
            '  labels: {}\n'))
        assert (
            '  labels:\n'
            '    helm.sh/chart: {{ include "demo.chart" . }}\n'
            '    app.kubernetes.io/instance: {{ .Release.Name }}\n'
        ) in output

    def test_resource_without_labels(self):
        assert 'helm.sh/chart' not in _render(MANAGER_ROLE)

    def test_schema_property_named_labels(self):
        text = CRD.replace('        type: object\n',
                           '        type: object\n        properties:\n          labels:\n            type: object\n')
        assert 'helm.sh/chart' not in _render(text)


class TestServicePorts:
    """Test metrics and webhook Service ports"""

    def test_metrics_service(self):
        output = _render(METRICS_SERVICE)
        assert (
            '  - name: https\n'
            '    port: {{ .Values.metrics.port }}\n'
            '    protocol: TCP\n'
            '    targetPort: {{ .Values.metrics.port }}\n'
        ) in output

    def test_metrics_front_port_kept(self):
        output = _render(METRICS_SERVICE.replace('    port: 8443\n', '    port: 443\n'))
        assert '    port: 443\n' in output
        assert '    targetPort: {{ .Values.metrics.port }}\n' in output

    def test_webhook_service(self):
        output = _render(WEBHOOK_SERVICE)
        assert '  - port: 443\n    protocol: TCP\n    targetPort: {{ .Values.webhook.port }}\n' in output

    def test_custom_ports(self):
        text = WEBHOOK_SERVICE.replace('targetPort: 9443', 'targetPort: 9444')
        resource = _resource(text)
        templater = HelmTemplater(IDENTITY, metrics_port=9090, webhook_port=9444)
        assert 'targetPort: {{ .Values.webhook.port }}' in templater.rewrite(dump_yaml(resource.to_dict()), resource)
        assert 'targetPort: 9444' in _render(text)

    def test_other_service_untouched(self):
        text = WEBHOOK_SERVICE.replace('demo-webhook-service', 'demo-api')
        assert '    targetPort: 9443\n' in _render(text)


class TestUnusualInput:
    """Test input the rules were not written for"""

    def test_numeric_name(self):
        output = _render('apiVersion: v1\nkind: ConfigMap\nmetadata:\n  name: 123\n')
        assert output == 'apiVersion: v1\nkind: ConfigMap\nmetadata:\n  name: 123\n'

    def test_numeric_name_guarded_kind(self):
        assert guard_condition(_resource('apiVersion: v1\nkind: Service\nmetadata:\n  name: 8443\n')) is None
        output = _render('apiVersion: v1\nkind: ServiceAccount\nmetadata:\n  name: 42\n  namespace: demo-system\n')
        assert '  namespace: {{ .Release.Namespace }}\n' in output


class TestIdempotence:
    """Test that rewriting the same resource twice yields the same text"""

    @pytest.mark.parametrize('text', [DEPLOYMENT, SERVING_CERT, MUTATING_WEBHOOK, EDITOR_ROLE, NAMESPACE])
    def test_stable(self, text):
        assert _render(text) == _render(text)


def test_full_stream_renders(parsed_full, identity):
    """Test that every parsed resource renders without error"""
    templater = HelmTemplater(identity)
    for resource in parsed_full.all_resources():
        assert templater.rewrite(dump_yaml(resource.to_dict()), resource)


def test_parser_and_dump_agree():
    parsed = ManifestParser().parse_stream(WEBHOOK_SERVICE)
    assert dump_yaml(parsed.services[0].to_dict()) == WEBHOOK_SERVICE
