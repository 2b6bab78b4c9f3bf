"""
Shared fixtures: a kubebuilder-style `kustomize build` output
"""
import pytest

from kustomize_to_helm.manifest_parser import ManifestParser, build_identity

NAMESPACE = '''apiVersion: v1
kind: Namespace
metadata:
  labels:
    app.kubernetes.io/managed-by: kustomize
    app.kubernetes.io/name: demo
    control-plane: controller-manager
  name: demo-system
'''

CRD = '''apiVersion: apiextensions.k8s.io/v1
kind: CustomResourceDefinition
metadata:
  annotations:
    controller-gen.kubebuilder.io/version: v0.16.4
  name: widgets.example.com
spec:
  group: example.com
  names:
    kind: Widget
    listKind: WidgetList
    plural: widgets
    singular: widget
  scope: Namespaced
  versions:
  - name: v1
    schema:
      openAPIV3Schema:
        type: object
    served: true
    storage: true
'''

SERVICE_ACCOUNT = '''apiVersion: v1
kind: ServiceAccount
metadata:
  labels:
    app.kubernetes.io/managed-by: kustomize
    app.kubernetes.io/name: demo
  name: demo-controller-manager
  namespace: demo-system
'''

LEADER_ELECTION_ROLE = '''apiVersion: rbac.authorization.k8s.io/v1
kind: Role
metadata:
  name: demo-leader-election-role
  namespace: demo-system
rules:
- apiGroups:
  - ""
  resources:
  - configmaps
  verbs:
  - get
  - list
'''

MANAGER_ROLE = '''apiVersion: rbac.authorization.k8s.io/v1
kind: ClusterRole
metadata:
  name: demo-manager-role
rules:
- apiGroups:
  - example.com
  resources:
  - widgets
  verbs:
  - get
  - list
  - watch
'''

METRICS_READER_ROLE = '''apiVersion: rbac.authorization.k8s.io/v1
kind: ClusterRole
metadata:
  name: demo-metrics-reader
rules:
- nonResourceURLs:
  - /metrics
  verbs:
  - get
'''

EDITOR_ROLE = '''apiVersion: rbac.authorization.k8s.io/v1
kind: ClusterRole
metadata:
  name: demo-widget-editor-role
rules:
- apiGroups:
  - example.com
  resources:
  - widgets
  verbs:
  - create
  - update
'''

LEADER_ELECTION_BINDING = '''apiVersion: rbac.authorization.k8s.io/v1
kind: RoleBinding
metadata:
  name: demo-leader-election-rolebinding
  namespace: demo-system
roleRef:
  apiGroup: rbac.authorization.k8s.io
  kind: Role
  name: demo-leader-election-role
subjects:
- kind: ServiceAccount
  name: demo-controller-manager
  namespace: demo-system
'''

MANAGER_BINDING = '''apiVersion: rbac.authorization.k8s.io/v1
kind: ClusterRoleBinding
metadata:
  name: demo-manager-rolebinding
roleRef:
  apiGroup: rbac.authorization.k8s.io
  kind: ClusterRole
  name: demo-manager-role
subjects:
- kind: ServiceAccount
  name: demo-controller-manager
  namespace: demo-system
'''

METRICS_SERVICE = '''apiVersion: v1
kind: Service
metadata:
  labels:
    app.kubernetes.io/managed-by: kustomize
    app.kubernetes.io/name: demo
    control-plane: controller-manager
  name: demo-controller-manager-metrics-service
  namespace: demo-system
spec:
  ports:
  - name: https
    port: 8443
    protocol: TCP
    targetPort: 8443
  selector:
    app.kubernetes.io/name: demo
    control-plane: controller-manager
'''

WEBHOOK_SERVICE = '''apiVersion: v1
kind: Service
metadata:
  name: demo-webhook-service
  namespace: demo-system
spec:
  ports:
  - port: 443
    protocol: TCP
    targetPort: 9443
  selector:
    control-plane: controller-manager
'''

DEPLOYMENT = '''apiVersion: apps/v1
kind: Deployment
metadata:
  labels:
    app.kubernetes.io/managed-by: kustomize
    app.kubernetes.io/name: demo
    control-plane: controller-manager
  name: demo-controller-manager
  namespace: demo-system
spec:
  replicas: 1
  selector:
    matchLabels:
      app.kubernetes.io/name: demo
      control-plane: controller-manager
  template:
    metadata:
      annotations:
        kubectl.kubernetes.io/default-container: manager
      labels:
        app.kubernetes.io/name: demo
        control-plane: controller-manager
    spec:
      containers:
      - args:
        - --metrics-bind-address=:8443
        - --leader-elect
        - --health-probe-bind-address=:8081
        - --metrics-cert-path=/tmp/k8s-metrics-server/metrics-certs
        - --webhook-cert-path=/tmp/k8s-webhook-server/serving-certs
        command:
        - /manager
        env:
        - name: LOG_LEVEL
          value: info
        image: ctl:v1
        name: manager
        ports:
        - containerPort: 9443
          name: webhook-server
          protocol: TCP
        resources:
          limits:
            cpu: 500m
            memory: 128Mi
          requests:
            cpu: 10m
            memory: 64Mi
        securityContext:
          allowPrivilegeEscalation: false
        volumeMounts:
        - mountPath: /tmp/k8s-metrics-server/metrics-certs
          name: metrics-certs
          readOnly: true
        - mountPath: /tmp/k8s-webhook-server/serving-certs
          name: webhook-certs
          readOnly: true
      securityContext:
        runAsNonRoot: true
      serviceAccountName: demo-controller-manager
      terminationGracePeriodSeconds: 10
      volumes:
      - name: metrics-certs
        secret:
          items:
          - key: ca.crt
            path: ca.crt
          secretName: metrics-server-cert
      - name: webhook-certs
        secret:
          secretName: webhook-server-cert
'''

SERVING_CERT = '''apiVersion: cert-manager.io/v1
kind: Certificate
metadata:
  name: demo-serving-cert
  namespace: demo-system
spec:
  dnsNames:
  - demo-webhook-service.demo-system.svc
  - demo-webhook-service.demo-system.svc.cluster.local
  issuerRef:
    kind: Issuer
    name: demo-selfsigned-issuer
  secretName: webhook-server-cert
'''

METRICS_CERT = '''apiVersion: cert-manager.io/v1
kind: Certificate
metadata:
  name: demo-metrics-certs
  namespace: demo-system
spec:
  dnsNames:
  - demo-controller-manager-metrics-service.demo-system.svc
  issuerRef:
    kind: Issuer
    name: demo-selfsigned-issuer
  secretName: metrics-server-cert
'''

ISSUER = '''apiVersion: cert-manager.io/v1
kind: Issuer
metadata:
  name: demo-selfsigned-issuer
  namespace: demo-system
spec:
  selfSigned: {}
'''

SERVICE_MONITOR = '''apiVersion: monitoring.coreos.com/v1
kind: ServiceMonitor
metadata:
  name: demo-controller-manager-metrics-monitor
  namespace: demo-system
spec:
  endpoints:
  - path: /metrics
    port: https
    scheme: https
  selector:
    matchLabels:
      control-plane: controller-manager
'''

MUTATING_WEBHOOK = '''apiVersion: admissionregistration.k8s.io/v1
kind: MutatingWebhookConfiguration
metadata:
  annotations:
    cert-manager.io/inject-ca-from: demo-system/demo-serving-cert
  name: demo-mutating-webhook-configuration
webhooks:
- admissionReviewVersions:
  - v1
  clientConfig:
    service:
      name: demo-webhook-service
      namespace: demo-system
      path: /mutate-example-com-v1-widget
  failurePolicy: Fail
  name: mwidget-v1.kb.io
  sideEffects: None
'''

CONFIG_MAP = '''apiVersion: v1
kind: ConfigMap
metadata:
  name: demo-extra-config
  namespace: demo-system
data:
  greeting: hello
'''

WIDGET_SAMPLE = '''apiVersion: example.com/v1
kind: Widget
metadata:
  name: widget-sample
  namespace: demo-system
spec:
  size: 1
'''

FULL_MANIFESTS = '---\n'.join([
    NAMESPACE,
    CRD,
    SERVICE_ACCOUNT,
    LEADER_ELECTION_ROLE,
    MANAGER_ROLE,
    METRICS_READER_ROLE,
    EDITOR_ROLE,
    LEADER_ELECTION_BINDING,
    MANAGER_BINDING,
    METRICS_SERVICE,
    WEBHOOK_SERVICE,
    DEPLOYMENT,
    SERVING_CERT,
    METRICS_CERT,
    ISSUER,
    SERVICE_MONITOR,
    MUTATING_WEBHOOK,
    CONFIG_MAP,
    WIDGET_SAMPLE,
])


@pytest.fixture
def full_manifests():
    return FULL_MANIFESTS


@pytest.fixture
def parsed_full():
    return ManifestParser().parse_stream(FULL_MANIFESTS)


@pytest.fixture
def identity(parsed_full):
    return build_identity(parsed_full, 'demo')
