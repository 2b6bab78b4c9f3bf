"""
Metadata generator for Helm charts
Handles generation of Chart.yaml, .helmignore, _helpers.tpl, NOTES.txt and the helm test hook
"""
from pathlib import Path
from typing import Dict, List, Optional

from ..constants import (
    CHART_FILE,
    GROUP_CERT_MANAGER,
    GROUP_MANAGER,
    GROUP_METRICS,
    GROUP_PROMETHEUS,
    HELMIGNORE_FILE,
    HELPERS_FILE,
    NOTES_FILE,
    TEMPLATES_DIR_NAME,
    TEST_MANAGER_READY_FILE,
    TESTS_DIR_NAME,
)
from ..filesystem import Filesystem
from ..resource import Resource
from .base_generator import BaseGenerator

HELMIGNORE = '''# Patterns to ignore when building packages.
# This supports shell glob matching, relative path matching, and
# negation (prefixed with !). Only one pattern per line.
.DS_Store
# Common VCS dirs
.git/
.gitignore
.bzr/
.bzrignore
.hg/
.hgignore
.svn/
# Common backup files
*.swp
*.bak
*.tmp
*.orig
*~
# Various IDEs
.project
.idea/
*.tmproj
.vscode/
'''

TEST_MANAGER_READY = '''apiVersion: v1
kind: ServiceAccount
metadata:
  labels:
    app.kubernetes.io/managed-by: {{ .Release.Service }}
    app.kubernetes.io/name: {{ include "CHART_NAME.name" . }}
    helm.sh/chart: {{ include "CHART_NAME.chart" . }}
    app.kubernetes.io/instance: {{ .Release.Name }}
  annotations:
    "helm.sh/hook": test
    "helm.sh/hook-weight": "-5"
    "helm.sh/hook-delete-policy": before-hook-creation,hook-succeeded
  name: {{ include "CHART_NAME.resourceName" (dict "suffix" "test-manager-ready" "context" $) }}
  namespace: {{ .Release.Namespace }}
---
apiVersion: rbac.authorization.k8s.io/v1
kind: Role
metadata:
  labels:
    app.kubernetes.io/managed-by: {{ .Release.Service }}
    app.kubernetes.io/name: {{ include "CHART_NAME.name" . }}
    helm.sh/chart: {{ include "CHART_NAME.chart" . }}
    app.kubernetes.io/instance: {{ .Release.Name }}
  annotations:
    "helm.sh/hook": test
    "helm.sh/hook-weight": "-4"
    "helm.sh/hook-delete-policy": before-hook-creation,hook-succeeded
  name: {{ include "CHART_NAME.resourceName" (dict "suffix" "test-manager-ready" "context" $) }}
  namespace: {{ .Release.Namespace }}
rules:
- apiGroups:
  - apps
  resources:
  - deployments
  verbs:
  - get
  - list
  - watch
- apiGroups:
  - ""
  resources:
  - pods
  verbs:
  - get
  - list
  - watch
{{- if .Values.certManager.enable }}
- apiGroups:
  - cert-manager.io
  resources:
  - certificates
  verbs:
  - get
  - list
  - watch
{{- end }}
---
apiVersion: rbac.authorization.k8s.io/v1
kind: RoleBinding
metadata:
  labels:
    app.kubernetes.io/managed-by: {{ .Release.Service }}
    app.kubernetes.io/name: {{ include "CHART_NAME.name" . }}
    helm.sh/chart: {{ include "CHART_NAME.chart" . }}
    app.kubernetes.io/instance: {{ .Release.Name }}
  annotations:
    "helm.sh/hook": test
    "helm.sh/hook-weight": "-3"
    "helm.sh/hook-delete-policy": before-hook-creation,hook-succeeded
  name: {{ include "CHART_NAME.resourceName" (dict "suffix" "test-manager-ready" "context" $) }}
  namespace: {{ .Release.Namespace }}
roleRef:
  apiGroup: rbac.authorization.k8s.io
  kind: Role
  name: {{ include "CHART_NAME.resourceName" (dict "suffix" "test-manager-ready" "context" $) }}
subjects:
- kind: ServiceAccount
  name: {{ include "CHART_NAME.resourceName" (dict "suffix" "test-manager-ready" "context" $) }}
  namespace: {{ .Release.Namespace }}
---
apiVersion: v1
kind: Pod
metadata:
  labels:
    app.kubernetes.io/managed-by: {{ .Release.Service }}
    app.kubernetes.io/name: {{ include "CHART_NAME.name" . }}
    helm.sh/chart: {{ include "CHART_NAME.chart" . }}
    app.kubernetes.io/instance: {{ .Release.Name }}
  annotations:
    "helm.sh/hook": test
    "helm.sh/hook-delete-policy": before-hook-creation,hook-succeeded
  name: {{ include "CHART_NAME.resourceName" (dict "suffix" "test-manager-ready" "context" $) }}
  namespace: {{ .Release.Namespace }}
spec:
  restartPolicy: Never
  serviceAccountName: {{ include "CHART_NAME.resourceName" (dict "suffix" "test-manager-ready" "context" $) }}
  containers:
  - name: test
    image: bitnami/kubectl:latest
    imagePullPolicy: IfNotPresent
    command:
    - /bin/sh
    - -ec
    - |
      echo "Testing release {{ .Release.Name }} in {{ .Release.Namespace }}"
      {{- if .Values.certManager.enable }}
      echo "Waiting for cert-manager certificates"
      kubectl wait --for=condition=Ready certificate --all \\
        -n {{ .Release.Namespace }} --timeout=3m || echo "No ready certificates found"
      {{- end }}
      echo "Waiting for the manager deployment"
      if ! kubectl wait --for=condition=Available deployment \\
        -l control-plane=controller-manager -n {{ .Release.Namespace }} --timeout=5m; then
        kubectl describe pods -l control-plane=controller-manager -n {{ .Release.Namespace }} || true
        exit 1
      fi
      PHASE=$(kubectl get pods -l control-plane=controller-manager -n {{ .Release.Namespace }} \\
        -o jsonpath='{.items[0].status.phase}' 2>/dev/null || echo "")
      if [ "$PHASE" != "Running" ]; then
        echo "Manager pod is not running (phase: ${PHASE:-none})"
        kubectl logs -l control-plane=controller-manager -n {{ .Release.Namespace }} --tail=50 || true
        exit 1
      fi
      echo "Manager is ready"
    securityContext:
      allowPrivilegeEscalation: false
      capabilities:
        drop:
        - ALL
      readOnlyRootFilesystem: true
      runAsNonRoot: true
      runAsUser: 65532
      seccompProfile:
        type: RuntimeDefault
'''


class MetadataGenerator(BaseGenerator):
    """Generator for chart metadata files"""

    def __init__(self, chart_name: str, chart_dir: Path, force: bool = False, fs: Optional[Filesystem] = None):
        super().__init__(chart_dir, force, fs)
        if not chart_name:
            raise ValueError("Chart name must not be empty")
        self.chart_name = chart_name
        self.templates_dir = self.chart_dir / TEMPLATES_DIR_NAME

    def generate(self, groups: Dict[str, List[Resource]]) -> None:
        self.generate_chart_yaml()
        self.generate_helmignore()
        self.generate_helpers()
        self.generate_notes(groups)
        if groups.get(GROUP_MANAGER):
            self.generate_test_manager_ready()

    def generate_chart_yaml(self) -> None:
        chart_yaml = f'''apiVersion: v2
name: {self.chart_name}
description: A Helm chart to distribute the project {self.chart_name}
type: application
version: 0.1.0
appVersion: "0.1.0"
'''
        self._write_file(self.chart_dir / CHART_FILE, chart_yaml)

    def generate_helmignore(self) -> None:
        self._write_file(self.chart_dir / HELMIGNORE_FILE, HELMIGNORE)

    def generate_helpers(self) -> None:
        """Generate _helpers.tpl file"""
        chart_name = self.chart_name
        helpers = f'''{{{{/*
Expand the name of the chart.
*/}}}}
{{{{- define "{chart_name}.name" -}}}}
{{{{- default .Chart.Name .Values.nameOverride | trunc 63 | trimSuffix "-" }}}}
{{{{- end }}}}

{{{{/*
Create a default fully qualified app name.
*/}}}}
{{{{- define "{chart_name}.fullname" -}}}}
{{{{- if .Values.fullnameOverride }}}}
{{{{- .Values.fullnameOverride | trunc 63 | trimSuffix "-" }}}}
{{{{- else }}}}
{{{{- $name := default .Chart.Name .Values.nameOverride }}}}
{{{{- if contains $name .Release.Name }}}}
{{{{- .Release.Name | trunc 63 | trimSuffix "-" }}}}
{{{{- else }}}}
{{{{- printf "%s-%s" .Release.Name $name | trunc 63 | trimSuffix "-" }}}}
{{{{- end }}}}
{{{{- end }}}}
{{{{- end }}}}

{{{{/*
Create chart name and version as used by the chart label.
*/}}}}
{{{{- define "{chart_name}.chart" -}}}}
{{{{- printf "%s-%s" .Chart.Name .Chart.Version | replace "+" "_" | trunc 63 | trimSuffix "-" }}}}
{{{{- end }}}}

{{{{/*
Name of a project resource: the full name plus a fixed suffix, kept within
the 63 character limit by shortening the full name first.
Usage: include "{chart_name}.resourceName" (dict "suffix" "webhook-service" "context" $)
*/}}}}
{{{{- define "{chart_name}.resourceName" -}}}}
{{{{- $fullname := include "{chart_name}.fullname" .context }}}}
{{{{- $suffix := .suffix }}}}
{{{{- $maxLen := sub 62 (len $suffix) | int }}}}
{{{{- if gt (len $fullname) $maxLen }}}}
{{{{- printf "%s-%s" (trunc $maxLen $fullname | trimSuffix "-") $suffix | trunc 63 | trimSuffix "-" }}}}
{{{{- else }}}}
{{{{- printf "%s-%s" $fullname $suffix | trunc 63 | trimSuffix "-" }}}}
{{{{- end }}}}
{{{{- end }}}}
'''
        self._write_file(self.templates_dir / HELPERS_FILE, helpers)

    def generate_notes(self, groups: Dict[str, List[Resource]]) -> None:
        """Generate NOTES.txt file"""
        notes = '''Thank you for installing {{ .Chart.Name }}.

Your release is named {{ .Release.Name }}.

To learn more about the release, try:

  $ helm status {{ .Release.Name }}
  $ helm get all {{ .Release.Name }}

Component Status:
{{- if .Values.crd.enable }}
  ✓ CustomResourceDefinitions: Enabled
{{- else }}
  ✗ CustomResourceDefinitions: Disabled
{{- end }}
'''
        # Only list optional components the chart actually ships
        optional = [
            (GROUP_METRICS, 'metrics', 'Metrics endpoint'),
            (GROUP_CERT_MANAGER, 'certManager', 'Cert-Manager certificates'),
            (GROUP_PROMETHEUS, 'prometheus', 'Prometheus ServiceMonitor'),
        ]
        for group, flag, label in optional:
            if not groups.get(group):
                continue
            notes += f'''{{{{- if .Values.{flag}.enable }}}}
  ✓ {label}: Enabled
{{{{- else }}}}
  ✗ {label}: Disabled
{{{{- end }}}}
'''
        self._write_file(self.templates_dir / NOTES_FILE, notes)

    def generate_test_manager_ready(self) -> None:
        """Generate the 'helm test' hook that waits for the manager to become ready"""
        content = TEST_MANAGER_READY.replace('CHART_NAME', self.chart_name)
        self._write_file(self.templates_dir / TESTS_DIR_NAME / TEST_MANAGER_READY_FILE, content)
