"""
Manifest parser

Decodes the multi-document YAML stream produced by kustomize and sorts every
resource into a typed slot or collection.
"""
import io
from pathlib import Path
from typing import Iterator, List, Optional, Set, TextIO, Tuple, Union

import yaml

from .constants import (
    CERT_MANAGER_API_VERSION,
    CONTROLLER_MANAGER_SUFFIX,
    KIND_CERTIFICATE,
    KIND_CLUSTER_ROLE,
    KIND_CLUSTER_ROLE_BINDING,
    KIND_CRD,
    KIND_DEPLOYMENT,
    KIND_ISSUER,
    KIND_NAMESPACE,
    KIND_ROLE,
    KIND_ROLE_BINDING,
    KIND_SERVICE,
    KIND_SERVICE_ACCOUNT,
    KIND_SERVICE_MONITOR,
    MONITORING_API_VERSION,
    NAMESPACE_SUFFIX,
    WEBHOOK_KINDS,
)
from .errors import ManifestParseError
from .filesystem import Filesystem, LocalFilesystem
from .logging import logger
from .resource import ProjectIdentity, Resource


class CRDTypeRegistry:
    """Set of (group, version, kind) triples served by CRDs in the same input"""

    def __init__(self):
        self._types: Set[Tuple[str, str, str]] = set()

    def __len__(self):
        return len(self._types)

    def __contains__(self, item):
        return item in self._types

    def register(self, crd: Resource) -> None:
        group = crd.get('spec', 'group') or ''
        kind = crd.get('spec', 'names', 'kind') or ''
        if not group or not kind:
            return

        versions = crd.get('spec', 'versions') or []
        for version in versions:
            if not isinstance(version, dict) or not version.get('name'):
                continue
            if version.get('served', True) is False:
                continue
            self._types.add((group, version['name'], kind))

        # apiextensions.k8s.io/v1beta1 single-version form
        legacy_version = crd.get('spec', 'version')
        if legacy_version:
            self._types.add((group, legacy_version, kind))

    def matches(self, resource: Resource) -> bool:
        """Whether the resource is an instance of a registered custom type"""
        if not resource.api_group:
            return False
        return (resource.api_group, resource.version, resource.kind) in self._types


class ParsedResources:
    """Partitioned view over all resources of one manifest stream"""

    def __init__(self):
        # singleton slots, last one seen wins
        self.namespace: Optional[Resource] = None
        self.deployment: Optional[Resource] = None
        self.service_account: Optional[Resource] = None
        self.issuer: Optional[Resource] = None

        self.services: List[Resource] = []
        self.roles: List[Resource] = []
        self.cluster_roles: List[Resource] = []
        self.role_bindings: List[Resource] = []
        self.cluster_role_bindings: List[Resource] = []
        self.custom_resource_definitions: List[Resource] = []
        self.certificates: List[Resource] = []
        self.webhook_configurations: List[Resource] = []
        self.service_monitors: List[Resource] = []
        self.sample_custom_resources: List[Resource] = []
        self.other: List[Resource] = []

        # singletons displaced by a later resource of the same kind
        self.superseded: List[Resource] = []

    def all_resources(self) -> Iterator[Resource]:
        """Every categorized resource, sample custom resources included"""
        for singleton in (self.namespace, self.deployment, self.service_account, self.issuer):
            if singleton is not None:
                yield singleton
        for collection in (
            self.services,
            self.roles,
            self.cluster_roles,
            self.role_bindings,
            self.cluster_role_bindings,
            self.custom_resource_definitions,
            self.certificates,
            self.webhook_configurations,
            self.service_monitors,
            self.sample_custom_resources,
            self.other,
        ):
            yield from collection

    def estimate_prefix(self, project_name: str) -> str:
        return estimate_prefix(self, project_name)

    def controller_namespace(self, prefix: str) -> str:
        """Namespace literal the controller is deployed into"""
        if self.namespace is not None and self.namespace.name:
            return self.namespace.name
        if self.deployment is not None and self.deployment.namespace:
            return self.deployment.namespace
        return prefix + NAMESPACE_SUFFIX

    def _set_singleton(self, attr: str, resource: Resource) -> None:
        previous = getattr(self, attr)
        if previous is not None:
            logger.warning("Multiple %s resources found; %s replaces %s",
                           resource.kind, resource.name, previous.name)
            self.superseded.append(previous)
        setattr(self, attr, resource)


class ManifestParser:
    """Reads a kustomize build output and categorizes its resources"""

    def __init__(self, path: Union[str, Path, None] = None, fs: Optional[Filesystem] = None):
        self.path = Path(path) if path is not None else None
        self.fs = fs or LocalFilesystem()

    def parse(self) -> ParsedResources:
        """Parse the manifest file given at construction time

        Raises:
            ManifestParseError: If the file cannot be read or a document is malformed
        """
        if self.path is None:
            raise ManifestParseError("no manifest path given")
        try:
            content = self.fs.read_text(self.path)
        except OSError as e:
            raise ManifestParseError(f"cannot read manifests: {e}", path=str(self.path))
        return self.parse_stream(content, source=str(self.path))

    def parse_stream(self, stream: Union[str, TextIO], source: Optional[str] = None) -> ParsedResources:
        """Parse a multi-document YAML stream given as text or a file handle"""
        if isinstance(stream, str):
            stream = io.StringIO(stream)
        source = source or (str(self.path) if self.path else None)
        resources = self._decode(stream, source)

        registry = CRDTypeRegistry()
        for resource in resources:
            if resource.kind == KIND_CRD:
                registry.register(resource)

        parsed = ParsedResources()
        for resource in resources:
            self._categorize(parsed, resource, registry)

        logger.debug("Parsed %d resources (%d CRD types registered)", len(resources), len(registry))
        return parsed

    def _decode(self, stream: TextIO, source: Optional[str]) -> List[Resource]:
        resources = []
        index = 0
        try:
            for document in yaml.safe_load_all(stream):
                index += 1
                if document is None:
                    continue
                if not isinstance(document, dict):
                    raise ManifestParseError(
                        f"expected a mapping, got {type(document).__name__}",
                        path=source, document=index)
                resources.append(Resource(document))
        except yaml.YAMLError as e:
            raise ManifestParseError(f"invalid YAML: {e}", path=source, document=index + 1)
        return resources

    def _categorize(self, parsed: ParsedResources, resource: Resource, registry: CRDTypeRegistry) -> None:
        kind = resource.kind
        api_version = resource.api_version

        if kind == KIND_NAMESPACE:
            parsed._set_singleton('namespace', resource)
        elif kind == KIND_CRD:
            parsed.custom_resource_definitions.append(resource)
        elif kind == KIND_SERVICE_ACCOUNT:
            parsed._set_singleton('service_account', resource)
        elif kind == KIND_ROLE:
            parsed.roles.append(resource)
        elif kind == KIND_CLUSTER_ROLE:
            parsed.cluster_roles.append(resource)
        elif kind == KIND_ROLE_BINDING:
            parsed.role_bindings.append(resource)
        elif kind == KIND_CLUSTER_ROLE_BINDING:
            parsed.cluster_role_bindings.append(resource)
        elif kind == KIND_SERVICE:
            parsed.services.append(resource)
        elif kind == KIND_DEPLOYMENT:
            parsed._set_singleton('deployment', resource)
        elif kind == KIND_CERTIFICATE and api_version == CERT_MANAGER_API_VERSION:
            parsed.certificates.append(resource)
        elif kind == KIND_ISSUER and api_version == CERT_MANAGER_API_VERSION:
            parsed._set_singleton('issuer', resource)
        elif kind in WEBHOOK_KINDS:
            parsed.webhook_configurations.append(resource)
        elif kind == KIND_SERVICE_MONITOR and api_version == MONITORING_API_VERSION:
            parsed.service_monitors.append(resource)
        elif registry.matches(resource):
            parsed.sample_custom_resources.append(resource)
        else:
            parsed.other.append(resource)


def estimate_prefix(parsed: ParsedResources, project_name: str) -> str:
    """Infer the kustomize namePrefix from the controller Deployment

    Falls back to the project name when the Deployment does not follow the
    '<prefix>-controller-manager' convention or when any Service name does
    not start with the inferred prefix.
    """
    deployment = parsed.deployment
    if deployment is None or not deployment.name.endswith(CONTROLLER_MANAGER_SUFFIX):
        return project_name

    prefix = deployment.name[:-len(CONTROLLER_MANAGER_SUFFIX)]
    if not prefix:
        return project_name

    for service in parsed.services:
        if not service.name.startswith(prefix):
            logger.debug("Service %s does not match prefix %s, using project name", service.name, prefix)
            return project_name
    return prefix


def build_identity(parsed: ParsedResources, project_name: str) -> ProjectIdentity:
    prefix = estimate_prefix(parsed, project_name)
    return ProjectIdentity(project_name, prefix, parsed.controller_namespace(prefix))
