"""
Resource organizer

Groups parsed resources into the function groups of the chart layout.
"""
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .constants import (
    CERT_MANAGER_API_VERSION,
    GROUP_CERT_MANAGER,
    GROUP_CRD,
    GROUP_EXTRAS,
    GROUP_MANAGER,
    GROUP_METRICS,
    GROUP_NAMESPACE,
    GROUP_ORDER,
    GROUP_PROMETHEUS,
    GROUP_RBAC,
    GROUP_WEBHOOK,
    KIND_CERTIFICATE,
    KIND_CRD,
    KIND_DEPLOYMENT,
    KIND_ISSUER,
    KIND_NAMESPACE,
    KIND_SERVICE,
    KIND_SERVICE_MONITOR,
    METRICS_MARKER,
    MONITORING_API_VERSION,
    RBAC_KINDS,
    WEBHOOK_KINDS,
    WEBHOOK_MARKER,
)
from .logging import logger
from .manifest_parser import ParsedResources
from .resource import Resource


def name_contains(marker: str) -> Callable[[str], bool]:
    return lambda name: marker in name


class GroupRule:
    """Maps (kind, apiVersion, name predicate) to a function group"""

    def __init__(self, group: str, kinds: Sequence[str], api_version: Optional[str] = None,
                 name_predicate: Optional[Callable[[str], bool]] = None):
        self.group = group
        self.kinds = tuple(kinds)
        self.api_version = api_version
        self.name_predicate = name_predicate

    def matches(self, resource: Resource) -> bool:
        if resource.kind not in self.kinds:
            return False
        if self.api_version is not None and resource.api_version != self.api_version:
            return False
        if self.name_predicate is not None and not self.name_predicate(resource.name):
            return False
        return True


# First match wins; metrics is tested before webhook so a Service
# can never land in both.
DEFAULT_RULES = [
    GroupRule(GROUP_NAMESPACE, [KIND_NAMESPACE]),
    GroupRule(GROUP_CRD, [KIND_CRD]),
    GroupRule(GROUP_RBAC, RBAC_KINDS),
    GroupRule(GROUP_MANAGER, [KIND_DEPLOYMENT]),
    GroupRule(GROUP_METRICS, [KIND_SERVICE], name_predicate=name_contains(METRICS_MARKER)),
    GroupRule(GROUP_WEBHOOK, WEBHOOK_KINDS),
    GroupRule(GROUP_WEBHOOK, [KIND_SERVICE], name_predicate=name_contains(WEBHOOK_MARKER)),
    GroupRule(GROUP_CERT_MANAGER, [KIND_ISSUER, KIND_CERTIFICATE], api_version=CERT_MANAGER_API_VERSION),
    GroupRule(GROUP_PROMETHEUS, [KIND_SERVICE_MONITOR], api_version=MONITORING_API_VERSION),
]


class ResourceOrganizer:
    """Builds the ordered group -> resources map from ParsedResources"""

    def __init__(self, rules: Optional[List[GroupRule]] = None):
        self.rules = list(rules) if rules is not None else list(DEFAULT_RULES)

    def classify(self, resource: Resource) -> str:
        for rule in self.rules:
            if rule.matches(resource):
                return rule.group
        return GROUP_EXTRAS

    def organize(self, parsed: ParsedResources) -> Dict[str, List[Resource]]:
        groups: Dict[str, List[Resource]] = {group: [] for group in GROUP_ORDER}
        for resource in self._candidates(parsed):
            group = self.classify(resource)
            # RBAC kinds are essential to the controller and never shipped as extras
            if group == GROUP_EXTRAS and resource.kind in RBAC_KINDS:
                group = GROUP_RBAC
            if group == GROUP_EXTRAS:
                logger.info("Placing %s %s in extras", resource.kind, resource.name)
            groups.setdefault(group, []).append(resource)
        return groups

    @staticmethod
    def _candidates(parsed: ParsedResources) -> Iterable[Resource]:
        """All shippable resources in layout order; sample custom resources are left out"""
        rbac = [parsed.service_account] + parsed.roles + parsed.cluster_roles + \
            parsed.role_bindings + parsed.cluster_role_bindings
        ordered = [parsed.namespace] + parsed.custom_resource_definitions + rbac + \
            [parsed.deployment] + parsed.services + parsed.webhook_configurations + \
            [parsed.issuer] + parsed.certificates + parsed.service_monitors + parsed.other
        return [resource for resource in ordered if resource is not None]


def organize(parsed: ParsedResources) -> Dict[str, List[Resource]]:
    return ResourceOrganizer().organize(parsed)
