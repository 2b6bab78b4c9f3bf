"""
Chart writer

Serializes the grouped resources into chart/templates/, running every
resource through the templater and the value injector first.
"""
import re
from pathlib import Path
from typing import Dict, List, Optional

from .constants import (
    GROUP_NAMESPACE,
    GROUP_ORDER,
    NAMESPACE_FILE,
    SPLIT_GROUPS,
    TEMPLATES_DIR_NAME,
)
from .filesystem import Filesystem
from .generators.base_generator import BaseGenerator
from .helm_templater import HelmTemplater
from .resource import ProjectIdentity, Resource
from .value_injector import ValueInjector
from .yaml_text import dump_yaml

_UNSAFE_FILENAME_CHARS = re.compile(r'[^A-Za-z0-9._-]+')


def dedupe_resources(resources: List[Resource]) -> List[Resource]:
    """Drop resources whose (apiVersion, kind, namespace, name) was already seen"""
    seen = set()
    unique = []
    for resource in resources:
        if resource.identity in seen:
            continue
        seen.add(resource.identity)
        unique.append(resource)
    return unique


def resource_filename(resource: Resource, prefix: str, project_name: str) -> str:
    """File stem for a resource in a split group

    The project prefix is stripped from the name; an empty remainder falls
    back to the kind, then to 'resource'.
    """
    name = resource.name
    for candidate in (prefix, project_name):
        if candidate and name.startswith(candidate + '-'):
            name = name[len(candidate) + 1:]
            break
    name = _UNSAFE_FILENAME_CHARS.sub('-', name).strip('-')
    if not name:
        name = resource.kind.lower() or 'resource'
    return name


class ChartWriter(BaseGenerator):
    """Writes templates for every function group"""

    def __init__(self, identity: ProjectIdentity, chart_dir: Path, force: bool = False,
                 fs: Optional[Filesystem] = None, injector: Optional[ValueInjector] = None,
                 ports: Optional[Dict[str, int]] = None):
        super().__init__(chart_dir, force, fs)
        self.identity = identity
        self.templater = HelmTemplater(identity, **(ports or {}))
        self.injector = injector or ValueInjector()
        self.templates_dir = self.chart_dir / TEMPLATES_DIR_NAME

    def render(self, resource: Resource) -> str:
        """Templated text of one resource"""
        text = self.templater.rewrite(dump_yaml(resource.to_dict()), resource)
        return self.injector.inject(text, resource)

    def write(self, groups: Dict[str, List[Resource]]) -> List[Path]:
        """Write every non-empty group; returns the paths written"""
        self._ensure_directory(self.templates_dir)
        for group in GROUP_ORDER + [g for g in groups if g not in GROUP_ORDER]:
            resources = dedupe_resources(groups.get(group, []))
            if not resources:
                continue
            if group == GROUP_NAMESPACE:
                self._write_file(self.templates_dir / NAMESPACE_FILE, self._join(resources))
            elif group in SPLIT_GROUPS:
                self._write_split_group(group, resources)
            else:
                self._write_file(self.templates_dir / group / f'{group}.yaml', self._join(resources))
        return list(self.written)

    def _write_split_group(self, group: str, resources: List[Resource]) -> None:
        used = set()
        for index, resource in enumerate(resources):
            if resource.name:
                stem = resource_filename(resource, self.identity.prefix, self.identity.name)
            else:
                stem = f'{resource.kind.lower() or "resource"}-{index}'
            if stem in used:
                stem = f'{stem}-{resource.kind.lower()}'
            base, suffix = stem, 1
            while stem in used:
                stem = f'{base}-{suffix}'
                suffix += 1
            used.add(stem)
            self._write_file(self.templates_dir / group / f'{stem}.yaml', self.render(resource))

    def _join(self, resources: List[Resource]) -> str:
        return '---\n'.join(self.render(resource) for resource in resources)
