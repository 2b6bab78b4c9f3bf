"""
Value injector

Re-injects references to user-added values into a freshly templated
Deployment. Existing entries are never replaced or reordered; new template
expressions are only appended after them.
"""
import re
from typing import List, Optional, Tuple

from .constants import (
    CONTAINERS_PATH,
    INJECTABLE_CONTAINER_LISTS,
    INJECTABLE_POD_LISTS,
    INJECTABLE_POD_SCALARS,
    KIND_DEPLOYMENT,
    POD_TEMPLATE_METADATA_PATH,
    POD_TEMPLATE_SPEC_PATH,
)
from .deployment_config import default_container_index
from .resource import Resource
from .values_parser import UserAddedValues
from .yaml_text import (
    block_end,
    find_key,
    find_path,
    join_lines,
    key_col,
    list_items,
    parse_key,
    split_lines,
)

_IDENTIFIER_RE = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')


def value_reference(section: str, key: str) -> str:
    """Template reference to .Values.manager.<section>.<key>

    Keys holding "." or "/" (most label keys) cannot be addressed by a dotted
    path, so they are looked up with "index" under their verbatim name. This
    deliberately differs from escaping such keys to "_": values.yaml keeps the
    verbatim key, so an escaped reference would resolve to nothing.
    """
    if _IDENTIFIER_RE.match(key):
        return f'.Values.manager.{section}.{key}'
    return f'index .Values.manager.{section} "{key}"'


class ValueInjector:
    """Appends user-added value references to the controller Deployment"""

    def __init__(self, added: Optional[UserAddedValues] = None):
        self.added = added or UserAddedValues()

    def inject(self, text: str, resource: Resource) -> str:
        if resource.kind != KIND_DEPLOYMENT or self.added.is_empty():
            return text

        lines, trailing_newline = split_lines(text)
        lines = self._inject_map(lines, ['metadata'], 'labels', self.added.labels, 'labels')
        lines = self._inject_map(lines, ['metadata'], 'annotations', self.added.annotations, 'annotations')
        lines = self._inject_map(lines, POD_TEMPLATE_METADATA_PATH, 'labels', self.added.pod_labels, 'podLabels')
        lines = self._inject_map(lines, POD_TEMPLATE_METADATA_PATH, 'annotations',
                                 self.added.pod_annotations, 'podAnnotations')

        index = default_container_index(resource)
        custom = self.added.custom_manager_fields
        if index >= 0:
            if self.added.env:
                lines = self._inject_container_list(lines, index, 'env')
            for key in INJECTABLE_CONTAINER_LISTS:
                if key in custom:
                    lines = self._inject_container_list(lines, index, key)
        for key in INJECTABLE_POD_LISTS:
            if key in custom:
                lines = self._inject_pod_list(lines, key)
        for key in ('serviceAccountName',) + INJECTABLE_POD_SCALARS:
            if key in custom:
                lines = self._inject_pod_scalar(lines, key)
        return join_lines(lines, trailing_newline)

    # ------------------------------------------------------------------
    # labels / annotations
    # ------------------------------------------------------------------

    def _inject_map(self, lines: List[str], parent_path: List[str], key: str, entries, section: str) -> List[str]:
        if not entries:
            return lines
        parent = find_path(lines, parent_path)
        if parent < 0:
            return lines
        col = key_col(lines[parent]) + 2
        parent_end = block_end(lines, parent)
        pad = ' ' * (col + 2)

        idx = find_key(lines, key, col, parent + 1, parent_end)
        if idx >= 0:
            lines[idx] = self._as_block_header(lines[idx], key)
            end = block_end(lines, idx)
            existing = {parsed[1] for parsed in map(parse_key, lines[idx + 1:end])
                        if parsed and parsed[0] == col + 2}
            new = [f'{pad}{name}: {{{{ {value_reference(section, name)} | quote }}}}'
                   for name in entries if name not in existing]
            lines[end:end] = new
        else:
            new = [f'{pad}{name}: {{{{ {value_reference(section, name)} | quote }}}}' for name in entries]
            lines[parent_end:parent_end] = [' ' * col + f'{key}:'] + new
        return lines

    @staticmethod
    def _as_block_header(line: str, key: str) -> str:
        """'labels: {}' becomes 'labels:' so entries can follow"""
        prefix = re.match(r'^( *(?:- )?)', line).group(1)
        return f'{prefix}{key}:'

    # ------------------------------------------------------------------
    # lists
    # ------------------------------------------------------------------

    @staticmethod
    def _container_range(lines: List[str], index: int) -> Optional[Tuple[int, int, int]]:
        containers = find_path(lines, CONTAINERS_PATH)
        if containers < 0:
            return None
        items = list_items(lines, containers)
        if index >= len(items):
            return None
        start, end = items[index]
        return start, end, key_col(lines[start])

    @staticmethod
    def _pod_range(lines: List[str]) -> Optional[Tuple[int, int, int]]:
        pod = find_path(lines, POD_TEMPLATE_SPEC_PATH)
        if pod < 0:
            return None
        return pod + 1, block_end(lines, pod), key_col(lines[pod]) + 2

    def _inject_container_list(self, lines: List[str], index: int, key: str) -> List[str]:
        return self._inject_list(lines, self._container_range(lines, index), key)

    def _inject_pod_list(self, lines: List[str], key: str) -> List[str]:
        return self._inject_list(lines, self._pod_range(lines), key)

    def _inject_list(self, lines: List[str], scope, key: str) -> List[str]:
        if scope is None:
            return lines
        start, end, col = scope
        pad = ' ' * col
        opener = f'{pad}{{{{- with .Values.manager.{key} }}}}'
        body = f'{pad}{{{{- toYaml . | nindent {col} }}}}'
        closer = f'{pad}{{{{- end }}}}'

        idx = find_key(lines, key, col, start, end)
        if idx >= 0:
            line = lines[idx]
            # an empty inline list ('env: []') has nothing to append after
            if line.split(':', 1)[1].strip() in ('[]', 'null', '~'):
                lines[idx] = self._as_block_header(line, key)
            block = block_end(lines, idx)
            lines[block:block] = [opener, body, closer]
        else:
            lines[end:end] = [opener, f'{pad}{key}:', body, closer]
        return lines

    # ------------------------------------------------------------------
    # scalars
    # ------------------------------------------------------------------

    def _inject_pod_scalar(self, lines: List[str], key: str) -> List[str]:
        scope = self._pod_range(lines)
        if scope is None:
            return lines
        start, end, col = scope
        pad = ' ' * col
        idx = find_key(lines, key, col, start, end)
        if idx >= 0:
            original = lines[idx]
            lines[idx:idx + 1] = [
                f'{pad}{{{{- if .Values.manager.{key} }}}}',
                f'{pad}{key}: {{{{ .Values.manager.{key} }}}}',
                f'{pad}{{{{- else }}}}',
                original,
                f'{pad}{{{{- end }}}}',
            ]
        else:
            lines[end:end] = [
                f'{pad}{{{{- with .Values.manager.{key} }}}}',
                f'{pad}{key}: {{{{ . }}}}',
                f'{pad}{{{{- end }}}}',
            ]
        return lines
