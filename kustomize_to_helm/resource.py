"""
Resource model

A thin read-only wrapper around one decoded Kubernetes document.
"""
import copy
from typing import Any, Dict, Optional, Tuple


def _text(value: Any) -> str:
    """Scalar metadata as a string; YAML may decode 'name: 123' as an int"""
    return '' if value is None else str(value)


class Resource:
    """One Kubernetes object decoded from the manifest stream.

    The wrapped tree is copied on the way in and on the way out, so nothing
    downstream can mutate the parsed input.
    """

    def __init__(self, obj: Dict[str, Any]):
        self._obj = copy.deepcopy(obj)

    def __repr__(self):
        return f"Resource({self.kind}/{self.name or '<unnamed>'})"

    def __eq__(self, other):
        if not isinstance(other, Resource):
            return NotImplemented
        return self._obj == other._obj

    def __hash__(self):
        return hash(self.identity)

    @property
    def api_version(self) -> str:
        return _text(self._obj.get('apiVersion'))

    @property
    def api_group(self) -> str:
        """Group part of apiVersion, empty for the core group"""
        if '/' not in self.api_version:
            return ''
        return self.api_version.split('/', 1)[0]

    @property
    def version(self) -> str:
        return self.api_version.rsplit('/', 1)[-1]

    @property
    def kind(self) -> str:
        return _text(self._obj.get('kind'))

    @property
    def metadata(self) -> Dict[str, Any]:
        metadata = self._obj.get('metadata')
        return metadata if isinstance(metadata, dict) else {}

    @property
    def name(self) -> str:
        return _text(self.metadata.get('name'))

    @property
    def namespace(self) -> str:
        return _text(self.metadata.get('namespace'))

    @property
    def identity(self) -> Tuple[str, str, str, str]:
        """Deduplication key: (apiVersion, kind, namespace, name)"""
        return (self.api_version, self.kind, self.namespace, self.name)

    def get(self, *path: Any, default: Optional[Any] = None) -> Any:
        """Look up a nested field, e.g. get('spec', 'template', 'spec')

        Integer path elements index into lists.
        """
        current = self._obj
        for key in path:
            if isinstance(current, dict) and key in current:
                current = current[key]
            elif isinstance(current, list) and isinstance(key, int) and -len(current) <= key < len(current):
                current = current[key]
            else:
                return default
        return copy.deepcopy(current)

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self._obj)


class ProjectIdentity:
    """Project name plus the naming conventions inferred from the manifests"""

    def __init__(self, name: str, prefix: str, namespace: str):
        self.name = name
        self.prefix = prefix
        self.namespace = namespace

    def __repr__(self):
        return f"ProjectIdentity(name={self.name!r}, prefix={self.prefix!r}, namespace={self.namespace!r})"
