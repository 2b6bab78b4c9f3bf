"""
Values parser

Reads a previously generated values.yaml and works out which parts of it the
user added on top of the generated schema, so a regeneration can carry them
over.
"""
import copy
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .constants import (
    CHART_DIR_NAME,
    KNOWN_MANAGER_KEYS,
    KNOWN_TOP_LEVEL_KEYS,
    VALUES_FILE,
    VALUES_MANAGER,
)
from .errors import ValuesParseError
from .filesystem import Filesystem, LocalFilesystem
from .logging import logger


class ParsedValues:
    """Raw key tree of an existing values.yaml"""

    def __init__(self, path: Optional[Path] = None, raw: Optional[Dict[str, Any]] = None):
        self.path = path
        self.raw = raw if raw is not None else {}

    def __bool__(self):
        return bool(self.raw)


class UserAddedValues:
    """Delta between an existing values.yaml and the generated schema"""

    def __init__(self):
        self.labels: Dict[str, Any] = {}
        self.annotations: Dict[str, Any] = {}
        self.pod_labels: Dict[str, Any] = {}
        self.pod_annotations: Dict[str, Any] = {}
        self.env: List[Any] = []
        self.custom_manager_fields: Dict[str, Any] = {}
        self.custom_fields: Dict[str, Any] = {}

    def is_empty(self) -> bool:
        return not (self.labels or self.annotations or self.pod_labels or self.pod_annotations
                    or self.env or self.custom_manager_fields or self.custom_fields)

    def manager_maps(self) -> Dict[str, Dict[str, Any]]:
        """Non-empty label/annotation maps keyed by their values.yaml name"""
        maps = {
            'labels': self.labels,
            'annotations': self.annotations,
            'podLabels': self.pod_labels,
            'podAnnotations': self.pod_annotations,
        }
        return {key: value for key, value in maps.items() if value}


def detect_user_added_values(raw: Dict[str, Any]) -> UserAddedValues:
    """Diff a raw values tree against the generated schema

    Known optional manager sub-maps and env are captured verbatim, other
    manager keys and other top-level sections are captured as opaque fields.
    """
    added = UserAddedValues()
    if not isinstance(raw, dict):
        return added

    manager = raw.get(VALUES_MANAGER)
    if isinstance(manager, dict):
        added.labels = _mapping(manager.get('labels'))
        added.annotations = _mapping(manager.get('annotations'))
        added.pod_labels = _mapping(manager.get('podLabels'))
        added.pod_annotations = _mapping(manager.get('podAnnotations'))
        env = manager.get('env')
        added.env = copy.deepcopy(env) if isinstance(env, list) else []
        for key, value in manager.items():
            if key not in KNOWN_MANAGER_KEYS:
                added.custom_manager_fields[key] = copy.deepcopy(value)

    for key, value in raw.items():
        if key not in KNOWN_TOP_LEVEL_KEYS:
            added.custom_fields[key] = copy.deepcopy(value)
    return added


def get_value_path(values: Dict[str, Any], path: str) -> Tuple[Any, bool]:
    """Look up a dot-separated path such as 'manager.image.tag'

    Returns:
        (value, found)
    """
    current: Any = values
    for key in path.split('.'):
        if not isinstance(current, dict) or key not in current:
            return None, False
        current = current[key]
    return current, True


def _mapping(value: Any) -> Dict[str, Any]:
    return copy.deepcopy(value) if isinstance(value, dict) else {}


class ValuesParser:
    """Loads <output>/chart/values.yaml through a filesystem abstraction"""

    def __init__(self, output_dir, fs: Optional[Filesystem] = None):
        self.fs = fs or LocalFilesystem()
        self.path = Path(output_dir) / CHART_DIR_NAME / VALUES_FILE

    def parse_existing_values(self) -> ParsedValues:
        """Parse the existing values file; a missing file yields empty values

        Raises:
            ValuesParseError: If the file is not valid YAML or not a mapping
        """
        if not self.fs.exists(self.path):
            return ParsedValues(self.path)
        try:
            raw = yaml.safe_load(self.fs.read_text(self.path))
        except yaml.YAMLError as e:
            raise ValuesParseError(str(self.path), f"invalid YAML: {e}")
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ValuesParseError(str(self.path), f"expected a mapping, got {type(raw).__name__}")
        logger.debug("Loaded existing values from %s", self.path)
        return ParsedValues(self.path, raw)

    def detect_user_added_values(self, parsed: ParsedValues) -> UserAddedValues:
        added = detect_user_added_values(parsed.raw)
        if not added.is_empty():
            logger.info("Preserving user-added values from %s", self.path)
        return added
