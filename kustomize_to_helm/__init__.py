"""
kustomize-to-helm

Converts the output of `kustomize build` into a Helm chart.
"""
from .chart_converter import ChartConverter
from .chart_writer import ChartWriter, dedupe_resources
from .errors import ChartWriteError, ManifestParseError, ValuesParseError
from .filesystem import Filesystem, LocalFilesystem, MemoryFilesystem
from .helm_templater import HelmTemplater
from .manifest_parser import CRDTypeRegistry, ManifestParser, ParsedResources, estimate_prefix
from .resource import ProjectIdentity, Resource
from .resource_organizer import ResourceOrganizer, organize
from .value_injector import ValueInjector
from .values_parser import ParsedValues, UserAddedValues, ValuesParser, detect_user_added_values, get_value_path

__all__ = [
    'ChartConverter',
    'ChartWriter',
    'dedupe_resources',
    'ChartWriteError',
    'ManifestParseError',
    'ValuesParseError',
    'Filesystem',
    'LocalFilesystem',
    'MemoryFilesystem',
    'HelmTemplater',
    'CRDTypeRegistry',
    'ManifestParser',
    'ParsedResources',
    'estimate_prefix',
    'ProjectIdentity',
    'Resource',
    'ResourceOrganizer',
    'organize',
    'ValueInjector',
    'ParsedValues',
    'UserAddedValues',
    'ValuesParser',
    'detect_user_added_values',
    'get_value_path',
]
