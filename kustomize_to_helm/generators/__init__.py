"""
Helm chart generators package
Generators for the chart metadata files and values.yaml
"""
from .base_generator import BaseGenerator
from .metadata_generator import MetadataGenerator
from .values_generator import ValuesGenerator, build_values, render_values

__all__ = [
    'BaseGenerator',
    'MetadataGenerator',
    'ValuesGenerator',
    'build_values',
    'render_values',
]
