"""
Chart converter

Runs the whole conversion: parse, organize, template, inject and write.
"""
from pathlib import Path
from typing import List, Optional, Union

from .chart_writer import ChartWriter
from .constants import CHART_DIR_NAME, GROUP_MANAGER
from .deployment_config import metrics_port, webhook_port
from .filesystem import Filesystem, LocalFilesystem
from .generators.metadata_generator import MetadataGenerator
from .generators.values_generator import ValuesGenerator
from .logging import logger
from .manifest_parser import ManifestParser, build_identity
from .resource_organizer import ResourceOrganizer
from .value_injector import ValueInjector
from .values_parser import ValuesParser


class ChartConverter:
    """Converts a kustomize build output into <output_dir>/chart"""

    def __init__(self, manifests_file: Union[str, Path], project_name: str,
                 output_dir: Union[str, Path] = 'dist', force: bool = False,
                 fs: Optional[Filesystem] = None):
        if not project_name:
            raise ValueError("project name must not be empty")
        self.manifests_file = Path(manifests_file)
        self.project_name = project_name
        self.output_dir = Path(output_dir)
        self.chart_dir = self.output_dir / CHART_DIR_NAME
        self.force = force
        self.fs = fs or LocalFilesystem()

    def convert(self) -> List[Path]:
        """Run the conversion; returns the files written

        Raises:
            ManifestParseError: If the manifests cannot be read or decoded
            ValuesParseError: If an existing values.yaml is malformed
            ChartWriteError: If a directory or file cannot be written
        """
        logger.info("Converting %s into a Helm chart at %s", self.manifests_file, self.chart_dir)
        parsed = ManifestParser(self.manifests_file, self.fs).parse()

        for sample in parsed.sample_custom_resources:
            logger.warning("Skipping sample custom resource %s %s (%s); samples are not shipped in the chart",
                           sample.kind, sample.name, sample.api_version)

        identity = build_identity(parsed, self.project_name)
        logger.info("Using prefix %s and namespace %s", identity.prefix, identity.namespace)

        values_parser = ValuesParser(self.output_dir, self.fs)
        added = values_parser.detect_user_added_values(values_parser.parse_existing_values())

        groups = ResourceOrganizer().organize(parsed)
        deployments = groups.get(GROUP_MANAGER) or []
        deployment = deployments[0] if deployments else None
        ports = {'metrics_port': metrics_port(deployment), 'webhook_port': webhook_port(deployment)}

        writer = ChartWriter(identity, self.chart_dir, self.force, self.fs, ValueInjector(added), ports)
        writer.write(groups)

        metadata = MetadataGenerator(self.project_name, self.chart_dir, self.force, self.fs)
        metadata.generate(groups)

        values = ValuesGenerator(self.project_name, self.chart_dir, self.force, self.fs)
        values.generate(deployment, groups, added)

        written = writer.written + metadata.written + values.written
        logger.info("Wrote %d files, kept %d existing files",
                    len(written), len(writer.skipped) + len(metadata.skipped) + len(values.skipped))
        return written
