#!/usr/bin/env python3
"""
Kustomize to Helm Chart Converter

This script converts the output of `kustomize build` (for example
dist/install.yaml) into a Helm chart under <output>/chart.

Usage:
    python convert.py --project-name demo
    python convert.py --manifests dist/install.yaml --project-name demo --output dist --force

Arguments:
    --manifests: Path to the rendered kustomize manifests (default: dist/install.yaml)
    --project-name: Name of the project, used as the chart name
    --output: Output directory; the chart is written to <output>/chart (default: dist)
    --force: Regenerate files that already exist, except Chart.yaml (optional)
    --log-config: Logging configuration file (.json, .yaml or fileConfig format) (optional)
"""

import argparse
import os
import sys
from pathlib import Path

from kustomize_to_helm.chart_converter import ChartConverter
from kustomize_to_helm.constants import KUSTOMIZE_TO_HELM_FORCE_ENV
from kustomize_to_helm.logging import configure_logging, logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Convert kustomize build output into a Helm chart"
    )
    parser.add_argument(
        "--manifests",
        default="dist/install.yaml",
        help="Path to the rendered kustomize manifests (default: dist/install.yaml)",
    )
    parser.add_argument(
        "--project-name",
        required=True,
        help="Project name, used as the chart name",
    )
    parser.add_argument(
        "--output",
        default="dist",
        help="Output directory; the chart is written to <output>/chart (default: dist)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        default=os.getenv(KUSTOMIZE_TO_HELM_FORCE_ENV, "false").lower() == "true",
        help=f"Regenerate existing files except Chart.yaml (can also set via {KUSTOMIZE_TO_HELM_FORCE_ENV} env var)",
    )
    parser.add_argument(
        "--log-config",
        default=None,
        help="Logging configuration file (.json, .yaml or fileConfig format)",
    )
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_config)

    manifests_file = Path(args.manifests).resolve()
    output_dir = Path(args.output).resolve()

    if not manifests_file.exists():
        print(f"Error: Manifests file not found: {manifests_file}")
        return 1

    print("Kustomize to Helm Chart Converter")
    print("=" * 60)
    print(f"Manifests: {manifests_file}")
    print(f"Project: {args.project_name}")
    print(f"Output directory: {output_dir}")
    print(f"Force: {args.force}")
    print("=" * 60)

    try:
        converter = ChartConverter(manifests_file, args.project_name, output_dir, force=args.force)
        written = converter.convert()
    except Exception as e:
        logger.error("Conversion failed: %s", e)
        print(f"\n✗ Error during conversion: {e}")
        return 1

    print(f"✓ Conversion completed successfully! ({len(written)} files written)")
    print(f"  Chart location: {converter.chart_dir}")
    print("\nNext steps:")
    print(f"  1. Review generated templates: {converter.chart_dir}/templates/")
    print(f"  2. Review values.yaml: {converter.chart_dir}/values.yaml")
    print(f"  3. Test the chart: helm template {args.project_name} {converter.chart_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
