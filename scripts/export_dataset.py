#!/usr/bin/env python
"""
Export a project dump to a dataset format.

Usage:
    python scripts/export_dataset.py <project.json> <output> --format yolo [--train-split 0.8]

The output is a directory, or a zip archive when it ends in .zip.
"""

import sys
import argparse
import logging
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from annotix.errors import FormatMismatch
from annotix.exporter import FORMATS, FORMAT_ALIASES, YOLO_FORMATS, canonical_format, export_dataset
from annotix.export_yolo import verify_yolo_export
from annotix.models import load_project_json


def main():
    parser = argparse.ArgumentParser(description="Export an annotation project to a dataset format")
    parser.add_argument("project", help="Path to the project JSON dump")
    parser.add_argument("output", help="Output directory, or a path ending in .zip")
    parser.add_argument(
        "--format", required=True,
        choices=sorted(list(FORMATS) + list(FORMAT_ALIASES)),
        help="Export format",
    )
    parser.add_argument("--train-split", type=float, default=None, help="Train split ratio for YOLO formats, e.g. 0.8")
    parser.add_argument("--seed", type=int, default=42, help="Random seed for split")
    parser.add_argument("--workers", type=int, default=None, help="Worker threads for mask conversion")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    split = None
    if args.train_split is not None:
        split = {"train": args.train_split, "val": 1.0 - args.train_split}

    fmt = canonical_format(args.format)
    print(f"Exporting project: {args.project}")
    print(f"Output: {args.output}")
    print(f"Format: {fmt}")
    if split:
        print(f"Split: train={split['train']:.0%}, val={split['val']:.0%}")
    print("-" * 50)

    try:
        project, images = load_project_json(args.project)
        report = export_dataset(
            fmt,
            project,
            images,
            args.output,
            split=split,
            seed=args.seed,
            workers=args.workers,
        )
    except FormatMismatch as e:
        print(f"✗ {e}")
        sys.exit(1)
    except (OSError, ValueError, KeyError) as e:
        print(f"✗ Export failed: {e}")
        sys.exit(1)

    print(f"\nExport Report:")
    print(f"  Total images: {report.total_images}")
    if split:
        print(f"  Train images: {report.train_images}")
        print(f"  Val images: {report.val_images}")
    print(f"  Empty images: {report.empty_images}")
    print(f"  Total annotations: {report.total_annotations}")
    print(f"  Exported: {report.exported_annotations}")
    print(f"  Skipped: {report.skipped_annotations}")
    print(f"  Labels: {', '.join(report.labels)}")

    if report.warnings:
        print(f"\nWarnings:")
        for warning in report.warnings:
            print(f"  ⚠ {warning}")

    if fmt in YOLO_FORMATS and not args.output.endswith(".zip"):
        print("\nVerifying export...")
        is_valid, errors = verify_yolo_export(args.output)

        if is_valid:
            print("✓ Export verified successfully!")
        else:
            print(f"✗ Verification found {len(errors)} error(s)")
            for error in errors[:10]:
                print(f"  - {error}")
            sys.exit(1)

    print(f"\n✓ Export complete: {args.output}")


if __name__ == "__main__":
    main()
