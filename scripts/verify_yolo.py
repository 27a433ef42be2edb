#!/usr/bin/env python
"""
Verify a YOLO export (detection, OBB, segmentation or pose) is valid.

Usage:
    python scripts/verify_yolo.py <export_dir>
"""

import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from annotix.export_yolo import verify_yolo_export


def main():
    if len(sys.argv) < 2:
        print("Usage: python scripts/verify_yolo.py <export_dir>")
        sys.exit(1)

    export_dir = sys.argv[1]

    print(f"Verifying YOLO export: {export_dir}")
    print("-" * 50)

    is_valid, errors = verify_yolo_export(export_dir)

    if is_valid:
        print("✓ Export is valid!")
        sys.exit(0)
    else:
        print(f"✗ Found {len(errors)} error(s):\n")
        for error in errors[:20]:
            print(f"  - {error}")
        if len(errors) > 20:
            print(f"  ... and {len(errors) - 20} more errors")
        sys.exit(1)


if __name__ == "__main__":
    main()
