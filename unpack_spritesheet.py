#!/usr/bin/env python3
"""Command-line interface for sprite sheet unpacking.

Usage:
    # One sheet (sheet.plist + sheet.png), sprites written to sheet/:
    python unpack_spritesheet.py path/to/sheet plist

    # Every sheet under a directory, autodetecting json then plist:
    python unpack_spritesheet.py path/to/assets
"""

import argparse
import logging
import sys
from pathlib import Path

from sprite_unpacker.config import DEFAULT_MAX_WORKERS, SYNTAX_EXTENSIONS, JobConfig
from sprite_unpacker.errors import SpriteUnpackerError
from sprite_unpacker.orchestrator import SpriteSheetUnpacker


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Split a packed sprite sheet back into individual images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Metadata file, base name (no extension) or directory:
    python unpack_spritesheet.py assets/ui.plist
    python unpack_spritesheet.py assets/ui json
    python unpack_spritesheet.py assets/ --output-dir build/sprites
        """
    )

    parser.add_argument(
        'path',
        type=Path,
        help='Metadata file, sheet base name without extension, or directory'
    )

    parser.add_argument(
        'syntax',
        nargs='?',
        choices=sorted(SYNTAX_EXTENSIONS),
        default=None,
        help='Metadata syntax (default: try json, then plist)'
    )

    parser.add_argument(
        '--output-dir',
        type=Path,
        default=None,
        help='Write sprites to OUTPUT_DIR/<sheet name> (default: next to each sheet)'
    )

    parser.add_argument(
        '--workers',
        type=int,
        default=DEFAULT_MAX_WORKERS,
        help=f'Sprites extracted concurrently (default: {DEFAULT_MAX_WORKERS})'
    )

    parser.add_argument(
        '--flip-rotated-origin',
        action='store_true',
        help='Recompute crop origin of rotated legacy plist frames from the sheet height'
    )

    parser.add_argument(
        '--negate-rotated-offset',
        action='store_true',
        help='Use the negated vertical offset for rotated offset-encoded sprites'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Print extraction plans without writing images'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable debug logging'
    )

    return parser


def main(argv=None):
    """Main entry point for CLI."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s"
    )

    try:
        config = JobConfig.from_args(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    try:
        batch = SpriteSheetUnpacker(config).unpack_path(args.path)
    except (SpriteUnpackerError, OSError) as e:
        print(f"\nError: {e}", file=sys.stderr)
        return 1

    if batch.empty:
        print(f"\nError: no sprite sheets found under {args.path}", file=sys.stderr)
        return 1

    if batch.ok and config.dry_run:
        planned = sum(len(report.plans) for report in batch.jobs)
        print(f"\n✅ Dry run: {planned} sprites planned")
        return 0

    if batch.ok:
        print(f"\n✅ Done! {batch.sprite_count} sprites extracted")
        return 0

    failed_jobs = [report for report in batch.jobs if not report.ok]
    print(
        f"\n⚠️  Finished with problems: {len(failed_jobs)} sheets failed, "
        f"{len(batch.missing)} skipped for missing files",
        file=sys.stderr
    )
    return 1


if __name__ == '__main__':
    sys.exit(main())
