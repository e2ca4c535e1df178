#!/usr/bin/env python3
"""
Courtplay command line tools.

Usage:
    python courtplay_cli.py migrate old_data.json data/courtplay.json
    python courtplay_cli.py timeline data/courtplay.json "Serve receive"
    python courtplay_cli.py validate data/courtplay.json
    python courtplay_cli.py validate             # uses data_path from data/court_config.json
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from courtplay.config import get_data_path
from courtplay.flattener import flatten
from courtplay.logging_config import get_logger, setup_logging
from courtplay.migration import migrate_document
from courtplay.utils import load_json, save_json
from courtplay.validators import validate_bundle, validate_raw_placements

logger = get_logger('cli')


def load_document(path: Path):
    """Load and migrate a data document, exiting with a message on failure."""
    try:
        raw = load_json(path)
        return raw, migrate_document(raw)
    except FileNotFoundError:
        print(f"❌ Data file not found: {path}")
        sys.exit(1)
    except (json.JSONDecodeError, ValueError) as e:
        print(f"❌ Could not read {path}: {e}")
        sys.exit(1)


def cmd_migrate(args) -> int:
    _raw, bundle = load_document(Path(args.src))
    errors, warnings = validate_bundle(bundle)
    for warning in warnings:
        print(f"⚠️  {warning}")
    if errors:
        for error in errors:
            print(f"❌ {error}")
        return 1

    save_json(args.dst, bundle)
    logger.info(f'Migrated {args.src} -> {args.dst}')
    print(f"✓ Wrote {len(bundle.positions)} positions, {len(bundle.scenarios)} scenarios, "
          f"{len(bundle.sequences)} sequences to {args.dst}")
    return 0


def cmd_timeline(args) -> int:
    _raw, bundle = load_document(Path(args.data))
    matches = [s for s in bundle.sequences if s.name.strip().lower() == args.sequence.strip().lower()]
    if not matches:
        print(f"❌ Sequence not found: {args.sequence}")
        return 1

    sequence = matches[0]
    names = {p.id: p.name for p in bundle.positions}
    steps = flatten(sequence, bundle.scenarios, bundle.positions)

    print(f"{sequence.name}: {len(sequence.items)} items, {len(steps)} steps")
    print("=" * 60)
    for index, step in enumerate(steps):
        role = step.provenance.role.value
        print(f"{index:>3}  item {step.provenance.item_index:<3} {role:<15} {names[step.position_id]}")
    return 0


def cmd_validate(args) -> int:
    raw, bundle = load_document(Path(args.data) if args.data else get_data_path())
    errors, warnings = validate_bundle(bundle)
    warnings.extend(validate_raw_placements(raw))

    for error in errors:
        print(f"❌ {error}")
    for warning in warnings:
        print(f"⚠️  {warning}")

    print("\n" + "=" * 60)
    print(f"{len(errors)} errors, {len(warnings)} warnings")
    return 1 if errors else 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Courtplay formation data tools")
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log debug output",
    )
    parser.add_argument(
        "--trace-playback",
        action="store_true",
        help="Log every playback transition",
    )
    parser.add_argument(
        "--log-dir",
        default=None,
        help="Also write a log file to this directory",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    migrate_parser = subparsers.add_parser("migrate", help="Convert a legacy document to the current format")
    migrate_parser.add_argument("src", help="Source JSON document (either version)")
    migrate_parser.add_argument("dst", help="Destination JSON file")
    migrate_parser.set_defaults(func=cmd_migrate)

    timeline_parser = subparsers.add_parser("timeline", help="Print a sequence's flattened steps")
    timeline_parser.add_argument("data", help="JSON data document")
    timeline_parser.add_argument("sequence", help="Sequence name")
    timeline_parser.set_defaults(func=cmd_timeline)

    validate_parser = subparsers.add_parser("validate", help="Report data problems")
    validate_parser.add_argument("data", nargs="?", help="JSON data document (default: configured data_path)")
    validate_parser.set_defaults(func=cmd_validate)

    args = parser.parse_args(argv)

    setup_logging(
        log_dir=Path(args.log_dir) if args.log_dir else None,
        level=logging.DEBUG if args.verbose else logging.WARNING,
        log_to_file=args.log_dir is not None,
        trace_playback=args.trace_playback,
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
