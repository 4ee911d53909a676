#!/usr/bin/env python3
"""Command line interface: convert LCSC parts into a KiCad library."""
import argparse
import logging
import re
import sys
from typing import List, Optional

from .config import load_config
from .easyeda.api import allow_unverified_ssl, validate_lcsc_id
from .errors import LibraryIOError
from .kicad.library import LibraryPaths, remove_component
from .kicad.pin_types import PinTypeRules
from .kicad.version import KICAD_V5, validate_kicad_version
from .pipeline import BatchOptions, BatchPipeline, BatchReport, ResultStatus

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s %(levelname)s nlbn] %(message)s"

_LCSC_ID_RE = re.compile(r"C\d+")


def read_batch_file(path: str) -> List[str]:
    """Extract LCSC IDs from a text file, in order, without duplicates."""
    with open(path, encoding="utf-8") as f:
        text = f.read()
    ids = []
    for match in _LCSC_ID_RE.findall(text):
        if match not in ids:
            ids.append(match)
    return ids


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nlbn",
        description="Convert EasyEDA/LCSC components into KiCad symbol, footprint and 3D libraries",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
examples:
  %(prog)s --lcsc-id C2040 --full
  %(prog)s --batch ids.txt --symbol --footprint -o ./lib
  %(prog)s --lcsc-id C2040 --full --v5
  %(prog)s --remove C2040 --from ./lib
""",
    )
    src = parser.add_argument_group("parts")
    src.add_argument("--lcsc-id", action="append", default=[], metavar="ID", help="LCSC part number (repeatable)")
    src.add_argument("--batch", metavar="FILE", help="Text file containing LCSC part numbers")

    out = parser.add_argument_group("outputs")
    out.add_argument("--symbol", action="store_true", help="Convert the schematic symbol")
    out.add_argument("--footprint", action="store_true", help="Convert the footprint")
    out.add_argument("--3d", dest="model", action="store_true", help="Download the 3D model")
    out.add_argument("--full", action="store_true", help="Symbol, footprint and 3D model")

    lib = parser.add_argument_group("library")
    lib.add_argument("-o", "--output", default=".", help="Output directory (default: current directory)")
    lib.add_argument("--lib-name", help="Library name (default from config: nlbn)")
    lib.add_argument("--overwrite", action="store_true", help="Replace entries that already exist")
    lib.add_argument("--v5", action="store_true", help="Write legacy KiCad 5 formats")
    lib.add_argument("--kicad-version", type=int, choices=[8, 9], help="Target KiCad version (default: 9)")
    lib.add_argument(
        "--project-relative", action="store_true", help="Reference 3D models through ${KIPRJMOD}"
    )

    run = parser.add_argument_group("processing")
    run.add_argument("--parallel", type=int, metavar="N", help="Parts converted concurrently (default: 4)")
    run.add_argument("--continue-on-error", action="store_true", help="Keep going after a part fails")
    run.add_argument("--strict", action="store_true", help="Fail a part on any malformed primitive")
    run.add_argument("--insecure", action="store_true", help="Skip TLS certificate verification")
    run.add_argument("--debug", action="store_true", help="Verbose logging")

    rm = parser.add_argument_group("removal")
    rm.add_argument("--remove", metavar="ID", help="Remove a part from an existing library")
    rm.add_argument("--from", dest="remove_from", metavar="DIR", help="Library directory for --remove")
    return parser


def _kicad_version(args, config: dict) -> int:
    if args.v5:
        return KICAD_V5
    if args.kicad_version:
        return args.kicad_version
    return validate_kicad_version(int(config.get("kicad_version", 9)))


def options_from_args(args, config: dict) -> BatchOptions:
    """Merge parsed arguments over config values."""
    parallel = args.parallel if args.parallel is not None else int(config.get("parallel", 4))
    return BatchOptions(
        output_dir=args.output,
        lib_name=args.lib_name or config.get("lib_name") or "nlbn",
        symbol=args.symbol or args.full,
        footprint=args.footprint or args.full,
        model=args.model or args.full,
        concurrency=parallel,
        continue_on_error=args.continue_on_error,
        overwrite=args.overwrite,
        kicad_version=_kicad_version(args, config),
        strict=args.strict,
        project_relative=args.project_relative,
        pin_rules=PinTypeRules.with_overrides(config.get("pin_type_rules")),
    )


def print_report(report: BatchReport) -> None:
    converted = report.count(ResultStatus.CONVERTED)
    skipped = report.count(ResultStatus.SKIPPED_EXISTING)
    failed = report.count(ResultStatus.FAILED)
    print(f"\n  {converted} converted, {skipped} skipped, {failed} failed", end="")
    if report.not_dispatched:
        print(f", {len(report.not_dispatched)} not processed", end="")
    print("\n")

    for r in report.results:
        if r.status == ResultStatus.FAILED:
            where = f" [{r.stage}]" if r.stage else ""
            print(f"  {r.lcsc_id:<12} failed     {r.error_kind}: {r.message}{where}")
            continue
        parts = []
        for kind, out in r.outputs.items():
            if out.status == ResultStatus.FAILED:
                parts.append(f"{kind} failed: {out.error_kind}")
            elif out.status == ResultStatus.SKIPPED_EXISTING:
                parts.append(f"{kind} exists")
            else:
                parts.append(kind)
        label = "converted" if r.status == ResultStatus.CONVERTED else "skipped"
        name = f"{r.name} " if r.name else ""
        print(f"  {r.lcsc_id:<12} {label:<10} {name}({', '.join(parts)})")
        for w in r.warnings:
            print(f"      warning: {w}")
    for lcsc_id in report.not_dispatched:
        print(f"  {lcsc_id:<12} not processed (stopped after {report.halted_by} failed)")
    print()


def cmd_remove(args, config: dict) -> int:
    """Remove everything belonging to one LCSC ID from a library."""
    try:
        lcsc_id = validate_lcsc_id(args.remove)
        paths = LibraryPaths.for_output(
            args.remove_from or args.output,
            args.lib_name or config.get("lib_name") or "nlbn",
            _kicad_version(args, config),
        )
        removed = remove_component(paths, lcsc_id)
    except (ValueError, LibraryIOError) as e:
        print(f"  Error: {e}")
        return 1
    if not removed:
        print(f"  {lcsc_id} not found in {paths.base_dir}")
        return 1
    for item in removed:
        print(f"  Removed {item}")
    return 0


def cmd_convert(args, config: dict, parser: argparse.ArgumentParser) -> int:
    ids = list(args.lcsc_id)
    if args.batch:
        try:
            ids.extend(i for i in read_batch_file(args.batch) if i not in ids)
        except OSError as e:
            parser.error(f"cannot read batch file: {e}")
    if not ids:
        parser.error("no parts given; use --lcsc-id or --batch")
    if not (args.symbol or args.footprint or args.model or args.full):
        parser.error("choose at least one of --symbol, --footprint, --3d or --full")

    try:
        options = options_from_args(args, config)
    except ValueError as e:
        parser.error(str(e))

    if args.insecure:
        allow_unverified_ssl()
        logger.warning("TLS certificate verification disabled")

    logger.info("Converting %d part(s) into %s", len(ids), options.paths.base_dir)
    report = BatchPipeline(options).run(ids)
    print_report(report)
    return 0 if report.ok else 1


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO, format=LOG_FORMAT)

    try:
        config = load_config()
    except OSError as e:
        logger.warning("Cannot save config, using defaults: %s", e)
        config = {}

    if args.remove:
        return cmd_remove(args, config)
    return cmd_convert(args, config, parser)


if __name__ == "__main__":
    sys.exit(main())
