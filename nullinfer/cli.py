"""
nullinfer/cli.py

Command line entry point.

    nullinfer infer Foo.java Bar.java --explain
    nullinfer fixtures tests/testdata/nullability --update
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from loguru import logger

from nullinfer.config import InferenceConfig
from nullinfer.driver import run_all
from nullinfer.engine import infer_files
from nullinfer.errors import NullInferError
from nullinfer.renderer import render_canonical, render_explain, render_json

log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nullinfer",
        description="nullinfer - Infer nullability of Java type positions for Kotlin translation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Infer and print Kotlin-style types
  python -m nullinfer infer src/Foo.java

  # Several files form one unit set; show the causes behind each verdict
  python -m nullinfer infer src/Foo.java src/Bar.java --explain

  # Extra annotations bundle, solver trace on stderr
  python -m nullinfer infer src/Foo.java --annotations guava.json --trace

  # Check all fixtures against their goldens / rewrite the goldens
  python -m nullinfer fixtures tests/testdata/nullability
  python -m nullinfer fixtures tests/testdata/nullability --update
        """
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log progress at INFO level")
    sub = parser.add_subparsers(dest="command")

    infer = sub.add_parser("infer", help="Run inference over Java source files")
    infer.add_argument("files", nargs="+", type=Path, help="Java source files")
    infer.add_argument("--explain", action="store_true",
                       help="List every Position with its verdict and causes")
    infer.add_argument("--format", choices=("text", "json"), default="text",
                       help="Output format (default: text)")
    infer.add_argument("--annotations", action="append", type=Path, default=[], metavar="BUNDLE",
                       help="Extra external-annotations bundle (repeatable)")
    infer.add_argument("--no-default-annotations", action="store_true",
                       help="Do not load the shipped JDK bundle")
    infer.add_argument("--no-smart-casts", action="store_true",
                       help="Treat guarded dereferences as evidence too")
    infer.add_argument("--trace", action="store_true", help="Print solver steps to stderr")

    fixtures = sub.add_parser("fixtures", help="Diff fixtures against their golden files")
    fixtures.add_argument("root", type=Path, help="Fixture directory")
    fixtures.add_argument("--catalog", type=Path, metavar="FILE",
                          help="File listing registered fixture names, one per line")
    fixtures.add_argument("--update", action="store_true", help="Rewrite goldens from actual output")
    return parser


def _infer(args: argparse.Namespace) -> int:
    config = InferenceConfig(
        smart_casts=not args.no_smart_casts,
        use_default_bundle=not args.no_default_annotations,
        annotation_bundles=list(args.annotations),
        trace_solver=args.trace,
    )
    result = infer_files(args.files, config)

    if args.format == "json":
        path = ", ".join(str(p) for p in args.files)
        print(render_json(path, result.positions, result.verdicts))
    elif args.explain:
        print(render_explain(result.positions, result.verdicts), end="")
    else:
        print(render_canonical(result.units, result.positions, result.verdicts), end="")

    for diagnostic in result.verdicts.diagnostics():
        log.warning(f"warning: {diagnostic}")
    return 0


def _fixtures(args: argparse.Namespace) -> int:
    if not args.root.is_dir():
        log.error(f"Directory not found: {args.root}")
        return 1
    catalog = None
    if args.catalog:
        try:
            text = args.catalog.read_text()
        except OSError as e:
            log.error(f"Cannot read catalog {args.catalog}: {e}")
            return 1
        catalog = [line.strip() for line in text.splitlines() if line.strip()]

    results = run_all(args.root, catalog, update=args.update)
    failed = [r for r in results if not r.passed]
    for result in failed:
        print(result.diff)
    print(f"{len(results) - len(failed)}/{len(results)} fixtures passed")
    return 1 if failed else 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    log_level = logging.INFO if args.verbose else logging.WARNING
    logging.basicConfig(level=log_level, format="%(message)s")
    if getattr(args, "trace", False):
        logger.remove()
        logger.add(sys.stderr, format="[{level}] {message}")

    if args.command is None:
        parser.print_help()
        return 1

    try:
        if args.command == "infer":
            return _infer(args)
        return _fixtures(args)
    except NullInferError as e:
        log.error(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
