#!/usr/bin/env python3
"""Command-line interface for the classlens JVM bytecode analyzer."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from classlens import (
    AnalysisConfig,
    ClassLensError,
    InvocationStats,
    all_rules,
    build_context,
    build_invocation,
    build_sarif,
    render_cfgs,
    resolve_classpath,
    run_rules,
    scan_inputs,
)
from classlens.config import DECODE_ERROR_POLICIES
from classlens.engine import enabled_rules
from classlens.ir import Class, ControlFlowGraph
from classlens.sarif import dumps

logger = logging.getLogger("classlens")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--input",
        type=Path,
        required=True,
        help="Class file, JAR file or directory to analyze",
    )
    parser.add_argument(
        "--classpath",
        type=Path,
        action="append",
        default=[],
        help="Additional class file, JAR or directory used to resolve references",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write SARIF to this path instead of stdout ('-' means stdout)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="JSON analysis configuration file",
    )
    parser.add_argument(
        "--cfg-out",
        type=Path,
        default=None,
        help="Write a textual dump of every analyzed method's CFG",
    )
    parser.add_argument(
        "--disable-rule",
        action="append",
        dest="disabled_rules",
        default=[],
        help="Rule id to skip; may be given several times",
    )
    parser.add_argument(
        "--on-decode-error",
        choices=DECODE_ERROR_POLICIES,
        default=None,
        help="Override the configured policy for methods that fail to decode",
    )
    parser.add_argument("--quiet", action="store_true", help="Only log errors")
    parser.add_argument("--timing", action="store_true", help="Print timing to stderr")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def configure_logging(args: argparse.Namespace) -> None:
    level = logging.WARNING
    if args.verbose:
        level = logging.DEBUG
    if args.quiet:
        level = logging.ERROR
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def validate_inputs(args: argparse.Namespace) -> None:
    if not args.input.exists():
        raise SystemExit(f"missing input: {args.input}")
    for entry in args.classpath:
        if not entry.exists():
            raise SystemExit(f"classpath entry not found: {entry}")


def load_config(args: argparse.Namespace) -> AnalysisConfig:
    try:
        config = AnalysisConfig.load(args.config)
        return config.with_overrides(
            disabled_rules=args.disabled_rules,
            on_decode_error=args.on_decode_error,
        )
    except ValueError as exc:
        raise SystemExit(f"invalid configuration: {exc}") from exc


def collect_cfgs(classes: Sequence[Class]) -> List[Tuple[str, ControlFlowGraph]]:
    return [
        (f"{cls.name}.{method.name}{method.descriptor}", method.cfg)
        for cls in classes
        for method in cls.methods
    ]


def write_output(text: str, output: Optional[Path]) -> None:
    if output is None or str(output) == "-":
        sys.stdout.write(text)
        sys.stdout.flush()
        return
    try:
        output.write_text(text, "utf-8")
    except OSError as exc:
        raise SystemExit(f"failed to open {output}: {exc}") from exc


def write_cfgs(classes: Sequence[Class], path: Path) -> None:
    try:
        path.write_text(render_cfgs(collect_cfgs(classes)), "utf-8")
    except OSError as exc:
        raise SystemExit(f"failed to open {path}: {exc}") from exc


def main(argv: Optional[Sequence[str]] = None) -> None:
    start_time = time.perf_counter()
    args = parse_args(argv)
    configure_logging(args)
    validate_inputs(args)
    config = load_config(args)

    try:
        scan_started = time.perf_counter()
        scan = scan_inputs(args.input, args.classpath, config)
        scan_ms = int((time.perf_counter() - scan_started) * 1000)

        index = resolve_classpath(scan.classes, skip_platform=config.skip_platform_references)
        for name in index.missing_references:
            logger.info("unresolved reference: %s", name)

        context = build_context(scan.target_classes, index, scan.artifacts)
        rules = enabled_rules(all_rules(), config)
        findings = run_rules(context, rules)
    except ClassLensError as exc:
        raise SystemExit(f"error: {exc}") from exc

    stats = InvocationStats(
        scan_duration_ms=scan_ms,
        class_count=scan.class_count,
        artifact_count=len(scan.artifacts),
        classpath_class_count=len(index.classes),
    )
    arguments = [sys.argv[0], *argv] if argv is not None else sys.argv
    document = build_sarif(findings, rules, scan.artifacts, build_invocation(stats, arguments))
    if args.cfg_out is not None:
        write_cfgs(scan.target_classes, args.cfg_out)
    write_output(dumps(document), args.output)

    if args.timing and not args.quiet:
        total_ms = int((time.perf_counter() - start_time) * 1000)
        print(
            f"timing: total_ms={total_ms} scan_ms={scan_ms} "
            f"classes={scan.class_count} artifacts={len(scan.artifacts)}",
            file=sys.stderr,
        )


if __name__ == "__main__":
    main()
