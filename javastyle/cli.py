from __future__ import annotations

import argparse
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from .console import RichLogger, make_console
from .errors import RulesetError
from .input_sources import InputItem, expand_inputs
from .models import Severity
from .results import (
    EXIT_ERROR,
    FORMATS,
    ResultWriter,
    ViolationStore,
    at_or_above,
    build_summary_table,
    exit_status,
    render,
)
from .rules import RULES_BY_ID
from .ruleset import Ruleset, find_pyproject_config, load_config_file, resolve_ruleset
from .scanner import DEFAULT_MAX_FILE_KB, DEFAULT_TIMEOUT_SECONDS, Scanner

SEVERITY_CHOICES = tuple(s.value for s in Severity)


def default_thread_count() -> int:
    return min(32, (os.cpu_count() or 4) + 4)


def _add_ruleset_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--ruleset",
        help="Ruleset name: default, strict, relaxed or one defined in the config (default: from config or 'default').",
    )
    parser.add_argument(
        "--config",
        help="TOML file with ruleset definitions (default: [tool.javastyle] in the nearest pyproject.toml).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose debug logs")


def build_arg_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="javastyle",
        description="Check Java sources against mechanically enforceable style-guide rules.",
    )
    sub = ap.add_subparsers(dest="command", required=True)

    lint = sub.add_parser("lint", help="Lint Java files, directories, source archives or glob patterns.")
    lint.add_argument("inputs", nargs="+", help="Files, directories, .zip/.jar archives or globs (** is recursive).")
    _add_ruleset_arguments(lint)
    lint.add_argument(
        "--severity-threshold",
        choices=SEVERITY_CHOICES,
        default=Severity.INFO.value,
        help="Report and fail only on violations at or above this severity (default: info).",
    )
    lint.add_argument("--format", choices=FORMATS, default="text", help="Report format (default: text).")
    lint.add_argument("--output", help="Write the report to this file instead of stdout.")
    lint.add_argument(
        "--disable",
        action="append",
        default=[],
        metavar="RULE_ID",
        help="Disable a rule for this run (repeatable).",
    )
    lint.add_argument(
        "--threads",
        type=int,
        default=default_thread_count(),
        help="Worker threads for linting (default: auto).",
    )
    lint.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT_SECONDS,
        help="Per-file timeout in seconds, checked between declarations and before rules run; 0 disables (default: 10).",
    )
    lint.add_argument(
        "--max-file-kb",
        type=int,
        default=DEFAULT_MAX_FILE_KB,
        help="Skip files larger than this many KiB (default: 2048).",
    )
    lint.add_argument("--follow-symlinks", action="store_true", help="Follow symlinks when walking directories.")
    lint.add_argument("-q", "--quiet", action="store_true", help="Only print the report and errors.")

    rules = sub.add_parser("rules", help="List the available rules and their settings in a ruleset.")
    _add_ruleset_arguments(rules)

    return ap


def _load_config(config_path: Optional[str], logger: RichLogger) -> Mapping[str, object]:
    if config_path:
        path = Path(config_path).expanduser()
        if not path.is_file():
            raise RulesetError(f"Config file not found: {path}")
        logger.debug(f"Using config file {path}")
        return load_config_file(path)
    config, found = find_pyproject_config()
    if found:
        logger.debug(f"Using [tool.javastyle] from {found}")
    return config


def _resolve(args, logger: RichLogger) -> Ruleset:
    config = _load_config(args.config, logger)
    ruleset = resolve_ruleset(args.ruleset, config)
    disabled = getattr(args, "disable", None)
    if disabled:
        ruleset = ruleset.with_disabled(disabled)
    return ruleset


def _lint_items(
    items: List[InputItem],
    scanner: Scanner,
    store: ViolationStore,
    threads: int,
    console: Console,
    logger: RichLogger,
    quiet: bool,
) -> Dict[str, int]:
    stats = {"files_total": len(items), "files_failed": 0}
    if not items:
        return stats

    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold]Linting files"),
        BarColumn(bar_width=None),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=console,
        disable=quiet,
        transient=True,
    )

    with progress:
        task_id = progress.add_task("lint", total=len(items))
        with ThreadPoolExecutor(max_workers=max(1, threads)) as executor:
            future_map = {executor.submit(scanner.scan_item, item): item for item in items}
            for future in as_completed(future_map):
                item = future_map[future]
                try:
                    result = future.result()
                except Exception as exc:
                    logger.error(f"Failed to lint {item.display_name}: {exc}")
                    stats["files_failed"] += 1
                    store.add_file([], skipped=True)
                    progress.advance(task_id)
                    continue
                store.add_file(result.violations, skipped=result.skipped, malformed=result.malformed)
                if result.violations:
                    logger.debug(f"{item.display_name}: {len(result.violations)} violation(s)")
                progress.advance(task_id)

    return stats


def run_lint(args) -> int:
    console = make_console()
    logger = RichLogger(console=console, verbose=args.verbose, quiet=args.quiet)

    try:
        ruleset = _resolve(args, logger)
    except RulesetError as exc:
        logger.error(str(exc))
        return EXIT_ERROR

    enabled = [rule_id for rule_id, _ in ruleset.enabled_rules()]
    if not enabled:
        logger.warn(f"Ruleset '{ruleset.name}' enables no rules.")
    logger.info(f"Ruleset: {ruleset.name} ({', '.join(enabled) or 'none'})")

    items, missing = expand_inputs(args.inputs, logger, follow_symlinks=args.follow_symlinks)
    for value in missing:
        logger.error(f"No such file or no match: {value}")
    if missing:
        return EXIT_ERROR
    if not items:
        logger.error("No Java sources to lint.")
        return EXIT_ERROR

    threshold = Severity.parse(args.severity_threshold)
    store = ViolationStore()
    scanner = Scanner(
        ruleset=ruleset,
        logger=logger,
        timeout=args.timeout,
        max_file_kb=args.max_file_kb,
    )
    stats = _lint_items(items, scanner, store, args.threads, console, logger, args.quiet)

    violations = store.violations()
    shown = at_or_above(violations, threshold)
    writer = ResultWriter(logger=logger, output=Path(args.output) if args.output else None)
    writer.write(render(shown, args.format))

    summary = store.summary()
    if not args.quiet and args.format == "text" and shown:
        console.print(build_summary_table(shown))
    logger.done(
        f"Checked {summary['files_checked']} file(s), skipped {summary['files_skipped']}, "
        f"{len(shown)} violation(s) at or above '{threshold.value}'"
    )

    if stats["files_failed"]:
        return EXIT_ERROR
    return exit_status(violations, threshold)


def run_rules(args) -> int:
    console = make_console(stderr=False)
    logger = RichLogger(console=make_console(), verbose=args.verbose)

    try:
        ruleset = _resolve(args, logger)
    except RulesetError as exc:
        logger.error(str(exc))
        return EXIT_ERROR

    table = Table(title=f"Ruleset: {ruleset.name}", header_style="bold")
    table.add_column("Rule", style="cyan")
    table.add_column("Enabled")
    table.add_column("Severity")
    table.add_column("Confidence")
    table.add_column("Description")
    for rule_id, setting in ruleset.settings:
        rule = RULES_BY_ID[rule_id]
        table.add_row(
            rule_id,
            "yes" if setting.enabled else "no",
            setting.severity.value,
            rule.confidence,
            rule.description,
        )
    console.print(table)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    if args.command == "lint":
        return run_lint(args)
    if args.command == "rules":
        return run_rules(args)
    return EXIT_ERROR
