"""
CLI entrypoint for the artifact package.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, NoReturn, Optional

from colorama import just_fix_windows_console

from . import __version__, console
from .core import (
    DEFAULT_CONFIG,
    DEFAULT_OUTPUT,
    METADATA_NAME,
    ArtifactError,
    Collector,
    ConfigMissingError,
    RunConfiguration,
    RunSummary,
    UsageError,
    load_rules,
    remove_output_dir,
    require_pathspec,
)
from .patterns import AUTO, DIALECTS

EPILOG = """\
Commands:
  artifact clear        Remove the artifacts directory

Examples:
  artifact
  artifact ./project .artifacts
  artifact -f -c -o dist/artifacts
  artifact --dry-run -v
"""


class ArtifactArgumentParser(argparse.ArgumentParser):
    """Usage errors exit with status 1."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> ArtifactArgumentParser:
    p = ArtifactArgumentParser(
        prog="artifact",
        description="Copy the files selected by a pattern config into a flat artifacts directory.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("source", nargs="?", type=Path, default=Path("."),
                   help="Source directory (default: current directory)")
    p.add_argument("config", nargs="?", type=Path, default=Path(DEFAULT_CONFIG),
                   help=f"Artifact config (default: {DEFAULT_CONFIG})")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    p.add_argument("-c", "--clear", action="store_true",
                   help="Empty the output directory before copying")
    p.add_argument("-d", "--dry-run", action="store_true",
                   help="Show what would be copied without touching the filesystem")
    p.add_argument("-f", "--force", action="store_true",
                   help="Write into an existing output directory")
    p.add_argument("-o", "--output", type=Path, default=Path(DEFAULT_OUTPUT),
                   help=f"Output directory (default: {DEFAULT_OUTPUT})")
    p.add_argument("--dialect", choices=DIALECTS, default=AUTO,
                   help="Config syntax: gitignore-like globs, simple names/paths, or auto-detect")
    p.add_argument("--respect-gitignore", action="store_true",
                   help="Skip files ignored by the source directory's .gitignore")
    p.add_argument("--no-default-ignores", action="store_true",
                   help="Also walk VCS directories (.git, .hg, .svn)")
    p.add_argument("--sniff", action="store_true",
                   help="Use the 'file' utility for unknown extensions")
    return p


def build_clear_parser() -> ArtifactArgumentParser:
    p = ArtifactArgumentParser(
        prog="artifact clear",
        description="Remove the artifacts directory and everything in it.",
    )
    p.add_argument("-o", "--output", type=Path, default=Path(DEFAULT_OUTPUT),
                   help=f"Output directory (default: {DEFAULT_OUTPUT})")
    return p


def config_from_args(ns: argparse.Namespace) -> RunConfiguration:
    return RunConfiguration(
        source_dir=ns.source,
        config_file=ns.config,
        output_dir=ns.output,
        verbose=ns.verbose,
        dry_run=ns.dry_run,
        force=ns.force,
        clear=ns.clear,
        dialect=ns.dialect,
        respect_gitignore=ns.respect_gitignore,
        default_ignores=not ns.no_default_ignores,
        sniff=ns.sniff,
    )


def print_summary(summary: RunSummary) -> None:
    out = summary.output_dir
    print()
    if summary.dry_run:
        if summary.removed_count:
            console.info(f"- Would remove {summary.removed_count} file(s) from {out}/")
        console.info(f"- Would create {summary.copied_count} artifacts in {out}/")
    else:
        if summary.removed_count:
            console.info(f"- Removed {summary.removed_count} file(s) from {out}/")
        console.info(f"- Created {summary.copied_count} artifacts in {out}/")
        console.info(f"- Generated metadata in {out / METADATA_NAME}")
    if summary.skipped:
        console.warning(f"- Skipped {len(summary.skipped)} file(s)")
    if summary.unmatched_rules:
        console.warning(f"- {len(summary.unmatched_rules)} rule(s) copied nothing")


def run_collect(ns: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    try:
        config = config_from_args(ns)
        require_pathspec()
        rules = load_rules(config.config_file, dialect=config.dialect)
        if config.verbose:
            console.detail(
                f"Loaded {len(rules)} rule(s) from {config.config_file} "
                f"({rules.dialect} dialect)"
            )
        if not rules.includes:
            console.warning(f"No include rules in {config.config_file}")
        summary = Collector(config, rules).run()
    except ConfigMissingError as e:
        console.info(f"{e.path} does not exist, created a template. Add rules and run again.")
        parser.print_usage(sys.stderr)
        return 1
    except UsageError as e:
        console.error(f"Error: {e}")
        parser.print_usage(sys.stderr)
        return 1
    except ArtifactError as e:
        console.error(f"Error: {e}")
        return 1

    print_summary(summary)
    return 0


def run_clear(ns: argparse.Namespace) -> int:
    out = ns.output.resolve()
    cwd = Path.cwd().resolve()
    if out == cwd or out in cwd.parents:
        console.error(f"Error: refusing to remove '{out}', it contains the working directory")
        return 1
    if not out.exists():
        console.warning("No artifacts directory found.")
        console.info(f"Removed 0 file(s) from {out}/")
        return 0
    try:
        removed = remove_output_dir(out)
    except ArtifactError as e:
        console.error(f"Error: {e}")
        return 1
    console.info(f"Removed {removed} file(s) from {out}/")
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    just_fix_windows_console()
    args = list(sys.argv[1:] if argv is None else argv)
    try:
        if args[:1] == ["clear"]:
            code = run_clear(build_clear_parser().parse_args(args[1:]))
        elif args[:1] == ["help"]:
            build_parser().print_help()
            code = 1
        else:
            parser = build_parser()
            code = run_collect(parser.parse_args(args), parser)
    except KeyboardInterrupt:
        print("\nCancelled.", file=sys.stderr)
        code = 1

    raise SystemExit(code)


if __name__ == "__main__":
    main()
