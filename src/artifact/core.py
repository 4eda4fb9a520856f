"""
Core logic for the artifact package.
"""

from __future__ import annotations

import datetime
import json
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any, Dict, Iterator, List, Optional, Sequence, Set, Tuple

from . import console
from .mime import ContentSniffer, detect_type, file_command_sniffer, mimetypes_sniffer
from .patterns import AUTO, RuleSet, parse_rules, split_path

# Required third-party dep
try:
    import pathspec  # type: ignore
except ImportError:  # pragma: no cover
    pathspec = None  # type: ignore[assignment]


# Exceptions
class ArtifactError(Exception): ...
class UsageError(ArtifactError): ...
class ConfigFileError(ArtifactError): ...
class InvalidSourceError(ArtifactError): ...
class OutputExistsError(ArtifactError): ...
class OutputError(ArtifactError): ...
class DependencyMissingError(ArtifactError): ...


class ConfigMissingError(ArtifactError):
    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Config file '{path}' did not exist, a template was created")


class FileNotFoundWarning(UserWarning):
    """A matched or declared file that could not be copied."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{reason}: {path}")


# Defaults
DEFAULT_CONFIG = ".artifacts"
DEFAULT_OUTPUT = "artifacts"
METADATA_NAME = "metadata.json"
SENTINEL_NAME = ".gitkeep"

NOT_FOUND = "Not found"
ONLY_EXCLUDED = "Matched only excluded files"
RULE_REASONS = (NOT_FOUND, ONLY_EXCLUDED)

DEFAULT_IGNORES: List[str] = [
    ".git/",
    ".hg/",
    ".svn/",
]

CONFIG_TEMPLATE: List[str] = [
    "# List files to copy, one per line:",
    "# - Specific path: src/file.js",
    "# - Any file: filename.txt",
    "# - Glob: src/**/*.js",
    "# - Exclude: !vendor",
    "",
]


def require_pathspec() -> None:
    if pathspec is None:
        raise DependencyMissingError(
            "'pathspec' library is required. Install via 'pip install pathspec'."
        )


def utc_timestamp() -> str:
    return datetime.datetime.now(datetime.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class RunConfiguration:
    source_dir: Path = Path(".")
    config_file: Path = Path(DEFAULT_CONFIG)
    output_dir: Path = Path(DEFAULT_OUTPUT)
    verbose: bool = False
    dry_run: bool = False
    force: bool = False
    clear: bool = False
    dialect: str = AUTO
    respect_gitignore: bool = False
    default_ignores: bool = True
    sniff: bool = False

    def __post_init__(self) -> None:
        for name in ("source_dir", "config_file", "output_dir"):
            object.__setattr__(self, name, Path(getattr(self, name)).expanduser().resolve())

    def validate(self) -> None:
        out, src = self.output_dir, self.source_dir
        if out == src or out in src.parents:
            raise UsageError(f"Output directory '{out}' must not contain the source directory")

    def sniffers(self) -> Tuple[ContentSniffer, ...]:
        if self.sniff:
            return (file_command_sniffer, mimetypes_sniffer)
        return (mimetypes_sniffer,)


# Config file
def write_config_template(path: Path) -> None:
    try:
        path.write_text("\n".join(CONFIG_TEMPLATE), encoding="utf-8")
    except OSError as e:
        raise ConfigFileError(f"Could not create config file '{path}': {e}")


def load_rules(config_path: Path, dialect: str = AUTO) -> RuleSet:
    """Read a configuration file; a missing one is replaced by a template."""
    if not config_path.exists():
        write_config_template(config_path)
        raise ConfigMissingError(config_path)
    if not config_path.is_file():
        raise ConfigFileError(f"'{config_path}' is not a file")
    try:
        with config_path.open("r", encoding="utf-8") as fh:
            lines = fh.read().splitlines()
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigFileError(f"Could not read config file '{config_path}': {e}")
    try:
        return parse_rules(lines, dialect=dialect)
    except ValueError as e:
        raise ConfigFileError(f"Invalid rule in '{config_path}': {e}")


# Ignore-file utilities
def default_ignore_spec() -> "pathspec.PathSpec":
    return pathspec.PathSpec.from_lines("gitwildmatch", DEFAULT_IGNORES)


def load_gitignore(root: Path) -> "pathspec.PathSpec":
    gitignore_path = root / ".gitignore"
    if not gitignore_path.exists():
        return pathspec.PathSpec.from_lines("gitwildmatch", [])
    with gitignore_path.open("r", encoding="utf-8") as fh:
        return pathspec.PathSpec.from_lines("gitwildmatch", fh)


# Records
@dataclass(frozen=True)
class CandidateFile:
    absolute_path: Path
    relative_path: str

    @property
    def base_name(self) -> str:
        return self.absolute_path.name


@dataclass(frozen=True)
class ArtifactRecord:
    filename: str
    original_path: str
    size_bytes: int
    type: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "original_path": self.original_path,
            "size_bytes": self.size_bytes,
            "type": self.type,
        }


def _split_ext(name: str) -> Tuple[str, str]:
    ext = PurePosixPath(name).suffix
    if not ext:
        return name, ""
    return name[: -len(ext)], ext


@dataclass
class RunState:
    """Everything a single run accumulates. Never shared between runs."""

    used_names: Set[str] = field(default_factory=lambda: {METADATA_NAME})
    conflict_counter: int = 0
    copied_count: int = 0
    excluded_count: int = 0
    removed_count: int = 0
    records: List[ArtifactRecord] = field(default_factory=list)
    warnings: List[FileNotFoundWarning] = field(default_factory=list)
    matched_rules: Set[int] = field(default_factory=set)
    excluded_rules: Set[int] = field(default_factory=set)

    def destination_name(self, base_name: str) -> str:
        """Reserve a flat output name; clashes get ``name_<n>.ext``."""
        if base_name not in self.used_names:
            self.used_names.add(base_name)
            return base_name
        stem, ext = _split_ext(base_name)
        while True:
            self.conflict_counter += 1
            candidate = f"{stem}_{self.conflict_counter}{ext}"
            if candidate not in self.used_names:
                self.used_names.add(candidate)
                return candidate


@dataclass
class RunSummary:
    output_dir: Path
    dry_run: bool
    copied_count: int
    excluded_count: int
    removed_count: int
    records: List[ArtifactRecord]
    warnings: List[FileNotFoundWarning]
    metadata_path: Optional[Path] = None

    @property
    def skipped(self) -> List[FileNotFoundWarning]:
        return [w for w in self.warnings if w.reason not in RULE_REASONS]

    @property
    def unmatched_rules(self) -> List[FileNotFoundWarning]:
        return [w for w in self.warnings if w.reason in RULE_REASONS]


# Metadata
def build_metadata(created_at: str, source_dir: Path, records: Sequence[ArtifactRecord]) -> Dict[str, Any]:
    return {
        "created_at": created_at,
        "source_directory": str(source_dir),
        "artifacts": [r.to_dict() for r in records],
    }


def write_metadata(output_dir: Path, document: Dict[str, Any]) -> Path:
    path = output_dir / METADATA_NAME
    try:
        with path.open("w", encoding="utf-8", newline="\n") as fh:
            json.dump(document, fh, indent=2, ensure_ascii=False)
            fh.write("\n")
    except OSError as e:
        raise OutputError(f"Could not write metadata '{path}': {e}")
    return path


# Clearing
def _count_files(path: Path) -> int:
    return sum(1 for p in path.rglob("*") if not p.is_dir() or p.is_symlink())


def clear_directory(path: Path, keep: Sequence[str] = (SENTINEL_NAME,), dry_run: bool = False) -> int:
    """
    Empty *path* but keep the directory itself and the entries named in *keep*.

    Returns the number of files removed (or that would be removed). A missing
    directory removes nothing.
    """
    if not path.is_dir():
        return 0
    removed = 0
    try:
        for entry in sorted(path.iterdir()):
            if entry.name in keep:
                continue
            if entry.is_dir() and not entry.is_symlink():
                removed += _count_files(entry)
                if not dry_run:
                    shutil.rmtree(entry)
            else:
                removed += 1
                if not dry_run:
                    entry.unlink()
    except OSError as e:
        raise OutputError(f"Could not clear '{path}': {e}")
    return removed


def remove_output_dir(path: Path, dry_run: bool = False) -> int:
    """Remove the whole output tree, returning how many files it held."""
    if not path.exists():
        return 0
    if not path.is_dir():
        raise OutputError(f"'{path}' is not a directory")
    try:
        removed = _count_files(path)
        if not dry_run:
            shutil.rmtree(path)
    except OSError as e:
        raise OutputError(f"Could not remove '{path}': {e}")
    return removed


class Collector:
    """Walks the source tree, applies the rules and fills the output directory."""

    def __init__(
        self,
        config: RunConfiguration,
        rules: RuleSet,
        sniffers: Optional[Sequence[ContentSniffer]] = None,
    ) -> None:
        self.config = config
        self.rules = rules
        self.sniffers = tuple(sniffers) if sniffers is not None else config.sniffers()
        self.state = RunState()
        self._ignore_specs: List["pathspec.PathSpec"] = []

    def _log(self, msg: str) -> None:
        if self.config.verbose:
            console.detail(msg)

    # Checks
    def check_source(self) -> None:
        source = self.config.source_dir
        if not source.exists():
            raise InvalidSourceError(f"Source directory '{source}' not found")
        if not source.is_dir():
            raise InvalidSourceError(f"Source path '{source}' is not a directory")

    def check_output(self) -> None:
        out = self.config.output_dir
        if not out.exists():
            return
        if not out.is_dir():
            raise OutputError(f"Output path '{out}' exists and is not a directory")
        if not self.config.force:
            raise OutputExistsError(
                f"Output directory '{out}' already exists (use --force to overwrite)"
            )

    def prepare_output(self) -> None:
        out = self.config.output_dir
        if self.config.clear:
            self.state.removed_count = clear_directory(out, dry_run=self.config.dry_run)
            self._log(f"Cleared {self.state.removed_count} file(s) from {out}")
        if self.config.dry_run:
            return
        try:
            out.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise OutputError(f"Could not create directory '{out}': {e}")
        if not os.access(out, os.W_OK):
            raise OutputError(f"Output directory '{out}' is not writable")

    # Walk
    def _ignored(self, rel: str) -> bool:
        return any(spec.match_file(rel) for spec in self._ignore_specs)

    def iter_candidates(self) -> Iterator[CandidateFile]:
        """Depth-first walk in name order, pruning output and excluded directories."""
        root = self.config.source_dir
        output = str(self.config.output_dir)
        for dirpath, dirnames, filenames in os.walk(root):
            rel_dir = Path(dirpath).relative_to(root).as_posix()
            rel_dir = "" if rel_dir == "." else rel_dir + "/"
            kept = []
            for d in sorted(dirnames):
                rel = rel_dir + d
                if os.path.join(dirpath, d) == output:
                    self._log(f"Skipping output directory {rel}/")
                    continue
                if self._ignored(rel + "/"):
                    self._log(f"Ignoring {rel}/")
                    continue
                rule = self.rules.excludes_directory(rel)
                if rule is not None:
                    self._log(f"Excluded {rel}/ (rule '{rule.raw}')")
                    continue
                kept.append(d)
            dirnames[:] = kept
            for name in sorted(filenames):
                rel = rel_dir + name
                if self._ignored(rel):
                    continue
                path = os.path.join(dirpath, name)
                if os.path.exists(path) and not os.path.isfile(path):
                    self._log(f"Skipping {rel} (not a regular file)")
                    continue
                yield CandidateFile(Path(dirpath) / name, rel)

    # Per-file work
    def _skip(self, candidate: CandidateFile, reason: str) -> None:
        warn = FileNotFoundWarning(str(candidate.absolute_path), reason)
        self.state.warnings.append(warn)
        console.warning(f"{reason}: {candidate.absolute_path}")

    def process(self, candidate: CandidateFile) -> None:
        parts = split_path(candidate.relative_path)
        excluded_by = self.rules.first_exclude(parts)
        if excluded_by is not None:
            self.state.excluded_count += 1
            self.state.excluded_rules.update(id(r) for r in self.rules.matching_includes(parts))
            self._log(f"Excluded {candidate.relative_path} (rule '{excluded_by.raw}')")
            return
        hits = self.rules.matching_includes(parts)
        if not hits:
            return
        self.state.matched_rules.update(id(r) for r in hits)
        self.copy(candidate)

    def copy(self, candidate: CandidateFile) -> None:
        dest_name = self.state.destination_name(candidate.base_name)
        dest = self.config.output_dir / dest_name
        src = candidate.absolute_path

        if self.config.dry_run:
            if not os.access(src, os.R_OK):
                self._skip(candidate, "Could not read")
                return
            console.info(f"Would copy: {src} -> {dest}")
            self.state.copied_count += 1
            return

        try:
            src_fh = src.open("rb")
        except OSError as e:
            self._skip(candidate, f"Could not read ({e.strerror or e})")
            return
        with src_fh:
            try:
                with dest.open("wb") as dst_fh:
                    shutil.copyfileobj(src_fh, dst_fh)
            except OSError as e:
                raise OutputError(f"Could not write '{dest}': {e}")

        record = ArtifactRecord(
            filename=dest_name,
            original_path=str(src),
            size_bytes=dest.stat().st_size,
            type=detect_type(src, self.sniffers),
        )
        self.state.records.append(record)
        self.state.copied_count += 1
        if dest_name != candidate.base_name:
            console.info(f"Copied: {src} -> {dest_name}")
        else:
            console.info(f"Copied: {src}")

    def _report_unmatched(self) -> None:
        for rule in self.rules.includes:
            if id(rule) in self.state.matched_rules:
                continue
            reason = ONLY_EXCLUDED if id(rule) in self.state.excluded_rules else NOT_FOUND
            self.state.warnings.append(FileNotFoundWarning(rule.raw, reason))
            console.warning(f"{reason}: {rule.raw}")

    def run(self) -> RunSummary:
        """
        Perform one collection run.

        Every fatal check happens before the output directory is touched.
        Per-file read problems become warnings and the run continues.
        """
        if self.config.default_ignores or self.config.respect_gitignore:
            require_pathspec()
        self.config.validate()
        self.check_source()
        self.check_output()
        if self.config.default_ignores:
            self._ignore_specs.append(default_ignore_spec())
        if self.config.respect_gitignore:
            self._ignore_specs.append(load_gitignore(self.config.source_dir))

        created_at = utc_timestamp()
        self.prepare_output()

        seen = 0
        for candidate in self.iter_candidates():
            seen += 1
            self.process(candidate)
        self._log(
            f"{seen} files found, {self.state.excluded_count} excluded, "
            f"{self.state.copied_count} selected."
        )
        self._report_unmatched()

        metadata_path = None
        if not self.config.dry_run:
            document = build_metadata(created_at, self.config.source_dir, self.state.records)
            metadata_path = write_metadata(self.config.output_dir, document)

        return RunSummary(
            output_dir=self.config.output_dir,
            dry_run=self.config.dry_run,
            copied_count=self.state.copied_count,
            excluded_count=self.state.excluded_count,
            removed_count=self.state.removed_count,
            records=list(self.state.records),
            warnings=list(self.state.warnings),
            metadata_path=metadata_path,
        )


def collect(
    config: RunConfiguration,
    rules: Optional[RuleSet] = None,
    sniffers: Optional[Sequence[ContentSniffer]] = None,
) -> RunSummary:
    """Load the rules (unless given) and run a :class:`Collector`."""
    if rules is None:
        rules = load_rules(config.config_file, dialect=config.dialect)
    return Collector(config, rules, sniffers=sniffers).run()
