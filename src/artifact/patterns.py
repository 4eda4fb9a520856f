"""
Pattern engine for artifact configuration files.

A configuration file is a list of rules, one per line. Lines starting with
``#`` are comments, blank lines are ignored and a leading ``!`` turns a rule
into an exclusion. Two dialects are understood:

* ``glob``   - gitignore-like globs: ``*`` and ``?`` stay inside one path
  segment, ``**`` spans any number of segments, ``[...]`` is a character
  class. A pattern without a ``/`` matches at any depth, a pattern with one
  is anchored at the source root. A trailing ``/`` only matches directories.
* ``simple`` - the original artifact syntax: an entry containing ``/`` is a
  literal relative path, anything else is a filename (wildcards allowed)
  looked up at any depth.

Patterns are compiled into tuples of segment matchers and evaluated against
forward-slash relative paths. Exclude rules always win over include rules.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple, Union

AUTO = "auto"
GLOB = "glob"
SIMPLE = "simple"
DIALECTS = (AUTO, GLOB, SIMPLE)

_WILDCARDS = "*?["


class RuleKind(str, Enum):
    INCLUDE = "include"
    EXCLUDE = "exclude"


class Decision(str, Enum):
    INCLUDED = "included"
    EXCLUDED = "excluded"
    UNMATCHED = "unmatched"


# Segment matchers
@dataclass(frozen=True)
class LiteralSegment:
    text: str

    def matches(self, part: str) -> bool:
        return part == self.text


@dataclass(frozen=True)
class WildcardSegment:
    """One path segment containing ``*``, ``?`` or ``[...]``."""

    source: str
    regex: "re.Pattern[str]" = field(compare=False, repr=False)

    def matches(self, part: str) -> bool:
        return self.regex.fullmatch(part) is not None


@dataclass(frozen=True)
class RecursiveWildcard:
    """``**``: zero or more whole segments."""


RECURSIVE = RecursiveWildcard()

Segment = Union[LiteralSegment, WildcardSegment, RecursiveWildcard]


def split_path(path: str) -> Tuple[str, ...]:
    """Split a relative path into segments, normalising separators."""
    return tuple(p for p in path.replace("\\", "/").split("/") if p and p != ".")


def _has_wildcard(text: str) -> bool:
    escaped = False
    for ch in text:
        if escaped:
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch in _WILDCARDS:
            return True
    return False


def _unescape(text: str) -> str:
    return re.sub(r"\\(.)", r"\1", text)


def _translate_segment(text: str) -> str:
    out: List[str] = []
    i, n = 0, len(text)
    while i < n:
        ch = text[i]
        i += 1
        if ch == "\\" and i < n:
            out.append(re.escape(text[i]))
            i += 1
        elif ch == "*":
            while i < n and text[i] == "*":
                i += 1
            out.append(".*")
        elif ch == "?":
            out.append(".")
        elif ch == "[":
            j = i
            if j < n and text[j] in "!^":
                j += 1
            if j < n and text[j] == "]":
                j += 1
            while j < n and text[j] != "]":
                j += 1
            if j >= n:
                # unterminated class, take the bracket literally
                out.append(re.escape(ch))
                continue
            body = text[i:j].replace("\\", "\\\\")
            if body[:1] in ("!", "^"):
                body = "^" + body[1:]
            out.append(f"[{body}]")
            i = j + 1
        else:
            out.append(re.escape(ch))
    return "".join(out)


def compile_segment(text: str) -> Segment:
    if text == "**":
        return RECURSIVE
    if _has_wildcard(text):
        try:
            regex = re.compile(_translate_segment(text), re.DOTALL)
        except re.error as e:
            raise ValueError(f"Invalid pattern {text!r}: {e}")
        return WildcardSegment(text, regex)
    return LiteralSegment(_unescape(text))


def _match_segments(segments: Sequence[Segment], parts: Sequence[str]) -> bool:
    if not segments:
        return not parts
    head, rest = segments[0], segments[1:]
    if isinstance(head, RecursiveWildcard):
        return any(_match_segments(rest, parts[k:]) for k in range(len(parts) + 1))
    return bool(parts) and head.matches(parts[0]) and _match_segments(rest, parts[1:])


@dataclass(frozen=True)
class PathPattern:
    """
    A compiled, anchored path pattern.

    ``dir_only`` patterns never match a file path itself, only one of its
    parent directories. ``covers_directories`` says whether an include
    match on a directory pulls in everything beneath it.
    """

    source: str
    segments: Tuple[Segment, ...]
    dir_only: bool = False
    covers_directories: bool = True

    def match_parts(self, parts: Sequence[str]) -> bool:
        return _match_segments(self.segments, tuple(parts))

    def matches(self, path: str) -> bool:
        return self.match_parts(split_path(path))

    def anywhere(self) -> "PathPattern":
        """Return a copy that also matches below any directory (``**/`` prefix)."""
        if self.segments and isinstance(self.segments[0], RecursiveWildcard):
            return self
        return PathPattern(
            self.source,
            (RECURSIVE,) + self.segments,
            dir_only=self.dir_only,
            covers_directories=self.covers_directories,
        )


def compile_glob(text: str) -> PathPattern:
    """
    Compile a glob into an anchored :class:`PathPattern`.

    The result is matched against the whole relative path: ``*.json`` matches
    ``config.json`` but not ``sub/config.json``. Rule parsing applies the
    "bare name matches at any depth" convention on top of this.
    """
    dir_only = text.endswith("/")
    segments: List[Segment] = []
    for raw in text.strip("/").split("/"):
        if not raw:
            continue
        seg = compile_segment(raw)
        if isinstance(seg, RecursiveWildcard) and segments and isinstance(segments[-1], RecursiveWildcard):
            continue
        segments.append(seg)
    if not segments:
        raise ValueError(f"Empty pattern: {text!r}")
    return PathPattern(text, tuple(segments), dir_only=dir_only)


def compile_simple(text: str) -> PathPattern:
    """Compile an entry of the ``simple`` dialect."""
    if "/" in text:
        parts = split_path(text)
        if not parts:
            raise ValueError(f"Empty pattern: {text!r}")
        return PathPattern(
            text,
            tuple(LiteralSegment(p) for p in parts),
            covers_directories=False,
        )
    return PathPattern(text, (RECURSIVE, compile_segment(text)), covers_directories=False)


def _compile_glob_rule(text: str) -> PathPattern:
    pattern = compile_glob(text)
    if "/" in text.rstrip("/"):
        return pattern
    return pattern.anywhere()


@dataclass(frozen=True)
class Rule:
    raw: str
    kind: RuleKind
    pattern: PathPattern
    line: int = 0

    @property
    def is_exclude(self) -> bool:
        return self.kind is RuleKind.EXCLUDE

    def matches(self, path: str) -> bool:
        return self.matches_parts(split_path(path))

    def matches_parts(self, parts: Sequence[str]) -> bool:
        pattern = self.pattern
        if not pattern.dir_only and pattern.match_parts(parts):
            return True
        if self.is_exclude or pattern.covers_directories:
            return any(pattern.match_parts(parts[:i]) for i in range(1, len(parts)))
        return False

    def matches_directory(self, parts: Sequence[str]) -> bool:
        """True if the directory ``parts`` or one of its parents matches."""
        return any(self.pattern.match_parts(parts[:i]) for i in range(1, len(parts) + 1))


def _split_line(line: str) -> Optional[Tuple[RuleKind, str]]:
    text = line.strip()
    if not text or text.startswith("#"):
        return None
    kind = RuleKind.INCLUDE
    if text.startswith("!"):
        kind = RuleKind.EXCLUDE
        text = text[1:].strip()
    if not text.strip("/"):
        return None
    return kind, text


def detect_dialect(patterns: Iterable[str]) -> str:
    """Pick ``glob`` if any pattern uses syntax only globs give meaning to."""
    for text in patterns:
        if "**" in text or text.startswith("/") or text.endswith("/"):
            return GLOB
        if "/" in text and _has_wildcard(text):
            return GLOB
    return SIMPLE


def parse_rule(line: str, dialect: str = GLOB, lineno: int = 0) -> Optional[Rule]:
    """Parse one configuration line; comments, blanks and empty patterns give ``None``."""
    if dialect not in (GLOB, SIMPLE):
        raise ValueError(f"Unknown dialect: {dialect!r}")
    split = _split_line(line)
    if split is None:
        return None
    kind, text = split
    compiler = _compile_glob_rule if dialect == GLOB else compile_simple
    return Rule(raw=line.strip(), kind=kind, pattern=compiler(text), line=lineno)


@dataclass(frozen=True)
class RuleSet:
    rules: Tuple[Rule, ...] = ()
    dialect: str = GLOB

    def __iter__(self) -> Iterator[Rule]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    @property
    def includes(self) -> Tuple[Rule, ...]:
        return tuple(r for r in self.rules if not r.is_exclude)

    @property
    def excludes(self) -> Tuple[Rule, ...]:
        return tuple(r for r in self.rules if r.is_exclude)

    def first_exclude(self, parts: Sequence[str]) -> Optional[Rule]:
        for rule in self.excludes:
            if rule.matches_parts(parts):
                return rule
        return None

    def matching_includes(self, parts: Sequence[str]) -> List[Rule]:
        return [r for r in self.includes if r.matches_parts(parts)]

    def classify(self, path: str) -> Tuple[Decision, Optional[Rule]]:
        """Decide a relative path. Any exclude match wins over every include."""
        parts = split_path(path)
        rule = self.first_exclude(parts)
        if rule is not None:
            return Decision.EXCLUDED, rule
        hits = self.matching_includes(parts)
        if hits:
            return Decision.INCLUDED, hits[0]
        return Decision.UNMATCHED, None

    def excludes_directory(self, path: str) -> Optional[Rule]:
        parts = split_path(path)
        for rule in self.excludes:
            if rule.matches_directory(parts):
                return rule
        return None


def parse_rules(lines: Iterable[str], dialect: str = AUTO) -> RuleSet:
    """Parse configuration lines into a :class:`RuleSet`, keeping file order."""
    if dialect not in DIALECTS:
        raise ValueError(f"Unknown dialect: {dialect!r}")
    entries = [(n, line) for n, line in enumerate(lines, start=1)]
    if dialect == AUTO:
        texts = [split[1] for split in (_split_line(line) for _, line in entries) if split]
        dialect = detect_dialect(texts)
    rules = []
    for n, line in entries:
        try:
            rules.append(parse_rule(line, dialect=dialect, lineno=n))
        except ValueError as e:
            raise ValueError(f"line {n}: {e}")
    return RuleSet(tuple(r for r in rules if r is not None), dialect=dialect)
