"""Tests for the pattern engine (rule parsing, glob compilation, classification)."""

import pytest

from artifact.patterns import (
    GLOB,
    SIMPLE,
    Decision,
    LiteralSegment,
    RecursiveWildcard,
    RuleKind,
    WildcardSegment,
    compile_glob,
    compile_simple,
    detect_dialect,
    parse_rule,
    parse_rules,
    split_path,
)


def test_double_star_matches_zero_or_more_segments() -> None:
    pattern = compile_glob("a/**/b")
    assert pattern.matches("a/b")
    assert pattern.matches("a/x/b")
    assert pattern.matches("a/x/y/b")
    assert not pattern.matches("a/x/c")
    assert not pattern.matches("b")


def test_star_stays_inside_one_segment() -> None:
    pattern = compile_glob("*.json")
    assert pattern.matches("config.json")
    assert not pattern.matches("sub/config.json")
    assert not compile_glob("src/*.py").matches("src/pkg/mod.py")


def test_bare_name_rule_matches_at_any_depth() -> None:
    rule = parse_rule("*.json")
    assert rule is not None
    assert rule.matches("config.json")
    assert rule.matches("sub/config.json")
    assert rule.matches("a/b/c/config.json")
    assert not rule.matches("config.json5")


def test_question_mark_matches_exactly_one_character() -> None:
    pattern = compile_glob("file?.txt")
    assert pattern.matches("file1.txt")
    assert not pattern.matches("file10.txt")
    assert not pattern.matches("file.txt")


def test_character_classes() -> None:
    assert compile_glob("[ab].txt").matches("a.txt")
    assert not compile_glob("[ab].txt").matches("c.txt")
    assert compile_glob("[!ab].txt").matches("c.txt")
    assert not compile_glob("[!ab].txt").matches("a.txt")
    assert compile_glob("[0-9]*.log").matches("7days.log")


def test_regex_metacharacters_are_literal() -> None:
    pattern = compile_glob("notes(1)+.md")
    assert pattern.matches("notes(1)+.md")
    assert not pattern.matches("notes1.md")


def test_segments_are_tagged() -> None:
    pattern = compile_glob("src/**/*.py")
    kinds = [type(s) for s in pattern.segments]
    assert kinds == [LiteralSegment, RecursiveWildcard, WildcardSegment]


def test_consecutive_double_stars_collapse() -> None:
    pattern = compile_glob("a/**/**/b")
    assert len(pattern.segments) == 3
    assert pattern.matches("a/b")


def test_empty_glob_is_rejected() -> None:
    with pytest.raises(ValueError):
        compile_glob("/")


def test_path_with_separator_is_anchored() -> None:
    rule = parse_rule("app/*.php")
    assert rule is not None
    assert rule.matches("app/a.php")
    assert not rule.matches("lib/app/a.php")


def test_leading_slash_anchors_bare_name() -> None:
    rule = parse_rule("/build.txt")
    assert rule is not None
    assert rule.matches("build.txt")
    assert not rule.matches("docs/build.txt")


def test_trailing_slash_matches_directories_only() -> None:
    rule = parse_rule("!logs/")
    assert rule is not None
    assert rule.matches("logs/today.txt")
    assert rule.matches("var/logs/today.txt")
    assert not rule.matches("logs")


def test_directory_rule_covers_its_contents() -> None:
    rule = parse_rule("!vendor")
    assert rule is not None
    assert rule.kind is RuleKind.EXCLUDE
    assert rule.matches("vendor/c.php")
    assert rule.matches("lib/vendor/deep/c.php")
    assert not rule.matches("vendors/c.php")


def test_backslash_separators_are_normalised() -> None:
    rule = parse_rule("app/*.php")
    assert rule is not None
    assert rule.matches("app\\a.php")
    assert split_path("./app\\sub//a.php") == ("app", "sub", "a.php")


@pytest.mark.parametrize("line", ["", "   ", "# comment", "   # indented comment", "!", "!   ", "/", "!/"])
def test_lines_without_pattern_are_dropped(line: str) -> None:
    assert parse_rule(line) is None


def test_negation_and_whitespace_are_stripped() -> None:
    rule = parse_rule("   !  vendor  ")
    assert rule is not None
    assert rule.kind is RuleKind.EXCLUDE
    assert rule.raw == "!  vendor"
    assert rule.pattern.source == "vendor"


def test_escaped_hash_and_bang_are_literal() -> None:
    hashed = parse_rule("\\#notes.txt")
    banged = parse_rule("\\!important.txt")
    assert hashed is not None and banged is not None
    assert hashed.kind is RuleKind.INCLUDE
    assert hashed.matches("#notes.txt")
    assert banged.kind is RuleKind.INCLUDE
    assert banged.matches("docs/!important.txt")


def test_parse_rules_keeps_declaration_order() -> None:
    rules = parse_rules(
        ["# header", "", "app/*.php", "!vendor", "README.md"],
        dialect=GLOB,
    )
    assert [r.raw for r in rules] == ["app/*.php", "!vendor", "README.md"]
    assert [r.line for r in rules] == [3, 4, 5]
    assert [r.raw for r in rules.includes] == ["app/*.php", "README.md"]
    assert [r.raw for r in rules.excludes] == ["!vendor"]


def test_exclude_wins_regardless_of_position() -> None:
    for lines in (["!secret.txt", "*.txt"], ["*.txt", "!secret.txt"]):
        rules = parse_rules(lines, dialect=GLOB)
        decision, rule = rules.classify("docs/secret.txt")
        assert decision is Decision.EXCLUDED
        assert rule is not None and rule.raw == "!secret.txt"
        assert rules.classify("docs/public.txt")[0] is Decision.INCLUDED


def test_unmatched_candidates_are_rejected() -> None:
    rules = parse_rules(["*.md"], dialect=GLOB)
    assert rules.classify("main.py") == (Decision.UNMATCHED, None)


def test_excludes_directory_for_pruning() -> None:
    rules = parse_rules(["**/*.php", "!vendor"], dialect=GLOB)
    assert rules.excludes_directory("vendor") is not None
    assert rules.excludes_directory("lib/vendor") is not None
    assert rules.excludes_directory("app") is None


@pytest.mark.parametrize(
    "patterns, expected",
    [
        (["README.md", "*.json", "src/app.js"], SIMPLE),
        (["src/**/*.js"], GLOB),
        (["app/*.php"], GLOB),
        (["/top.txt"], GLOB),
        (["build/"], GLOB),
        ([], SIMPLE),
    ],
)
def test_detect_dialect(patterns, expected) -> None:
    assert detect_dialect(patterns) == expected


def test_auto_dialect_is_recorded() -> None:
    assert parse_rules(["app/*.php", "!vendor"]).dialect == GLOB
    assert parse_rules(["README.md", "!vendor"]).dialect == SIMPLE


def test_unknown_dialect_is_rejected() -> None:
    with pytest.raises(ValueError):
        parse_rules(["*.md"], dialect="regex")


def test_simple_dialect_paths_are_literal() -> None:
    pattern = compile_simple("./src/app.js")
    assert pattern.matches("src/app.js")
    assert not pattern.matches("lib/src/app.js")
    assert compile_simple("src/*.js").matches("src/*.js")
    assert not compile_simple("src/*.js").matches("src/app.js")


def test_simple_dialect_names_match_at_any_depth() -> None:
    rule = parse_rule("*.txt", dialect=SIMPLE)
    assert rule is not None
    assert rule.matches("notes.txt")
    assert rule.matches("a/b/notes.txt")


def test_simple_dialect_include_does_not_pull_in_directories() -> None:
    rules = parse_rules(["docs", "!vendor"], dialect=SIMPLE)
    assert rules.classify("docs/guide.md")[0] is Decision.UNMATCHED
    assert rules.classify("vendor/docs")[0] is Decision.EXCLUDED
