"""
Unit tests for the policy parser.

Tests cover:
- Parsing every declaration field
- Matcher vocabulary resolution
- Structural and syntax errors with source locations
- Loading from files
"""

from pathlib import Path

import pytest

from execpolicy.errors import (
    DuplicateProgramError,
    PolicyParseError,
    PolicySyntaxError,
    UnknownMatcherError,
)
from execpolicy.parser import PolicyParser, load_policy, load_policy_file
from execpolicy.schema import ARG_RFILE, ARG_RFILES, ARG_WFILE, ArgMatcher, Example


# =============================================================================
# Successful Parsing
# =============================================================================


class TestParseValid:
    """Tests for well-formed policy sources."""

    def test_sample_policy(self, sample_policy) -> None:
        assert set(sample_policy.programs) == {"cp", "fake_executable", "diff"}

        cp = sample_policy.programs["cp"]
        assert cp.arg_patterns == [ARG_RFILES, ARG_WFILE]
        assert cp.options == [ArgMatcher.flag("-r")]
        assert cp.system_path == ["/bin/cp", "/usr/bin/cp"]

    def test_string_literals_become_literal_matchers(self, sample_policy) -> None:
        spec = sample_policy.programs["fake_executable"]
        assert spec.arg_patterns == [
            ArgMatcher.literal("subcommand"),
            ArgMatcher.literal("sub-subcommand"),
        ]

    def test_program_only(self) -> None:
        """Omitted fields default to empty lists."""
        policy = load_policy('define_program(program="pwd")')
        spec = policy.programs["pwd"]
        assert spec.arg_patterns == []
        assert spec.options == []
        assert spec.system_path == []
        assert spec.examples == []

    def test_empty_source(self) -> None:
        assert load_policy("").programs == {}

    def test_comments_are_ignored(self) -> None:
        policy = load_policy(
            """
# leading comment
define_program(
    program="cat",  # trailing comment
    args=[ARG_RFILES],
)
"""
        )
        assert policy.programs["cat"].arg_patterns == [ARG_RFILES]

    def test_examples(self) -> None:
        policy = load_policy(
            """
define_program(
    program="diff",
    args=[ARG_RFILE, ARG_RFILE],
    should_match=[["a", "b"]],
    should_not_match=[["a"], []],
)
"""
        )
        assert policy.programs["diff"].examples == [
            Example(args=["a", "b"], should_match=True),
            Example(args=["a"], should_match=False),
            Example(args=[], should_match=False),
        ]

    def test_parser_class(self, sample_policy_source: str) -> None:
        parser = PolicyParser("sample.policy", sample_policy_source)
        assert parser.parse() == load_policy(sample_policy_source)

    def test_source_is_not_executed(self, temp_dir: Path) -> None:
        """Only the declaration grammar is accepted; nothing is evaluated."""
        marker = temp_dir / "marker"
        source = f'open({str(marker)!r}, "w")'
        with pytest.raises(PolicySyntaxError):
            load_policy(source)
        assert not marker.exists()


# =============================================================================
# Matcher Vocabulary Errors
# =============================================================================


class TestUnknownMatchers:
    """Tests for names outside the matcher vocabulary."""

    def test_unknown_identifier_in_args(self) -> None:
        with pytest.raises(UnknownMatcherError) as exc_info:
            load_policy('define_program(program="x", args=[ARG_NOPE])')
        assert exc_info.value.name == "ARG_NOPE"
        assert exc_info.value.line == 1

    def test_unknown_call_in_args(self) -> None:
        with pytest.raises(UnknownMatcherError) as exc_info:
            load_policy('define_program(program="x", args=[ARG_OPT("-x")])')
        assert exc_info.value.name == "ARG_OPT"

    def test_matcher_name_is_case_sensitive(self) -> None:
        with pytest.raises(UnknownMatcherError):
            load_policy('define_program(program="x", args=[arg_rfile])')

    def test_bare_identifier_in_options(self) -> None:
        with pytest.raises(UnknownMatcherError):
            load_policy('define_program(program="x", options=[ARG_RFILE])')

    def test_flag_in_args_is_rejected(self) -> None:
        with pytest.raises(PolicySyntaxError) as exc_info:
            load_policy('define_program(program="x", args=[flag("-r")])')
        assert "options" in exc_info.value.message


# =============================================================================
# Structural Errors
# =============================================================================


class TestStructuralErrors:
    """Tests for malformed declarations."""

    def test_invalid_syntax_reports_line(self) -> None:
        source = 'define_program(program="a")\n\ndefine_program(program="b"\n'
        with pytest.raises(PolicySyntaxError) as exc_info:
            load_policy(source, "broken.policy")
        assert exc_info.value.source_name == "broken.policy"
        assert exc_info.value.line >= 3
        assert exc_info.value.message.startswith("broken.policy:")

    def test_non_declaration_statement(self) -> None:
        with pytest.raises(PolicySyntaxError) as exc_info:
            load_policy('x = 1')
        assert "define_program" in exc_info.value.reason

    def test_other_function_call(self) -> None:
        with pytest.raises(PolicySyntaxError):
            load_policy('define_programs(program="x")')

    def test_positional_argument(self) -> None:
        with pytest.raises(PolicySyntaxError):
            load_policy('define_program("x")')

    def test_missing_program(self) -> None:
        with pytest.raises(PolicySyntaxError) as exc_info:
            load_policy("define_program(args=[ARG_RFILE])")
        assert "program=" in exc_info.value.reason

    def test_empty_program(self) -> None:
        with pytest.raises(PolicySyntaxError):
            load_policy('define_program(program="")')

    def test_program_must_be_string(self) -> None:
        with pytest.raises(PolicySyntaxError):
            load_policy("define_program(program=cp)")

    def test_unknown_keyword(self) -> None:
        with pytest.raises(PolicySyntaxError) as exc_info:
            load_policy('define_program(program="x", argz=[])')
        assert exc_info.value.reason == "unknown argument: argz"

    def test_repeated_keyword(self) -> None:
        with pytest.raises(PolicySyntaxError):
            load_policy('define_program(program="x", program="y")')

    def test_double_star_rejected(self) -> None:
        with pytest.raises(PolicySyntaxError):
            load_policy('define_program(program="x", **extra)')

    def test_args_must_be_list(self) -> None:
        with pytest.raises(PolicySyntaxError):
            load_policy('define_program(program="x", args=ARG_RFILES)')

    def test_flag_requires_one_string(self) -> None:
        for options in ('[flag()]', '[flag("-a", "-b")]', '[flag(1)]', '[flag("")]'):
            with pytest.raises(PolicySyntaxError):
                load_policy(f'define_program(program="x", options={options})')

    def test_example_entries_must_be_string_lists(self) -> None:
        with pytest.raises(PolicySyntaxError):
            load_policy('define_program(program="x", should_match=["a"])')
        with pytest.raises(PolicySyntaxError):
            load_policy('define_program(program="x", should_match=[[1]])')

    def test_duplicate_program(self) -> None:
        source = 'define_program(program="cp")\ndefine_program(program="cp")\n'
        with pytest.raises(DuplicateProgramError) as exc_info:
            load_policy(source)
        assert exc_info.value.program == "cp"
        assert exc_info.value.line == 2

    def test_all_errors_are_parse_errors(self) -> None:
        for source in ("x = 1", 'define_program(program="x", args=[NOPE])', "define_program("):
            with pytest.raises(PolicyParseError):
                load_policy(source)


# =============================================================================
# File Loading
# =============================================================================


class TestLoadPolicyFile:
    """Tests for load_policy_file()."""

    def test_load_file(self, temp_dir: Path, sample_policy_source: str) -> None:
        path = temp_dir / "my.policy"
        path.write_text(sample_policy_source)
        policy = load_policy_file(path)
        assert "cp" in policy.programs

    def test_error_names_the_file(self, temp_dir: Path) -> None:
        path = temp_dir / "bad.policy"
        path.write_text("define_program(program=1)\n")
        with pytest.raises(PolicySyntaxError) as exc_info:
            load_policy_file(path)
        assert exc_info.value.source_name == str(path)

    def test_missing_file(self, temp_dir: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_policy_file(temp_dir / "missing.policy")
