"""
Policy Definition Language (PDL) parser.

PDL is a small declarative language whose syntax is a subset of Python
expressions. A source is a sequence of program declarations:

    # Copy files; the last argument is the destination.
    define_program(
        program="cp",
        options=[flag("-r"), flag("-R")],
        args=[ARG_RFILES, ARG_WFILE],
        system_path=["/bin/cp", "/usr/bin/cp"],
        should_match=[["a", "b"]],
        should_not_match=[["a"]],
    )

Quoted strings in args are literals (subcommands, or fixed flags such as
"-c"); bare identifiers name matchers from the closed vocabulary. The
parser only checks syntax and structure, not whether a matcher sequence is
sensible.

The source is parsed with the ast module and never executed.
"""

import ast
import logging
from pathlib import Path
from typing import Any

from execpolicy.errors import (
    DuplicateProgramError,
    PolicySyntaxError,
    UnknownMatcherError,
)
from execpolicy.policy.engine import Policy, ProgramSpec
from execpolicy.schema import ARG_RFILE, ARG_RFILES, ARG_WFILE, ArgMatcher, Example

logger = logging.getLogger(__name__)

DEFINE_PROGRAM = "define_program"
FLAG = "flag"

MATCHER_NAMES: dict[str, ArgMatcher] = {
    "ARG_RFILE": ARG_RFILE,
    "ARG_WFILE": ARG_WFILE,
    "ARG_RFILES": ARG_RFILES,
}

DEFINE_PROGRAM_KEYWORDS = frozenset({
    "program",
    "args",
    "options",
    "system_path",
    "should_match",
    "should_not_match",
})


class PolicyParser:
    """
    Parses PDL source text into a Policy.

    Usage:
        parser = PolicyParser("my.policy", text)
        policy = parser.parse()

    Attributes:
        source_name: Name used in error messages to identify the source
        source: The PDL text
    """

    def __init__(self, source_name: str, source: str) -> None:
        self.source_name = source_name
        self.source = source

    def parse(self) -> Policy:
        """
        Parse the source.

        Returns:
            Policy holding one ProgramSpec per declaration

        Raises:
            PolicySyntaxError: Invalid syntax or declaration structure
            UnknownMatcherError: An argument pattern outside the vocabulary
            DuplicateProgramError: A program declared twice
        """
        try:
            module = ast.parse(self.source, filename=self.source_name, mode="exec")
        except SyntaxError as e:
            raise PolicySyntaxError(
                source_name=self.source_name,
                line=e.lineno or 0,
                column=(e.offset or 1) - 1,
                reason=f"invalid syntax: {e.msg}",
            ) from e
        except ValueError as e:
            # Null bytes are reported as ValueError on older interpreters.
            raise PolicySyntaxError(source_name=self.source_name, reason=str(e)) from e

        programs: dict[str, ProgramSpec] = {}
        for statement in module.body:
            spec = self._parse_statement(statement)
            if spec.program in programs:
                raise DuplicateProgramError(
                    source_name=self.source_name,
                    line=statement.lineno,
                    column=statement.col_offset,
                    program=spec.program,
                )
            programs[spec.program] = spec

        logger.debug("Parsed %d program(s) from %s", len(programs), self.source_name)
        return Policy(programs=programs)

    # =========================================================================
    # Declarations
    # =========================================================================

    def _parse_statement(self, statement: ast.stmt) -> ProgramSpec:
        if not isinstance(statement, ast.Expr) or not self._is_call_to(statement.value, DEFINE_PROGRAM):
            raise self._syntax_error(statement, f"expected {DEFINE_PROGRAM}(...)")

        call = statement.value
        assert isinstance(call, ast.Call)
        if call.args:
            raise self._syntax_error(call.args[0], f"{DEFINE_PROGRAM} takes keyword arguments only")

        fields: dict[str, ast.expr] = {}
        for keyword in call.keywords:
            if keyword.arg is None:
                raise self._syntax_error(keyword.value, "** arguments are not supported")
            if keyword.arg not in DEFINE_PROGRAM_KEYWORDS:
                raise self._syntax_error(keyword.value, f"unknown argument: {keyword.arg}")
            if keyword.arg in fields:
                raise self._syntax_error(keyword.value, f"argument repeated: {keyword.arg}")
            fields[keyword.arg] = keyword.value

        if "program" not in fields:
            raise self._syntax_error(call, f"{DEFINE_PROGRAM} requires program=")

        program = self._parse_string(fields["program"], "program")
        if not program:
            raise self._syntax_error(fields["program"], "program must not be empty")

        examples = [
            Example(args=args, should_match=True)
            for args in self._parse_examples(fields.get("should_match"), "should_match")
        ]
        examples.extend(
            Example(args=args, should_match=False)
            for args in self._parse_examples(fields.get("should_not_match"), "should_not_match")
        )

        return ProgramSpec(
            program=program,
            arg_patterns=[
                self._parse_arg_pattern(item) for item in self._parse_list(fields.get("args"), "args")
            ],
            options=[
                self._parse_option(item) for item in self._parse_list(fields.get("options"), "options")
            ],
            system_path=[
                self._parse_string(item, "system_path entry")
                for item in self._parse_list(fields.get("system_path"), "system_path")
            ],
            examples=examples,
        )

    def _parse_arg_pattern(self, node: ast.expr) -> ArgMatcher:
        """A string literal or a matcher identifier."""
        if isinstance(node, ast.Constant) and isinstance(node.value, str):
            return ArgMatcher.literal(node.value)
        if isinstance(node, ast.Name):
            matcher = MATCHER_NAMES.get(node.id)
            if matcher is None:
                raise self._unknown_matcher(node, node.id)
            return matcher
        if self._is_call_to(node, FLAG):
            raise self._syntax_error(node, "flag() belongs in options, not args")
        if isinstance(node, ast.Call):
            raise self._unknown_matcher(node, ast.unparse(node.func))
        raise self._syntax_error(node, "args entries must be strings or matcher names")

    def _parse_option(self, node: ast.expr) -> ArgMatcher:
        """A flag("...") call."""
        if not self._is_call_to(node, FLAG):
            if isinstance(node, ast.Call):
                raise self._unknown_matcher(node, ast.unparse(node.func))
            if isinstance(node, ast.Name):
                raise self._unknown_matcher(node, node.id)
            raise self._syntax_error(node, 'options entries must be flag("...")')

        assert isinstance(node, ast.Call)
        if node.keywords or len(node.args) != 1:
            raise self._syntax_error(node, "flag() takes exactly one string")
        name = self._parse_string(node.args[0], "flag name")
        if not name:
            raise self._syntax_error(node, "flag name must not be empty")
        return ArgMatcher.flag(name)

    def _parse_examples(self, node: ast.expr | None, what: str) -> list[list[str]]:
        examples = []
        for item in self._parse_list(node, what):
            examples.append([
                self._parse_string(arg, f"{what} argument")
                for arg in self._parse_list(item, f"{what} entry")
            ])
        return examples

    # =========================================================================
    # Primitives
    # =========================================================================

    def _parse_list(self, node: ast.expr | None, what: str) -> list[ast.expr]:
        if node is None:
            return []
        if not isinstance(node, ast.List):
            raise self._syntax_error(node, f"{what} must be a list")
        return list(node.elts)

    def _parse_string(self, node: ast.expr, what: str) -> str:
        if not isinstance(node, ast.Constant) or not isinstance(node.value, str):
            raise self._syntax_error(node, f"{what} must be a string")
        return node.value

    @staticmethod
    def _is_call_to(node: ast.expr, name: str) -> bool:
        return (
            isinstance(node, ast.Call)
            and isinstance(node.func, ast.Name)
            and node.func.id == name
        )

    def _location(self, node: Any) -> dict[str, Any]:
        return {
            "source_name": self.source_name,
            "line": getattr(node, "lineno", 0),
            "column": getattr(node, "col_offset", 0),
        }

    def _syntax_error(self, node: Any, reason: str) -> PolicySyntaxError:
        return PolicySyntaxError(reason=reason, **self._location(node))

    def _unknown_matcher(self, node: Any, name: str) -> UnknownMatcherError:
        return UnknownMatcherError(name=name, **self._location(node))


# =============================================================================
# Loading Helpers
# =============================================================================


def load_policy(source: str, source_name: str = "<policy>") -> Policy:
    """Parse PDL text into a Policy."""
    return PolicyParser(source_name, source).parse()


def load_policy_file(path: Path | str) -> Policy:
    """
    Parse a PDL file into a Policy.

    Args:
        path: Path to the policy file

    Returns:
        The parsed Policy

    Raises:
        FileNotFoundError: If the file doesn't exist
        PolicyParseError: If the file is not valid PDL
    """
    path = Path(path)
    return PolicyParser(str(path), path.read_text(encoding="utf-8")).parse()
