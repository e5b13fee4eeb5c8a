"""
Exception hierarchy for execpolicy.

All execpolicy exceptions inherit from ExecPolicyError, allowing callers to
catch every engine-specific failure with a single except clause.

Exception Categories:
    - PolicyParseError: The policy source text is malformed
    - MatchError: An invocation did not fully match its program's policy

Design Principles:
    - All errors have error codes for programmatic handling
    - All errors carry the data needed to render a diagnostic
    - Errors with the same fields compare equal (they are dataclasses)
    - An unknown program is NOT an error; see Policy.check()
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from execpolicy.schema import ArgMatcher, PositionalArg


# =============================================================================
# Error Codes
# =============================================================================

# Parse errors: 1xxx
ERROR_PARSE = 1001
ERROR_PARSE_SYNTAX = 1002
ERROR_PARSE_UNKNOWN_MATCHER = 1003
ERROR_PARSE_DUPLICATE_PROGRAM = 1004

# Match errors: 2xxx
ERROR_MATCH = 2000
ERROR_MATCH_NOT_ENOUGH_ARGS = 2001
ERROR_MATCH_VARARG_EMPTY = 2002
ERROR_MATCH_LITERAL_MISMATCH = 2003
ERROR_MATCH_UNEXPECTED_ARGS = 2004
ERROR_MATCH_UNKNOWN_OPTION = 2005
ERROR_MATCH_EMPTY_FILE_NAME = 2006


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class ExecPolicyError(Exception):
    """
    Base exception for all execpolicy errors.

    Every execpolicy exception inherits from this class and carries:
    - A numeric error code (1xxx parse, 2xxx match)
    - A human-readable message
    - An optional suggestion for resolving it
    - A context dict with the data needed to render a diagnostic

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Parse Errors
# =============================================================================


@dataclass
class PolicyParseError(ExecPolicyError):
    """
    Raised when policy source text cannot be turned into a Policy.

    Parse errors are fatal to loading that source. They always name the
    source and the location of the offending construct.

    Attributes:
        source_name: Identifier supplied for the policy source
        line: 1-based line of the offending construct (0 if unknown)
        column: 0-based column of the offending construct
        reason: What was wrong
    """

    source_name: str = ""
    line: int = 0
    column: int = 0
    reason: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"{self.source_name}:{self.line}:{self.column}: {self.reason}"
        if self.code == 0:
            self.code = ERROR_PARSE
        self.context.update({
            "source_name": self.source_name,
            "line": self.line,
            "column": self.column,
            "reason": self.reason,
        })


@dataclass
class PolicySyntaxError(PolicyParseError):
    """Raised for structurally invalid policy source."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if self.code == 0:
            self.code = ERROR_PARSE_SYNTAX
        super().__post_init__()


@dataclass
class UnknownMatcherError(PolicyParseError):
    """Raised when an argument pattern names a matcher outside the vocabulary."""

    name: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.reason:
            self.reason = f"unknown matcher: {self.name}"
        if self.code == 0:
            self.code = ERROR_PARSE_UNKNOWN_MATCHER
        if not self.suggestion:
            self.suggestion = "Use a quoted literal or one of ARG_RFILE, ARG_WFILE, ARG_RFILES"
        super().__post_init__()
        self.context["name"] = self.name


@dataclass
class DuplicateProgramError(PolicyParseError):
    """Raised when the same program is defined twice in one source."""

    program: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.reason:
            self.reason = f"program already defined: {self.program}"
        if self.code == 0:
            self.code = ERROR_PARSE_DUPLICATE_PROGRAM
        super().__post_init__()
        self.context["program"] = self.program


# =============================================================================
# Match Errors
# =============================================================================


@dataclass
class MatchError(ExecPolicyError):
    """
    Base class for invocations that do not fully match their policy.

    A MatchError means the call is not provably safe. Callers should route
    it to sandboxed execution or ask for explicit approval.

    Attributes:
        program: Name of the program being checked
    """

    program: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if self.code == 0:
            self.code = ERROR_MATCH
        self.context["program"] = self.program


@dataclass
class NotEnoughArgsError(MatchError):
    """
    Raised when the call runs out of arguments before the pattern does.

    Attributes:
        supplied_args: Every positional argument the call supplied
        arg_patterns: The matchers that were still unmatched
    """

    supplied_args: list[PositionalArg] = field(default_factory=list)
    arg_patterns: list[ArgMatcher] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            expected = ", ".join(m.describe() for m in self.arg_patterns)
            self.message = f"Not enough arguments for {self.program}: still expected {expected}"
        if self.code == 0:
            self.code = ERROR_MATCH_NOT_ENOUGH_ARGS
        super().__post_init__()
        self.context.update({
            "supplied_args": [a.model_dump() for a in self.supplied_args],
            "arg_patterns": [m.describe() for m in self.arg_patterns],
        })


@dataclass
class VarargMatcherDidNotMatchAnythingError(MatchError):
    """Raised when a vararg matcher is left with zero arguments to bind."""

    matcher: ArgMatcher | None = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        described = self.matcher.describe() if self.matcher else "?"
        if not self.message:
            self.message = f"{described} for {self.program} did not match any arguments"
        if self.code == 0:
            self.code = ERROR_MATCH_VARARG_EMPTY
        super().__post_init__()
        self.context["matcher"] = described


@dataclass
class LiteralValueDidNotMatchError(MatchError):
    """Raised when a literal pattern position holds a different argument."""

    expected: str = ""
    actual: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Expected literal {self.expected!r}, got {self.actual!r}"
        if self.code == 0:
            self.code = ERROR_MATCH_LITERAL_MISMATCH
        super().__post_init__()
        self.context.update({
            "expected": self.expected,
            "actual": self.actual,
        })


@dataclass
class UnexpectedArgumentsError(MatchError):
    """
    Raised when arguments remain after the whole pattern has been matched.

    Attributes:
        extra_args: The extra arguments with their original indices
    """

    extra_args: list[PositionalArg] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            extras = ", ".join(f"{a.index}:{a.value!r}" for a in self.extra_args)
            self.message = f"Unexpected arguments for {self.program}: {extras}"
        if self.code == 0:
            self.code = ERROR_MATCH_UNEXPECTED_ARGS
        super().__post_init__()
        self.context["extra_args"] = [a.model_dump() for a in self.extra_args]


@dataclass
class UnknownOptionError(MatchError):
    """Raised when an option-looking argument is not a declared flag."""

    option: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Unknown option for {self.program}: {self.option}"
        if self.code == 0:
            self.code = ERROR_MATCH_UNKNOWN_OPTION
        if not self.suggestion:
            self.suggestion = "Declare the option with flag() or pass it after --"
        super().__post_init__()
        self.context["option"] = self.option


@dataclass
class EmptyFileNameError(MatchError):
    """Raised when a file matcher is given an empty string."""

    index: int = 0

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Empty file name at argument {self.index}"
        if self.code == 0:
            self.code = ERROR_MATCH_EMPTY_FILE_NAME
        super().__post_init__()
        self.context["index"] = self.index
