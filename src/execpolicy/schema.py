"""
Schema definitions for execpolicy.

This module defines the Pydantic models shared by the parser, the matching
engine and their callers:
- ArgMatcher: The closed vocabulary of argument patterns a policy may use
- ExecCall: A candidate invocation submitted for a decision
- MatchedArg/MatchedFlag/ValidExec/MatchedExec: A fully attributed match
- Example/ExampleViolation: Self-test examples declared alongside a program

Design Decisions:
    - All models are immutable (frozen=True) and reject unknown fields
    - Tagged variants are a str Enum kind plus an optional payload
    - Dispatch over kinds is exhaustive (assert_never), so adding a kind
      is a type-checker error until every branch handles it
"""

from enum import Enum
from pathlib import Path
from typing import Any, Literal, assert_never

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

from execpolicy.errors import EmptyFileNameError, LiteralValueDidNotMatchError


# =============================================================================
# Enums
# =============================================================================


class MatcherKind(str, Enum):
    """The kinds of argument matcher a policy can declare."""

    LITERAL = "literal"
    READABLE_FILE = "readable_file"
    WRITEABLE_FILE = "writeable_file"
    READABLE_FILES = "readable_files"
    FLAG = "flag"


class Cardinality(str, Enum):
    """How many consecutive arguments a matcher binds."""

    ONE = "one"
    AT_LEAST_ONE = "at_least_one"


class ArgKind(str, Enum):
    """The resolved type of a matched positional argument."""

    LITERAL = "literal"
    READABLE_FILE = "readable_file"
    WRITEABLE_FILE = "writeable_file"


# =============================================================================
# Matched Argument Types
# =============================================================================


class ArgType(BaseModel):
    """
    The role a matched positional argument plays.

    File roles are advisory metadata for sandbox scoping; the engine never
    touches the filesystem.

    Attributes:
        kind: Which role the argument plays
        literal: The expected value, for LITERAL only
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: ArgKind
    literal: str | None = None

    @model_validator(mode="after")
    def _check_payload(self) -> "ArgType":
        if (self.kind == ArgKind.LITERAL) != (self.literal is not None):
            msg = f"literal value is required for, and only for, {ArgKind.LITERAL.value}"
            raise ValueError(msg)
        return self

    @classmethod
    def of_literal(cls, value: str) -> "ArgType":
        """Create a LITERAL arg type."""
        return cls(kind=ArgKind.LITERAL, literal=value)

    def validate_value(self, program: str, index: int, value: str) -> None:
        """
        Check that a candidate string can play this role.

        Raises:
            LiteralValueDidNotMatchError: A literal differs from the value
            EmptyFileNameError: A file role was given an empty string
        """
        if self.kind is ArgKind.LITERAL:
            if value != self.literal:
                raise LiteralValueDidNotMatchError(
                    program=program,
                    expected=self.literal or "",
                    actual=value,
                )
        elif self.kind is ArgKind.READABLE_FILE or self.kind is ArgKind.WRITEABLE_FILE:
            if not value:
                raise EmptyFileNameError(program=program, index=index)
        else:
            assert_never(self.kind)


READABLE_FILE = ArgType(kind=ArgKind.READABLE_FILE)
WRITEABLE_FILE = ArgType(kind=ArgKind.WRITEABLE_FILE)


# =============================================================================
# Argument Matchers
# =============================================================================


class ArgMatcher(BaseModel):
    """
    One entry in a program's argument pattern.

    Attributes:
        kind: Which matcher this is
        value: The literal string (LITERAL) or flag token (FLAG)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: MatcherKind
    value: str | None = None

    @model_validator(mode="after")
    def _check_payload(self) -> "ArgMatcher":
        needs_value = self.kind in (MatcherKind.LITERAL, MatcherKind.FLAG)
        if needs_value != (self.value is not None):
            msg = f"value is required for literal and flag matchers only, got {self.kind.value}"
            raise ValueError(msg)
        return self

    @classmethod
    def literal(cls, value: str) -> "ArgMatcher":
        """Create a LITERAL matcher."""
        return cls(kind=MatcherKind.LITERAL, value=value)

    @classmethod
    def flag(cls, name: str) -> "ArgMatcher":
        """Create a FLAG matcher."""
        return cls(kind=MatcherKind.FLAG, value=name)

    @property
    def is_vararg(self) -> bool:
        """Whether this matcher can bind more than one argument."""
        return self.cardinality() == Cardinality.AT_LEAST_ONE

    def cardinality(self) -> Cardinality:
        """Return how many arguments this matcher binds."""
        if self.kind is MatcherKind.READABLE_FILES:
            return Cardinality.AT_LEAST_ONE
        elif (
            self.kind is MatcherKind.LITERAL
            or self.kind is MatcherKind.READABLE_FILE
            or self.kind is MatcherKind.WRITEABLE_FILE
            or self.kind is MatcherKind.FLAG
        ):
            return Cardinality.ONE
        else:
            assert_never(self.kind)

    def arg_type(self) -> ArgType:
        """
        Return the type recorded for arguments bound by this matcher.

        Raises:
            ValueError: For FLAG, which never binds a positional argument
        """
        if self.kind is MatcherKind.LITERAL:
            return ArgType.of_literal(self.value or "")
        elif self.kind is MatcherKind.READABLE_FILE or self.kind is MatcherKind.READABLE_FILES:
            return READABLE_FILE
        elif self.kind is MatcherKind.WRITEABLE_FILE:
            return WRITEABLE_FILE
        elif self.kind is MatcherKind.FLAG:
            msg = f"flag {self.value} does not bind positional arguments"
            raise ValueError(msg)
        else:
            assert_never(self.kind)

    def describe(self) -> str:
        """Short human-readable form, matching the policy source spelling."""
        if self.kind is MatcherKind.LITERAL:
            return repr(self.value)
        elif self.kind is MatcherKind.READABLE_FILE:
            return "ARG_RFILE"
        elif self.kind is MatcherKind.WRITEABLE_FILE:
            return "ARG_WFILE"
        elif self.kind is MatcherKind.READABLE_FILES:
            return "ARG_RFILES"
        elif self.kind is MatcherKind.FLAG:
            return f"flag({self.value!r})"
        else:
            assert_never(self.kind)


ARG_RFILE = ArgMatcher(kind=MatcherKind.READABLE_FILE)
ARG_WFILE = ArgMatcher(kind=MatcherKind.WRITEABLE_FILE)
ARG_RFILES = ArgMatcher(kind=MatcherKind.READABLE_FILES)


# =============================================================================
# Calls and Results
# =============================================================================


class ExecCall(BaseModel):
    """
    A candidate program invocation.

    Attributes:
        program: Program name as the caller intends to run it
        args: Arguments in command-line order, excluding argv[0]
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    program: str = Field(..., min_length=1, description="Program name")
    args: list[str] = Field(default_factory=list, description="Arguments, excluding argv[0]")

    @classmethod
    def from_argv(cls, argv: list[str]) -> "ExecCall":
        """Build a call from a full argv (argv[0] is the program)."""
        if not argv:
            msg = "argv must not be empty"
            raise ValueError(msg)
        return cls(program=argv[0], args=list(argv[1:]))

    def __str__(self) -> str:
        return " ".join([self.program, *self.args])


class PositionalArg(BaseModel):
    """An argument that was not consumed as a flag, with its original index."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    index: int = Field(..., ge=0)
    value: str


class MatchedArg(BaseModel):
    """
    A positional argument attributed to a matcher.

    Attributes:
        index: Position of the argument in ExecCall.args
        type: The role the argument plays
        value: The original argument string
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    index: int = Field(..., ge=0)
    type: ArgType
    value: str

    @classmethod
    def new(cls, index: int, arg_type: ArgType, value: str, program: str = "") -> "MatchedArg":
        """
        Create a MatchedArg after checking the value against its type.

        Raises:
            LiteralValueDidNotMatchError: A literal differs from the value
            EmptyFileNameError: A file role was given an empty string
        """
        arg_type.validate_value(program, index, value)
        return cls(index=index, type=arg_type, value=value)


class MatchedFlag(BaseModel):
    """A declared flag as it appeared in the call."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str


class ValidExec(BaseModel):
    """
    A call that fully matched its program's policy.

    The default instance is a zero-argument call.

    Attributes:
        program: Program name
        args: Attributed positional arguments, in call order
        flags: Declared flags, in call order
        system_path: Acceptable absolute paths for the executable
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    program: str = ""
    args: list[MatchedArg] = Field(default_factory=list)
    flags: list[MatchedFlag] = Field(default_factory=list)
    system_path: list[str] = Field(default_factory=list)

    def might_write_files(self) -> bool:
        """Whether any argument is a path the program may write."""
        return any(arg.type.kind == ArgKind.WRITEABLE_FILE for arg in self.args)


class MatchedExec(BaseModel):
    """Result envelope for a call established as safe."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["match"] = "match"
    exec: ValidExec


class DecisionOutcome(str, Enum):
    """What the engine concluded about a call."""

    MATCH = "match"
    UNVERIFIED = "unverified"
    UNKNOWN_PROGRAM = "unknown_program"


class ExecDecision(BaseModel):
    """
    Non-raising summary of a check, for callers choosing how to run a call.

    Attributes:
        call: The call that was checked
        outcome: Match, unverified (typed error) or unknown program
        reason: Human-readable explanation of the outcome
        matched: The match, when outcome is MATCH
        error: The error's to_dict(), when outcome is UNVERIFIED
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    call: ExecCall
    outcome: DecisionOutcome
    reason: str
    matched: MatchedExec | None = None
    error: dict[str, Any] | None = None

    @property
    def is_match(self) -> bool:
        return self.outcome == DecisionOutcome.MATCH

    @property
    def requires_sandbox(self) -> bool:
        """True unless the call matched and writes no files."""
        if self.matched is None:
            return True
        return self.matched.exec.might_write_files()

    @classmethod
    def match(cls, call: ExecCall, matched: MatchedExec) -> "ExecDecision":
        """Create a MATCH decision."""
        return cls(
            call=call,
            outcome=DecisionOutcome.MATCH,
            reason=f"Call matches the policy for {call.program}",
            matched=matched,
        )

    @classmethod
    def unverified(cls, call: ExecCall, reason: str, error: dict[str, Any]) -> "ExecDecision":
        """Create an UNVERIFIED decision from a match error."""
        return cls(call=call, outcome=DecisionOutcome.UNVERIFIED, reason=reason, error=error)

    @classmethod
    def unknown_program(cls, call: ExecCall) -> "ExecDecision":
        """Create an UNKNOWN_PROGRAM decision."""
        return cls(
            call=call,
            outcome=DecisionOutcome.UNKNOWN_PROGRAM,
            reason=f"No policy for program: {call.program}",
        )


# =============================================================================
# Policy Examples
# =============================================================================


class Example(BaseModel):
    """An argument list a program's policy should (or should not) accept."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    args: list[str] = Field(default_factory=list)
    should_match: bool


class ExampleViolation(BaseModel):
    """
    An example whose outcome disagreed with its expectation.

    Attributes:
        program: Program the example belongs to
        args: The example's arguments
        expected_match: What the example declared
        detail: What actually happened
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    program: str
    args: list[str]
    expected_match: bool
    detail: str


# =============================================================================
# Batch Call Files
# =============================================================================


class ExecCallBatch(BaseModel):
    """A list of calls to check together, loaded from YAML."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    calls: list[ExecCall] = Field(..., description="Calls to check, in order")


def load_exec_calls(path: Path | str) -> ExecCallBatch:
    """
    Load a batch of calls from a YAML file.

    Args:
        path: Path to the YAML file

    Returns:
        Validated ExecCallBatch

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValidationError: If the YAML doesn't match the schema
    """
    path = Path(path)
    with path.open() as f:
        data = yaml.safe_load(f)

    return ExecCallBatch.model_validate(data)


def load_exec_calls_from_string(content: str) -> ExecCallBatch:
    """Load a batch of calls from a YAML string."""
    data = yaml.safe_load(content)
    return ExecCallBatch.model_validate(data)
