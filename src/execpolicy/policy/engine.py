"""
Matching engine for execpolicy.

The engine decides whether a concrete invocation is provably safe under a
program's declared argument shape. Anything it cannot fully account for is
rejected with a typed MatchError.

Design Principles:
    - Deny-by-default: An unknown program is never treated as safe
    - Deterministic: No backtracking; the first error found is returned
    - Pure: No filesystem access, no shared mutable state

How it works:
    1. Policy.check() looks up the program's ProgramSpec
    2. Declared flags are extracted from the argument list
    3. The remaining positional arguments are walked against the ordered
       matcher list; a vararg matcher binds everything except the slots
       reserved for the matchers after it
    4. Leftover arguments are rejected

Security Note:
    This module is security-critical. Never return a match for arguments
    that were not attributed to a matcher or a declared flag.
"""

import logging

from pydantic import BaseModel, ConfigDict, Field, model_validator

from execpolicy.errors import (
    MatchError,
    NotEnoughArgsError,
    UnexpectedArgumentsError,
    UnknownOptionError,
    VarargMatcherDidNotMatchAnythingError,
)
from execpolicy.schema import (
    ArgMatcher,
    Example,
    ExampleViolation,
    ExecCall,
    ExecDecision,
    MatchedArg,
    MatchedExec,
    MatchedFlag,
    MatcherKind,
    PositionalArg,
    ValidExec,
)

logger = logging.getLogger(__name__)

END_OF_OPTIONS = "--"


class ProgramSpec(BaseModel):
    """
    The declared argument shape of one program.

    Attributes:
        program: Program name, matched exactly against ExecCall.program
        arg_patterns: Ordered positional matchers
        options: Declared flag matchers
        system_path: Acceptable absolute paths for the executable
        examples: Self-test examples from the policy source
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    program: str = Field(..., min_length=1)
    arg_patterns: list[ArgMatcher] = Field(default_factory=list)
    options: list[ArgMatcher] = Field(default_factory=list)
    system_path: list[str] = Field(default_factory=list)
    examples: list[Example] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_matcher_placement(self) -> "ProgramSpec":
        for matcher in self.arg_patterns:
            if matcher.kind is MatcherKind.FLAG:
                msg = f"{matcher.describe()} cannot be used as a positional pattern"
                raise ValueError(msg)
        for matcher in self.options:
            if matcher.kind is not MatcherKind.FLAG:
                msg = f"{matcher.describe()} is not a flag"
                raise ValueError(msg)
        return self

    @property
    def flag_names(self) -> frozenset[str]:
        """The flag tokens this program accepts."""
        return frozenset(opt.value for opt in self.options if opt.value is not None)

    @property
    def literal_values(self) -> frozenset[str]:
        """Literal positional tokens, which may themselves start with a dash."""
        return frozenset(
            m.value
            for m in self.arg_patterns
            if m.kind is MatcherKind.LITERAL and m.value is not None
        )

    def check(self, call: ExecCall) -> MatchedExec:
        """
        Match a call against this program's shape.

        Args:
            call: The invocation; its program is assumed to be this one

        Returns:
            MatchedExec with every argument attributed

        Raises:
            MatchError: The call does not fully match
        """
        flags, positional = self._split_flags(call.args)
        matched_args = resolve_positional_args(self.program, positional, self.arg_patterns)
        return MatchedExec(
            exec=ValidExec(
                program=self.program,
                args=matched_args,
                flags=flags,
                system_path=list(self.system_path),
            )
        )

    def _split_flags(self, args: list[str]) -> tuple[list[MatchedFlag], list[PositionalArg]]:
        """
        Separate declared flags from positional arguments.

        Flags are recognised anywhere before "--"; after it every token is
        positional. An option-looking token that is neither a declared flag
        nor one of the program's literals is rejected.
        """
        flag_names = self.flag_names
        literal_values = self.literal_values
        flags: list[MatchedFlag] = []
        positional: list[PositionalArg] = []
        options_ended = False

        for index, arg in enumerate(args):
            if options_ended:
                positional.append(PositionalArg(index=index, value=arg))
            elif arg == END_OF_OPTIONS:
                options_ended = True
            elif arg in flag_names:
                flags.append(MatchedFlag(name=arg))
            elif arg.startswith("-") and arg != "-" and arg not in literal_values:
                raise UnknownOptionError(program=self.program, option=arg)
            else:
                positional.append(PositionalArg(index=index, value=arg))

        return flags, positional


def resolve_positional_args(
    program: str,
    args: list[PositionalArg],
    arg_patterns: list[ArgMatcher],
) -> list[MatchedArg]:
    """
    Attribute positional arguments to an ordered matcher list.

    The walk is left to right and never backtracks. A vararg matcher binds
    all remaining arguments except one per matcher that follows it, and must
    bind at least one.

    Args:
        program: Program name, for error reporting
        args: Positional arguments with their original indices
        arg_patterns: The program's matchers

    Returns:
        One MatchedArg per positional argument, in order

    Raises:
        NotEnoughArgsError: The arguments ran out before the matchers
        VarargMatcherDidNotMatchAnythingError: A vararg had nothing to bind
        LiteralValueDidNotMatchError: A literal position held another value
        EmptyFileNameError: A file position held an empty string
        UnexpectedArgumentsError: Arguments remained after the matchers
    """
    matched: list[MatchedArg] = []
    cursor = 0

    for pattern_index, pattern in enumerate(arg_patterns):
        remaining = len(args) - cursor

        if pattern.is_vararg:
            reserved = len(arg_patterns) - pattern_index - 1
            available = remaining - reserved
            if available < 0:
                raise NotEnoughArgsError(
                    program=program,
                    supplied_args=list(args),
                    arg_patterns=list(arg_patterns[pattern_index:]),
                )
            if available == 0:
                raise VarargMatcherDidNotMatchAnythingError(program=program, matcher=pattern)
            bound = args[cursor:cursor + available]
        else:
            if remaining <= 0:
                raise NotEnoughArgsError(
                    program=program,
                    supplied_args=list(args),
                    arg_patterns=list(arg_patterns[pattern_index:]),
                )
            bound = args[cursor:cursor + 1]

        arg_type = pattern.arg_type()
        for positional in bound:
            matched.append(MatchedArg.new(positional.index, arg_type, positional.value, program))
        cursor += len(bound)

    if cursor < len(args):
        raise UnexpectedArgumentsError(program=program, extra_args=list(args[cursor:]))

    return matched


class Policy(BaseModel):
    """
    A loaded set of program policies.

    Policies are built once by the parser and never mutated; a single
    instance may be shared by any number of concurrent callers.

    Usage:
        policy = load_policy(source)
        result = policy.check(ExecCall(program="cp", args=["a", "b"]))
        if result is None:
            # no policy for this program: sandbox or ask
        else:
            # result.exec describes the safe invocation

    Attributes:
        programs: Program name -> ProgramSpec
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    programs: dict[str, ProgramSpec] = Field(default_factory=dict)

    def get(self, program: str) -> ProgramSpec | None:
        """Look up a program by exact, case-sensitive name."""
        return self.programs.get(program)

    def check(self, call: ExecCall) -> MatchedExec | None:
        """
        Check a call against this policy.

        Returns:
            MatchedExec when the call is fully matched, or None when no
            policy exists for the program

        Raises:
            MatchError: The program is known but the call does not match
        """
        spec = self.get(call.program)
        if spec is None:
            logger.debug("No policy for program %s", call.program)
            return None

        try:
            result = spec.check(call)
        except MatchError as e:
            logger.debug("Call did not match policy: %s (%s)", call, e.message)
            raise
        logger.debug("Call matched policy: %s", call)
        return result

    def check_examples(self) -> list[ExampleViolation]:
        """
        Run every program's declared examples through check().

        Returns:
            One ExampleViolation per example whose outcome disagreed with
            its expectation; empty when the policy is self-consistent
        """
        violations: list[ExampleViolation] = []
        for spec in self.programs.values():
            for example in spec.examples:
                detail = self._example_failure(spec.program, example)
                if detail is not None:
                    violations.append(
                        ExampleViolation(
                            program=spec.program,
                            args=list(example.args),
                            expected_match=example.should_match,
                            detail=detail,
                        )
                    )
        return violations

    def _example_failure(self, program: str, example: Example) -> str | None:
        call = ExecCall(program=program, args=list(example.args))
        try:
            result = self.check(call)
        except MatchError as e:
            if example.should_match:
                return f"expected a match but got {e.__class__.__name__}: {e.message}"
            return None

        if result is None:
            return "no policy found for program"
        if not example.should_match:
            return "expected no match but the call matched"
        return None


def check(policy: Policy, call: ExecCall) -> MatchedExec | None:
    """Check a call against a policy. See Policy.check()."""
    return policy.check(call)


def evaluate(policy: Policy, call: ExecCall) -> ExecDecision:
    """
    Classify a call without raising.

    This is the entry point for callers that only need to pick between
    direct execution, sandboxed execution and asking the user.

    Args:
        policy: The loaded policy
        call: The invocation to classify

    Returns:
        ExecDecision describing the outcome
    """
    try:
        result = policy.check(call)
    except MatchError as e:
        return ExecDecision.unverified(call, e.message, e.to_dict())

    if result is None:
        return ExecDecision.unknown_program(call)
    return ExecDecision.match(call, result)
