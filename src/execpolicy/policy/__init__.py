"""
Matching engine module for execpolicy.

This module turns a loaded Policy and a concrete ExecCall into a decision.

Key concepts:
    - ProgramSpec: The declared argument shape of one program
    - Policy: Program name -> ProgramSpec, read-only once built
    - check(): Full match, typed MatchError, or None for an unknown program
    - evaluate(): The same outcome as a non-raising ExecDecision

The engine must be:
    - Fail-closed: Unknown programs and unaccounted arguments are never safe
    - Predictable: Same inputs always produce the same result
    - Pure: No filesystem access and no shared mutable state
"""

from execpolicy.policy.engine import (
    Policy,
    ProgramSpec,
    check,
    evaluate,
    resolve_positional_args,
)

__all__ = [
    "Policy",
    "ProgramSpec",
    "check",
    "evaluate",
    "resolve_positional_args",
]
