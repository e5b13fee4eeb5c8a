"""
execpolicy - Decide whether a shell invocation is provably safe to run unsandboxed.

Each program gets a declarative policy describing its acceptable argument
shape. A call that matches exactly is returned with every argument
attributed (literal, readable file, writeable file, flag); anything else is
reported with a typed error so the caller can sandbox it or ask the user.

Example usage:
    >>> from execpolicy import ExecCall, load_default_policy
    >>> policy = load_default_policy()
    >>> policy.check(ExecCall(program="cp", args=["a.txt", "b.txt"]))

    $ execpolicy check -- cp a.txt b.txt
"""

from execpolicy.defaults import load_default_policy
from execpolicy.errors import (
    DuplicateProgramError,
    EmptyFileNameError,
    ExecPolicyError,
    LiteralValueDidNotMatchError,
    MatchError,
    NotEnoughArgsError,
    PolicyParseError,
    PolicySyntaxError,
    UnexpectedArgumentsError,
    UnknownMatcherError,
    UnknownOptionError,
    VarargMatcherDidNotMatchAnythingError,
)
from execpolicy.parser import PolicyParser, load_policy, load_policy_file
from execpolicy.policy import Policy, ProgramSpec, check, evaluate
from execpolicy.schema import (
    ARG_RFILE,
    ARG_RFILES,
    ARG_WFILE,
    READABLE_FILE,
    WRITEABLE_FILE,
    ArgKind,
    ArgMatcher,
    ArgType,
    DecisionOutcome,
    ExecCall,
    ExecDecision,
    MatchedArg,
    MatchedExec,
    MatchedFlag,
    MatcherKind,
    PositionalArg,
    ValidExec,
)

__version__ = "0.1.0"
__author__ = "execpolicy Contributors"

__all__ = [
    "__version__",
    "__author__",
    "ARG_RFILE",
    "ARG_RFILES",
    "ARG_WFILE",
    "READABLE_FILE",
    "WRITEABLE_FILE",
    "ArgKind",
    "ArgMatcher",
    "ArgType",
    "DecisionOutcome",
    "DuplicateProgramError",
    "EmptyFileNameError",
    "ExecCall",
    "ExecDecision",
    "ExecPolicyError",
    "LiteralValueDidNotMatchError",
    "MatchError",
    "MatchedArg",
    "MatchedExec",
    "MatchedFlag",
    "MatcherKind",
    "NotEnoughArgsError",
    "Policy",
    "PolicyParseError",
    "PolicyParser",
    "PolicySyntaxError",
    "PositionalArg",
    "ProgramSpec",
    "UnexpectedArgumentsError",
    "UnknownMatcherError",
    "UnknownOptionError",
    "ValidExec",
    "VarargMatcherDidNotMatchAnythingError",
    "check",
    "evaluate",
    "load_default_policy",
    "load_policy",
    "load_policy_file",
]
