"""
CLI entry point for execpolicy.

This module provides the Typer-based command-line interface for checking
invocations against a policy.

Commands:
    check        Check a single command line against the policy
    check-batch  Check every call listed in a YAML file
    validate     Parse a policy and run its should_match examples
    programs     List the programs a policy covers

Architecture Note:
    The CLI is intentionally thin - it parses arguments, loads the policy
    and delegates to the engine. The engine never depends on the CLI.

Exit codes:
    0   The call matched (or every call matched / the policy is valid)
    1   The policy or input file could not be loaded
    12  The call did not match its program's policy
    13  No policy exists for the program
"""

import json
import logging
import traceback
from pathlib import Path
from typing import Annotated, Optional

import typer
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from execpolicy import __version__
from execpolicy.config import get_settings, resolve_policy
from execpolicy.errors import PolicyParseError
from execpolicy.policy import Policy, evaluate
from execpolicy.schema import DecisionOutcome, ExecCall, ExecDecision, load_exec_calls

EXIT_MATCH = 0
EXIT_LOAD_ERROR = 1
EXIT_UNVERIFIED = 12
EXIT_UNKNOWN_PROGRAM = 13

# Initialize Typer app with metadata
app = typer.Typer(
    name="execpolicy",
    help="Decide whether a command is provably safe to run without a sandbox.",
    add_completion=False,
    no_args_is_help=True,
)

# Rich consoles for formatted output; logs go to stderr
console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]execpolicy[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    execpolicy - Check shell invocations against declarative program policies.

    A call that matches its program's policy exactly is safe to run directly;
    anything else should be sandboxed or approved by a human.
    """
    _configure_logging(get_settings().log_level)


def _configure_logging(level: str) -> None:
    """Send library logs to stderr through Rich."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


PolicyOption = Annotated[
    Optional[Path],
    typer.Option(
        "--policy",
        "-p",
        help="Path to a policy file. Defaults to EXECPOLICY_POLICY_PATH or the built-in policy.",
        exists=True,
        readable=True,
        resolve_path=True,
    ),
]

JsonOption = Annotated[
    bool,
    typer.Option(
        "--json",
        help="Output results in JSON format.",
    ),
]

DebugOption = Annotated[
    bool,
    typer.Option(
        "--debug",
        help="Include tracebacks in error output.",
    ),
]


def _load_policy_or_exit(policy_path: Path | None, json_output: bool, debug: bool) -> Policy:
    """Load the policy, printing the error and exiting on failure."""
    try:
        return resolve_policy(get_settings(), policy_path)
    except (PolicyParseError, OSError) as e:
        if json_output:
            _output_json_error("policy_load_error", str(e), debug)
        else:
            console.print(f"[red]Error loading policy: {escape(str(e))}[/red]")
            if debug:
                console.print(f"[dim]{traceback.format_exc()}[/dim]")
        raise typer.Exit(code=EXIT_LOAD_ERROR)


def _exit_code(decision: ExecDecision) -> int:
    if decision.outcome == DecisionOutcome.MATCH:
        return EXIT_MATCH
    if decision.outcome == DecisionOutcome.UNKNOWN_PROGRAM:
        return EXIT_UNKNOWN_PROGRAM
    return EXIT_UNVERIFIED


@app.command()
def check(
    command: Annotated[
        list[str],
        typer.Argument(help="The program and its arguments. Put -- before the program."),
    ],
    policy_path: PolicyOption = None,
    json_output: JsonOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Check a single command line against the policy.

    Example:
        $ execpolicy check -- cp -r src dest
    """
    policy = _load_policy_or_exit(policy_path, json_output, debug)
    decision = evaluate(policy, ExecCall.from_argv(command))

    if json_output:
        print(json.dumps(decision.model_dump(mode="json"), indent=2))
    else:
        _display_decision(decision)

    raise typer.Exit(code=_exit_code(decision))


def _display_decision(decision: ExecDecision) -> None:
    """Display one decision in a formatted way."""
    if decision.outcome == DecisionOutcome.MATCH:
        console.print(f"[green]✓[/green] [bold]{escape(str(decision.call))}[/bold]: [green]match[/green]")
    elif decision.outcome == DecisionOutcome.UNKNOWN_PROGRAM:
        console.print(f"[yellow]?[/yellow] [bold]{escape(str(decision.call))}[/bold]: [yellow]unknown program[/yellow]")
    else:
        console.print(f"[red]✗[/red] [bold]{escape(str(decision.call))}[/bold]: [red]unverified[/red]")
    console.print(f"[dim]{escape(decision.reason)}[/dim]")

    if decision.error and decision.error.get("suggestion"):
        console.print(f"[dim]Suggestion: {decision.error['suggestion']}[/dim]")

    if decision.matched is None:
        return

    valid = decision.matched.exec
    if valid.args:
        table = Table(show_header=True, header_style="bold")
        table.add_column("#", style="dim", width=3)
        table.add_column("Type", style="cyan")
        table.add_column("Value")
        for arg in valid.args:
            table.add_row(str(arg.index), arg.type.kind.value, escape(arg.value))
        console.print(table)

    if valid.flags:
        console.print(f"Flags: {' '.join(f.name for f in valid.flags)}")
    if valid.system_path:
        console.print(f"[dim]Executable must resolve to one of: {', '.join(valid.system_path)}[/dim]")
    if valid.might_write_files():
        console.print("[yellow]Writes files: scope the sandbox to the writeable paths above.[/yellow]")


@app.command("check-batch")
def check_batch(
    calls_path: Annotated[
        Path,
        typer.Argument(
            help="Path to a YAML file with a top-level 'calls' list.",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ],
    policy_path: PolicyOption = None,
    json_output: JsonOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Check every call listed in a YAML file.

    Example:
        $ execpolicy check-batch calls.yaml --policy my.policy
    """
    try:
        batch = load_exec_calls(calls_path)
    except (ValidationError, yaml.YAMLError, OSError) as e:
        if json_output:
            _output_json_error("calls_load_error", str(e), debug)
        else:
            console.print(f"[red]Error loading calls: {escape(str(e))}[/red]")
            if debug:
                console.print(f"[dim]{traceback.format_exc()}[/dim]")
        raise typer.Exit(code=EXIT_LOAD_ERROR)

    policy = _load_policy_or_exit(policy_path, json_output, debug)
    decisions = [evaluate(policy, call) for call in batch.calls]
    all_matched = all(d.outcome == DecisionOutcome.MATCH for d in decisions)

    if json_output:
        output = {
            "all_matched": all_matched,
            "count": len(decisions),
            "decisions": [d.model_dump(mode="json") for d in decisions],
        }
        print(json.dumps(output, indent=2))
    else:
        table = Table(show_header=True, header_style="bold")
        table.add_column("#", style="dim", width=3)
        table.add_column("Command", style="cyan")
        table.add_column("Outcome", width=16)
        table.add_column("Details")

        for i, decision in enumerate(decisions, start=1):
            if decision.outcome == DecisionOutcome.MATCH:
                outcome = "[green]match[/green]"
            elif decision.outcome == DecisionOutcome.UNKNOWN_PROGRAM:
                outcome = "[yellow]unknown program[/yellow]"
            else:
                outcome = "[red]unverified[/red]"

            details = decision.reason
            if len(details) > 60:
                details = details[:57] + "..."
            table.add_row(str(i), escape(str(decision.call)), outcome, escape(details))

        console.print(table)
        matched = sum(1 for d in decisions if d.outcome == DecisionOutcome.MATCH)
        console.print(f"[dim]Total: {len(decisions)} | Matched: {matched} | Other: {len(decisions) - matched}[/dim]")

    raise typer.Exit(code=EXIT_MATCH if all_matched else EXIT_UNVERIFIED)


@app.command()
def validate(
    policy_path: PolicyOption = None,
    json_output: JsonOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Parse a policy and run its should_match / should_not_match examples.

    Example:
        $ execpolicy validate --policy my.policy
    """
    policy = _load_policy_or_exit(policy_path, json_output, debug)
    violations = policy.check_examples()

    if json_output:
        output = {
            "valid": not violations,
            "programs": len(policy.programs),
            "violations": [v.model_dump(mode="json") for v in violations],
        }
        print(json.dumps(output, indent=2))
    elif not violations:
        console.print(f"[green]✓[/green] Policy is valid ({len(policy.programs)} programs)")
    else:
        console.print(f"[red]✗[/red] {len(violations)} example(s) failed")
        table = Table(show_header=True, header_style="bold")
        table.add_column("Program", style="cyan")
        table.add_column("Args")
        table.add_column("Expected", width=10)
        table.add_column("Details")
        for v in violations:
            expected = "match" if v.expected_match else "no match"
            table.add_row(escape(v.program), escape(" ".join(v.args)), expected, escape(v.detail))
        console.print(table)

    raise typer.Exit(code=EXIT_MATCH if not violations else EXIT_LOAD_ERROR)


@app.command()
def programs(
    policy_path: PolicyOption = None,
    json_output: JsonOption = False,
    debug: DebugOption = False,
) -> None:
    """
    List the programs a policy covers.

    Example:
        $ execpolicy programs
    """
    policy = _load_policy_or_exit(policy_path, json_output, debug)
    specs = sorted(policy.programs.values(), key=lambda s: s.program)

    if json_output:
        output = {
            "count": len(specs),
            "programs": [
                {
                    "program": spec.program,
                    "args": [m.describe() for m in spec.arg_patterns],
                    "flags": [opt.value for opt in spec.options],
                    "system_path": spec.system_path,
                }
                for spec in specs
            ],
        }
        print(json.dumps(output, indent=2))
        return

    table = Table(title="Programs", show_header=True, header_style="bold")
    table.add_column("Program", style="cyan")
    table.add_column("Args")
    table.add_column("Flags")
    table.add_column("System Path", style="dim")
    for spec in specs:
        table.add_row(
            spec.program,
            " ".join(m.describe() for m in spec.arg_patterns) or "-",
            " ".join(opt.value or "" for opt in spec.options) or "-",
            "\n".join(spec.system_path) or "-",
        )
    console.print(table)


def _output_json_error(error_type: str, message: str, include_traceback: bool = False) -> None:
    """Output an error in JSON format."""
    output = {
        "error": True,
        "error_type": error_type,
        "message": message,
    }
    if include_traceback:
        output["traceback"] = traceback.format_exc()
    print(json.dumps(output, indent=2))


if __name__ == "__main__":
    app()
