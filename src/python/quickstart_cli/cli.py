"""Click CLI commands for quickstart_cli."""

import logging
import sys

import click

from . import deployer
from .credentials import CredentialsError
from .deployer import DeployerError
from .graph import GraphError, creation_order, teardown_order
from .stack_loader import (
    StackNotFoundError,
    StackParseError,
    discover_stacks,
    load_stack,
)
from .validation import ValidationError, validate_stack

CONFIRM_WORD = "yes"

# Known failures and the prefix printed for each
_ERROR_PREFIXES = (
    (StackNotFoundError, "Error"),
    (StackParseError, "Parse error"),
    (ValidationError, "Validation failed"),
    (GraphError, "Graph error"),
    (CredentialsError, "Credentials error"),
    (DeployerError, "Engine error"),
)


def _fail(e: Exception) -> None:
    """Print a known error to stderr and exit with status 1."""
    for error_type, prefix in _ERROR_PREFIXES:
        if isinstance(e, error_type):
            click.echo(f"{prefix}: {e}", err=True)
            break
    else:
        click.echo(f"Unexpected error: {e}", err=True)
    sys.exit(1)


def _confirm_literal(message: str) -> bool:
    """Ask the user to type the confirmation word; anything else declines."""
    click.echo(message)
    click.echo(f"  Only '{CONFIRM_WORD}' will be accepted to approve.\n")
    answer = click.prompt("  Enter a value", default="", show_default=False)
    return answer.strip() == CONFIRM_WORD


def _print_available_stacks(command: str) -> None:
    stacks = discover_stacks()
    if stacks:
        click.echo("Available stacks:")
        for name in stacks:
            click.echo(f"  - {name}")
        click.echo(f"\nRun: quickstart {command} <stack>")
    else:
        click.echo("No stacks found in infra/stacks/")


@click.group()
@click.version_option(version="0.1.0")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Provision a VPC, public subnet and SSH-reachable EC2 instance on AWS."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command("list")
def list_stacks() -> None:
    """List all discovered stacks."""
    stacks = discover_stacks()
    if stacks:
        click.echo("Discovered stacks:")
        for name in stacks:
            click.echo(f"  - {name}")
    else:
        click.echo("No stacks found in infra/stacks/")


@cli.command()
@click.argument("stack", required=False)
def validate(stack: str | None) -> None:
    """Check stack definitions without contacting AWS.

    If STACK is omitted, every discovered stack is checked.
    """
    names = [stack] if stack else discover_stacks()
    if not names:
        click.echo("No stacks found.", err=True)
        sys.exit(1)

    failed = False
    for name in names:
        try:
            findings = validate_stack(load_stack(name))
        except (StackNotFoundError, StackParseError) as e:
            _fail(e)
        if findings:
            failed = True
            click.echo(f"{name}: {len(findings)} problem(s)")
            for finding in findings:
                click.echo(f"  - {finding}")
        else:
            click.echo(f"{name}: OK")

    if failed:
        sys.exit(1)


@cli.command()
@click.argument("stack")
def graph(stack: str) -> None:
    """Show the creation and teardown order of a stack's resources."""
    try:
        definition = load_stack(stack)
        order = creation_order(definition)
    except (StackNotFoundError, StackParseError, GraphError) as e:
        _fail(e)

    click.echo("Creation order:")
    for position, resource_id in enumerate(order, start=1):
        resource = definition.get(resource_id)
        click.echo(f"  {position}. {resource_id} ({resource.type})")

    click.echo("\nTeardown order:")
    for position, resource_id in enumerate(reversed(order), start=1):
        click.echo(f"  {position}. {resource_id}")


@cli.command()
@click.argument("stack", required=False)
def init(stack: str | None) -> None:
    """Prepare the Pulumi workspace for a stack."""
    if not stack:
        _print_available_stacks("init")
        return

    try:
        click.echo(f"Initialising stack: {stack}")
        deployer.init_stack(stack)
        click.echo("Stack initialised. Run: quickstart plan " + stack)
    except Exception as e:
        _fail(e)


@cli.command()
@click.argument("stack", required=False)
def plan(stack: str | None) -> None:
    """Preview the changes apply would make."""
    if not stack:
        _print_available_stacks("plan")
        return

    try:
        click.echo(f"Planning stack: {stack}")
        result = deployer.preview_stack(stack)
        _print_change_summary(result)
    except Exception as e:
        _fail(e)


@cli.command()
@click.argument("stack", required=False)
@click.option("--yes", "-y", "auto_approve", is_flag=True, help="Skip confirmation prompt")
def apply(stack: str | None, auto_approve: bool) -> None:
    """Create or update the stack's resources."""
    if not stack:
        _print_available_stacks("apply")
        return

    try:
        load_stack(stack)
    except (StackNotFoundError, StackParseError) as e:
        _fail(e)

    if not auto_approve and not _confirm_literal(
        f"Do you want to apply stack '{stack}'?"
    ):
        click.echo("Apply cancelled.")
        return

    try:
        click.echo(f"Applying stack: {stack}")
        result = deployer.deploy_stack(stack)
        _print_deploy_result(result)
    except Exception as e:
        _fail(e)


@cli.command()
@click.argument("stack", required=False)
@click.option("--yes", "-y", "auto_approve", is_flag=True, help="Skip confirmation prompt")
def destroy(stack: str | None, auto_approve: bool) -> None:
    """Destroy every resource of a deployed stack."""
    if not stack:
        _print_available_stacks("destroy")
        return

    try:
        definition = load_stack(stack)
    except (StackNotFoundError, StackParseError) as e:
        _fail(e)

    try:
        order = teardown_order(definition)
    except GraphError as e:
        click.echo(f"Warning: {e}", err=True)
        order = [r.id for r in definition.resources]

    click.echo(f"Resources to destroy ({len(order)}):")
    for resource_id in order:
        click.echo(f"  - {resource_id}")
    click.echo()

    if not auto_approve and not _confirm_literal(
        f"Do you really want to destroy all resources in '{stack}'? "
        "This cannot be undone."
    ):
        click.echo("Destroy cancelled.")
        return

    try:
        click.echo(f"Destroying stack: {stack}")
        result = deployer.destroy_stack(stack)
        click.echo("\nDestruction complete.")
        if result.summary.result == "succeeded":
            click.echo("All resources have been removed.")
    except Exception as e:
        _fail(e)


@cli.command()
@click.argument("stack")
@click.argument("name", required=False)
def output(stack: str, name: str | None) -> None:
    """Print outputs recorded by the last apply.

    With NAME, print only that output's raw value.
    """
    try:
        outputs = deployer.stack_outputs(stack)
    except Exception as e:
        _fail(e)

    if name:
        if name not in outputs:
            click.echo(f"Error: output '{name}' not found", err=True)
            sys.exit(1)
        click.echo(outputs[name].value)
        return

    if not outputs:
        click.echo("No outputs. Has the stack been applied?")
        return
    for key, value in outputs.items():
        click.echo(f"{key} = {value.value}")


def _print_change_summary(result) -> None:
    """Print a summary of changes from preview."""
    summary = result.change_summary
    if summary:
        click.echo("\nChange summary:")
        for change_type, count in summary.items():
            if count > 0:
                click.echo(f"  {change_type}: {count}")
    else:
        click.echo("No changes detected.")


def _print_deploy_result(result) -> None:
    """Print deployment result."""
    if result.outputs:
        click.echo("\nOutputs:")
        for key, value in result.outputs.items():
            click.echo(f"  {key}: {value.value}")
    else:
        click.echo("\nApply complete.")
