#!/usr/bin/env python3
"""
CloudFormation stack lifecycle CLI commands.
"""

import json
import logging
import sys
from dataclasses import asdict
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

import click

from cloudformation import (
    CompositeFailure,
    StackDiagnostics,
    StackError,
    StackManager,
    StackTimeoutError,
)
from cloudformation.parameters import POLICY_DURING_UPDATE_KEY
from config import ConfigurationError, load_config

EXIT_FAILURE = 1
EXIT_TIMEOUT = 2


def aws_options(func: Callable) -> Callable:
    """Options shared by every command that talks to CloudFormation."""
    func = click.option("--verbose", "-v", is_flag=True, help="Debug logging")(func)
    func = click.option(
        "--config", "config_path", type=click.Path(dir_okay=False), help="YAML config file"
    )(func)
    func = click.option("--profile", help="AWS profile to use")(func)
    func = click.option("--region", help="AWS region")(func)
    return func


def create_manager(
    region: Optional[str], profile: Optional[str], config_path: Optional[str], verbose: bool
) -> StackManager:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = load_config(config_path, region=region, profile=profile)
    return StackManager(config=config)


def parse_pairs(pairs: Tuple[str, ...], prefix: str = "") -> Dict[str, str]:
    """Parse KEY=VALUE arguments into an options mapping."""
    options = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got {pair!r}")
        options[f"{prefix}{key}"] = value
    return options


def build_options(
    params: Tuple[str, ...], tags: Tuple[str, ...], policy_file: Optional[str]
) -> Dict[str, str]:
    options = parse_pairs(params)
    options.update(parse_pairs(tags, prefix="tag."))
    if policy_file:
        options[POLICY_DURING_UPDATE_KEY] = Path(policy_file).read_text()
    return options


def report_error(e: Exception) -> None:
    """Print an error and exit with the matching status."""
    click.echo(f"Error: {e}", err=True)
    if isinstance(e, CompositeFailure) and len(e) > 1:
        click.echo("Failures:", err=True)
        for failure in e.failures:
            click.echo(f"  - {failure}", err=True)
    sys.exit(EXIT_TIMEOUT if isinstance(e, StackTimeoutError) else EXIT_FAILURE)


@click.group()
def main() -> None:
    """CloudFormation stack lifecycle commands."""
    pass


@main.command()
@click.option("--stack-name", "-s", required=True, help="CloudFormation stack name")
@click.option(
    "--template", "-t", required=True, type=click.Path(exists=True, dir_okay=False)
)
@click.option("--param", "-p", "params", multiple=True, help="Parameter KEY=VALUE")
@click.option("--tag", "tags", multiple=True, help="Tag KEY=VALUE")
@click.option(
    "--policy-during-update",
    type=click.Path(exists=True, dir_okay=False),
    help="Stack policy applied during updates",
)
@click.option("--wait/--no-wait", default=True, help="Wait for completion")
@click.option("--timeout", type=float, help="Seconds to wait")
@aws_options
def create(
    stack_name, template, params, tags, policy_during_update, wait, timeout,
    region, profile, config_path, verbose,
) -> None:
    """Create a CloudFormation stack."""
    try:
        manager = create_manager(region, profile, config_path, verbose)
        options = build_options(params, tags, policy_during_update)
        body = Path(template).read_text()

        identity = manager.create(stack_name, body, options)
        click.echo(f"Creating stack {identity.name} ({identity.id})")

        if wait:
            state = manager.wait(stack_name, timeout)
            click.echo(f"✅ {state.name}: {state.status}")

    except (StackError, ConfigurationError, OSError) as e:
        report_error(e)


@main.command()
@click.option("--stack-name", "-s", required=True, help="CloudFormation stack name")
@click.option(
    "--template", "-t", required=True, type=click.Path(exists=True, dir_okay=False)
)
@click.option("--param", "-p", "params", multiple=True, help="Parameter KEY=VALUE")
@click.option(
    "--policy-during-update",
    type=click.Path(exists=True, dir_okay=False),
    help="Stack policy applied during the update",
)
@click.option("--wait/--no-wait", default=True, help="Wait for completion")
@click.option("--timeout", type=float, help="Seconds to wait")
@aws_options
def update(
    stack_name, template, params, policy_during_update, wait, timeout,
    region, profile, config_path, verbose,
) -> None:
    """Update an existing CloudFormation stack."""
    try:
        manager = create_manager(region, profile, config_path, verbose)
        options = build_options(params, (), policy_during_update)
        body = Path(template).read_text()

        identity = manager.update(stack_name, body, options)
        click.echo(f"Updating stack {identity.name} ({identity.id})")

        if wait:
            state = manager.wait(stack_name, timeout)
            click.echo(f"✅ {state.name}: {state.status}")

    except (StackError, ConfigurationError, OSError) as e:
        report_error(e)


@main.command()
@click.option("--stack-name", "-s", required=True, help="CloudFormation stack name")
@click.option("--wait/--no-wait", default=True, help="Wait for deletion")
@click.option("--timeout", type=float, help="Seconds to wait")
@aws_options
def delete(stack_name, wait, timeout, region, profile, config_path, verbose) -> None:
    """Delete a CloudFormation stack."""
    try:
        manager = create_manager(region, profile, config_path, verbose)

        if wait:
            manager.delete_and_wait(stack_name, timeout)
            click.echo(f"🗑️  Stack {stack_name} deleted")
        else:
            manager.delete(stack_name)
            click.echo(f"🗑️  Deleting stack {stack_name}")

    except (StackError, ConfigurationError) as e:
        report_error(e)


@main.command(name="wait")
@click.option("--stack-name", "-s", required=True, help="CloudFormation stack name")
@click.option("--timeout", type=float, help="Seconds to wait")
@click.option(
    "--until-complete",
    is_flag=True,
    help="Wait for any _COMPLETE status instead of success or failure",
)
@aws_options
def wait_command(
    stack_name, timeout, until_complete, region, profile, config_path, verbose
) -> None:
    """Wait for the current stack operation to finish."""
    try:
        manager = create_manager(region, profile, config_path, verbose)

        if until_complete:
            state = manager.wait_for_complete(stack_name, timeout)
        else:
            state = manager.wait(stack_name, timeout)
        click.echo(f"{state.name}: {state.status}")

    except (StackError, ConfigurationError) as e:
        report_error(e)


@main.command()
@click.option("--stack-name", "-s", required=True, help="CloudFormation stack name")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@aws_options
def status(stack_name, output_json, region, profile, config_path, verbose) -> None:
    """Show CloudFormation stack status."""
    try:
        manager = create_manager(region, profile, config_path, verbose)
        state = manager.status(stack_name)

        if not state.found:
            click.echo(f"Stack {stack_name} does not exist")
            sys.exit(EXIT_FAILURE)

        if output_json:
            click.echo(
                json.dumps(
                    {
                        "name": state.name,
                        "id": state.id,
                        "status": state.status,
                        "reason": state.status_reason,
                    },
                    indent=2,
                )
            )
        else:
            click.echo(f"Stack: {state.name}")
            click.echo(f"Status: {state.status}")
            if state.status_reason:
                click.echo(f"Reason: {state.status_reason}")

    except (StackError, ConfigurationError) as e:
        report_error(e)


@main.command(name="list")
@click.option("--all", "show_all", is_flag=True, help="Include deleted stacks")
@aws_options
def list_command(show_all, region, profile, config_path, verbose) -> None:
    """List CloudFormation stacks."""
    try:
        manager = create_manager(region, profile, config_path, verbose)

        if not show_all:
            names = manager.list_active()
            if not names:
                click.echo("No stacks found")
            for name in names:
                click.echo(name)
            return

        stacks = manager.list_all()
        if not stacks:
            click.echo("No stacks found")
            return

        for stack in stacks:
            status_color = (
                "green"
                if "COMPLETE" in stack.status and "ROLLBACK" not in stack.status
                else "red" if "FAILED" in stack.status else "yellow"
            )
            click.echo(f"{stack.name:<40} {click.style(stack.status, fg=status_color)}")

    except (StackError, ConfigurationError) as e:
        report_error(e)


@main.command()
@click.option("--stack-name", "-s", required=True, help="CloudFormation stack name")
@aws_options
def exists(stack_name, region, profile, config_path, verbose) -> None:
    """Exit 0 if the stack is active, 1 otherwise."""
    try:
        manager = create_manager(region, profile, config_path, verbose)
        found = manager.exists(stack_name)
        click.echo("yes" if found else "no")
        if not found:
            sys.exit(EXIT_FAILURE)

    except (StackError, ConfigurationError) as e:
        report_error(e)


@main.command()
@click.option("--stack-name", "-s", required=True, help="CloudFormation stack name")
@click.option(
    "--since-minutes", type=float, default=60.0, show_default=True,
    help="Only show failures from the last N minutes",
)
@aws_options
def failures(stack_name, since_minutes, region, profile, config_path, verbose) -> None:
    """List resource failures recorded on a stack."""
    try:
        manager = create_manager(region, profile, config_path, verbose)
        since = datetime.now(timezone.utc) - timedelta(minutes=since_minutes)
        found = manager.aggregator.list_failures(stack_name, since)

        if not found:
            click.echo("No failures found")
        for failure in found:
            click.echo(failure)

    except (StackError, ConfigurationError) as e:
        report_error(e)


@main.command()
@click.option("--stack-name", "-s", required=True, help="CloudFormation stack name")
@aws_options
def diagnose(stack_name, region, profile, config_path, verbose) -> None:
    """Diagnose CloudFormation stack failures."""
    try:
        manager = create_manager(region, profile, config_path, verbose)
        diagnostics = StackDiagnostics(manager)
        click.echo(diagnostics.generate_report(stack_name))

    except (StackError, ConfigurationError) as e:
        report_error(e)


@main.command(name="set-policy")
@click.option("--stack-name", "-s", required=True, help="CloudFormation stack name")
@click.option(
    "--policy", required=True, type=click.Path(exists=True, dir_okay=False),
    help="Stack policy JSON file",
)
@aws_options
def set_policy(stack_name, policy, region, profile, config_path, verbose) -> None:
    """Set the stack policy."""
    try:
        manager = create_manager(region, profile, config_path, verbose)
        manager.set_policy(stack_name, Path(policy).read_text())
        click.echo(f"✅ Policy set on {stack_name}")

    except (StackError, ConfigurationError, OSError) as e:
        report_error(e)


@main.command()
@click.option("--stack-name", "-s", required=True, help="CloudFormation stack name")
@aws_options
def template(stack_name, region, profile, config_path, verbose) -> None:
    """Print the stack's current template."""
    try:
        manager = create_manager(region, profile, config_path, verbose)
        click.echo(manager.get_template(stack_name))

    except (StackError, ConfigurationError) as e:
        report_error(e)


@main.command(name="shared-resources")
@click.option("--stack-name", "-s", required=True, help="Base stack name")
@aws_options
def shared_resources(stack_name, region, profile, config_path, verbose) -> None:
    """Show parameters, security groups, roles and VPC of a base stack."""
    try:
        manager = create_manager(region, profile, config_path, verbose)
        shared = manager.get_shared_resources(stack_name)
        click.echo(json.dumps(asdict(shared), indent=2, sort_keys=True))

    except (StackError, ConfigurationError) as e:
        report_error(e)


if __name__ == "__main__":
    main()
