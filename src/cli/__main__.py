#!/usr/bin/env python3
"""Main CLI entry point for stack lifecycle utilities."""

import sys
from typing import Optional

import click

from config import ConfigurationError, load_config, save_config

from .cloudformation import main as stack_commands


@click.group()
@click.version_option(package_name="stack-lifecycle")
def cli() -> None:
    """
    CloudFormation stack lifecycle utilities.

    Submit stack operations and wait for them to finish.
    """
    pass


cli.add_command(stack_commands, name="stack")


@cli.group()
def config() -> None:
    """Inspect and write configuration."""
    pass


@config.command()
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="YAML config file")
@click.option("--region", help="AWS region")
@click.option("--profile", help="AWS profile to use")
def show(config_path: Optional[str], region: Optional[str], profile: Optional[str]) -> None:
    """Show the resolved configuration."""
    try:
        resolved = load_config(config_path, region=region, profile=profile)
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    for key, value in resolved.to_dict().items():
        click.echo(f"{key}: {value}")


@config.command()
@click.argument("path", type=click.Path(dir_okay=False))
@click.option("--region", help="AWS region")
@click.option("--profile", help="AWS profile to use")
@click.option("--timeout", type=float, help="Default wait timeout in seconds")
def init(path: str, region: Optional[str], profile: Optional[str], timeout: Optional[float]) -> None:
    """Write a config file with defaults."""
    try:
        resolved = load_config(None, region=region, profile=profile, timeout=timeout)
        save_config(resolved, path)
    except (ConfigurationError, OSError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"✅ Configuration written to {path}")


if __name__ == "__main__":
    cli()
