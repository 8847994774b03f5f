"""CLI handling for clipmirror.

This module provides the command-line interface for clipmirror, handling
argument parsing via click, logging configuration, and dispatching to the
sync agent, the self-test or the auth reset based on user-specified options.

Usage:
    clipmirror [--api URL] [--config PATH] [--passphrase TEXT] [--no-push] [--verbose]
    clipmirror --test [--api URL] [--config PATH] [--passphrase TEXT] [--verbose]
    clipmirror --reset-auth [--config PATH]
"""

import dataclasses
import sys
from pathlib import Path

import click

from clipmirror.config import apply_env, clear_stored_auth, default_config_path, passphrase_from_env
from clipmirror.device import DeviceStore
from clipmirror.errors import ClipmirrorError, ConfigError, InvalidCredentialError
from clipmirror.main_logging import configure_logging
from clipmirror.main_options import MutuallyExclusiveOption


@click.command()
@click.option(
    "--api",
    "api_url",
    default=None,
    help="Sync service base URL (overrides CLIPMIRROR_SERVICE_URL)",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Configuration file [default: ~/.clipmirror/config.json]",
)
@click.option(
    "--passphrase",
    default=None,
    help="Encryption passphrase (prompted if not given or in CLIPMIRROR_PASSPHRASE)",
)
@click.option(
    "--no-push",
    is_flag=True,
    help="Disable the real-time push channel and rely on polling",
)
@click.option(
    "--verbose",
    is_flag=True,
    help="Enable DEBUG-level logging",
)
@click.option(
    "--test",
    is_flag=True,
    cls=MutuallyExclusiveOption,
    not_required_if=["reset_auth"],
    help="Check connection and encryption setup, then exit",
)
@click.option(
    "--reset-auth",
    is_flag=True,
    cls=MutuallyExclusiveOption,
    not_required_if=["test"],
    help="Clear the stored access token and sync cursor, then exit",
)
@click.version_option(package_name="clipmirror")
def main(
    api_url: str | None,
    config_path: str | None,
    passphrase: str | None,
    no_push: bool,
    verbose: bool,
    test: bool,
    reset_auth: bool,
) -> None:
    """Synchronize the clipboard across devices with end-to-end encryption."""
    configure_logging(verbose)
    path = Path(config_path) if config_path else default_config_path()

    if reset_auth:
        _reset_auth(path)
        return

    try:
        store = DeviceStore(path)
        config = apply_env(store.load_or_create())
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    if api_url:
        config = dataclasses.replace(config, api_url=api_url)
    if no_push:
        config = dataclasses.replace(config, push_enabled=False)

    if not config.access_token:
        click.echo(
            f"Error: no access token; set CLIPMIRROR_API_KEY or access_token in {path}",
            err=True,
        )
        sys.exit(1)

    passphrase = passphrase or passphrase_from_env()
    if not passphrase:
        passphrase = click.prompt("Encryption passphrase", hide_input=True)

    _run_mode(test, store, config, passphrase)


def _reset_auth(path: Path) -> None:
    """Clear stored authentication and report the outcome.

    Args:
        path: Configuration file path.
    """
    try:
        cleared = clear_stored_auth(path)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    if cleared:
        click.echo(f"Stored authentication cleared in {path}")
    else:
        click.echo(f"No configuration at {path}, nothing to clear")


def _run_mode(test: bool, store: DeviceStore, config, passphrase: str) -> None:
    """Run the self-test or the agent.

    Args:
        test: True to run the self-test instead of the agent.
        store: Device store backing the configuration file.
        config: Effective configuration.
        passphrase: Master passphrase.
    """
    import asyncio
    from clipmirror.agent import run_agent
    from clipmirror.self_test import run_self_test

    try:
        if test:
            passed = asyncio.run(run_self_test(config, passphrase))
            click.echo("Self-test passed" if passed else "Self-test failed")
            sys.exit(0 if passed else 1)
        asyncio.run(run_agent(store, config, passphrase))
    except InvalidCredentialError as e:
        click.echo(
            f"Error: access token rejected ({e}); run clipmirror --reset-auth "
            "and configure a new token",
            err=True,
        )
        sys.exit(1)
    except ClipmirrorError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
