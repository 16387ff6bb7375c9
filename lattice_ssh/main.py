"""
Main entry point for lattice-ssh.

This module provides the command-line interface: connecting a local terminal
to an application instance and forwarding local ports into it.
"""

import logging
import threading
from dataclasses import replace
from typing import List, Optional, Tuple

import typer

from .application.exit_handler import ExitHandler
from .application.secure_shell import SecureShell
from .core.exceptions import ConfigError, SecureShellError
from .infrastructure.clients.ssh.dialer import AppDialer
from .infrastructure.config.loader import ConfigLoader
from .infrastructure.config.models import ApplicationConfig
from .infrastructure.logging.setup import setup_logging

EXIT_COMMAND_FAILED = 1
EXIT_INVALID_SYNTAX = 2

FORWARD_USAGE = "-L expects [localhost:]localport:remotehost:remoteport"

cli = typer.Typer(
    name="lattice-ssh",
    help="Interactive shells and port forwarding into running application instances"
)

logger = logging.getLogger(__name__)


def parse_forward_spec(spec: str) -> Tuple[str, str]:
    """
    Parse a -L spec into (local_address, remote_address).

    "lport:rhost:rport" listens on localhost; "lhost:lport:rhost:rport"
    listens on lhost.

    Raises:
        ValueError: If the spec has the wrong number of parts
    """
    parts = spec.split(":")
    if len(parts) == 3:
        local_host, local_port, remote_host, remote_port = "localhost", parts[0], parts[1], parts[2]
    elif len(parts) == 4:
        local_host, local_port, remote_host, remote_port = parts
    else:
        raise ValueError(FORWARD_USAGE)
    return f"{local_host}:{local_port}", f"{remote_host}:{remote_port}"


def join_command(args: Optional[List[str]]) -> str:
    """Join command arguments, dropping a leading "--"."""
    if not args:
        return ""
    if args[0] == "--":
        args = args[1:]
    return " ".join(args)


def _load_config(config_file: Optional[str], log_level: Optional[str]) -> ApplicationConfig:
    try:
        config = ConfigLoader().load_config(config_file)
        if log_level:
            config.logging = replace(config.logging, level=log_level)
    except (ConfigError, ValueError) as e:
        typer.echo(f"Error loading configuration: {e}", err=True)
        raise typer.Exit(code=EXIT_COMMAND_FAILED)
    return config


@cli.callback()
def callback() -> None:
    """Connect to running application instances over SSH."""


@cli.command()
def ssh(
    app_name: str = typer.Argument(..., help="Application name"),
    command: Optional[List[str]] = typer.Argument(
        None, help="Command to run instead of an interactive shell (use -- before flags)"
    ),
    instance: int = typer.Option(
        0, "--instance", "-i", min=0, help="Connects to specified instance index"
    ),
    local_forward: Optional[str] = typer.Option(
        None, "-L",
        help="Listens on specified local address/port and forwards connections to "
             "specified remote address/port, e.g. -L [localhost:]1234:remotehost:5678"
    ),
    no_shell: bool = typer.Option(
        False, "-N", help="Disables the interactive shell when forwarding connections with -L"
    ),
    config_file: Optional[str] = typer.Option(
        None, "--config", "-c", help="Configuration file path"
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Logging level"
    ),
) -> None:
    """Connects to a running app."""

    config = _load_config(config_file, log_level)
    setup_logging(config.logging)
    logger.debug(f"Configuration loaded from {config.config_file_path or 'defaults'}")

    forward_addresses = None
    if local_forward:
        try:
            forward_addresses = parse_forward_spec(local_forward)
        except ValueError as e:
            typer.echo(f"Incorrect Usage: {e}", err=True)
            raise typer.Exit(code=EXIT_INVALID_SYNTAX)

    command_line = join_command(command)
    target = config.target.target

    exit_handler = ExitHandler()
    exit_handler.install()
    secure_shell = SecureShell(
        client_dialer=AppDialer(settings=config.ssh),
        exit_handler=exit_handler,
    )

    try:
        secure_shell.connect(app_name, instance, config.target)
    except SecureShellError as e:
        typer.echo(f"Error connecting to {app_name}/{instance}: {e}", err=True)
        raise typer.Exit(code=EXIT_COMMAND_FAILED)

    def forward() -> bool:
        local_address, remote_address = forward_addresses
        typer.echo(f"Forwarding {local_address} to {remote_address} via "
                   f"{app_name}/{instance} at {target}")
        try:
            secure_shell.forward(local_address, remote_address)
        except SecureShellError as e:
            typer.echo(f"Error connecting to {app_name}/{instance}: {e}", err=True)
            return False
        return True

    try:
        if forward_addresses and no_shell:
            status = 0 if forward() else EXIT_COMMAND_FAILED
        else:
            if forward_addresses:
                def forward_or_exit() -> None:
                    if not forward():
                        exit_handler.exit(EXIT_COMMAND_FAILED)

                threading.Thread(target=forward_or_exit, name="forward", daemon=True).start()

            if command_line == "":
                typer.echo(f"Connecting to {app_name}/{instance} at {target}")
            try:
                status = secure_shell.shell(command_line)
            except SecureShellError as e:
                typer.echo(f"Error connecting to {app_name}/{instance}: {e}", err=True)
                status = EXIT_COMMAND_FAILED
    finally:
        secure_shell.close()
        exit_handler.run_callbacks()

    raise typer.Exit(code=status)


@cli.command()
def validate_config(
    config_file: str = typer.Argument(..., help="Configuration file to validate")
) -> None:
    """Validate a configuration file."""

    try:
        config = ConfigLoader().load_config(config_file)
    except ConfigError as e:
        typer.echo(f"Configuration validation failed: {e}", err=True)
        raise typer.Exit(code=EXIT_COMMAND_FAILED)

    typer.echo(f"Configuration file {config_file} is valid")
    typer.echo(f"Target: {config.target.target or '(not set)'}")
    typer.echo(f"Username: {config.target.username or '(not set)'}")
    typer.echo(f"SSH port: {config.ssh.port}")


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
