"""Thin CLI wrapper for gadget_flash.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from gadget_flash import __version__
from gadget_flash.config import Settings, get_settings, print_settings_json

app = typer.Typer(
    name="gadget-flash",
    help="Gadget Flash - deploy firmware images to Gadget boards over ssh",
    no_args_is_help=True,
)
console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"gadget-flash version {__version__}")
        raise typer.Exit()


def configure_logging(level: str) -> None:
    """Route log records through rich on stderr."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose", "-v", help="Log debug output, including remote output"
        ),
    ] = False,
) -> None:
    """Gadget Flash - deploy firmware images to Gadget boards over ssh."""
    configure_logging("DEBUG" if verbose else get_settings().log_level)


def _settings_with_overrides(**overrides: object) -> Settings:
    settings = get_settings()
    update = {k: v for k, v in overrides.items() if v is not None}
    if update:
        settings = settings.model_copy(update=update)
    return settings


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        typer.echo(print_settings_json(settings))
    else:
        identity = settings.identity_file or "(ssh default)"
        console.print("[bold]Effective Configuration:[/bold]")
        console.print()
        console.print("[bold]Connection:[/bold]")
        console.print(f"  Host:                {settings.host}")
        console.print(f"  User:                {settings.user}")
        console.print(f"  Port:                {settings.port}")
        console.print(f"  Identity file:       {identity}")
        console.print(f"  ssh binary:          {settings.ssh_binary}")
        console.print(f"  Host key checking:   {settings.strict_host_key_checking}")
        console.print()
        console.print("[bold]Transfer:[/bold]")
        console.print(f"  Block size:          {settings.block_size}")
        console.print(f"  Log level:           {settings.log_level}")
        console.print()
        console.print("[bold]Timeouts (seconds):[/bold]")
        console.print(f"  Connect timeout:     {settings.connect_timeout}")
        console.print(f"  Transfer timeout:    {settings.transfer_timeout}")
        console.print(f"  Command timeout:     {settings.command_timeout}")


@app.command()
def boards(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """List supported boards and the artifacts each one needs."""
    from gadget_flash.flash.catalog import DEFAULT_CATALOG

    if json_output:
        output = {
            d.board: [
                {"file_name": a.file_name, "artifact_type": a.artifact_type}
                for a in d.artifacts
            ]
            for d in DEFAULT_CATALOG
        }
        typer.echo(json.dumps(output, indent=2))
        return

    for definition in DEFAULT_CATALOG:
        console.print(f"[bold]{definition.board}[/bold]")
        for spec in definition.artifacts:
            console.print(f"  {spec.artifact_type:<8} {spec.file_name}")


@app.command()
def plan(
    workdir: Annotated[
        Path,
        typer.Option("--workdir", "-C", help="Project directory (holds gadget.yml)"),
    ] = Path("."),
    board: Annotated[
        str | None,
        typer.Option("--board", "-b", help="Override the board from gadget.yml"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show what a flash would send, without contacting the board."""
    from gadget_flash.flash.errors import FlashError
    from gadget_flash.flash.service import plan_flash
    from gadget_flash.project import load_target

    settings = get_settings()
    try:
        target = load_target(workdir, board=board)
        flash_plan = plan_flash(target, block_size=settings.block_size)
    except FlashError as e:
        if json_output:
            output = {"success": False, "code": e.error_code, "message": e.message}
            typer.echo(json.dumps(output, indent=2))
        else:
            console.print(f"[red]✗ {e.message}[/red]")
        raise typer.Exit(code=1) from None

    if json_output:
        output = {
            "success": True,
            "board": flash_plan.board,
            "image_hash": flash_plan.image_hash,
            "working_directory": flash_plan.working_directory,
            "total_bytes": flash_plan.total_bytes,
            "artifacts": [
                {
                    "file_name": a.file_name,
                    "artifact_type": a.artifact_type,
                    "path": a.path,
                    "size_bytes": a.size_bytes,
                    "sha256": a.sha256,
                    "command": a.command,
                }
                for a in flash_plan.artifacts
            ],
            "post_transfer_commands": flash_plan.post_transfer_commands,
        }
        typer.echo(json.dumps(output, indent=2))
        return

    console.print(f"[bold]Flash plan for {flash_plan.board}:[/bold]")
    for a in flash_plan.artifacts:
        console.print(f"  {a.command}")
    for command in flash_plan.post_transfer_commands:
        console.print(f"  {command}")
    console.print(f"  Total payload: {flash_plan.total_bytes} bytes")


@app.command()
def flash(
    workdir: Annotated[
        Path,
        typer.Option("--workdir", "-C", help="Project directory (holds gadget.yml)"),
    ] = Path("."),
    board: Annotated[
        str | None,
        typer.Option("--board", "-b", help="Override the board from gadget.yml"),
    ] = None,
    host: Annotated[
        str | None,
        typer.Option("--host", help="Board address"),
    ] = None,
    user: Annotated[
        str | None,
        typer.Option("--user", "-u", help="Login user on the board"),
    ] = None,
    port: Annotated[
        int | None,
        typer.Option("--port", "-p", help="ssh port"),
    ] = None,
    identity: Annotated[
        Path | None,
        typer.Option("--identity", "-i", help="ssh private key"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Flash the project's image to the board, activate it and reboot.

    Every artifact must be present in <workdir>/.images before anything is
    sent. The first failure aborts the run; re-run once the cause is fixed.
    """
    from gadget_flash.flash.errors import ConfigurationError
    from gadget_flash.flash.progress import (
        LogProgressSink,
        ProgressSink,
        RichProgressSink,
        make_transfer_progress,
    )
    from gadget_flash.flash.service import FlashResult, flash_device
    from gadget_flash.flash.transport import SSHTransport
    from gadget_flash.project import load_target

    settings = _settings_with_overrides(
        host=host, user=user, port=port, identity_file=identity
    )

    try:
        target = load_target(workdir, board=board)
    except ConfigurationError as e:
        if json_output:
            output = {"success": False, "code": e.error_code, "message": e.message}
            typer.echo(json.dumps(output, indent=2))
        else:
            console.print(f"[red]✗ {e.message}[/red]")
        raise typer.Exit(code=1) from None

    transport = SSHTransport.from_settings(settings)

    def run(sink: ProgressSink) -> FlashResult:
        return flash_device(
            target,
            transport,
            progress=sink,
            block_size=settings.block_size,
            transfer_timeout=settings.transfer_timeout,
            command_timeout=settings.command_timeout,
        )

    if json_output:
        result = run(LogProgressSink())
    else:
        with make_transfer_progress(console) as progress:
            result = run(RichProgressSink(progress))

    if json_output:
        output = {
            "success": result.success,
            "board": result.board,
            "state": result.state.value,
            "bytes_sent": result.bytes_sent,
            "artifacts": [
                {
                    "artifact_type": o.artifact_type,
                    "bytes_sent": o.bytes_sent,
                    "sha256": o.checksum_hex,
                }
                for o in result.outcomes
            ],
            "commands": result.commands,
            "failed_step": result.failed_step,
            "error_message": result.error_message,
            "error_code": result.error_code,
            "remote_stdout": result.remote_stdout,
            "remote_stderr": result.remote_stderr,
        }
        typer.echo(json.dumps(output, indent=2))
    elif result.success:
        console.print("[green]✓ Flash succeeded[/green]")
        console.print(f"  Board: {result.board}")
        console.print(f"  Bytes sent: {result.bytes_sent}")
    else:
        console.print("[red]✗ Flash failed[/red]")
        console.print(f"  Step: {result.failed_step}")
        console.print(f"  Error: {result.error_message}")
        if result.remote_stdout:
            console.print(f"  Remote output:\n{result.remote_stdout.rstrip()}")
        if result.remote_stderr:
            console.print(f"  Remote errors:\n{result.remote_stderr.rstrip()}")

    if not result.success:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
