from __future__ import annotations

import logging
from typing import Optional, Tuple

import click

from .config import Settings, load_settings
from .discovery import DeviceFinder
from .errors import ProbeError
from .ports import default_port_patterns, describe_ports, filter_ports, list_ports
from .probe import ProbeOutcome, probe, send_command

NO_USB_PORTS_MESSAGE = "No USB serial ports found (use --all to list every port)."
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _settings(ctx: click.Context) -> Settings:
    return ctx.obj["settings"]


@click.group()
@click.option("-c", "--config", "config_path", type=click.Path(dir_okay=False),
              help="TOML config file (default: ./t10_finder.toml if present)")
@click.option("-v", "--verbose", is_flag=True, help="Log probe progress")
@click.pass_context
def main(ctx: click.Context, config_path: Optional[str], verbose: bool) -> None:
    """Find a T10 on the serial ports and talk to it.

    Examples:

      # List USB serial ports
      t10-finder ports

      # Ask one port for its firmware version
      t10-finder probe /dev/cu.usbmodem311402

      # Scan every USB serial port, retrying until a T10 appears
      t10-finder find --watch

      # Query the HV subsystem of a known port
      t10-finder send /dev/cu.usbmodem311402 "h v"
    """
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, format=LOG_FORMAT)
    try:
        settings = load_settings(config_path)
    except (ProbeError, OSError) as e:
        raise click.ClickException(str(e))
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


@main.command("ports")
@click.option("-a", "--all", "show_all", is_flag=True, help="Include non-USB-serial ports")
@click.pass_context
def ports_cmd(ctx: click.Context, show_all: bool) -> None:
    """List serial ports."""
    settings = _settings(ctx)
    try:
        ports = list_ports()
    except ProbeError as e:
        raise click.ClickException(str(e))
    if not show_all:
        candidates = filter_ports(ports, settings.port_filter or default_port_patterns())
        if ports and not candidates:
            click.echo(NO_USB_PORTS_MESSAGE)
            return
        ports = candidates
    click.echo("Available Serial Ports:")
    for line in describe_ports(ports):
        click.echo(f"- {line}")


@main.command("probe")
@click.argument("port")
@click.option("-q", "--query", help="Command to send (default: m ver)")
@click.option("-t", "--timeout", type=float, help="Reply timeout in seconds")
@click.option("-b", "--baudrate", type=int, help="Baud rate")
@click.pass_context
def probe_cmd(ctx: click.Context, port: str, query: Optional[str],
              timeout: Optional[float], baudrate: Optional[int]) -> None:
    """Send the identification query to PORT and classify the reply."""
    settings = _settings(ctx).override(query=query, timeout=timeout, baudrate=baudrate)
    result = probe(port, settings.query, settings.timeout, baudrate=settings.baudrate,
                   write_timeout=settings.write_timeout, max_line=settings.max_line)
    if result.outcome is ProbeOutcome.FAILED:
        raise click.ClickException(f"{port}: {result.error}")
    verdict = "T10 detected" if result.matched else "not a T10"
    click.echo(f"{port}: {verdict}")
    click.echo(f"  Reply: '{result.reply}'")


@main.command("find")
@click.option("-f", "--filter", "port_filter", multiple=True,
              help="Port name substring, repeatable (default: platform USB-serial names)")
@click.option("-q", "--query", help="Command to send (default: m ver)")
@click.option("-t", "--timeout", type=float, help="Reply timeout in seconds")
@click.option("-b", "--baudrate", type=int, help="Baud rate")
@click.option("-w", "--watch", is_flag=True, help="Retry until a T10 is found")
@click.option("-i", "--interval", type=float, help="Seconds between retries with --watch")
@click.pass_context
def find_cmd(ctx: click.Context, port_filter: Tuple[str, ...], query: Optional[str],
             timeout: Optional[float], baudrate: Optional[int], watch: bool,
             interval: Optional[float]) -> None:
    """Probe candidate ports until one answers like a T10."""
    settings = _settings(ctx).override(
        port_filter=port_filter or None,
        query=query,
        timeout=timeout,
        baudrate=baudrate,
        poll_interval=interval,
    )
    finder = DeviceFinder(
        settings.port_filter or None,
        settings.query,
        baudrate=settings.baudrate,
        timeout=settings.timeout,
        write_timeout=settings.write_timeout,
        max_line=settings.max_line,
        poll_interval=settings.poll_interval,
    )
    found = finder.watch() if watch else finder.find()
    if found is None:
        raise click.ClickException("T10 not detected")
    click.echo(f"{found.port}\t{found.reply}")


@main.command("send")
@click.argument("port")
@click.argument("command")
@click.option("-t", "--timeout", type=float, help="Reply timeout in seconds")
@click.option("-b", "--baudrate", type=int, help="Baud rate")
@click.pass_context
def send_cmd(ctx: click.Context, port: str, command: str,
             timeout: Optional[float], baudrate: Optional[int]) -> None:
    """Send COMMAND (e.g. "m ver", "h v", "h c", "h 3") to PORT and print the reply."""
    settings = _settings(ctx).override(timeout=timeout, baudrate=baudrate)
    try:
        reply = send_command(port, command, settings.timeout, baudrate=settings.baudrate,
                             write_timeout=settings.write_timeout, max_line=settings.max_line)
    except ProbeError as e:
        raise click.ClickException(str(e))
    click.echo(reply)


if __name__ == "__main__":
    main()
