"""CLI entry point for the agent relay.

  agent-relay                 Interactive chat session (default)
  agent-relay chat            Interactive chat session
  agent-relay start <task>    Start a new task over HTTP
  agent-relay send <message>  Send a message to the current task over HTTP
  agent-relay serve           Run the relay server
"""

from __future__ import annotations

import asyncio
import logging
import sys

import click
import httpx

from agent_relay.config import settings

DEFAULT_SERVER = "localhost"
HTTP_TIMEOUT = 30.0


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def _post(ctx: click.Context, path: str, payload: dict, ok_message: str, failure: str) -> None:
    url = f"http://{ctx.obj['server']}:{ctx.obj['port']}{path}"
    try:
        resp = httpx.post(url, json=payload, timeout=HTTP_TIMEOUT)
        data = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        click.secho(f"Error: {exc}", fg="red", err=True)
        click.secho("Make sure the agent relay server is running", fg="yellow")
        sys.exit(1)

    if data.get("success"):
        click.secho(ok_message, fg="green")
    else:
        click.secho(f"{failure}: {data.get('error')}", fg="red", err=True)
        sys.exit(1)


@click.group(invoke_without_command=True)
@click.option("-s", "--server", default=DEFAULT_SERVER, show_default=True, envvar="RELAY_SERVER",
              help="Relay server hostname")
@click.option("-p", "--port", default=settings.port, show_default=True, type=int,
              envvar="RELAY_PORT", help="Relay server port")
@click.option("--debug", is_flag=True, envvar="RELAY_DEBUG", help="Log every received frame")
@click.version_option("0.1.0", prog_name="agent-relay")
@click.pass_context
def cli(ctx: click.Context, server: str, port: int, debug: bool) -> None:
    """Command line interface for the agent relay."""
    _configure_logging(debug)
    ctx.ensure_object(dict)
    ctx.obj.update(server=server, port=port, debug=debug)
    if ctx.invoked_subcommand is None:
        ctx.invoke(chat)


@cli.command()
@click.pass_context
def chat(ctx: click.Context) -> None:
    """Start an interactive chat session."""
    from agent_relay.cli.client import ReplClient

    click.secho("Starting interactive agent session...", fg="blue")
    url = f"ws://{ctx.obj['server']}:{ctx.obj['port']}"
    sys.exit(asyncio.run(ReplClient(url).run()))


@cli.command()
@click.argument("task")
@click.pass_context
def start(ctx: click.Context, task: str) -> None:
    """Start a new task."""
    _post(ctx, "/api/start-task", {"task": task}, "Task started successfully", "Failed to start task")


@cli.command()
@click.argument("message")
@click.pass_context
def send(ctx: click.Context, message: str) -> None:
    """Send a message to the current task."""
    _post(ctx, "/api/send-message", {"message": message}, "Message sent successfully",
          "Failed to send message")


@cli.command()
def serve() -> None:
    """Run the relay server (host and port come from RELAY_* settings)."""
    from agent_relay.main import serve as run_server

    run_server()
