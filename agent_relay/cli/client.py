"""Interactive terminal client for the relay.

Two tasks share one WebSocket: the receiver applies relay events to the
session (streaming text straight to the terminal) and the prompter waits
for the session to become promptable, reads a line and sends the resulting
command. Stdin is read by a daemon thread so a remote close can end the
process while the user is mid-prompt.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import sys
import threading

import click
import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import InvalidHandshake, InvalidURI

from agent_relay.cli.session import ClientSession, SessionState
from agent_relay.schemas.events import encode_event, parse_event

logger = logging.getLogger(__name__)

# Seconds to wait before prompting again after the prompt itself failed
PROMPT_RETRY_DELAY = 1.0


class TerminalView:
    """Renders session output with click styling."""

    def show_status(self, status: str) -> None:
        click.secho(f"Server: {status}", fg="blue")

    def show_notice(self, message: str) -> None:
        click.secho(message, fg="blue")

    def show_warning(self, message: str) -> None:
        click.secho(message, fg="yellow")

    def show_error(self, message: str) -> None:
        click.secho(f"Error: {message}", fg="red", err=True)

    def show_chunk(self, text: str, *, first: bool) -> None:
        if first:
            click.secho("\nAgent: ", fg="green")
        click.echo(text, nl=False)

    def end_response(self) -> None:
        click.echo("\n")

    def show_decision_request(self) -> None:
        click.secho(
            '\nThe agent is asking for confirmation. Type "y" for Yes or "n" for No:',
            fg="yellow",
        )

    def show_prompt(self, state: SessionState) -> None:
        if state == SessionState.AWAITING_DECISION:
            click.secho("(y/n)> ", fg="yellow", nl=False)
        else:
            click.secho("You> ", fg="cyan", nl=False)


class StdinReader(threading.Thread):
    """Feeds stdin lines into an asyncio queue; ``None`` marks end of input."""

    def __init__(self, loop: asyncio.AbstractEventLoop, lines: asyncio.Queue[str | None]) -> None:
        super().__init__(name="stdin-reader", daemon=True)
        self._loop = loop
        self._lines = lines

    def run(self) -> None:
        try:
            for line in sys.stdin:
                self._put(line.rstrip("\r\n"))
        finally:
            self._put(None)

    def _put(self, line: str | None) -> None:
        try:
            self._loop.call_soon_threadsafe(self._lines.put_nowait, line)
        except RuntimeError:
            # Loop already closed during shutdown
            pass


class ReplClient:
    """One interactive session against a relay server."""

    def __init__(self, url: str, *, view: TerminalView | None = None) -> None:
        self.url = url
        self.view = view or TerminalView()
        self.session = ClientSession(self.view)
        self._lines: asyncio.Queue[str | None] = asyncio.Queue()
        self._ready = asyncio.Event()
        self._ready.set()
        self._awaiting_line = False

    async def run(self) -> int:
        """Run until exit, remote close or interrupt; return the exit status."""
        try:
            ws = await websockets.connect(self.url)
        except (OSError, InvalidURI, InvalidHandshake) as exc:
            self.view.show_error(f"WebSocket error: {exc}")
            self.view.show_warning("Make sure the agent relay server is running")
            return 1

        click.secho(f"Connected to agent relay at {self.url}", fg="green")
        self.view.show_notice('Type your task or message and press Enter. Type "exit" to quit.')
        self.view.show_notice("-" * 59)

        loop = asyncio.get_running_loop()
        interrupted = asyncio.Event()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.add_signal_handler(sig, interrupted.set)
        StdinReader(loop, self._lines).start()

        receiver = asyncio.create_task(self._receive(ws))
        prompter = asyncio.create_task(self._prompt_loop(ws))
        stopper = asyncio.create_task(interrupted.wait())
        done, pending = await asyncio.wait(
            {receiver, prompter, stopper}, return_when=asyncio.FIRST_COMPLETED
        )
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        if stopper in done:
            self.view.show_warning("\nGracefully shutting down...")
        elif receiver in done:
            self.view.show_warning("\nDisconnected from agent relay")
        else:
            self.view.show_warning("Goodbye!")

        with contextlib.suppress(Exception):
            await ws.close()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.remove_signal_handler(sig)
        return 0

    # ── Receiver ─────────────────────────────────────────────────────

    async def _receive(self, ws: ClientConnection) -> None:
        try:
            async for raw in ws:
                logger.debug("Received message: %s", raw)
                try:
                    event = parse_event(raw)
                except ValueError as exc:
                    logger.warning("Error parsing message: %s", exc)
                    continue
                before = self.session.state
                self.session.handle_event(event)
                self._sync_ready()
                # Re-print the prompt if output scrolled it away
                if self._awaiting_line and (
                    self.session.state != before or event.type == "responseEnd"
                ):
                    self.view.show_prompt(self.session.state)
        except websockets.ConnectionClosed:
            pass

    # ── Prompter ─────────────────────────────────────────────────────

    async def _prompt_loop(self, ws: ClientConnection) -> None:
        while not self.session.closed:
            await self._ready.wait()
            try:
                self.view.show_prompt(self.session.state)
                self._awaiting_line = True
                line = await self._lines.get()
                self._awaiting_line = False
                if line is None:
                    return
                command = self.session.handle_input(line)
                if command is not None:
                    await ws.send(encode_event(command))
            except websockets.ConnectionClosed:
                return
            except Exception as exc:
                self._awaiting_line = False
                logger.error("Error in prompt: %s", exc)
                await asyncio.sleep(PROMPT_RETRY_DELAY)
                self.session.recover()
            self._sync_ready()

    def _sync_ready(self) -> None:
        if self.session.can_prompt:
            self._ready.set()
        else:
            self._ready.clear()
