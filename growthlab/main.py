"""
Terminal client for the Growth Lab assistants.
"""

from __future__ import annotations

import asyncio
import contextlib
import signal
import sys
import threading
from collections.abc import Awaitable, Callable, Coroutine
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.live import Live
from rich.text import Text

from growthlab.chat_service import (
    AssistantChat,
    FieldAssistant,
    FieldContext,
    NavigatorAssistant,
)
from growthlab.config import Configuration
from growthlab.history.transcript import ChatTranscript
from growthlab.llm.client import ChatStreamClient
from growthlab.llm.models import Notification, NotificationVariant, SessionState
from growthlab.logging_utils import operation_context, setup_logging
from growthlab.rendering import RenderedLine, Span

app = typer.Typer(
    name="growthlab-chat",
    help="Chat with the Growth Lab Navigator or a workbook AI Coach",
    no_args_is_help=True,
)

console = Console()

SPAN_STYLES = {"text": "", "bold": "bold", "italic": "italic", "link": "underline cyan"}
EXIT_WORDS = {"exit", "quit", ":q"}
NOTIFICATION_STYLES = {
    NotificationVariant.DEFAULT: "dim",
    NotificationVariant.DESTRUCTIVE: "red",
}
EXIT_INTERRUPTED = 130


class ConsoleNotifier:
    """Prints notifications the way the web app shows toasts."""

    def notify(self, notification: Notification) -> None:
        style = NOTIFICATION_STYLES[notification.variant]
        line = f"[{style}]{notification.title}[/{style}]"
        if notification.description:
            line += f" [dim]{notification.description}[/dim]"
        console.print(line)


def to_rich_text(rendered: Any) -> Text:
    """Convert renderer output (lines or spans) into Rich text."""
    text = Text()
    if isinstance(rendered, str):
        text.append(rendered)
        return text

    for index, item in enumerate(rendered):
        if isinstance(item, RenderedLine):
            if index > 0:
                text.append("\n")
            if item.bullet:
                text.append("• ", style="dim")
            for span in item.spans:
                text.append(span.text, style=SPAN_STYLES[span.style])
        elif isinstance(item, Span):
            text.append(item.text, style=SPAN_STYLES[item.style])
    return text


def configure_from(configuration: Configuration) -> None:
    setup_logging(configuration.get_logging_config().get("level", "WARNING"))


async def prompt(message: str) -> str:
    """
    Read one line of input on a daemon thread.

    The event loop never waits on a blocked `input()` at shutdown, so Ctrl-C
    at the prompt exits straight away.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[str] = loop.create_future()

    def _settle(line: str | None, error: Exception | None) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(line or "")

    def _read() -> None:
        try:
            line, error = console.input(message), None
        except Exception as e:
            line, error = None, e
        # The loop is gone if the user quit while this thread was blocked
        with contextlib.suppress(RuntimeError):
            loop.call_soon_threadsafe(_settle, line, error)

    threading.Thread(target=_read, name="growthlab-input", daemon=True).start()
    return await future


async def run_turn(
    assistant: AssistantChat,
    turn: Callable[[], Awaitable[SessionState | None]],
) -> SessionState | None:
    """Run one assistant reply with live rendering; Ctrl-C stops the reply."""
    loop = asyncio.get_running_loop()
    catch_sigint = sys.platform != "win32"
    previous_handler = signal.getsignal(signal.SIGINT)

    with Live(console=console, auto_refresh=False, transient=False) as live:
        def on_update(transcript: ChatTranscript) -> None:
            message = transcript.open_message
            if message is not None:
                live.update(to_rich_text(assistant.render(message.content)), refresh=True)

        assistant.on_update = on_update
        if catch_sigint:
            loop.add_signal_handler(signal.SIGINT, assistant.cancel)
        try:
            async with operation_context(
                "cli_turn", context={"assistant": assistant.name}
            ) as turn_logger:
                state = await turn()
                turn_logger.debug("Turn finished", state=state and state.value)
        finally:
            if catch_sigint:
                loop.remove_signal_handler(signal.SIGINT)
                # Hand Ctrl-C back to asyncio.run, which cancels the main task
                signal.signal(signal.SIGINT, previous_handler)
            assistant.on_update = None

    if state is SessionState.CANCELLED:
        assistant.notifier.notify(
            Notification(title="Reply stopped", variant=NotificationVariant.DEFAULT)
        )
    return state


async def chat_loop(assistant: AssistantChat, suggestions: tuple[str, ...] = ()) -> None:
    """Read user input until EOF or an exit word."""
    while True:
        try:
            raw = await prompt("[bold green]> [/bold green]")
        except EOFError:
            console.print()
            return

        text = raw.strip()
        if not text:
            continue
        if text.lower() in EXIT_WORDS:
            return
        if text.isdigit() and 1 <= int(text) <= len(suggestions):
            text = suggestions[int(text) - 1]
            console.print(f"[dim]{text}[/dim]")

        await run_turn(assistant, lambda: assistant.send(text))


def build_client(configuration: Configuration, name: str) -> ChatStreamClient:
    return ChatStreamClient(configuration.get_endpoint_config(name))


def run_command(session: Coroutine[Any, Any, None]) -> None:
    """Run a chat command; map config errors and Ctrl-C to exit codes."""
    try:
        asyncio.run(session)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1) from e
    except KeyboardInterrupt:
        console.print()
        raise typer.Exit(code=EXIT_INTERRUPTED) from None


@app.command()
def navigator(
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Alternate config.yaml"
    ),
):
    """Ask the site Navigator where to find things in Growth Lab."""
    async def _navigator() -> None:
        configuration = Configuration(str(config) if config else None)
        configure_from(configuration)

        async with build_client(configuration, NavigatorAssistant.name) as client:
            assistant = NavigatorAssistant(
                client,
                ConsoleNotifier(),
                placeholder_policy=configuration.get_placeholder_policy(
                    NavigatorAssistant.name
                ),
            )
            console.print(f"[bold]Growth Lab Assistant[/bold]\n{assistant.GREETING}")
            for number, question in enumerate(assistant.SUGGESTED_QUESTIONS, start=1):
                console.print(f"  [cyan]{number}[/cyan]. {question}")
            await chat_loop(assistant, assistant.SUGGESTED_QUESTIONS)

    run_command(_navigator())


@app.command()
def coach(
    model_id: str = typer.Argument(..., help="Workbook model id"),
    field_label: str = typer.Option(..., "--field", "-f", help="Field being edited"),
    step_title: str = typer.Option("", "--step", "-s", help="Current step title"),
    step_instruction: str = typer.Option(
        "", "--instruction", "-i", help="Current step instruction"
    ),
    value: str = typer.Option("", "--value", "-v", help="Current field value"),
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Alternate config.yaml"
    ),
):
    """Get coaching hints for one workbook field."""
    async def _coach() -> None:
        configuration = Configuration(str(config) if config else None)
        configure_from(configuration)

        field_context = FieldContext(
            model_id=model_id,
            field_label=field_label,
            step_title=step_title,
            step_instruction=step_instruction,
            current_value=value,
        )
        async with build_client(configuration, FieldAssistant.name) as client:
            assistant = FieldAssistant(
                client,
                field_context,
                ConsoleNotifier(),
                placeholder_policy=configuration.get_placeholder_policy(
                    FieldAssistant.name
                ),
            )
            console.print("[bold]AI Coach[/bold] [dim]Hints & examples, won't write your answer[/dim]")
            await run_turn(assistant, assistant.open)
            await chat_loop(assistant)

    run_command(_coach())


def main() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    main()
