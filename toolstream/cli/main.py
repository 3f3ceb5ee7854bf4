"""CLI entry point.

Commands:
- init-db: Create the conversation store tables
- window: Show the context window the next turn would send
- chat: Run one turn against the configured model
"""

import asyncio
import importlib
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from toolstream.context import WindowConfig, build_window, estimate_tokens
from toolstream.logging_config import configure_logging
from toolstream.messages import Message, TextContent, ToolInvocation, ToolOutcome, content_kind
from toolstream.streaming.frames import parse_frame

app = typer.Typer(
    name="toolstream",
    help="Stream tool-calling conversations with bounded context windows",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()


@app.callback()
def main(
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", "-l", help="Override LOG_LEVEL (DEBUG, INFO, WARNING, ERROR)"),
    ] = None,
) -> None:
    """toolstream command line."""
    configure_logging(log_level.upper() if log_level else None)  # type: ignore[arg-type]


def _preview(message: Message, width: int = 60) -> str:
    content = message.content
    if isinstance(content, TextContent):
        text = content.text
    elif isinstance(content, ToolInvocation):
        text = f"{content.name}({content.arguments})"
    elif isinstance(content, ToolOutcome):
        text = f"-> {content.payload}"
    else:
        text = repr(content)
    text = text.replace("\n", " ")
    return text if len(text) <= width else text[: width - 1] + "…"


@app.command("init-db")
def init_db() -> None:
    """Create the conversation store tables."""
    from toolstream.storage import close_db
    from toolstream.storage import init_db as create_tables

    async def _run() -> None:
        try:
            await create_tables()
        finally:
            await close_db()

    asyncio.run(_run())
    console.print("[green]Conversation store ready.[/green]")


@app.command()
def window(
    conversation_id: Annotated[str, typer.Argument(help="Conversation to inspect")],
    max_messages: Annotated[
        int | None,
        typer.Option("--max", "-m", help="Override the message cap"),
    ] = None,
    budget: Annotated[
        int | None,
        typer.Option("--budget", "-b", help="Override the token budget"),
    ] = None,
) -> None:
    """Show the context window the next turn would send."""
    asyncio.run(_show_window(conversation_id, max_messages, budget))


async def _show_window(conversation_id: str, max_messages: int | None, budget: int | None) -> None:
    from toolstream.persona import StaticPersona, system_message_for
    from toolstream.settings import get_settings
    from toolstream.storage import close_db, get_sql_sink

    settings = get_settings()
    base = WindowConfig.from_settings(settings)
    config = WindowConfig(
        max_messages=max_messages or base.max_messages,
        min_messages=min(base.min_messages, max_messages or base.max_messages),
        token_budget=budget or base.token_budget,
        tool_overhead=base.tool_overhead,
    )

    try:
        history = await get_sql_sink().load_recent(conversation_id, settings.history_limit)
        system_message = await system_message_for(StaticPersona(settings.persona_text), conversation_id)
    finally:
        await close_db()

    messages = build_window(history, system_message, config)
    if not messages:
        console.print(f"[yellow]No stored messages for {conversation_id}.[/yellow]")
        return

    table = Table(title=f"Window for {conversation_id}")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Role", style="cyan")
    table.add_column("Kind")
    table.add_column("Tokens", justify="right")
    table.add_column("Content")

    total = 0
    for i, message in enumerate(messages):
        tokens = estimate_tokens(message, tool_overhead=config.tool_overhead)
        total += tokens
        table.add_row(
            str(i),
            message.role.value,
            content_kind(message.content),
            str(tokens),
            _preview(message),
        )

    console.print(table)
    console.print(
        f"[dim]{len(messages) - 1} of {len(history)} stored messages, ~{total} tokens "
        f"(budget {config.token_budget})[/dim]"
    )


class ConsoleWriter:
    """Writer printing frames to the terminal as they arrive."""

    def __init__(self, out: Console) -> None:
        self._console = out
        self.closed = False

    async def write(self, frame: str) -> None:
        kind, value = parse_frame(frame)
        if kind == "text":
            self._console.print(value, end="", markup=False, highlight=False)
        elif kind == "tool_call":
            self._console.print(f"\n[dim]→ {value['name']}({value['input']})[/dim]")
        elif kind == "tool_result":
            status = "ok" if value.get("succeeded", True) else "failed"
            self._console.print(f"[dim]← {value['name']} {status}[/dim]")
        elif kind == "done":
            self._console.print()

    async def close(self) -> None:
        self.closed = True


def load_tools(path: str) -> list[Any]:
    """Resolve ``package.module:attribute`` to a list of named tools.

    Raises:
        typer.BadParameter: If the path does not resolve to tools with a ``name``.
    """
    module_name, _, attribute = path.partition(":")
    if not module_name or not attribute:
        raise typer.BadParameter(f"Expected 'module:attribute', got '{path}'")
    try:
        tools = list(getattr(importlib.import_module(module_name), attribute))
    except (ImportError, AttributeError, TypeError) as e:
        raise typer.BadParameter(f"Cannot load tools from '{path}': {e}") from e
    unnamed = [t for t in tools if not getattr(t, "name", None)]
    if unnamed:
        raise typer.BadParameter(f"Tools from '{path}' must have a name: {unnamed!r}")
    return tools


@app.command()
def chat(
    message: Annotated[str, typer.Argument(help="Message to send")],
    conversation_id: Annotated[
        str | None,
        typer.Option("--conversation", "-c", help="Conversation to continue (new if omitted)"),
    ] = None,
    tools_path: Annotated[
        str | None,
        typer.Option(
            "--tools",
            "-t",
            help="Tools to offer the model, as module:attribute naming a list of LangChain tools",
        ),
    ] = None,
) -> None:
    """Send one message and stream the reply.

    Without --tools the model is offered no tools.

    Examples:
        toolstream chat "What's the weather in Lisbon?"
        toolstream chat --tools myapp.tools:TOOLS "What's the weather in Lisbon?"
        toolstream chat --conversation <id> "And tomorrow?"
    """
    from uuid import uuid4

    tools = load_tools(tools_path) if tools_path else []
    conversation_id = conversation_id or str(uuid4())
    console.print(
        Panel(
            f"Conversation: [cyan]{conversation_id}[/cyan]",
            title="toolstream",
            border_style="blue",
        )
    )
    asyncio.run(_chat(conversation_id, message, tools))


async def _chat(conversation_id: str, message: str, tools: list[Any]) -> None:
    from toolstream.exceptions import ToolstreamError
    from toolstream.llm import bind_tools, get_llm
    from toolstream.storage import close_db, get_sql_sink
    from toolstream.tools import ToolRegistryExecutor
    from toolstream.turn import run_turn

    try:
        result = await run_turn(
            conversation_id,
            message,
            llm=bind_tools(get_llm(), tools),
            writer=ConsoleWriter(console),
            executor=ToolRegistryExecutor.from_tools(tools),
            sink=get_sql_sink(),
        )
    except ToolstreamError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e
    finally:
        await close_db()

    if result.failure is not None:
        console.print(f"[yellow]Stream failed ({result.failure}).[/yellow]")


if __name__ == "__main__":
    app()
