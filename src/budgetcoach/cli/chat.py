"""Interactive coaching REPL command."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError as SchemaError
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from budgetcoach.coach.engine import ChatRequest, CoachEngine, ValidationError
from budgetcoach.config.loader import load_config
from budgetcoach.llm.gateway import ProviderError

if TYPE_CHECKING:
    from budgetcoach.coach.engine import ChatReply
    from budgetcoach.config.schema import CoachConfig

console = Console()


def chat_command(
    user_id: str = "local",
    session_id: str | None = None,
    provider: str | None = None,
    config_path: str | None = None,
) -> None:
    """Start interactive coaching session.

    Args:
        user_id: User to chat as
        session_id: Session to resume
        provider: Provider override for every turn
        config_path: Optional path to config file
    """
    path = Path(config_path) if config_path else None
    try:
        config = load_config(path)
    except Exception as e:
        console.print(f"[red]Failed to load config: {e}[/red]")
        return

    console.print(
        Panel.fit(
            f"[bold blue]budgetcoach chat[/bold blue]\n"
            f"User: {user_id}\n"
            f"Type /profile, /suggest, or /exit",
            border_style="blue",
        )
    )

    asyncio.run(_async_chat(config, user_id, session_id, provider))


def _print_reply(reply: ChatReply) -> None:
    console.print(f"\n[bold green]coach[/bold green] [dim]({reply.provider_used or '-'})[/dim]")
    console.print(Markdown(reply.message))

    if reply.budget_actions:
        table = Table(title="Proposed budget")
        table.add_column("Action")
        table.add_column("Category")
        table.add_column("Amount", justify="right")
        table.add_column("Period")
        for action in reply.budget_actions:
            table.add_row(
                action.action,
                action.category_name,
                f"{action.amount:,.2f}",
                f"{action.period} {action.month}/{action.year}",
            )
        console.print(table)

    if reply.learned_profile:
        learned = ", ".join(f"{k}={v}" for k, v in reply.learned_profile.items())
        console.print(f"[dim]Learned: {learned}[/dim]")


def _handle_slash_command(command: str, engine: CoachEngine, user_id: str) -> bool:
    """Handle slash commands.

    Returns:
        True if should exit chat loop
    """
    cmd = command.lower().strip()

    if cmd in ("/exit", "/quit", "/q"):
        return True
    if cmd == "/profile":
        profile = engine.list_learned_state(user_id, "profile")
        if profile is None:
            console.print("[yellow]Nothing learned yet.[/yellow]")
        else:
            console.print(profile.model_dump(exclude_none=True))
    elif cmd == "/suggest":
        for question in engine.list_learned_state(user_id, "suggestions"):
            console.print(f"  • {question}")
    else:
        console.print(f"[red]Unknown command: {command}[/red]")
    return False


async def _async_chat(
    config: CoachConfig, user_id: str, session_id: str | None, provider: str | None
) -> None:
    engine = CoachEngine.from_config(config)

    try:
        while True:
            try:
                user_input = Prompt.ask("\n[bold cyan]You[/bold cyan]")

                if not user_input.strip():
                    continue

                if user_input.startswith("/"):
                    if _handle_slash_command(user_input, engine, user_id):
                        break
                    continue

                request = ChatRequest(
                    user_id=user_id,
                    session_id=session_id,
                    message=user_input,
                    provider_override=provider,
                )
                with console.status("[bold green]Thinking...[/bold green]", spinner="dots"):
                    reply = await engine.handle_turn(request, await_learning=True)

                session_id = reply.session_id
                _print_reply(reply)

            except KeyboardInterrupt:
                console.print("\n[yellow]Interrupted[/yellow]")
                break
            except EOFError:
                break
            except (ValidationError, SchemaError) as e:
                console.print(f"\n[red]Invalid request: {e}[/red]")
            except ProviderError as e:
                console.print(f"\n[red]Provider error: {e}[/red]")
    finally:
        await engine.close()

    if session_id:
        console.print(f"\n[dim]Session: {session_id}[/dim]")
    console.print("\n[cyan]Goodbye![/cyan]")
