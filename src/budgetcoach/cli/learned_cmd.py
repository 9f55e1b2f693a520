"""Commands that show learned state without chatting."""

import asyncio
from pathlib import Path

from rich.console import Console
from rich.table import Table

from budgetcoach.config.loader import load_config
from budgetcoach.learning.insights import InsightGenerator
from budgetcoach.learning.questions import QuestionTracker
from budgetcoach.llm.factory import create_gateway
from budgetcoach.memory.storage import CoachStorage

console = Console()


def insights_command(
    user_id: str = "local", generate: bool = False, config_path: str | None = None
) -> None:
    """List (and optionally generate) insights for a user."""
    config = load_config(Path(config_path) if config_path else None)
    generator = InsightGenerator(
        CoachStorage(config.storage.path), config.learning, config.currency
    )

    if generate:
        created = generator.generate(user_id)
        console.print(f"[green]Generated {len(created)} insight(s)[/green]")

    found = generator.list_insights(user_id)
    if not found:
        console.print("[yellow]No insights yet.[/yellow]")
        return

    table = Table(title=f"Insights for {user_id}")
    table.add_column("ID", justify="right")
    table.add_column("Type")
    table.add_column("Impact")
    table.add_column("Insight")
    for insight in found:
        table.add_row(str(insight.id), insight.insight_type, insight.impact, insight.description)
    console.print(table)


def suggest_command(
    user_id: str | None = None, limit: int = 6, config_path: str | None = None
) -> None:
    """Print suggested questions, personalized when a user is given."""
    config = load_config(Path(config_path) if config_path else None)
    storage = CoachStorage(config.storage.path)
    gateway = create_gateway(config)
    tracker = QuestionTracker(gateway, storage)

    try:
        profile = storage.get_profile(user_id) if user_id else None
        for question in tracker.suggest(profile, limit):
            console.print(f"  • {question}")
    finally:
        asyncio.run(gateway.close())
