"""Main CLI application using Typer."""

import sys

import typer
from rich.console import Console

from budgetcoach import __version__

app = typer.Typer(
    name="budgetcoach",
    help="budgetcoach - Financial coaching engine with learned user context",
    no_args_is_help=True,
)

console = Console()

CONFIG_OPTION_HELP = "Path to config file (default: ~/.budgetcoach/budgetcoach.yaml)"


@app.command()
def version():
    """Show budgetcoach version."""
    console.print(f"budgetcoach version {__version__}")


@app.command()
def chat(
    user: str = typer.Option("local", "--user", "-u", help="User id to chat as"),
    session: str = typer.Option(None, "--session", "-s", help="Resume an existing session"),
    provider: str = typer.Option(None, "--provider", "-p", help="Force a provider"),
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
):
    """Start interactive coaching session."""
    from budgetcoach.cli.chat import chat_command

    chat_command(user_id=user, session_id=session, provider=provider, config_path=config_path)


@app.command()
def start(
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
    host: str = typer.Option(None, "--host", help="Override bind address"),
    port: int = typer.Option(None, "--port", help="Override port"),
):
    """Start budgetcoach API server."""
    from budgetcoach.cli.server_cmd import start_command

    start_command(config_path=config_path, host=host, port=port)


@app.command()
def insights(
    user: str = typer.Option("local", "--user", "-u", help="User id to analyze"),
    generate: bool = typer.Option(
        False, "--generate", "-g", help="Run the insight rules before listing"
    ),
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
):
    """Show spending insights for a user."""
    from budgetcoach.cli.learned_cmd import insights_command

    insights_command(user_id=user, generate=generate, config_path=config_path)


@app.command()
def suggest(
    user: str = typer.Option(None, "--user", "-u", help="Personalize for this user"),
    limit: int = typer.Option(6, "--limit", "-n", help="Number of suggestions"),
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
):
    """Show suggested questions."""
    from budgetcoach.cli.learned_cmd import suggest_command

    suggest_command(user_id=user, limit=limit, config_path=config_path)


def main():
    """Entry point for the CLI."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
