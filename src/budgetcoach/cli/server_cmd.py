"""Server command."""

from pathlib import Path

from rich.console import Console

console = Console()


def start_command(
    config_path: str | None = None, host: str | None = None, port: int | None = None
) -> None:
    """Start the budgetcoach API server in the foreground.

    Args:
        config_path: Optional path to config file
        host: Bind address override
        port: Port override
    """
    from budgetcoach.config.loader import load_config

    path = Path(config_path) if config_path else None
    try:
        config = load_config(path)
    except Exception as e:
        console.print(f"[red]Failed to load config: {e}[/red]")
        return

    if host:
        config.server.host = host
    if port:
        config.server.port = port

    import uvicorn

    from budgetcoach.server.app import create_app

    app = create_app(config)

    console.print(
        f"[green]Starting budgetcoach server on "
        f"{config.server.host}:{config.server.port}[/green]"
    )
    console.print("\nPress Ctrl+C to stop")

    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level="info",
    )
