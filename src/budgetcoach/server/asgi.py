"""ASGI entry point for running the budgetcoach server via uvicorn CLI.

    python -m uvicorn budgetcoach.server.asgi:app --host ... --port ...
"""

from budgetcoach.config.loader import load_config
from budgetcoach.server.app import create_app

config = load_config()
app = create_app(config)
