"""Command-line interface for budgetcoach."""
