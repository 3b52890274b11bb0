"""
Rental ledger CLI.

Operate a ledger from the shell: initialize it, create and activate
rentals, pay rent, end rentals, toggle pause, and inspect records and their
due status.  ``demo`` runs a six-month simulation on an in-memory database.

Entry point: python -m scripts.cli
"""

from scripts.cli.main import main

__all__ = ["main"]
