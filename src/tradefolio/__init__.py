"""Trade ledger, live pricing and snapshot core."""

__version__ = "0.1.0"
