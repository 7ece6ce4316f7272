"""Stock ledger and reporting core for a school book shop."""

__version__ = "1.0.0"
