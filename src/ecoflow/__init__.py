"""EcoFlow — energy-credit ledger and escrowed energy marketplace."""

__version__ = "0.1.0"
