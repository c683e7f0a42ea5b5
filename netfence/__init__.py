"""Firewall rule manager that stores rules in SQLite and loads them into nftables."""

__version__ = "0.1.0"