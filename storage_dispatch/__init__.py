"""Multi-strategy dispatch scheduler for behind-the-meter energy storage."""

__version__ = "0.1.0"
