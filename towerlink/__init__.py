"""Tower file hand-over between a primary and a standby validator node."""

__version__ = "0.1.0"