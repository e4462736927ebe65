"""questledger — time-gated reward distribution for quest receipt holders."""

__version__ = "0.1.0"
