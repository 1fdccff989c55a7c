"""Tollgate: admission control, rate limiting and credit accounting for a metered bot."""

__version__ = "0.1.0"
