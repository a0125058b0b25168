"""Administrative tooling: maintenance CLI over the marketplace database."""

from autotrade.admin.cli import build_parser, main

__all__ = ["build_parser", "main"]
