"""
CLI module for Market Intelligence.

Provides command-line interface using Typer:
- stats: Normalized suburb market stats
- suburb: Combined suburb report with SQM vacancy
- property: Property details, valuation and rental estimate
- comparables: Sold data for a list of addresses
- status, config: Offline configuration views
"""

from market_intel.cli.main import app

__all__ = ["app"]
