"""Dividend rounds for equity-style launches."""

from zyra_launchpad.dividends.service import DividendService

__all__ = ["DividendService"]
