"""Donation checkout: payment relay, intent creation and status reconciliation."""
__version__ = "1.0.0"
