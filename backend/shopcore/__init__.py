"""Storefront cart-to-order transaction engine with an inventory ledger."""

__version__ = "1.0.0"
