"""API route handlers."""
from . import earnings, holdings, portfolios, sync, transactions

__all__ = ["earnings", "holdings", "portfolios", "sync", "transactions"]
