"""Domain errors raised by the service layer.

The not-found/conflict family subclasses ``ValueError`` so that callers
catching ``ValueError`` (the convention for service-level validation
failures) keep working; the API layer maps each class to a status code.
"""


class NotFoundError(ValueError):
    """A referenced user, portfolio, holding or transaction does not exist."""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class InsufficientQuantityError(ValueError):
    """A SELL asks for more units than the holding currently has."""

    def __init__(self, symbol: str, requested, available):
        self.symbol = symbol
        self.requested = requested
        self.available = available
        super().__init__(
            f"Cannot sell {requested} {symbol}. Only {available} units available."
        )


class ConflictError(ValueError):
    """The request conflicts with existing state (duplicate key, derived field edit)."""

    pass


class PriceUnavailableError(Exception):
    """No price source could value the symbol, even after fallback."""

    def __init__(self, symbol: str, reason: str = ""):
        self.symbol = symbol
        message = f"No price data available for {symbol}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
