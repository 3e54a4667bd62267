"""
Typed errors raised by the ledger services.

Every ledger operation is all-or-nothing: when one of these is raised the
session has already been rolled back and no Product, Sale or Debt state was
changed. Routers translate them into HTTP responses.
"""


class LedgerError(Exception):
    """Base class for all ledger failures."""
    pass


class ProductNotFoundError(LedgerError):
    """Exception raised when the requested product doesn't exist."""

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product with ID {product_id} not found")


class DebtNotFoundError(LedgerError):
    """Exception raised when the requested debt doesn't exist."""

    def __init__(self, debt_id: int):
        self.debt_id = debt_id
        super().__init__(f"Debt with ID {debt_id} not found")


class InsufficientStockError(LedgerError):
    """Exception raised when a consuming operation would drive stock negative."""

    def __init__(self, product_id: int, available: int, requested: int):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for product {product_id}. "
            f"Available: {available}, Requested: {requested}"
        )


class InvalidAmountError(LedgerError):
    """Exception raised for non-positive quantities or amounts."""
    pass


class OverPaymentError(LedgerError):
    """Exception raised when a payment exceeds the remaining debt balance."""

    def __init__(self, debt_id: int, amount_owed, amount):
        self.debt_id = debt_id
        self.amount_owed = amount_owed
        self.amount = amount
        super().__init__(
            f"Payment of {amount} exceeds the remaining balance of {amount_owed} on debt {debt_id}"
        )


class DebtAlreadyPaidError(LedgerError):
    """Exception raised when paying against a settled debt."""

    def __init__(self, debt_id: int):
        self.debt_id = debt_id
        super().__init__(f"Debt with ID {debt_id} is already fully paid")


class ConflictError(LedgerError):
    """Exception raised when a transaction keeps losing to concurrent writers."""

    def __init__(self, operation: str, attempts: int):
        self.operation = operation
        self.attempts = attempts
        super().__init__(
            f"{operation} could not commit after {attempts} attempts due to concurrent "
            f"modification, please retry"
        )


class PersistenceError(LedgerError):
    """Exception raised when the store is unreachable or rejected the write."""
    pass
