class BudgetError(Exception):
    """Base class for ledger errors raised by the budgets use cases."""


class InvalidAmount(BudgetError):
    """Raised when a monetary input is malformed, non-finite, or outside its allowed range."""

    def __init__(self, amount, reason="amount must be a positive decimal"):
        self.amount = amount
        self.reason = reason
        super().__init__(f"Invalid amount {amount!r}: {reason}")


class AlreadyProcessed(BudgetError):
    """Raised inside the daily batch when a (client, date) debit has already been applied."""

    def __init__(self, client_id, consumption_date):
        self.client_id = client_id
        self.consumption_date = consumption_date
        super().__init__(
            f"Daily consumption already processed for client {client_id} on {consumption_date}"
        )


class WriteConflict(BudgetError):
    """Raised when a concurrent writer held the client row or invalidated the read balance."""

    def __init__(self, client_id, detail=""):
        self.client_id = client_id
        self.detail = detail
        super().__init__(f"Write conflict on client {client_id}: {detail}")


class StoreUnavailable(BudgetError):
    """Raised when the ledger store fails or times out."""

    def __init__(self, operation, detail=""):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Ledger store unavailable during {operation}: {detail}")


class InvalidClientData(BudgetError):
    """Raised when a client field is missing or outside its allowed values."""

    def __init__(self, field, reason):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")
