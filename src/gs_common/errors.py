"""Error taxonomy for the account store.

Error code ranges:
  1xxx: Configuration
  2xxx: Storage / statements
  3xxx: Provisioning

Absent rows are not errors: lookups return sentinels ("", 0, False, ABSENT).
"""


class AppError(Exception):
    """Base application error."""

    def __init__(self, code: int, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)


# --- 1xxx: Configuration ---

class ConfigurationError(AppError):
    """Malformed config file or invalid setting. Aborts startup."""

    def __init__(self, detail: str) -> None:
        super().__init__(1001, f"Invalid configuration: {detail}")


# --- 2xxx: Storage ---

class ConstraintViolationError(AppError):
    """An integrity constraint (NOT NULL, CHECK, foreign key, unique) rejected a write.

    `table` is None when the violation surfaced at commit.
    """

    def __init__(self, table: str | None, detail: str, code: int = 2001) -> None:
        self.table = table
        where = f" on {table}" if table else ""
        super().__init__(code, f"Constraint violation{where}: {detail}")


class DuplicateKeyError(ConstraintViolationError):
    """A primary key or unique constraint rejected a write.

    Recoverable: concurrent first-time inserts for the same key land here.
    """

    def __init__(self, table: str | None, detail: str) -> None:
        super().__init__(table, detail, code=2003)


class StatementShapeMismatchError(AppError):
    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(
            2002,
            f"Logical key {key!r} is already bound to a different statement shape",
        )


# --- 3xxx: Provisioning ---

class TransactionFailureError(AppError):
    """A multi-statement transaction failed and was rolled back."""

    def __init__(self, operation: str, detail: str) -> None:
        self.operation = operation
        super().__init__(3001, f"{operation} rolled back: {detail}")
