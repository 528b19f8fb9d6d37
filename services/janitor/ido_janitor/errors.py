class IdoCleanupError(Exception):
    """Base class for errors raised by the cleanup daemon."""


class StartupError(IdoCleanupError):
    """The daemon cannot start: no database connection or unknown instance."""


class QueryError(IdoCleanupError):
    """A data-access or parse failure while working on a single table."""

    def __init__(self, table: str, message: str) -> None:
        super().__init__(f"{message} for {table}")
        self.table = table
