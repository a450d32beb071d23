"""Exception types raised by the skill-check import engine."""


class MalformedInput(ValueError):
    """The source matrix cannot be resolved into headers and data rows."""


class InvalidColumnLabel(ValueError):
    """A spreadsheet column label or index could not be converted."""


class PersistenceFailure(RuntimeError):
    """A section document or record could not be written to the store."""

    def __init__(self, message: str, section: str = "", subtype: str = "") -> None:
        super().__init__(message)
        self.section = section
        self.subtype = subtype
