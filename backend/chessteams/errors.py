class RoundImportError(Exception):
    """Base error for a round upload that could not be completed."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class RoundParseError(RoundImportError, ValueError):
    """The workbook could not be turned into round data.

    Raised before anything is written: unreadable file, missing tournament
    name, unresolved round number, or no team pairings at all.
    """


class DuplicateRoundError(RoundImportError):
    """The tournament already has a round with this number."""

    def __init__(self, round_number: int):
        self.round_number = round_number
        super().__init__(
            f"Round {round_number} already exists for this tournament. Delete it first to re-upload."
        )


class PersistenceError(RoundImportError):
    """A database error aborted the round; nothing of the round was kept."""
