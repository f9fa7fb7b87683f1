class PumpDataError(LookupError):
    """Base class for failures of the read-only query components."""


class NoDataError(PumpDataError):
    """Raised when a glucose query needs a reading and none exists."""


class InsufficientDataError(PumpDataError):
    """Raised when a statistic is requested over too few readings."""


class EmptyTableError(PumpDataError):
    """Raised when a schedule lookup is made against an empty table."""


class NoActiveBolusError(PumpDataError):
    """Raised when no uncancelled bolus exists in the event log."""
