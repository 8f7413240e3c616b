"""Error taxonomy for groundpass.

Per-object and per-pass errors (`ElementsError`, `ConflictSkipped`) are logged and isolated by the component that
meets them. Store-level errors that prevent reading or writing the schedule propagate to whoever runs the cycle.
"""


class GroundPassError(Exception):
    pass


class ElementsError(GroundPassError):
    def __init__(self, sat_id: str, reason: str = ""):
        self.sat_id = sat_id
        self.reason = reason
        message = f"{sat_id}: {reason}" if reason else sat_id
        super().__init__(message)


class ElementsInvalid(ElementsError):
    """Orbital elements for an object could not be parsed or propagated."""


class ElementsNotFound(ElementsError):
    """The element source has no entry for the requested object."""


class StoreError(GroundPassError):
    def __init__(self, path, reason: str = ""):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}" if reason else str(path))


class StoreCorrupt(StoreError):
    """The persisted schedule exists but could not be decoded."""


class StoreUnavailable(StoreError):
    """The persisted schedule could not be read at all."""


class PersistFailure(StoreError):
    """An atomic save did not complete; the previous schedule file is left intact."""


class ConflictSkipped(GroundPassError):
    def __init__(self, key, active_key=None):
        self.key = key
        self.active_key = active_key
        super().__init__(f"{key} skipped, recording of {active_key} in progress")
