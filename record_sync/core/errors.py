"""
Error taxonomy for the record sync service.

Source errors end a single run, record errors end a single record, and
store-connect errors are reported at boot or when a run checks readiness.
None of them is allowed to escape into the scheduler.
"""


class RecordSyncError(Exception):
    """Base class for all service errors."""
    pass


class SourceError(RecordSyncError):
    """A batch source could not be turned into records."""

    def __init__(self, path: str, reason: str = ""):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}" if reason else path)


class SourceNotFound(SourceError):
    """The source file does not exist."""
    pass


class SourceReadFailure(SourceError):
    """The source file exists but could not be read."""
    pass


class SourceDecodeFailure(SourceError):
    """The source content is not a JSON array of records."""
    pass


class RecordStoreError(RecordSyncError):
    """A find/create/update call against the store failed."""
    pass


class RecordReconcileFailure(RecordSyncError):
    """Reconciling one record failed; carries the record's id."""

    def __init__(self, record_id: int, reason: str):
        self.record_id = record_id
        self.reason = reason
        super().__init__(reason)


class StoreConnectFailure(RecordSyncError):
    """The store could not be reached."""
    pass


class LeaseUnavailable(RecordSyncError):
    """Another run currently holds the sync lease."""

    def __init__(self, name: str, holder: str | None = None):
        self.name = name
        self.holder = holder
        super().__init__(f"lease {name!r} held by {holder or 'another run'}")
