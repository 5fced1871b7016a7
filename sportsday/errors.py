"""Error taxonomy shared by the store, services and transports.

Every error carries the HTTP status it maps to so routes can stay thin; the
app-wide handler in ``create_app`` renders them as ``{'error': message}``.
"""

from typing import Any, Dict, List, Optional


class SportsdayError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {'error': self.message}


class ValidationError(SportsdayError):
    """Bad input rejected before anything reaches the store."""
    status_code = 400


class PermissionDenied(SportsdayError):
    status_code = 403


class RecordNotFound(SportsdayError):
    status_code = 404


class StoreUnavailable(SportsdayError):
    """The backing database could not be reached; state is unchanged."""
    status_code = 503


class PartialCascadeFailure(SportsdayError):
    """The parent record is gone but some dependent scores could not be deleted.

    Re-running the same cascade (or ``sweep_orphans``) finishes the job.
    """
    status_code = 500

    def __init__(self, collection: str, record_id: Any, deleted: List[Any], remaining: List[Any],
                 message: Optional[str] = None):
        super().__init__(message or (
            f"Deleted {collection} {record_id} but {len(remaining)} dependent score(s) remain"
        ))
        self.collection = collection
        self.record_id = record_id
        self.deleted = list(deleted)
        self.remaining = list(remaining)

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload.update({
            'collection': self.collection,
            'id': self.record_id,
            'deleted': self.deleted,
            'remaining': self.remaining,
        })
        return payload
