"""
VerdictTrace - Error Taxonomy

Fatal vs non-fatal is decided by the caller:
- AggregationFetchError: fatal to the whole scan run
- CasePersistError: fatal for one cluster, the run continues
- NarrativeDegraded / NotificationFailed: non-fatal, logged and absorbed
"""
from typing import List, Optional


class VerdictTraceError(Exception):
    """Base class for all engine errors."""
    pass


class AggregationFetchError(VerdictTraceError):
    """Raised when the aggregation collaborator is unreachable or returns a malformed payload."""

    # Set by the scan orchestrator to the ScanSummary of the aborted run
    summary = None


class NarrativeDegraded(VerdictTraceError):
    """Raised when the narrative generator is unavailable or returns nothing usable."""
    pass


class NotificationFailed(VerdictTraceError):
    """Raised when one or more notification deliveries fail."""

    def __init__(self, case_id: str, failures: Optional[List[str]] = None):
        self.case_id = case_id
        self.failures = failures or []
        super().__init__(
            f"Notification failed for case {case_id}: {'; '.join(self.failures) or 'unknown error'}"
        )


class CasePersistError(VerdictTraceError):
    """Raised when a case create/update could not be committed."""
    pass


class CaseNotFoundError(VerdictTraceError):
    """Raised when a case id does not exist."""
    pass


class InvalidCaseTransition(VerdictTraceError):
    """Raised when a human action is not allowed from the case's current status."""
    pass


class AuditImmutableError(VerdictTraceError):
    """Raised when something attempts to edit or delete an audit entry."""
    pass


class SettingsValidationError(VerdictTraceError):
    """Raised when a threshold setting is out of range."""
    pass


class RecipientNotFoundError(VerdictTraceError):
    """Raised when a recipient id does not exist."""
    pass


class DuplicateRecipientError(VerdictTraceError):
    """Raised when a recipient email is already registered."""
    pass


class NotificationNotFoundError(VerdictTraceError):
    """Raised when a notification id does not exist."""
    pass
