# grievance_portal/lifecycle.py
"""
Status lifecycle:

    pending -> in-progress -> resolved | rejected
    pending -> resolved | rejected
    in-progress -> pending

resolved and rejected are terminal. This engine is the only code path that
changes a grievance's status.
"""

import datetime
from typing import Callable, Dict, Optional

from grievance_portal import monitoring
from grievance_portal.errors import NotFoundError, ValidationError, StateError, E_INVALID_STATUS, E_IMMUTABLE
from grievance_portal.store import GrievanceStore

PENDING = "pending"
IN_PROGRESS = "in-progress"
RESOLVED = "resolved"
REJECTED = "rejected"

STATUSES = (PENDING, IN_PROGRESS, RESOLVED, REJECTED)

TRANSITIONS = {
    PENDING: frozenset({IN_PROGRESS, RESOLVED, REJECTED}),
    IN_PROGRESS: frozenset({PENDING, RESOLVED, REJECTED}),
    RESOLVED: frozenset(),
    REJECTED: frozenset(),
}

# a status with no way out is final
TERMINAL = frozenset(s for s, targets in TRANSITIONS.items() if not targets)


def is_terminal(status: str) -> bool:
    return status in TERMINAL


class StatusLifecycle:
    def __init__(self, store: GrievanceStore,
                 clock: Optional[Callable[[], datetime.datetime]] = None):
        self.store = store
        self.clock = clock or datetime.datetime.utcnow

    def set_status(self, grievance_id: int, new_status: str) -> Dict[str, object]:
        """
        Apply a status change. Returns {"changed": bool, "status": str}.

        Raises NotFoundError, ValidationError(E_INVALID_STATUS) or StateError(E_IMMUTABLE).
        Setting the current non-terminal status again is a no-op and keeps updated_at.
        """
        row = self.store.get(grievance_id)
        if row is None:
            monitoring.inc_status_transition("not_found")
            raise NotFoundError("Grievance not found")

        if new_status not in STATUSES:
            monitoring.inc_status_transition("invalid_status")
            raise ValidationError(
                "Invalid status. Must be: pending, in-progress, resolved, or rejected",
                error_code=E_INVALID_STATUS,
                fields=["status"],
            )

        current = row.status
        if is_terminal(current):
            monitoring.inc_status_transition("immutable")
            raise StateError(
                "Status is final and cannot be changed after it is resolved or rejected.",
                error_code=E_IMMUTABLE,
            )

        if new_status == current:
            monitoring.inc_status_transition("unchanged")
            return {"changed": False, "status": current}

        if not self.store.write_status(grievance_id, new_status, self.clock()):
            raise NotFoundError("Grievance not found")

        monitoring.inc_status_transition("changed")
        monitoring.logger.info("Grievance status updated",
                               extra={"grievance_id": grievance_id, "from": current, "to": new_status})
        return {"changed": True, "status": new_status}
