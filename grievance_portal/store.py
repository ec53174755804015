# grievance_portal/store.py
"""
Grievance record store.

Rows hold ciphertext for the grievance type and body; plaintext only exists in
the dicts returned by the *_view helpers. Each call is its own unit of work.
"""

import datetime
from typing import Callable, Dict, Any, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError

from grievance_portal import monitoring
from grievance_portal.db import Database
from grievance_portal.errors import DependencyError
from grievance_portal.models import Grievance
from grievance_portal.secret_store import SecretStore


def _iso(ts: Optional[datetime.datetime]) -> Optional[str]:
    return ts.isoformat() if hasattr(ts, "isoformat") else ts


class GrievanceStore:
    def __init__(self, db: Database, secrets: SecretStore,
                 clock: Optional[Callable[[], datetime.datetime]] = None):
        self.db = db
        self.secrets = secrets
        self.clock = clock or datetime.datetime.utcnow

    def _fail(self, action: str, e: Exception):
        monitoring.logger.error("Grievance store error", extra={"action": action, "error": str(e)})
        raise DependencyError("Server error") from e

    def create(self, record: Dict[str, Any]) -> int:
        """
        Insert a grievance and return its store-assigned id.
        record must already carry grievance_type_ciphertext / grievance_body_ciphertext.
        """
        now = self.clock()
        try:
            with self.db.session() as session:
                row = Grievance(
                    name=record["name"],
                    role=record["role"],
                    external_id=record["external_id"],
                    department=record["department"],
                    year=record.get("year") or None,
                    email=record["email"],
                    mobile=record["mobile"],
                    grievance_type_ciphertext=record["grievance_type_ciphertext"],
                    grievance_body_ciphertext=record["grievance_body_ciphertext"],
                    status=record.get("status", "pending"),
                    email_verified=bool(record.get("email_verified", False)),
                    created_at=now,
                    updated_at=now,
                )
                session.add(row)
                session.commit()
                return row.id
        except SQLAlchemyError as e:
            self._fail("create", e)

    def get(self, grievance_id: int) -> Optional[Grievance]:
        try:
            with self.db.session() as session:
                return session.get(Grievance, grievance_id)
        except SQLAlchemyError as e:
            self._fail("get", e)

    def write_status(self, grievance_id: int, status: str, updated_at: datetime.datetime) -> bool:
        """Raw status write. Only the lifecycle engine calls this."""
        try:
            with self.db.session() as session:
                row = session.get(Grievance, grievance_id)
                if row is None:
                    return False
                row.status = status
                row.updated_at = updated_at
                session.commit()
                return True
        except SQLAlchemyError as e:
            self._fail("write_status", e)

    # --- read views

    def tracking_view(self, grievance_id: int) -> Optional[Dict[str, Any]]:
        """Public view: no grievance body, no contact fields."""
        row = self.get(grievance_id)
        if row is None:
            return None
        return {
            "id": row.id,
            "name": row.name,
            "department": row.department,
            "grievance_type": self.secrets.reveal(row.grievance_type_ciphertext),
            "status": row.status,
            "created_at": _iso(row.created_at),
            "updated_at": _iso(row.updated_at),
        }

    def admin_view(self, row: Grievance) -> Dict[str, Any]:
        return {
            "id": row.id,
            "name": row.name,
            "role": row.role,
            "user_id": row.external_id,
            "department": row.department,
            "year": row.year,
            "email": row.email,
            "mobile": row.mobile,
            "grievance_type_hash": row.grievance_type_ciphertext,
            "grievance_hash": row.grievance_body_ciphertext,
            "grievance_type": self.secrets.reveal(row.grievance_type_ciphertext),
            "grievance": self.secrets.reveal(row.grievance_body_ciphertext),
            "status": row.status,
            "email_verified": row.email_verified,
            "created_at": _iso(row.created_at),
            "updated_at": _iso(row.updated_at),
        }

    def get_admin_view(self, grievance_id: int) -> Optional[Dict[str, Any]]:
        row = self.get(grievance_id)
        return self.admin_view(row) if row is not None else None

    def list(self, status: Optional[str] = None, role: Optional[str] = None,
             search: Optional[str] = None) -> List[Dict[str, Any]]:
        """Admin listing, newest first."""
        try:
            with self.db.session() as session:
                q = session.query(Grievance)
                if status:
                    q = q.filter(Grievance.status == status)
                if role:
                    q = q.filter(Grievance.role == role)
                if search:
                    q = q.filter(or_(
                        Grievance.name.icontains(search, autoescape=True),
                        Grievance.email.icontains(search, autoescape=True),
                    ))
                rows = q.order_by(Grievance.created_at.desc(), Grievance.id.desc()).all()
        except SQLAlchemyError as e:
            self._fail("list", e)
        return [self.admin_view(r) for r in rows]

    def statistics(self, recent_days: int = 7) -> Dict[str, Any]:
        since = self.clock() - datetime.timedelta(days=recent_days)
        try:
            with self.db.session() as session:
                total = session.query(func.count(Grievance.id)).scalar() or 0
                by_status = session.query(Grievance.status, func.count(Grievance.id)).group_by(Grievance.status).all()
                by_role = session.query(Grievance.role, func.count(Grievance.id)).group_by(Grievance.role).all()
                recent = (
                    session.query(func.count(Grievance.id))
                    .filter(Grievance.created_at >= since)
                    .scalar() or 0
                )
        except SQLAlchemyError as e:
            self._fail("statistics", e)
        return {
            "total": total,
            "byStatus": [{"status": s, "count": c} for s, c in by_status],
            "byRole": [{"role": r, "count": c} for r, c in by_role],
            "recentCount": recent,
            "note": "Grievance type statistics unavailable because the type is stored encrypted",
        }
