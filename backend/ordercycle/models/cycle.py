from __future__ import annotations

from ..extensions import db
from ordercycle.time_utils import to_utc_z


# Both singletons live in row id=1.
SINGLETON_ID = 1


class CutoffWindow(db.Model):
    """
    Open/closed window for the watched category.

    Its status at sale order creation decides the order's cutoff_status
    (within-cutoff / after-cutoff). Changed only by open, close and close-only.
    """
    __tablename__ = "cutoff_windows"

    id = db.Column(db.Integer, primary_key=True)
    status = db.Column(db.String(16), nullable=False, default="closed")  # open, closed
    opened_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_by = db.Column(db.String(128), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at),
            "closed_by": self.closed_by,
            "version_id": self.version_id,
        }


class OrderCycle(db.Model):
    """
    Daily order cycle.

    reset_at is the lower time bound for the cycle's aggregation. It moves
    only on reset, or on the very first confirmation when no row exists yet.
    """
    __tablename__ = "order_cycles"

    id = db.Column(db.Integer, primary_key=True)
    reset_at = db.Column(db.DateTime(timezone=True), nullable=False)
    is_confirmed = db.Column(db.Boolean, nullable=False, default=False)
    last_confirmed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    auto_reset_scheduled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    confirmed_by = db.Column(db.String(128), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "reset_at": to_utc_z(self.reset_at),
            "is_confirmed": self.is_confirmed,
            "last_confirmed_at": to_utc_z(self.last_confirmed_at),
            "auto_reset_scheduled_at": to_utc_z(self.auto_reset_scheduled_at),
            "confirmed_by": self.confirmed_by,
            "version_id": self.version_id,
        }


class LastCounter(db.Model):
    """
    Per-namespace daily document counter.

    last_number restarts at 1 whenever date_code (YYMMDD) changes.
    """
    __tablename__ = "last_counters"

    namespace = db.Column(db.String(64), primary_key=True)
    last_number = db.Column(db.Integer, nullable=False, default=0)
    date_code = db.Column(db.String(6), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "namespace": self.namespace,
            "last_number": self.last_number,
            "date_code": self.date_code,
        }
