from __future__ import annotations

import json

from ..constants import PrintKind, PrintStatus
from ..extensions import db
from ..time_utils import to_utc_z
from .columns import attach_updated_at_trigger, tag_type


class PrintJob(db.Model):
    """
    A single-attempt call to an external label/receipt executable.

    Work queue and audit trail at once: rows are appended as ``queued`` and
    transitioned exactly once to ``done`` or ``failed``. They are never
    deleted and never resumed; re-printing appends a new row.

    ``payload`` is the JSON-encoded argv actually passed to the executable.
    """
    __tablename__ = "print_jobs"
    __table_args__ = (
        db.Index("ix_print_jobs_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(tag_type(PrintKind, "ck_print_jobs_kind"), nullable=False)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    return_id = db.Column(db.Integer, db.ForeignKey("sale_returns.id"), nullable=True)

    copies = db.Column(db.Integer, nullable=False, default=1)
    printer_name = db.Column(db.String(128), nullable=False)

    status = db.Column(tag_type(PrintStatus, "ck_print_jobs_status"), nullable=False, default=PrintStatus.QUEUED)
    payload = db.Column(db.Text, nullable=True)
    error = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    finished_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def argv(self) -> list[str]:
        return json.loads(self.payload) if self.payload else []

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "product_id": self.product_id,
            "sale_id": self.sale_id,
            "return_id": self.return_id,
            "copies": self.copies,
            "printer_name": self.printer_name,
            "status": self.status.value,
            "payload": self.argv,
            "error": self.error,
            "created_at": to_utc_z(self.created_at),
            "finished_at": to_utc_z(self.finished_at),
        }


attach_updated_at_trigger(PrintJob.__table__)
