# Overview: Print job state machine around the external label/receipt executables.

# backend/kassa/services/print_service.py

from __future__ import annotations

import json
import logging
import subprocess
import sys
from pathlib import Path

from flask import current_app

from ..constants import PrintKind, PrintStatus, parse_enum
from ..errors import BinaryNotFoundError, ConflictError, ExternalProcessFailedError, NotFoundError, ValidationError
from ..extensions import db
from ..models import PrintJob, Product, SaleReturn
from ..money import format_major, format_quantity
from ..time_utils import utcnow
from ..validation import clean_text, parse_id
from .concurrency import lock_for_update, run_with_retry
from .products_service import ensure_barcode
from .sales_service import get_sale
"""
Kassa Print Job Invariants (authoritative)

Lifecycle:
- queued -> done on success, queued -> failed on any error. Both are terminal.
- No retry and no resume: printing again appends a new job row.
- Every print call returns (or raises) with its job in a terminal status.

Transactions:
- The job is inserted as queued and committed before the executable runs.
- No store transaction is open while the external process runs.
- A second short transaction records done/failed. Failures are re-raised only
  after that commit, so the failed row is always durable.

Executable argv:
- label:   [printer, barcode(8 digits), product name]          (once per copy)
- receipt: [printer, heading, items, subtotal, discount, total, payment type]
  items = ";".join("name|qty|unit price|line total"); "|" and ";" are removed
  from free text, money is two-decimal major units.
"""

logger = logging.getLogger(__name__)

DEV_BIN_DIR = Path(__file__).resolve().parents[3] / "resources" / "bin"

MAX_COPIES = 100


# =============================================================================
# ARGV BUILDING
# =============================================================================

def clean_field(value) -> str:
    """Strip the receipt field separators and control characters from free text."""
    text = str(value or "").replace("|", "").replace(";", "")
    return "".join(ch for ch in text if ch >= " " and ch != "\x7f").strip()


def format_items(rows) -> str:
    """rows: iterable of (name, qty, unit_price_cents, line_total_cents)."""
    return ";".join(
        f"{clean_field(name)}|{format_quantity(qty)}|{format_major(unit_price)}|{format_major(line_total)}"
        for name, qty, unit_price, line_total in rows
    )


def receipt_argv(printer: str, heading: str, rows, subtotal: int, discount: int, total: int, payment_type: str) -> list[str]:
    return [
        printer,
        clean_field(heading),
        format_items(rows),
        format_major(subtotal),
        format_major(discount),
        format_major(total),
        clean_field(payment_type),
    ]


# =============================================================================
# EXECUTABLE RESOLUTION
# =============================================================================

def candidate_dirs() -> list[Path]:
    """Configured directories, then the frozen bundle's bin/, then the dev resources/bin."""
    dirs = [Path(d) for d in current_app.config.get("PRINTER_BIN_DIRS") or []]
    if getattr(sys, "frozen", False):
        bundle_root = getattr(sys, "_MEIPASS", None) or Path(sys.executable).parent
        dirs.append(Path(bundle_root) / "bin")
    dirs.append(DEV_BIN_DIR)
    return dirs


def resolve_executable(names: list[str]) -> Path:
    """
    First existing file among candidate_dirs() x names.

    Raises:
        BinaryNotFoundError: listing every path probed
    """
    tried = []
    for directory in candidate_dirs():
        for name in names:
            path = directory / name
            tried.append(str(path))
            if path.is_file():
                return path
    raise BinaryNotFoundError(
        f"Printer executable not found (tried {len(tried)} paths)",
        details={"tried": tried},
    )


def _invoke(executable: Path, argv: list[str]) -> str | None:
    """Run the executable once. Returns the error text, or None on success."""
    logger.info("Invoking %s %s", executable.name, argv)
    try:
        proc = subprocess.run([str(executable), *argv], capture_output=True, check=False)
    except (OSError, ValueError) as exc:
        logger.error("Could not start %s: %s", executable, exc)
        return str(exc)

    if proc.returncode == 0:
        return None

    stderr = (proc.stderr or b"").decode("utf-8", errors="replace")
    stdout = (proc.stdout or b"").decode("utf-8", errors="replace")
    error = stderr if stderr.strip() else stdout if stdout.strip() else f"exit status {proc.returncode}"
    logger.warning("%s exited with %s: %s", executable.name, proc.returncode, error.strip())
    return error


# =============================================================================
# JOB LIFECYCLE
# =============================================================================

def _enqueue(build) -> tuple[int, list[str]]:
    """
    Insert a queued job in its own transaction.

    ``build`` runs inside the transaction and returns an unsaved PrintJob
    whose payload is already set.
    """
    def _op():
        job = build()
        job.status = PrintStatus.QUEUED
        db.session.add(job)
        db.session.flush()
        job_id, argv = job.id, job.argv
        db.session.commit()
        return job_id, argv

    return run_with_retry(_op)


def _finish(job_id: int, status: PrintStatus, error: str | None = None) -> PrintJob:
    def _op():
        job = lock_for_update(db.session.query(PrintJob).filter_by(id=job_id)).first()
        if job.status.is_terminal:
            raise ConflictError(
                f"Print job {job_id} is already {job.status.value}",
                details={"job_id": job_id, "status": job.status.value},
            )
        job.status = status
        job.error = error
        job.finished_at = utcnow()
        db.session.commit()
        return job

    return run_with_retry(_op)


def _execute(job_id: int, argv: list[str], binaries: list[str], runs: int) -> PrintJob:
    """Run a queued job to completion. The job is finished (done or failed) before anything propagates."""
    try:
        executable = resolve_executable(binaries)
        error = None
        for _ in range(runs):
            error = _invoke(executable, argv)
            if error is not None:
                break
    except BinaryNotFoundError as exc:
        _finish(job_id, PrintStatus.FAILED, str(exc))
        exc.details["job_id"] = job_id
        raise
    except Exception as exc:
        logger.exception("Print job %s aborted", job_id)
        _finish(job_id, PrintStatus.FAILED, str(exc) or type(exc).__name__)
        raise

    if error is not None:
        _finish(job_id, PrintStatus.FAILED, error)
        raise ExternalProcessFailedError(
            f"Printing failed: {error.strip()}",
            details={"job_id": job_id, "executable": str(executable)},
        )
    return _finish(job_id, PrintStatus.DONE)


def _parse_copies(copies) -> int:
    copies = parse_id(copies if copies is not None else 1, "copies")
    if copies > MAX_COPIES:
        raise ValidationError(f"copies cannot exceed {MAX_COPIES}", details={"field": "copies"})
    return copies


# =============================================================================
# PRINT OPERATIONS
# =============================================================================

def print_label(product_id, copies=1, printer_name: str | None = None) -> PrintJob:
    """
    Print barcode labels for a product, assigning a generated EAN-8 first if it has none.

    Raises:
        NotFoundError, GenerationFailedError (nothing enqueued),
        BinaryNotFoundError, ExternalProcessFailedError (job recorded as failed)
    """
    product_id = parse_id(product_id, "product_id")
    copies = _parse_copies(copies)
    printer = clean_text(printer_name, "printer_name", max_length=128) or current_app.config["LABEL_PRINTER_NAME"]

    def _build():
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if product is None:
            raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
        barcode = ensure_barcode(product)
        argv = [printer, barcode, clean_field(product.name)]
        return PrintJob(
            kind=PrintKind.BARCODE,
            product_id=product.id,
            copies=copies,
            printer_name=printer,
            payload=json.dumps(argv, ensure_ascii=False),
        )

    job_id, argv = _enqueue(_build)
    return _execute(job_id, argv, current_app.config["LABEL_BINARIES"], runs=copies)


def print_receipt(sale_id, printer_name: str | None = None) -> PrintJob:
    sale_id = parse_id(sale_id, "sale_id")
    printer = clean_text(printer_name, "printer_name", max_length=128) or current_app.config["RECEIPT_PRINTER_NAME"]

    def _build():
        sale = get_sale(sale_id)
        rows = [
            (item.product_name, item.quantity, item.unit_price_cents, item.line_total_cents)
            for item in sale.items
        ]
        argv = receipt_argv(
            printer,
            current_app.config["STORE_NAME"],
            rows,
            sale.subtotal_cents,
            sale.discount_cents,
            sale.total_cents,
            sale.payment_method.value,
        )
        return PrintJob(
            kind=PrintKind.RECEIPT,
            sale_id=sale.id,
            copies=1,
            printer_name=printer,
            payload=json.dumps(argv, ensure_ascii=False),
        )

    job_id, argv = _enqueue(_build)
    return _execute(job_id, argv, current_app.config["RECEIPT_BINARIES"], runs=1)


def print_return_receipt(return_id, printer_name: str | None = None) -> PrintJob:
    return_id = parse_id(return_id, "return_id")
    printer = clean_text(printer_name, "printer_name", max_length=128) or current_app.config["RECEIPT_PRINTER_NAME"]

    def _build():
        sale_return = db.session.get(SaleReturn, return_id)
        if sale_return is None:
            raise NotFoundError(f"Return {return_id} not found", details={"return_id": return_id})
        rows = [
            (item.product_name, item.quantity, item.unit_price_cents, item.line_total_cents)
            for item in sale_return.items
        ]
        if sale_return.refund_method is not None:
            payment_type = sale_return.refund_method.value
        else:
            payment_type = "debt" if sale_return.debt_reduced_cents else "none"
        argv = receipt_argv(
            printer,
            f"{current_app.config['STORE_NAME']} - Return #{sale_return.id}",
            rows,
            sale_return.total_cents,
            0,
            sale_return.total_cents,
            payment_type,
        )
        return PrintJob(
            kind=PrintKind.RECEIPT,
            sale_id=sale_return.sale_id,
            return_id=sale_return.id,
            copies=1,
            printer_name=printer,
            payload=json.dumps(argv, ensure_ascii=False),
        )

    job_id, argv = _enqueue(_build)
    return _execute(job_id, argv, current_app.config["RECEIPT_BINARIES"], runs=1)


def list_print_jobs(status=None, limit: int = 100) -> list[PrintJob]:
    query = db.session.query(PrintJob)
    if status:
        query = query.filter(PrintJob.status == parse_enum(PrintStatus, status, "status"))
    return query.order_by(PrintJob.created_at.desc(), PrintJob.id.desc()).limit(limit).all()
