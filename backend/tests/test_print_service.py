"""
Print Job Tests

Every print call ends with its job in a terminal status: done on success,
failed (with the captured error text) otherwise.
"""

import subprocess

import pytest

from kassa.constants import PrintKind, PrintStatus
from kassa.errors import BinaryNotFoundError, ExternalProcessFailedError, NotFoundError, ValidationError
from kassa.models import PrintJob, Product, Sale
from kassa.services import print_service
from kassa.services.print_service import format_items, print_label, print_receipt, print_return_receipt
from kassa.services.return_service import create_return
from kassa.services.sales_service import create_sale


@pytest.fixture
def fake_run(monkeypatch):
    """Replace subprocess.run; configure .result / .error and inspect .calls."""
    class FakeRun:
        def __init__(self):
            self.calls = []
            self.result = (0, b"", b"")
            self.error = None

        def __call__(self, args, **kwargs):
            self.calls.append(list(args))
            if self.error is not None:
                raise self.error
            returncode, stdout, stderr = self.result
            return subprocess.CompletedProcess(args, returncode, stdout=stdout, stderr=stderr)

    fake = FakeRun()
    monkeypatch.setattr(print_service.subprocess, "run", fake)
    return fake


@pytest.fixture
def labelc(bin_dir):
    path = bin_dir / "labelc"
    path.write_text("")
    return path


@pytest.fixture
def receipt2(bin_dir):
    path = bin_dir / "receipt2"
    path.write_text("")
    return path


def _job(db_session, job_id):
    return db_session.get(PrintJob, job_id)


class TestLabel:
    def test_runs_once_per_copy(self, db_session, make_product, fake_run, labelc):
        product = make_product(name="Cola", barcode="96385074")
        product_id = product.id

        job = print_label(product_id, copies=3)

        assert job.status == PrintStatus.DONE
        assert job.kind == PrintKind.BARCODE
        assert job.finished_at is not None
        assert job.argv == ["label", "96385074", "Cola"]
        assert fake_run.calls == [[str(labelc), "label", "96385074", "Cola"]] * 3

    def test_assigns_barcode_when_missing(self, db_session, make_product, fake_run, labelc):
        product_id = make_product(name="Cola").id
        db_session.get(Product, product_id).barcode = None
        db_session.commit()

        job = print_label(product_id, printer_name="Zebra")

        barcode = db_session.get(Product, product_id).barcode
        assert barcode is not None
        assert job.argv == ["Zebra", barcode, "Cola"]

    def test_nonzero_exit_fails_job_with_stderr(self, db_session, make_product, fake_run, labelc):
        product_id = make_product().id
        fake_run.result = (1, b"", b"paper jam\n")

        with pytest.raises(ExternalProcessFailedError) as excinfo:
            print_label(product_id, copies=3)

        job = _job(db_session, excinfo.value.details["job_id"])
        assert job.status == PrintStatus.FAILED
        assert job.error.strip() == "paper jam"
        assert len(fake_run.calls) == 1

    def test_stdout_used_when_stderr_empty(self, db_session, make_product, fake_run, labelc):
        product_id = make_product().id
        fake_run.result = (2, b"no printer named label", b"")

        with pytest.raises(ExternalProcessFailedError) as excinfo:
            print_label(product_id)

        assert _job(db_session, excinfo.value.details["job_id"]).error == "no printer named label"

    def test_spawn_error_fails_job(self, db_session, make_product, fake_run, labelc):
        product_id = make_product().id
        fake_run.error = OSError("Exec format error")

        with pytest.raises(ExternalProcessFailedError) as excinfo:
            print_label(product_id)

        job = _job(db_session, excinfo.value.details["job_id"])
        assert job.status == PrintStatus.FAILED
        assert "Exec format error" in job.error

    def test_missing_executable_fails_job(self, db_session, make_product, fake_run, bin_dir, monkeypatch, app):
        monkeypatch.setitem(app.config, "LABEL_BINARIES", ["no-such-printer"])
        product_id = make_product().id

        with pytest.raises(BinaryNotFoundError) as excinfo:
            print_label(product_id)

        details = excinfo.value.details
        assert str(bin_dir / "no-such-printer") in details["tried"]
        job = _job(db_session, details["job_id"])
        assert job.status == PrintStatus.FAILED
        assert "not found" in job.error
        assert fake_run.calls == []

    def test_unknown_product_enqueues_nothing(self, db_session, fake_run, labelc):
        with pytest.raises(NotFoundError):
            print_label(123456)
        assert db_session.query(PrintJob).count() == 0

    def test_copies_bounds(self, db_session, make_product, fake_run, labelc):
        product_id = make_product().id
        with pytest.raises(ValidationError):
            print_label(product_id, copies=0)
        with pytest.raises(ValidationError):
            print_label(product_id, copies=101)

    def test_control_characters_are_stripped_from_argv(self, db_session, make_product, fake_run, labelc):
        product_id = make_product(name="Bad\x00Name\n", barcode="96385074").id

        job = print_label(product_id)

        assert job.status == PrintStatus.DONE
        assert job.argv == ["label", "96385074", "BadName"]
        assert fake_run.calls == [[str(labelc), "label", "96385074", "BadName"]]

    def test_argument_rejected_by_spawn_fails_job(self, db_session, make_product, fake_run, labelc):
        product_id = make_product().id
        fake_run.error = ValueError("embedded null byte")

        with pytest.raises(ExternalProcessFailedError) as excinfo:
            print_label(product_id)

        job = _job(db_session, excinfo.value.details["job_id"])
        assert job.status == PrintStatus.FAILED
        assert "embedded null byte" in job.error

    def test_unexpected_error_still_finishes_job(self, db_session, make_product, labelc, monkeypatch):
        product_id = make_product().id

        def explode(executable, argv):
            raise RuntimeError("printer driver crashed")

        monkeypatch.setattr(print_service, "_invoke", explode)

        with pytest.raises(RuntimeError):
            print_label(product_id)

        jobs = db_session.query(PrintJob).all()
        assert [job.status for job in jobs] == [PrintStatus.FAILED]
        assert jobs[0].error == "printer driver crashed"
        assert jobs[0].finished_at is not None

    def test_reprint_appends_new_job(self, db_session, make_product, fake_run, labelc):
        product_id = make_product().id

        first = print_label(product_id).id
        second = print_label(product_id).id

        assert first != second
        assert db_session.query(PrintJob).count() == 2
        assert db_session.query(PrintJob).filter_by(status=PrintStatus.QUEUED).count() == 0


class TestReceipt:
    def test_item_formatting(self):
        rows = [("Tea|Green;", 2, 10000, 20000), ("Sugar", "1.5", 2550, 3825)]
        assert format_items(rows) == "TeaGreen|2|100.00|200.00;Sugar|1.5|25.50|38.25"

    def test_sale_receipt_argv(self, db_session, make_product, fake_run, receipt2):
        tea = make_product(name="Tea|Green;", price_cents=10000, qty=5).id
        sugar = make_product(name="Sugar", price_cents=2550, qty=5, unit="liter").id
        sale_id = create_sale(
            [{"product_id": tea, "qty": 2}, {"product_id": sugar, "qty": "1.5"}],
            "cash",
            discount_cents=500,
        )["sale_id"]

        job = print_receipt(sale_id)

        assert job.status == PrintStatus.DONE
        assert job.sale_id == sale_id
        assert fake_run.calls == [[
            str(receipt2),
            "receipt",
            "Test Do'kon",
            "TeaGreen|2|100.00|200.00;Sugar|1.5|25.50|38.25",
            "238.25",
            "5.00",
            "233.25",
            "cash",
        ]]

    def test_return_receipt_argv(self, db_session, make_product, fake_run, receipt2):
        product_id = make_product(name="Tea", price_cents=10000, qty=5).id
        sale_id = create_sale([{"product_id": product_id, "qty": 2}], "cash")["sale_id"]
        item_id = db_session.get(Sale, sale_id).items[0].id
        return_id = create_return(sale_id, [{"sale_item_id": item_id, "qty": 1}], refund={"method": "card"}).id

        job = print_return_receipt(return_id, printer_name="Front")

        assert job.return_id == return_id
        assert job.argv == [
            "Front",
            f"Test Do'kon - Return #{return_id}",
            "Tea|1|100.00|100.00",
            "100.00",
            "0.00",
            "100.00",
            "card",
        ]

    def test_unknown_sale(self, db_session, fake_run, receipt2):
        with pytest.raises(NotFoundError):
            print_receipt(8888)
        assert fake_run.calls == []


class TestRealExecutable:
    def test_script_receives_arguments_per_copy(self, db_session, make_product, make_executable, bin_dir):
        make_executable("labelc", 'echo "$@" >> "$(dirname "$0")/calls.log"')
        product_id = make_product(name="Cola", barcode="96385074").id

        job = print_label(product_id, copies=2)

        assert job.status == PrintStatus.DONE
        lines = (bin_dir / "calls.log").read_text().splitlines()
        assert lines == ["label 96385074 Cola", "label 96385074 Cola"]

    def test_failing_script_error_is_stored(self, db_session, make_product, make_executable):
        make_executable("labelc", 'echo "printer offline" >&2\nexit 3')
        product_id = make_product().id

        with pytest.raises(ExternalProcessFailedError) as excinfo:
            print_label(product_id)

        job = _job(db_session, excinfo.value.details["job_id"])
        assert job.status == PrintStatus.FAILED
        assert job.error.strip() == "printer offline"
