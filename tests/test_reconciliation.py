import random

import pytest
from sqlalchemy import update

from app.errors import ConflictError, NotFoundError, StateError, ValidationError
from app.models import Enrollment
from app.services import enrollment as enrollment_service
from app.services import payments
from app.services.payment_methods import POLICIES


def _count(db, batch):
    db.session.refresh(batch)
    return batch.enrolled_count


def _held(batch_id):
    return Enrollment.query.filter_by(batch_id=batch_id, seat_held=True).count()


def test_confirm_sets_paid_and_resolved_price(db, make_user, make_course, make_batch):
    course = make_course(price=5000, discount_price=3500)
    batch = make_batch(course=course)
    enrollment_service.create_enrollment(make_user().id, batch.id, "sslcommerz", transaction_id="TXN-P")

    result = payments.confirm_payment("TXN-P", "sslcommerz")

    enrollment = Enrollment.query.filter_by(transaction_id="TXN-P").one()
    assert result["changed"] is True
    assert enrollment.payment_status == "paid"
    assert enrollment.amount_paid == 3500
    assert _count(db, batch) == 1


def test_confirm_falls_back_to_base_price(db, make_user, make_course, make_batch):
    batch = make_batch(course=make_course(price=4200, discount_price=None))
    enrollment_service.create_enrollment(make_user().id, batch.id, "bkash", transaction_id="TXN-B")

    payments.confirm_payment("TXN-B", "bkash")

    assert Enrollment.query.filter_by(transaction_id="TXN-B").one().amount_paid == 4200


def test_confirm_twice_counts_once(db, make_user, make_batch):
    batch = make_batch()
    enrollment_service.create_enrollment(make_user().id, batch.id, "sslcommerz", transaction_id="TXN-2X")

    first = payments.confirm_payment("TXN-2X", "sslcommerz")
    second = payments.confirm_payment("TXN-2X", "sslcommerz")

    assert first["changed"] is True
    assert second["changed"] is False
    assert _count(db, batch) == 1


def test_confirm_requires_gateway_method(db, make_user, make_batch):
    enrollment_service.create_enrollment(make_user().id, make_batch().id, "sslcommerz", transaction_id="TXN-M")

    with pytest.raises(ValidationError):
        payments.confirm_payment("TXN-M", "pay_later")

    assert Enrollment.query.filter_by(transaction_id="TXN-M").one().payment_status == "pending"


def test_confirm_unknown_transaction(db):
    with pytest.raises(NotFoundError):
        payments.confirm_payment("TXN-NOPE", "bkash")


def test_fail_never_overrides_paid(db, make_user, make_batch):
    batch = make_batch()
    enrollment_service.create_enrollment(make_user().id, batch.id, "bkash", transaction_id="TXN-F")
    payments.confirm_payment("TXN-F", "bkash")

    result = payments.confirm_fail("TXN-F")

    assert result["changed"] is False
    assert Enrollment.query.filter_by(transaction_id="TXN-F").one().payment_status == "paid"
    assert _count(db, batch) == 1


def test_fail_releases_reserved_seat(db, make_user, make_batch):
    batch = make_batch()
    enrollment_service.create_enrollment(make_user().id, batch.id, "sslcommerz", transaction_id="TXN-R")
    assert _count(db, batch) == 1

    result = payments.confirm_fail("TXN-R")

    assert result["changed"] is True
    assert Enrollment.query.filter_by(transaction_id="TXN-R").one().payment_status == "failed"
    assert _count(db, batch) == 0


def test_failed_payment_can_still_be_confirmed(db, make_user, make_batch):
    batch = make_batch()
    enrollment_service.create_enrollment(make_user().id, batch.id, "sslcommerz", transaction_id="TXN-FC")
    payments.confirm_fail("TXN-FC")

    payments.confirm_payment("TXN-FC", "sslcommerz")

    assert Enrollment.query.filter_by(transaction_id="TXN-FC").one().payment_status == "paid"
    assert _count(db, batch) == 1


def test_refunded_enrollment_rejects_gateway_signals(db, make_user, make_batch):
    batch = make_batch()
    enrollment = enrollment_service.create_enrollment(make_user().id, batch.id, "bkash", transaction_id="TXN-RF")
    payments.confirm_payment("TXN-RF", "bkash")
    enrollment_service.set_payment_status(enrollment.id, "refunded")
    assert _count(db, batch) == 0

    with pytest.raises(StateError):
        payments.confirm_payment("TXN-RF", "bkash")
    with pytest.raises(StateError):
        payments.confirm_fail("TXN-RF")

    assert _count(db, batch) == 0


def test_admin_override_counter_rules(db, make_user, make_batch):
    batch = make_batch()
    enrollment = enrollment_service.create_enrollment(make_user().id, batch.id, "pay_later")

    enrollment_service.set_payment_status(enrollment.id, "paid")
    assert _count(db, batch) == 1

    enrollment_service.set_payment_status(enrollment.id, "failed")
    assert _count(db, batch) == 0

    enrollment_service.set_payment_status(enrollment.id, "pending")
    assert _count(db, batch) == 0

    enrollment_service.set_payment_status(enrollment.id, "paid")
    assert _count(db, batch) == 1


def test_admin_override_same_status_is_noop(db, make_user, make_batch):
    batch = make_batch()
    enrollment = enrollment_service.create_enrollment(make_user().id, batch.id, "pay_later")
    enrollment_service.set_payment_status(enrollment.id, "paid")

    _, changed = enrollment_service.set_payment_status(enrollment.id, "paid", amount_paid=1200)

    assert changed is False
    assert _count(db, batch) == 1
    assert db.session.get(Enrollment, enrollment.id).amount_paid == 1200


def test_admin_override_rejects_unknown_status(db, make_user, make_batch):
    enrollment = enrollment_service.create_enrollment(make_user().id, make_batch().id, "pay_later")
    with pytest.raises(ValidationError):
        enrollment_service.set_payment_status(enrollment.id, "approved")


def test_admin_override_detects_concurrent_change(db, make_user, make_batch):
    batch = make_batch()
    enrollment = enrollment_service.create_enrollment(make_user().id, batch.id, "pay_later")
    enrollment = db.session.get(Enrollment, enrollment.id)
    assert enrollment.payment_status == "pending"

    # Another writer moves the row without this session noticing
    db.session.execute(
        update(Enrollment)
        .where(Enrollment.id == enrollment.id)
        .values(payment_status="failed")
        .execution_options(synchronize_session=False)
    )

    with pytest.raises(StateError):
        enrollment_service.set_payment_status(enrollment.id, "paid")

    db.session.rollback()
    assert _count(db, batch) == 0


def test_admin_override_rejects_duplicate_transaction_id(db, make_user, make_batch):
    batch = make_batch()
    enrollment_service.create_enrollment(make_user().id, batch.id, "bkash", transaction_id="TXN-TAKEN")
    other = enrollment_service.create_enrollment(make_user().id, batch.id, "pay_later")

    with pytest.raises(ConflictError):
        enrollment_service.set_payment_status(other.id, "paid", transaction_id="TXN-TAKEN")

    assert _count(db, batch) == 1


class LedgerModel:
    """Plain-Python reference model of one batch's seat accounting."""

    def __init__(self, seat_limit):
        self.seat_limit = seat_limit
        self.rows = {}

    @property
    def count(self):
        return sum(1 for row in self.rows.values() if row["held"])

    def can_create(self, student):
        return student not in self.rows and self.count < self.seat_limit

    def create(self, student, method):
        self.rows[student] = {"status": "pending", "held": POLICIES[method].counts_at_creation}

    def confirm(self, student):
        row = self.rows[student]
        if row["status"] == "refunded":
            return "error"
        if row["status"] != "paid":
            row["status"], row["held"] = "paid", True
        return "ok"

    def fail(self, student):
        row = self.rows[student]
        if row["status"] == "refunded":
            return "error"
        if row["status"] == "pending":
            row["status"], row["held"] = "failed", False
        return "ok"

    def override(self, student, status):
        row = self.rows[student]
        if row["status"] != status:
            row["status"], row["held"] = status, status == "paid"


@pytest.mark.parametrize("seed", [1, 7, 42, 2024])
def test_random_sequences_keep_counter_equal_to_ground_truth(db, make_user, make_batch, seed):
    rng = random.Random(seed)
    batch = make_batch(seat_limit=3)
    students = [make_user() for _ in range(6)]
    model = LedgerModel(batch.seat_limit)
    txns = {}
    ids = {}

    for step in range(60):
        student = rng.choice(students)
        op = rng.choice(["create", "confirm", "fail", "override"])

        if op == "create":
            method = rng.choice(["pay_later", "sslcommerz", "bkash"])
            txn = f"TXN-{seed}-{step}" if method != "pay_later" else None
            if model.can_create(student.id):
                enrollment = enrollment_service.create_enrollment(student.id, batch.id, method, transaction_id=txn)
                model.create(student.id, method)
                ids[student.id] = enrollment.id
                if txn:
                    txns[student.id] = txn
            else:
                with pytest.raises(ConflictError):
                    enrollment_service.create_enrollment(student.id, batch.id, method, transaction_id=txn)
                db.session.rollback()

        elif op in ("confirm", "fail") and student.id in txns:
            expected = model.confirm(student.id) if op == "confirm" else model.fail(student.id)
            call = (
                (lambda: payments.confirm_payment(txns[student.id], "bkash"))
                if op == "confirm"
                else (lambda: payments.confirm_fail(txns[student.id]))
            )
            if expected == "error":
                with pytest.raises(StateError):
                    call()
                db.session.rollback()
            else:
                call()

        elif op == "override" and student.id in ids:
            status = rng.choice(["pending", "paid", "failed", "refunded"])
            enrollment_service.set_payment_status(ids[student.id], status)
            model.override(student.id, status)

        assert _count(db, batch) == model.count, f"step {step}: {op}"
        assert _held(batch.id) == model.count


def test_shared_transaction_id_cannot_shadow_a_purchase(db, make_user, make_batch, make_item):
    from app.models import LibraryPurchase
    from app.services import library

    student = make_user()
    library.upsert_purchase(student.id, make_item(price=300), "bkash", transaction_id="TXN-SHARED")
    with pytest.raises(ConflictError):
        enrollment_service.create_enrollment(student.id, make_batch().id, "bkash", transaction_id="TXN-SHARED")

    result = payments.confirm_payment("TXN-SHARED", "bkash")

    assert result["enrollment_id"] is None
    purchase = LibraryPurchase.query.filter_by(transaction_id="TXN-SHARED").one()
    assert result["library_purchase_id"] == purchase.id
    assert purchase.payment_status == "paid"


def test_admin_override_cannot_take_a_purchase_transaction_id(db, make_user, make_batch, make_item):
    from app.services import library

    library.upsert_purchase(make_user().id, make_item(), "bkash", transaction_id="TXN-BOOK")
    enrollment = enrollment_service.create_enrollment(make_user().id, make_batch().id, "pay_later")

    with pytest.raises(ConflictError) as exc:
        enrollment_service.set_payment_status(enrollment.id, "paid", transaction_id="TXN-BOOK")

    assert exc.value.error_code == "DUPLICATE_TRANSACTION"
    db.session.refresh(enrollment)
    assert enrollment.payment_status == "pending"
