import pytest

from app.errors import ConflictError, NotFoundError, ValidationError
from app.models import Enrollment
from app.services import enrollment as enrollment_service


def test_pay_later_enrollment_starts_pending_without_a_seat(db, make_user, make_batch):
    student = make_user()
    batch = make_batch(seat_limit=5)

    enrollment = enrollment_service.create_enrollment(student.id, batch.id, "pay_later")

    assert enrollment.payment_status == "pending"
    assert enrollment.seat_held is False
    db.session.refresh(batch)
    assert batch.enrolled_count == 0


def test_gateway_enrollment_reserves_a_seat_at_creation(db, make_user, make_batch):
    student = make_user()
    batch = make_batch(seat_limit=5)

    enrollment = enrollment_service.create_enrollment(student.id, batch.id, "sslcommerz", transaction_id="TXN1")

    assert enrollment.payment_status == "pending"
    assert enrollment.seat_held is True
    db.session.refresh(batch)
    assert batch.enrolled_count == 1


def test_second_enrollment_for_same_batch_is_rejected(db, make_user, make_batch):
    student = make_user()
    batch = make_batch()
    enrollment_service.create_enrollment(student.id, batch.id, "pay_later")

    with pytest.raises(ConflictError) as exc:
        enrollment_service.create_enrollment(student.id, batch.id, "bkash", transaction_id="TXN2")

    assert exc.value.error_code == "DUPLICATE_ENROLLMENT"
    assert Enrollment.query.filter_by(student_id=student.id).count() == 1
    db.session.refresh(batch)
    assert batch.enrolled_count == 0


def test_enrolling_in_a_full_batch_fails(db, make_user, make_batch):
    batch = make_batch(seat_limit=1)
    enrollment_service.create_enrollment(make_user().id, batch.id, "sslcommerz", transaction_id="TXN-A")

    with pytest.raises(ConflictError) as exc:
        enrollment_service.create_enrollment(make_user().id, batch.id, "pay_later")

    assert exc.value.error_code == "BATCH_FULL"


def test_last_seat_can_be_taken(db, make_user, make_batch):
    batch = make_batch(seat_limit=2)
    enrollment_service.create_enrollment(make_user().id, batch.id, "bkash", transaction_id="TXN-1")

    enrollment_service.create_enrollment(make_user().id, batch.id, "bkash", transaction_id="TXN-2")

    db.session.refresh(batch)
    assert batch.enrolled_count == batch.seat_limit == 2


def test_completed_batch_is_not_enrollable(db, make_user, make_batch):
    batch = make_batch(status="completed")

    with pytest.raises(ConflictError) as exc:
        enrollment_service.create_enrollment(make_user().id, batch.id, "pay_later")

    assert exc.value.error_code == "BATCH_NOT_ENROLLABLE"


def test_running_batch_is_enrollable(db, make_user, make_batch):
    batch = make_batch(status="running")
    enrollment = enrollment_service.create_enrollment(make_user().id, batch.id, "pay_later")
    assert enrollment.id is not None


def test_unknown_batch(db, make_user):
    with pytest.raises(NotFoundError) as exc:
        enrollment_service.create_enrollment(make_user().id, 9999, "pay_later")
    assert exc.value.error_code == "BATCH_NOT_FOUND"


def test_unknown_payment_method(db, make_user, make_batch):
    with pytest.raises(ValidationError):
        enrollment_service.create_enrollment(make_user().id, make_batch().id, "cash")


def test_pay_later_then_admin_approval_fills_single_seat(db, make_user, make_batch):
    batch = make_batch(seat_limit=1)
    first = enrollment_service.create_enrollment(make_user().id, batch.id, "pay_later")
    db.session.refresh(batch)
    assert batch.enrolled_count == 0

    enrollment_service.set_payment_status(first.id, "paid")
    db.session.refresh(batch)
    assert batch.enrolled_count == 1

    with pytest.raises(ConflictError) as exc:
        enrollment_service.create_enrollment(make_user().id, batch.id, "pay_later")
    assert exc.value.error_code == "BATCH_FULL"


def test_admin_list_filters_by_course_and_status(db, make_user, make_course, make_batch):
    course = make_course()
    batch = make_batch(course=course)
    other = make_batch()
    paid = enrollment_service.create_enrollment(make_user().id, batch.id, "pay_later")
    enrollment_service.set_payment_status(paid.id, "paid")
    enrollment_service.create_enrollment(make_user().id, batch.id, "pay_later")
    enrollment_service.create_enrollment(make_user().id, other.id, "pay_later")

    result = enrollment_service.list_enrollments(course_id=course.id, payment_status="paid")

    assert [row.id for row in result.items] == [paid.id]
    assert result.total == 1


def test_student_enrollments_newest_first(db, make_user, make_batch):
    student = make_user()
    first = enrollment_service.create_enrollment(student.id, make_batch().id, "pay_later")
    second = enrollment_service.create_enrollment(student.id, make_batch().id, "pay_later")

    rows = enrollment_service.list_student_enrollments(student.id)

    assert [row.id for row in rows] == [second.id, first.id]


@pytest.mark.parametrize("amount", ["lots", -5, float("nan")])
def test_invalid_amount_is_rejected_before_any_write(db, make_user, make_batch, amount):
    batch = make_batch()

    with pytest.raises(ValidationError):
        enrollment_service.create_enrollment(make_user().id, batch.id, "bkash", transaction_id="TXN-AMT", amount=amount)

    assert Enrollment.query.count() == 0
    db.session.refresh(batch)
    assert batch.enrolled_count == 0


def test_numeric_string_amount_is_stored(db, make_user, make_batch):
    enrollment = enrollment_service.create_enrollment(make_user().id, make_batch().id, "pay_later", amount="1500")
    assert enrollment.amount_paid == 1500.0


def test_reused_transaction_id_is_a_transaction_conflict(db, make_user, make_batch):
    batch = make_batch()
    enrollment_service.create_enrollment(make_user().id, batch.id, "bkash", transaction_id="TXN-DUP")

    with pytest.raises(ConflictError) as exc:
        enrollment_service.create_enrollment(make_user().id, batch.id, "bkash", transaction_id="TXN-DUP")

    assert exc.value.error_code == "DUPLICATE_TRANSACTION"
    db.session.refresh(batch)
    assert batch.enrolled_count == 1


def test_transaction_id_held_by_a_library_purchase_is_refused(db, make_user, make_batch, make_item):
    from app.services import library

    student = make_user()
    library.upsert_purchase(student.id, make_item(price=300), "bkash", transaction_id="TXN-SHARED")
    batch = make_batch()

    with pytest.raises(ConflictError) as exc:
        enrollment_service.create_enrollment(student.id, batch.id, "bkash", transaction_id="TXN-SHARED")

    assert exc.value.error_code == "DUPLICATE_TRANSACTION"
    assert Enrollment.query.count() == 0
    db.session.refresh(batch)
    assert batch.enrolled_count == 0
