"""
Enrollment ledger operations: student enroll, admin override and reads.
"""
import logging
import math
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from app.errors import ConflictError, NotFoundError, ValidationError
from app.extensions import db
from app.models import Batch, Enrollment
from app.models.enrollment import ENROLLMENT_METHODS
from app.services.ledger import PAID, PENDING, enrollments, ensure_transaction_free, transaction_conflict
from app.services.notifications import notify_enrollment_confirmed
from app.services.payment_methods import policy_for
from app.utils.pagination import paginate

logger = logging.getLogger(__name__)


def _duplicate():
    return ConflictError("Already enrolled in this batch", "DUPLICATE_ENROLLMENT")


def _amount(value, field):
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not math.isfinite(amount) or amount < 0:
        raise ValidationError(f"{field} must be a non-negative number")
    return amount


def create_enrollment(student_id, batch_id, method, transaction_id=None, amount=None):
    """Create a pending enrollment, reserving a seat when the method counts at creation."""
    policy = policy_for(method)
    amount_paid = _amount(amount, "amount") if amount not in (None, "") else 0.0

    batch = db.session.get(Batch, batch_id) if batch_id else None
    if batch is None:
        raise NotFoundError("Batch", batch_id, "BATCH_NOT_FOUND")

    if not batch.is_enrollable:
        raise ConflictError(
            "Cannot enroll in this batch",
            "BATCH_NOT_ENROLLABLE",
            details={"status": batch.status},
        )

    if batch.is_full:
        raise ConflictError("Batch is full", "BATCH_FULL")

    if Enrollment.query.filter_by(student_id=student_id, batch_id=batch.id).first():
        raise _duplicate()

    ensure_transaction_free(transaction_id)

    seat_held = False
    if policy.counts_at_creation:
        if not enrollments.seats.reserve(batch.id):
            db.session.rollback()
            raise ConflictError("Batch is full", "BATCH_FULL")
        seat_held = True

    enrollment = Enrollment(
        student_id=student_id,
        batch_id=batch.id,
        payment_status=PENDING,
        payment_method=method,
        transaction_id=transaction_id or None,
        amount_paid=amount_paid,
        seat_held=seat_held,
    )
    db.session.add(enrollment)

    try:
        db.session.commit()
    except IntegrityError:
        # Lost a race on one of the unique constraints; the rollback also
        # returns the reserved seat
        db.session.rollback()
        if Enrollment.query.filter_by(student_id=student_id, batch_id=batch.id).first():
            raise _duplicate()
        raise transaction_conflict()

    logger.info(
        f"Enrollment {enrollment.id} created: student={student_id} batch={batch.id} "
        f"method={method} seat_held={seat_held}"
    )
    return enrollment


def get_enrollment(enrollment_id):
    return enrollments.get(enrollment_id)


def set_payment_status(enrollment_id, new_status, payment_method=None, transaction_id=None, amount_paid=None):
    """Admin override. Returns (enrollment, changed)."""
    enrollment = enrollments.get(enrollment_id)

    values = {}
    if payment_method is not None:
        if payment_method not in ENROLLMENT_METHODS:
            raise ValidationError(
                f"Invalid paymentMethod '{payment_method}'",
                details={"allowed": list(ENROLLMENT_METHODS)},
            )
        values["payment_method"] = payment_method
    if transaction_id is not None:
        ensure_transaction_free(transaction_id, owner=enrollment)
        values["transaction_id"] = transaction_id or None
    if amount_paid is not None:
        values["amount_paid"] = _amount(amount_paid, "amount_paid")

    try:
        changed = enrollments.override(enrollment, new_status, **values)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise transaction_conflict()
    if changed and enrollment.payment_status == PAID:
        notify_enrollment_confirmed(enrollment)
    return enrollment, changed


def list_student_enrollments(student_id):
    return (
        Enrollment.query.filter_by(student_id=student_id)
        .order_by(Enrollment.created_at.desc(), Enrollment.id.desc())
        .all()
    )


def list_enrollments(course_id=None, batch_id=None, payment_status=None, since=None, page=1, limit=20):
    query = Enrollment.query
    if course_id:
        query = query.join(Enrollment.batch).filter(Batch.course_id == course_id)
    if batch_id:
        query = query.filter(Enrollment.batch_id == batch_id)
    if payment_status:
        query = query.filter(Enrollment.payment_status == payment_status)
    if since:
        if not isinstance(since, datetime):
            try:
                since = datetime.fromisoformat(since)
            except ValueError:
                raise ValidationError("since must be an ISO date")
        query = query.filter(Enrollment.created_at >= since)

    query = query.order_by(Enrollment.created_at.desc(), Enrollment.id.desc())
    return paginate(query, page, limit)
