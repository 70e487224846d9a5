"""
Payment ledger state machine shared by enrollments and library purchases.

Every status change is a single conditional UPDATE whose WHERE clause carries
the transition predicate; the rowcount decides whether this caller won the
transition. Side effects on Batch.enrolled_count run only for the winner, so
duplicate gateway callbacks can never count a seat twice.

    [none] --create--> pending
    pending --confirm--> paid
    pending --fail--> failed
    failed --confirm--> paid
    any --admin override--> any other status
"""
import logging

from sqlalchemy import update
from sqlalchemy.orm.util import identity_key

from app.errors import ConflictError, NotFoundError, StateError, ValidationError
from app.extensions import db
from app.models import Batch, Enrollment, LibraryPurchase
from app.models.enrollment import ENROLLMENT_STATUSES
from app.models.library import PURCHASE_STATUSES

logger = logging.getLogger(__name__)

PENDING = "pending"
PAID = "paid"
FAILED = "failed"


def _execute(stmt):
    """Run a conditional UPDATE and return how many rows matched."""
    result = db.session.execute(stmt.execution_options(synchronize_session=False))
    return result.rowcount


def _expire(model, pk, *attrs):
    obj = db.session.identity_map.get(identity_key(model, pk))
    if obj is not None:
        db.session.expire(obj, list(attrs) or None)


class BatchSeatCounter:
    """Keeps Batch.enrolled_count equal to the number of enrollments with seat_held."""

    def reserve(self, batch_id):
        """Take a seat for a row being created. False when the batch is full."""
        taken = _execute(
            update(Batch)
            .where(Batch.id == batch_id, Batch.enrolled_count < Batch.seat_limit)
            .values(enrolled_count=Batch.enrolled_count + 1)
        )
        _expire(Batch, batch_id, "enrolled_count")
        return taken == 1

    def hold(self, enrollment):
        flipped = _execute(
            update(Enrollment)
            .where(Enrollment.id == enrollment.id, Enrollment.seat_held.is_(False))
            .values(seat_held=True)
        )
        if flipped:
            self._adjust(enrollment.batch_id, 1)
        return bool(flipped)

    def release(self, enrollment):
        flipped = _execute(
            update(Enrollment)
            .where(Enrollment.id == enrollment.id, Enrollment.seat_held.is_(True))
            .values(seat_held=False)
        )
        if flipped:
            self._adjust(enrollment.batch_id, -1)
        return bool(flipped)

    def _adjust(self, batch_id, delta):
        stmt = update(Batch).where(Batch.id == batch_id)
        if delta < 0:
            stmt = stmt.where(Batch.enrolled_count > 0)
        _execute(stmt.values(enrolled_count=Batch.enrolled_count + delta))
        _expire(Batch, batch_id, "enrolled_count")

        batch = db.session.get(Batch, batch_id)
        if batch is not None and batch.enrolled_count > batch.seat_limit:
            logger.warning(
                f"Batch {batch_id} is over capacity: {batch.enrolled_count}/{batch.seat_limit}"
            )
        logger.info(f"Batch {batch_id} enrolled_count {delta:+d}")


class PaidLedger:
    """One payable claim per row, moving through pending/paid/failed/...

    ``sticky`` statuses are closed by an admin; gateway signals may not move
    a row out of them. ``seats`` is the capacity side effect, or None.
    """

    def __init__(self, model, label, statuses, sticky=(), seats=None):
        self.model = model
        self.label = label
        self.statuses = tuple(statuses)
        self.sticky = tuple(sticky)
        self.seats = seats

    def get(self, row_id):
        row = db.session.get(self.model, row_id)
        if row is None:
            raise NotFoundError(self.label, row_id)
        return row

    def find_by_transaction(self, transaction_id):
        if not transaction_id:
            return None
        return self.model.query.filter_by(transaction_id=transaction_id).first()

    def confirm(self, row, **values):
        """Gateway success. Returns True only for the call that moved the row to paid."""
        if row.payment_status == PAID:
            return False
        self._reject_sticky(row, "confirm")
        return self._transition(
            row,
            PAID,
            self.model.payment_status.notin_((PAID,) + self.sticky),
            values,
        )

    def fail(self, row):
        """Gateway failure. Paid is terminal for fail signals."""
        self._reject_sticky(row, "fail")
        if row.payment_status != PENDING:
            return False
        return self._transition(row, FAILED, self.model.payment_status == PENDING, {})

    def override(self, row, new_status, **values):
        """Admin override: any status to any other status."""
        if new_status not in self.statuses:
            raise ValidationError(
                f"Invalid paymentStatus '{new_status}'",
                details={"allowed": list(self.statuses)},
            )

        current = row.payment_status
        if new_status == current:
            for key, value in values.items():
                setattr(row, key, value)
            return False

        if not self._transition(row, new_status, self.model.payment_status == current, values):
            raise StateError(
                f"{self.label} status changed concurrently; reload and retry",
                details={"expected": current},
            )
        return True

    def _reject_sticky(self, row, action):
        if row.payment_status in self.sticky:
            raise StateError(
                f"Cannot {action} a {row.payment_status} {self.label.lower()}",
                details={"status": row.payment_status},
            )

    def _transition(self, row, new_status, predicate, values):
        previous = row.payment_status
        won = _execute(
            update(self.model)
            .where(self.model.id == row.id, predicate)
            .values(payment_status=new_status, **values)
        )
        if won != 1:
            db.session.refresh(row)
            return False

        if self.seats is not None:
            # A row holds a seat exactly while it is paid, apart from the
            # reservation a gateway checkout takes at creation.
            if new_status == PAID:
                self.seats.hold(row)
            else:
                self.seats.release(row)

        db.session.refresh(row)
        logger.info(f"{self.label} {row.id}: {previous} -> {new_status}")
        return True


enrollments = PaidLedger(
    Enrollment,
    "Enrollment",
    ENROLLMENT_STATUSES,
    sticky=("refunded",),
    seats=BatchSeatCounter(),
)

library_purchases = PaidLedger(
    LibraryPurchase,
    "Purchase",
    PURCHASE_STATUSES,
    sticky=("rejected",),
)


def transaction_conflict():
    return ConflictError("Transaction ID is already in use", "DUPLICATE_TRANSACTION")


def ensure_transaction_free(transaction_id, owner=None):
    """A transaction id settles exactly one ledger row across both ledgers.

    Raises ConflictError when any row other than ``owner`` already holds it.
    Call before assigning the id so autoflush cannot match the pending row.
    """
    if not transaction_id:
        return
    for ledger in (enrollments, library_purchases):
        holder = ledger.find_by_transaction(transaction_id)
        if holder is not None and holder is not owner:
            raise transaction_conflict()
