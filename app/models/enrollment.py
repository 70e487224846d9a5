from app.extensions import db
from datetime import datetime

ENROLLMENT_STATUSES = ("pending", "paid", "failed", "refunded")
ENROLLMENT_METHODS = ("pay_later", "sslcommerz", "bkash")


class Enrollment(db.Model):
    __tablename__ = "enrollment"
    # Prevent duplicate enrollments
    __table_args__ = (db.UniqueConstraint("student_id", "batch_id", name="uq_enrollment_student_batch"),)

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    batch_id = db.Column(db.Integer, db.ForeignKey("batch.id"), nullable=False, index=True)
    payment_status = db.Column(
        db.Enum(*ENROLLMENT_STATUSES, name="enrollment_payment_status"),
        nullable=False,
        default="pending",
        index=True,
    )
    payment_method = db.Column(db.Enum(*ENROLLMENT_METHODS, name="enrollment_payment_method"), nullable=False)
    transaction_id = db.Column(db.String(64), unique=True, nullable=True)
    amount_paid = db.Column(db.Float, default=0.0)
    # True while this row accounts for one unit of batch.enrolled_count
    seat_held = db.Column(db.Boolean, nullable=False, default=False)
    enrolled_at = db.Column(db.DateTime, default=datetime.utcnow)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    student = db.relationship("User", back_populates="enrollments")
    batch = db.relationship("Batch", back_populates="enrollments")

    @property
    def course(self):
        return self.batch.course if self.batch else None

    def to_dict(self, include_student=False):
        data = {
            "id": self.id,
            "student_id": self.student_id,
            "batch_id": self.batch_id,
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "transaction_id": self.transaction_id,
            "amount_paid": self.amount_paid,
            "enrolled_at": self.enrolled_at.isoformat() if self.enrolled_at else None,
            "batch": self.batch.to_summary() if self.batch else None,
        }
        if include_student and self.student:
            data["student"] = self.student.to_summary()
        return data
