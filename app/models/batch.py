from app.extensions import db
from datetime import datetime
from sqlalchemy.ext.mutable import MutableList

BATCH_MODES = ("online", "offline", "hybrid")
BATCH_STATUSES = ("upcoming", "running", "completed")
ENROLLABLE_STATUSES = ("upcoming", "running")


class Batch(db.Model):
    __tablename__ = "batch"
    __table_args__ = (
        db.CheckConstraint("seat_limit >= 1", name="ck_batch_seat_limit"),
        db.CheckConstraint("enrolled_count >= 0", name="ck_batch_enrolled_count"),
    )

    id = db.Column(db.Integer, primary_key=True)
    course_id = db.Column(db.Integer, db.ForeignKey("course.id"), nullable=False, index=True)
    trainer_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)
    batch_name = db.Column(db.String(120), nullable=False)
    batch_number = db.Column(db.String(50), nullable=False, index=True)
    start_date = db.Column(db.Date, nullable=False, index=True)
    end_date = db.Column(db.Date, nullable=False)
    days_of_week = db.Column(MutableList.as_mutable(db.JSON), default=list)
    start_time = db.Column(db.String(20), nullable=False)  # e.g. "10:00 AM"
    end_time = db.Column(db.String(20), nullable=False)
    mode = db.Column(db.Enum(*BATCH_MODES, name="batch_mode"), nullable=False)
    seat_limit = db.Column(db.Integer, nullable=False)
    # Mutated only through BatchSeatCounter
    enrolled_count = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(
        db.Enum(*BATCH_STATUSES, name="batch_status"),
        nullable=False,
        default="upcoming",
        index=True,
    )
    meeting_link = db.Column(db.String(255), default="")
    venue = db.Column(db.String(255), default="")
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    course = db.relationship("Course", back_populates="batches")
    trainer = db.relationship("User")
    enrollments = db.relationship("Enrollment", back_populates="batch")

    @property
    def is_enrollable(self):
        return self.status in ENROLLABLE_STATUSES

    @property
    def is_full(self):
        return self.enrolled_count >= self.seat_limit

    def to_summary(self):
        return {
            "id": self.id,
            "batch_name": self.batch_name,
            "batch_number": self.batch_number,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "mode": self.mode,
            "seat_limit": self.seat_limit,
            "enrolled_count": self.enrolled_count,
            "status": self.status,
            "course": self.course.to_summary() if self.course else None,
        }

    def to_dict(self):
        data = self.to_summary()
        data.update({
            "course_id": self.course_id,
            "trainer_id": self.trainer_id,
            "days_of_week": list(self.days_of_week or []),
            "meeting_link": self.meeting_link,
            "venue": self.venue,
        })
        return data
