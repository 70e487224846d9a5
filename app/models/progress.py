from app.extensions import db
from datetime import datetime
from sqlalchemy.ext.mutable import MutableList


class CourseProgress(db.Model):
    __tablename__ = "course_progress"
    __table_args__ = (db.UniqueConstraint("student_id", "course_id", name="uq_progress_student_course"),)

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    course_id = db.Column(db.Integer, db.ForeignKey("course.id"), nullable=False)
    enrollment_id = db.Column(db.Integer, db.ForeignKey("enrollment.id"), nullable=False, index=True)

    # [{"lesson_id": str, "completed_at": iso str, "watch_time": int seconds}]
    completed_lessons = db.Column(MutableList.as_mutable(db.JSON), default=list)
    completion_percentage = db.Column(db.Integer, default=0)
    completed_at = db.Column(db.DateTime, nullable=True)
    last_accessed_at = db.Column(db.DateTime, default=datetime.utcnow)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    course = db.relationship("Course")
    enrollment = db.relationship("Enrollment")

    @property
    def completed_lesson_ids(self):
        return [entry["lesson_id"] for entry in (self.completed_lessons or [])]

    @property
    def is_completed(self):
        return (self.completion_percentage or 0) >= 100

    def to_dict(self):
        return {
            "id": self.id,
            "student_id": self.student_id,
            "course_id": self.course_id,
            "enrollment_id": self.enrollment_id,
            "completed_lessons": list(self.completed_lessons or []),
            "completion_percentage": self.completion_percentage,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "last_accessed_at": self.last_accessed_at.isoformat() if self.last_accessed_at else None,
            "course": self.course.to_summary() if self.course else None,
            "enrollment_status": self.enrollment.payment_status if self.enrollment else None,
        }
