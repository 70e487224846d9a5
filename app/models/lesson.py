from app.extensions import db
from datetime import datetime

LESSON_TYPES = ("video", "text", "quiz", "assignment")


class CourseLesson(db.Model):
    __tablename__ = "course_lesson"

    id = db.Column(db.Integer, primary_key=True)
    course_id = db.Column(db.Integer, db.ForeignKey("course.id"), nullable=False, index=True)
    module_title = db.Column(db.String(200), nullable=False)
    module_order = db.Column(db.Integer, default=0)
    lesson_title = db.Column(db.String(200), nullable=False)
    lesson_order = db.Column(db.Integer, default=0)
    lesson_type = db.Column(
        db.Enum(*LESSON_TYPES, name="lesson_type"),
        nullable=False,
        default="video",
    )
    video_url = db.Column(db.String(255), default="")
    video_duration = db.Column(db.Integer, default=0)  # seconds
    is_free_preview = db.Column(db.Boolean, default=False)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    course = db.relationship("Course", back_populates="lessons")

    def to_dict(self):
        return {
            "id": self.id,
            "course_id": self.course_id,
            "module_title": self.module_title,
            "module_order": self.module_order,
            "lesson_title": self.lesson_title,
            "lesson_order": self.lesson_order,
            "lesson_type": self.lesson_type,
            "video_url": self.video_url,
            "video_duration": self.video_duration,
            "is_free_preview": self.is_free_preview,
            "is_active": self.is_active,
        }
