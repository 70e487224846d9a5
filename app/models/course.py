from app.extensions import db
from datetime import datetime
from sqlalchemy.ext.mutable import MutableList


class Course(db.Model):
    __tablename__ = "course"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(200), unique=True, nullable=False)
    short_description = db.Column(db.Text)
    price = db.Column(db.Float, nullable=False, default=0.0)
    discount_price = db.Column(db.Float, nullable=True)
    trainer_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)
    thumbnail_image = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Embedded module/lesson list: [{"title": ..., "lessons": [{"title": ...}, ...]}, ...]
    modules = db.Column(MutableList.as_mutable(db.JSON), default=list)

    # Certificate info
    certificate_issuer_name = db.Column(db.String(120), nullable=True)
    certificate_issuer_title = db.Column(db.String(120), nullable=True)

    trainer = db.relationship("User")
    batches = db.relationship("Batch", back_populates="course")
    lessons = db.relationship("CourseLesson", back_populates="course", cascade="all, delete-orphan")

    @property
    def effective_price(self):
        """Price charged on confirmation: discount when set, else the base price."""
        return self.discount_price or self.price or 0

    @property
    def has_certificate_info(self):
        return bool(self.certificate_issuer_name or self.certificate_issuer_title)

    def to_summary(self):
        return {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "thumbnail_image": self.thumbnail_image,
            "short_description": self.short_description,
            "price": self.price,
            "discount_price": self.discount_price,
        }

    def to_dict(self):
        data = self.to_summary()
        data.update({
            "trainer_id": self.trainer_id,
            "modules": list(self.modules or []),
            "certificate_issuer_name": self.certificate_issuer_name,
            "certificate_issuer_title": self.certificate_issuer_title,
            "lesson_count": len(self.lessons),
        })
        return data
