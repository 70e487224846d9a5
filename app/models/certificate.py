from app.extensions import db
from datetime import datetime
from sqlalchemy import text

CERTIFICATE_STATUSES = ("active", "revoked", "pending")


class CertificateTemplate(db.Model):
    __tablename__ = "certificate_template"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, default="")
    template_type = db.Column(
        db.Enum("course", "achievement", "participation", "custom", name="template_type"),
        default="course",
    )
    background_image = db.Column(db.String(255), default="")
    background_color = db.Column(db.String(20), default="#ffffff")
    logo_url = db.Column(db.String(255), default="")
    is_default = db.Column(db.Boolean, default=False)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "template_type": self.template_type,
            "background_image": self.background_image,
            "background_color": self.background_color,
            "logo_url": self.logo_url,
            "is_default": self.is_default,
            "is_active": self.is_active,
        }


class Certificate(db.Model):
    __tablename__ = "certificate"
    # At most one active certificate per student+course
    __table_args__ = (
        db.Index(
            "uq_certificate_active_student_course",
            "student_id",
            "course_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    course_id = db.Column(db.Integer, db.ForeignKey("course.id"), nullable=True, index=True)
    batch_id = db.Column(db.Integer, db.ForeignKey("batch.id"), nullable=True)
    student_name = db.Column(db.String(120), nullable=False)
    course_name = db.Column(db.String(200), nullable=False)
    completion_date = db.Column(db.DateTime, default=datetime.utcnow)
    verification_number = db.Column(db.String(40), unique=True, nullable=False)
    category = db.Column(db.String(80), default="Course Completion")
    template_id = db.Column(db.Integer, db.ForeignKey("certificate_template.id"), nullable=True)
    issuer_name = db.Column(db.String(120), default="")
    issuer_title = db.Column(db.String(120), default="")
    status = db.Column(db.Enum(*CERTIFICATE_STATUSES, name="certificate_status"), nullable=False, default="active", index=True)
    is_manual = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    student = db.relationship("User", back_populates="certificates")
    course = db.relationship("Course")
    batch = db.relationship("Batch")
    template = db.relationship("CertificateTemplate")

    def to_dict(self):
        return {
            "id": self.id,
            "student_id": self.student_id,
            "course_id": self.course_id,
            "batch_id": self.batch_id,
            "student_name": self.student_name,
            "course_name": self.course_name,
            "completion_date": self.completion_date.isoformat() if self.completion_date else None,
            "verification_number": self.verification_number,
            "category": self.category,
            "issuer_name": self.issuer_name,
            "issuer_title": self.issuer_title,
            "status": self.status,
            "is_manual": self.is_manual,
            "template": self.template.to_dict() if self.template else None,
        }
