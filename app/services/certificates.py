"""
Certificate issuance, verification and template administration.

At most one active certificate exists per (student, course). The partial
unique index ``uq_certificate_active_student_course`` backs the existence
check, so two concurrent issuers end with one row: the loser's insert fails
and it returns the winner's certificate.
"""
import logging
import secrets
import string
import time
from datetime import datetime, timezone

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from app.errors import ConflictError, NoTemplateConfigured, NotFoundError, StateError, ValidationError
from app.extensions import db
from app.models import Batch, Certificate, CertificateTemplate, Course, Enrollment, User
from app.models.certificate import CERTIFICATE_STATUSES
from app.services.events import course_completed
from app.services.notifications import notify_certificate_issued
from app.utils.pagination import paginate

logger = logging.getLogger(__name__)

ACTIVE = "active"
DEFAULT_ISSUER_TITLE = "Instructor"
VERIFICATION_ATTEMPTS = 10
BASE36 = string.digits + string.ascii_uppercase

TEMPLATE_FIELDS = (
    "name",
    "description",
    "template_type",
    "background_image",
    "background_color",
    "logo_url",
    "is_default",
    "is_active",
)


def _random_suffix(length=6):
    return "".join(secrets.choice(BASE36) for _ in range(length))


def generate_verification_number(now=None):
    """CERT-YYYYMMDD-XXXXXX, checked against existing numbers."""
    now = now or datetime.utcnow()
    for _ in range(VERIFICATION_ATTEMPTS):
        candidate = f"CERT-{now:%Y%m%d}-{_random_suffix()}"
        if not Certificate.query.filter_by(verification_number=candidate).first():
            return candidate

    logger.warning("Verification number attempts exhausted, using timestamp fallback")
    return f"CERT-{int(time.time() * 1000)}-{_random_suffix()}"


def parse_completion_date(value):
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError("Invalid completion date format")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def find_active(student_id, course_id):
    return Certificate.query.filter_by(student_id=student_id, course_id=course_id, status=ACTIVE).first()


def resolve_template(create_if_missing=False):
    """Default active template, else any active one.

    With ``create_if_missing`` a minimal default template is created when none
    exists; otherwise None is returned.
    """
    template = CertificateTemplate.query.filter_by(is_default=True, is_active=True).first()
    if template is None:
        template = (
            CertificateTemplate.query.filter_by(is_active=True)
            .order_by(CertificateTemplate.created_at.asc(), CertificateTemplate.id.asc())
            .first()
        )

    if template is None and create_if_missing:
        template = CertificateTemplate(
            name="Default Template",
            description="Default certificate template",
            template_type="course",
            background_color="#ffffff",
            is_default=True,
            is_active=True,
        )
        db.session.add(template)
        db.session.flush()
        logger.info(f"Created default certificate template {template.id}")

    return template


def resolve_issuer(course, batch=None):
    """(issuer_name, issuer_title): course certificate info, else the batch trainer."""
    if course is not None and course.has_certificate_info:
        return course.certificate_issuer_name or "", course.certificate_issuer_title or DEFAULT_ISSUER_TITLE

    trainer = batch.trainer if batch is not None else None
    if trainer is not None:
        return trainer.full_name, trainer.title or DEFAULT_ISSUER_TITLE

    return "", ""


def _insert(certificate):
    """Commit a new active certificate. Returns (certificate, created)."""
    db.session.add(certificate)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        existing = find_active(certificate.student_id, certificate.course_id)
        if existing is None:
            raise
        logger.info(
            f"Concurrent issuance for student {certificate.student_id} course "
            f"{certificate.course_id}; returning certificate {existing.id}"
        )
        return existing, False

    logger.info(
        f"Certificate {certificate.verification_number} issued to student {certificate.student_id} "
        f"for course {certificate.course_id} (manual={certificate.is_manual})"
    )
    return certificate, True


def issue_if_complete(student_id, course_id, batch_id=None, completion_date=None):
    """Auto-issue on course completion. Returns (certificate, created)."""
    existing = find_active(student_id, course_id)
    if existing is not None:
        return existing, False

    student = db.session.get(User, student_id)
    course = db.session.get(Course, course_id)
    if student is None or course is None:
        logger.warning(f"Cannot issue certificate: student {student_id} or course {course_id} missing")
        return None, False

    batch = db.session.get(Batch, batch_id) if batch_id else None
    template = resolve_template(create_if_missing=True)
    issuer_name, issuer_title = resolve_issuer(course, batch)

    certificate = Certificate(
        student_id=student.id,
        course_id=course.id,
        batch_id=batch.id if batch else None,
        student_name=student.full_name,
        course_name=course.title,
        completion_date=completion_date or datetime.utcnow(),
        verification_number=generate_verification_number(),
        template_id=template.id,
        issuer_name=issuer_name,
        issuer_title=issuer_title,
        status=ACTIVE,
        is_manual=False,
    )
    certificate, created = _insert(certificate)
    if created:
        notify_certificate_issued(certificate)
    return certificate, created


@course_completed.connect
def issue_on_course_completed(sender, student_id=None, course_id=None, batch_id=None,
                              completion_date=None, **extra):
    """Receiver for ``course_completed``. Failures are logged and reported as False."""
    try:
        _, created = issue_if_complete(student_id, course_id, batch_id, completion_date)
        return created
    except Exception:
        db.session.rollback()
        logger.exception(f"Certificate auto-generation failed for student {student_id} course {course_id}")
        return False


def create_manual_certificate(student_id, student_name, course_name, course_id=None, batch_id=None,
                              completion_date=None, issuer_name="", issuer_title="", category=None):
    student_name = (student_name or "").strip()
    course_name = (course_name or "").strip()
    if not student_id or not student_name or not course_name:
        raise ValidationError("Student ID, student name, and course name are required")

    if db.session.get(User, student_id) is None:
        raise NotFoundError("Student", student_id)
    if course_id and db.session.get(Course, course_id) is None:
        raise NotFoundError("Course", course_id)
    if batch_id and db.session.get(Batch, batch_id) is None:
        raise NotFoundError("Batch", batch_id)

    template = resolve_template()
    if template is None:
        raise NoTemplateConfigured()

    parsed_date = parse_completion_date(completion_date)

    if course_id and find_active(student_id, course_id) is not None:
        raise ConflictError(
            "An active certificate already exists for this student and course",
            "CERTIFICATE_EXISTS",
        )

    certificate = Certificate(
        student_id=student_id,
        course_id=course_id or None,
        batch_id=batch_id or None,
        student_name=student_name,
        course_name=course_name,
        completion_date=parsed_date or datetime.utcnow(),
        verification_number=generate_verification_number(),
        category=category or "Course Completion",
        template_id=template.id,
        issuer_name=(issuer_name or "").strip(),
        issuer_title=(issuer_title or "").strip(),
        status=ACTIVE,
        is_manual=True,
    )
    certificate, created = _insert(certificate)
    if not created:
        raise ConflictError(
            "An active certificate already exists for this student and course",
            "CERTIFICATE_EXISTS",
            details={"certificate": certificate.to_dict()},
        )
    return certificate


def generate_certificate(enrollment_id=None, student_id=None, course_id=None, completion_date=None):
    """Admin retry path for a completed course."""
    batch = None
    if enrollment_id:
        enrollment = db.session.get(Enrollment, enrollment_id)
        if enrollment is None:
            raise NotFoundError("Enrollment", enrollment_id)
        batch = enrollment.batch
        student = enrollment.student
        course = batch.course if batch else None
    elif student_id and course_id:
        student = db.session.get(User, student_id)
        course = db.session.get(Course, course_id)
    else:
        raise ValidationError("Either enrollmentId or both courseId and studentId are required")

    if student is None or course is None:
        raise NotFoundError("Course or student")

    existing = find_active(student.id, course.id)
    if existing is not None:
        raise ConflictError(
            "Certificate already exists for this course completion",
            "CERTIFICATE_EXISTS",
            details={"certificate": existing.to_dict()},
        )

    template = CertificateTemplate.query.filter_by(is_default=True, is_active=True).first()
    issuer_name, issuer_title = resolve_issuer(course, batch)

    certificate = Certificate(
        student_id=student.id,
        course_id=course.id,
        batch_id=batch.id if batch else None,
        student_name=student.full_name,
        course_name=course.title,
        completion_date=parse_completion_date(completion_date) or datetime.utcnow(),
        verification_number=generate_verification_number(),
        template_id=template.id if template else None,
        issuer_name=issuer_name,
        issuer_title=issuer_title,
        status=ACTIVE,
        is_manual=False,
    )
    certificate, created = _insert(certificate)
    if not created:
        raise ConflictError(
            "Certificate already exists for this course completion",
            "CERTIFICATE_EXISTS",
            details={"certificate": certificate.to_dict()},
        )
    notify_certificate_issued(certificate)
    return certificate


def list_certificates(search=None, category=None, status=None, student_id=None, course_id=None,
                      page=1, limit=20):
    query = Certificate.query
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            or_(
                Certificate.student_name.ilike(pattern),
                Certificate.course_name.ilike(pattern),
                Certificate.verification_number.ilike(pattern),
            )
        )
    if category:
        query = query.filter(Certificate.category == category)
    if status:
        query = query.filter(Certificate.status == status)
    if student_id:
        query = query.filter(Certificate.student_id == student_id)
    if course_id:
        query = query.filter(Certificate.course_id == course_id)

    query = query.order_by(Certificate.created_at.desc(), Certificate.id.desc())
    return paginate(query, page, limit)


def list_categories():
    rows = db.session.query(Certificate.category).distinct().order_by(Certificate.category).all()
    return [category for (category,) in rows if category]


def get_certificate(certificate_id):
    certificate = db.session.get(Certificate, certificate_id)
    if certificate is None:
        raise NotFoundError("Certificate", certificate_id)
    return certificate


def update_certificate(certificate_id, student_name=None, course_name=None, completion_date=None,
                       status=None, template_id=None, issuer_name=None, issuer_title=None):
    certificate = get_certificate(certificate_id)

    if student_name:
        certificate.student_name = student_name.strip()
    if course_name:
        certificate.course_name = course_name.strip()
    if completion_date:
        certificate.completion_date = parse_completion_date(completion_date)
    if status:
        if status not in CERTIFICATE_STATUSES:
            raise ValidationError(
                f"Invalid status '{status}'",
                details={"allowed": list(CERTIFICATE_STATUSES)},
            )
        certificate.status = status
    if template_id:
        if db.session.get(CertificateTemplate, template_id) is None:
            raise NotFoundError("Template", template_id)
        certificate.template_id = template_id
    if issuer_name is not None:
        certificate.issuer_name = issuer_name
    if issuer_title is not None:
        certificate.issuer_title = issuer_title

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(
            "An active certificate already exists for this student and course",
            "CERTIFICATE_EXISTS",
        )
    return certificate


def delete_certificate(certificate_id):
    certificate = get_certificate(certificate_id)
    db.session.delete(certificate)
    db.session.commit()
    logger.info(f"Certificate {certificate_id} deleted")


def verify_certificate(verification_number):
    certificate = Certificate.query.filter_by(verification_number=verification_number).first()
    if certificate is None:
        raise NotFoundError("Certificate", verification_number, "INVALID_VERIFICATION_NUMBER")
    if certificate.status != ACTIVE:
        raise StateError(f"Certificate is {certificate.status}", details={"status": certificate.status})
    return certificate


def list_student_certificates(student_id):
    return (
        Certificate.query.filter_by(student_id=student_id, status=ACTIVE)
        .order_by(Certificate.completion_date.desc())
        .all()
    )


# Templates

def list_templates():
    return (
        CertificateTemplate.query.filter_by(is_active=True)
        .order_by(CertificateTemplate.is_default.desc(), CertificateTemplate.created_at.desc())
        .all()
    )


def get_template(template_id):
    template = db.session.get(CertificateTemplate, template_id)
    if template is None:
        raise NotFoundError("Template", template_id)
    return template


def _apply_template_fields(template, data):
    for field in TEMPLATE_FIELDS:
        if field in data:
            setattr(template, field, data[field])
    if not template.name:
        raise ValidationError("Template name is required")

    # Only one default template
    if template.is_default:
        query = CertificateTemplate.query.filter(CertificateTemplate.is_default.is_(True))
        if template.id is not None:
            query = query.filter(CertificateTemplate.id != template.id)
        for other in query.all():
            other.is_default = False


def create_template(data):
    template = CertificateTemplate()
    _apply_template_fields(template, data)
    db.session.add(template)
    db.session.commit()
    return template


def update_template(template_id, data):
    template = get_template(template_id)
    _apply_template_fields(template, data)
    db.session.commit()
    return template


def delete_template(template_id):
    template = get_template(template_id)
    if template.is_default:
        raise ConflictError("Cannot delete default template", "DEFAULT_TEMPLATE")
    db.session.delete(template)
    db.session.commit()
