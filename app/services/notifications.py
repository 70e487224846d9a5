"""Fire-and-forget emails sent after a ledger or certificate change commits."""
import logging

from app.utils.mailer import send_email

logger = logging.getLogger(__name__)


def _deliver(to, subject, body):
    if not to:
        return False
    try:
        return bool(send_email(to, subject, body))
    except Exception:
        logger.exception(f"Failed to send '{subject}' to {to}")
        return False


def notify_enrollment_confirmed(enrollment):
    student = enrollment.student
    course = enrollment.course
    if student is None or course is None:
        return False

    body = (
        f"Hi {student.full_name},\n\n"
        f"Your payment for {course.title} ({enrollment.batch.batch_name}) has been confirmed.\n"
        f"Transaction: {enrollment.transaction_id or 'N/A'}\n"
        f"Amount: {enrollment.amount_paid}\n"
    )
    return _deliver(student.email, f"Enrollment confirmed: {course.title}", body)


def notify_purchase_confirmed(purchase):
    user = purchase.user
    item = purchase.item
    if user is None or item is None:
        return False

    body = (
        f"Hi {user.full_name},\n\n"
        f"Your purchase of {item.title} has been approved. "
        f"You can now download it from the library.\n"
    )
    return _deliver(user.email, f"Purchase approved: {item.title}", body)


def notify_certificate_issued(certificate):
    student = certificate.student
    if student is None:
        return False

    body = (
        f"Congratulations {certificate.student_name}!\n\n"
        f"Your certificate for {certificate.course_name} has been issued.\n"
        f"Verification number: {certificate.verification_number}\n"
    )
    return _deliver(student.email, f"Certificate issued: {certificate.course_name}", body)
