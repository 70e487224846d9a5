"""
Lesson completion and course progress.

``completion_percentage`` is always recomputed from the recorded lesson ids
and the course's current lesson set; the stored value is a cache for reads.
"""
import logging
import math
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from app.errors import ForbiddenError, NotFoundError, ValidationError
from app.extensions import db
from app.models import Batch, CourseLesson, CourseProgress, Enrollment
from app.services.events import course_completed
from app.services.ledger import PAID

logger = logging.getLogger(__name__)


def course_lesson_ids(course):
    """Ordered lesson ids: active CourseLesson rows, else the embedded modules."""
    lessons = (
        CourseLesson.query.filter_by(course_id=course.id, is_active=True)
        .order_by(CourseLesson.module_order, CourseLesson.lesson_order, CourseLesson.id)
        .all()
    )
    if lessons:
        return [str(lesson.id) for lesson in lessons]

    ids = []
    for i, module in enumerate(course.modules or []):
        for j, _ in enumerate(module.get("lessons") or []):
            ids.append(f"module-{i}-lesson-{j}")
    return ids


def completion_percentage(completed_ids, lesson_ids):
    total = len(lesson_ids)
    if total == 0:
        return 0
    done = len(set(completed_ids) & set(lesson_ids))
    # Half-up, so 12.5 -> 13
    return int(math.floor(100 * done / total + 0.5))


def find_paid_enrollment(student_id, course_id):
    return (
        Enrollment.query.join(Enrollment.batch)
        .filter(
            Enrollment.student_id == student_id,
            Enrollment.payment_status == PAID,
            Batch.course_id == course_id,
        )
        .order_by(Enrollment.created_at.asc(), Enrollment.id.asc())
        .first()
    )


def _get_or_create(student_id, enrollment):
    course_id = enrollment.batch.course_id
    progress = CourseProgress.query.filter_by(student_id=student_id, course_id=course_id).first()
    if progress is not None:
        return progress

    progress = CourseProgress(
        student_id=student_id,
        course_id=course_id,
        enrollment_id=enrollment.id,
        completed_lessons=[],
        completion_percentage=0,
    )
    db.session.add(progress)
    try:
        db.session.commit()
    except IntegrityError:
        # Created by a concurrent request
        db.session.rollback()
        progress = CourseProgress.query.filter_by(student_id=student_id, course_id=course_id).one()
    return progress


def _stamp_completed(progress, now):
    """Set completed_at once. True only for the call that set it."""
    stamped = db.session.execute(
        update(CourseProgress)
        .where(CourseProgress.id == progress.id, CourseProgress.completed_at.is_(None))
        .values(completed_at=now)
        .execution_options(synchronize_session=False)
    ).rowcount
    db.session.commit()
    db.session.refresh(progress)
    return stamped == 1


def _publish_completion(progress, enrollment):
    results = course_completed.send(
        progress,
        student_id=progress.student_id,
        course_id=progress.course_id,
        batch_id=enrollment.batch_id,
        completion_date=progress.completed_at,
    )
    return any(bool(result) for _, result in results)


def _refresh_percentage(progress, lesson_ids):
    percentage = completion_percentage(progress.completed_lesson_ids, lesson_ids)
    if percentage != progress.completion_percentage:
        progress.completion_percentage = percentage
    return percentage


def mark_lesson_complete(student_id, course_id, lesson_id, watch_time=0):
    if not course_id or not lesson_id:
        raise ValidationError("Course ID and Lesson ID are required")
    try:
        watch_time = int(watch_time or 0)
    except (TypeError, ValueError):
        raise ValidationError("watchTime must be a number of seconds")

    enrollment = find_paid_enrollment(student_id, course_id)
    if enrollment is None:
        raise ForbiddenError("You must be enrolled and payment confirmed")

    lesson_id = str(lesson_id)
    lesson_ids = course_lesson_ids(enrollment.batch.course)
    if lesson_id not in lesson_ids:
        raise ValidationError("Lesson does not belong to this course", details={"lesson_id": lesson_id})

    progress = _get_or_create(student_id, enrollment)
    now = datetime.utcnow()

    if lesson_id not in progress.completed_lesson_ids:
        progress.completed_lessons.append({
            "lesson_id": lesson_id,
            "completed_at": now.isoformat(),
            "watch_time": watch_time,
        })
    progress.last_accessed_at = now
    percentage = _refresh_percentage(progress, lesson_ids)
    db.session.commit()

    certificate_generated = False
    if percentage >= 100 and _stamp_completed(progress, now):
        logger.info(f"Student {student_id} completed course {progress.course_id}")
        certificate_generated = _publish_completion(progress, enrollment)

    return {
        "progress": progress,
        "completion_percentage": percentage,
        "is_completed": percentage >= 100,
        "certificate_generated": certificate_generated,
    }


def get_course_progress(student_id, course_id):
    enrollment = find_paid_enrollment(student_id, course_id)
    if enrollment is None:
        raise NotFoundError("Enrollment", course_id)

    progress = _get_or_create(student_id, enrollment)
    _refresh_percentage(progress, course_lesson_ids(enrollment.batch.course))
    db.session.commit()
    return progress


def list_progress(student_id):
    return (
        CourseProgress.query.filter_by(student_id=student_id)
        .order_by(CourseProgress.last_accessed_at.desc())
        .all()
    )
