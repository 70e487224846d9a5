"""
Catalog: batch reads plus the admin writes for courses, lessons, batches and
library items.

Batch.enrolled_count is never accepted from a request; it belongs to the
enrollment ledger.
"""
import logging
import math
import re
from datetime import date

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from app.errors import ConflictError, NotFoundError, ValidationError
from app.extensions import db
from app.models import Batch, Course, CourseLesson, LibraryItem, User
from app.models.batch import BATCH_MODES, BATCH_STATUSES
from app.models.lesson import LESSON_TYPES
from app.models.library import LIBRARY_FORMATS
from app.utils.pagination import paginate

logger = logging.getLogger(__name__)


def _parse_date(value, field):
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD)")


def list_batches(course_id=None, trainer_id=None, status=None, mode=None,
                 start_from=None, start_to=None, page=1, limit=20):
    query = Batch.query
    if course_id:
        query = query.filter(Batch.course_id == course_id)
    if trainer_id:
        query = query.filter(Batch.trainer_id == trainer_id)
    if status:
        query = query.filter(Batch.status == status)
    if mode:
        query = query.filter(Batch.mode == mode)

    start_from = _parse_date(start_from, "startDateFrom")
    start_to = _parse_date(start_to, "startDateTo")
    if start_from:
        query = query.filter(Batch.start_date >= start_from)
    if start_to:
        query = query.filter(Batch.start_date <= start_to)

    return paginate(query.order_by(Batch.start_date.asc(), Batch.id.asc()), page, limit)


def get_batch(batch_id):
    batch = db.session.get(Batch, batch_id)
    if batch is None:
        raise NotFoundError("Batch", batch_id, "BATCH_NOT_FOUND")
    return batch


def get_course(course_id):
    course = db.session.get(Course, course_id) if course_id is not None else None
    if course is None:
        raise NotFoundError("Course", course_id, "COURSE_NOT_FOUND")
    return course


def get_library_item(item_id):
    item = db.session.get(LibraryItem, item_id)
    if item is None:
        raise NotFoundError("Library item", item_id)
    return item


# Field coercion for admin payloads

def _text(value, field):
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value.strip()


def _number(value, field):
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not math.isfinite(number) or number < 0:
        raise ValidationError(f"{field} must be a non-negative number")
    return number


def _optional_number(value, field):
    if value in (None, ""):
        return None
    return _number(value, field)


def _integer(value, field):
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError(f"{field} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")


def _flag(value, field):
    if not isinstance(value, bool):
        raise ValidationError(f"{field} must be true or false")
    return value


def _list(value, field):
    if not isinstance(value, list):
        raise ValidationError(f"{field} must be a list")
    return value


def _date(value, field):
    if value in (None, ""):
        return None
    return _parse_date(value, field)


def _choice(*allowed):
    def coerce(value, field):
        if value not in allowed:
            raise ValidationError(f"Invalid {field} '{value}'", details={"allowed": list(allowed)})
        return value
    return coerce


def _trainer(value, field):
    if value in (None, ""):
        return None
    user_id = _integer(value, field)
    if db.session.get(User, user_id) is None:
        raise NotFoundError("User", user_id, "TRAINER_NOT_FOUND")
    return user_id


COURSE_FIELDS = {
    "title": _text,
    "short_description": _text,
    "price": _number,
    "discount_price": _optional_number,
    "trainer_id": _trainer,
    "thumbnail_image": _text,
    "modules": _list,
    "certificate_issuer_name": _text,
    "certificate_issuer_title": _text,
}

LESSON_FIELDS = {
    "module_title": _text,
    "module_order": _integer,
    "lesson_title": _text,
    "lesson_order": _integer,
    "lesson_type": _choice(*LESSON_TYPES),
    "video_url": _text,
    "video_duration": _integer,
    "is_free_preview": _flag,
    "is_active": _flag,
}

BATCH_FIELDS = {
    "batch_name": _text,
    "batch_number": _text,
    "start_date": _date,
    "end_date": _date,
    "days_of_week": _list,
    "start_time": _text,
    "end_time": _text,
    "mode": _choice(*BATCH_MODES),
    "seat_limit": _integer,
    "status": _choice(*BATCH_STATUSES),
    "trainer_id": _trainer,
    "meeting_link": _text,
    "venue": _text,
}
BATCH_REQUIRED = (
    "batch_name", "batch_number", "start_date", "end_date", "start_time", "end_time", "mode", "seat_limit",
)

LIBRARY_FIELDS = {
    "title": _text,
    "category": _text,
    "format": _choice(*LIBRARY_FORMATS),
    "description": _text,
    "cover_image": _text,
    "download_url": _text,
    "external_url": _text,
    "is_members_only": _flag,
    "price": _number,
    "currency": _text,
    "author": _text,
}


def _values(data, fields):
    return {name: coerce(data[name], name) for name, coerce in fields.items() if name in data}


def _require(values, *names):
    missing = [name for name in names if values.get(name) in (None, "")]
    if missing:
        raise ValidationError("Missing required fields", details={"missing": missing})


def slugify(text):
    text = re.sub(r"[^a-zA-Z0-9]+", "-", text or "")
    return text.strip("-").lower()


def _unique_slug(model, title, exclude_id=None):
    base = slugify(title) or "item"
    slug, counter = base, 1
    while True:
        query = model.query.filter(model.slug == slug)
        if exclude_id is not None:
            query = query.filter(model.id != exclude_id)
        if query.first() is None:
            return slug
        slug = f"{base}-{counter}"
        counter += 1


def _commit(label):
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"{label} slug is already taken", "SLUG_EXISTS")


# Courses

def create_course(data):
    values = _values(data, COURSE_FIELDS)
    _require(values, "title")

    course = Course(slug=_unique_slug(Course, values["title"]), **values)
    db.session.add(course)
    _commit("Course")

    logger.info(f"Course {course.id} created: {course.slug}")
    return course


def update_course(course_id, data):
    course = get_course(course_id)
    values = _values(data, COURSE_FIELDS)
    if "title" in values:
        _require(values, "title")
        if values["title"] != course.title:
            course.slug = _unique_slug(Course, values["title"], exclude_id=course.id)

    for key, value in values.items():
        setattr(course, key, value)
    _commit("Course")

    logger.info(f"Course {course.id} updated")
    return course


def add_lesson(course_id, data):
    course = get_course(course_id)
    values = _values(data, LESSON_FIELDS)
    _require(values, "module_title", "lesson_title")

    lesson = CourseLesson(course_id=course.id, **values)
    db.session.add(lesson)
    db.session.commit()

    logger.info(f"Lesson {lesson.id} added to course {course.id}")
    return lesson


# Batches

def _reject_counter(data):
    if "enrolled_count" in data:
        raise ValidationError("enrolled_count is maintained by enrollments and cannot be set")


def _check_schedule(batch):
    if batch.seat_limit is not None and batch.seat_limit < 1:
        raise ValidationError("seat_limit must be at least 1")
    if batch.start_date and batch.end_date and batch.end_date < batch.start_date:
        raise ValidationError("end_date must not be before start_date")


def create_batch(data):
    _reject_counter(data)
    if data.get("course_id") in (None, ""):
        raise ValidationError("Missing required fields", details={"missing": ["course_id"]})
    course = get_course(_integer(data["course_id"], "course_id"))

    values = _values(data, BATCH_FIELDS)
    _require(values, *BATCH_REQUIRED)

    batch = Batch(course_id=course.id, enrolled_count=0, **values)
    _check_schedule(batch)
    db.session.add(batch)
    db.session.commit()

    logger.info(f"Batch {batch.id} created for course {course.id}: seat_limit={batch.seat_limit}")
    return batch


def update_batch(batch_id, data):
    """Partial update. Lowering seat_limit below enrolled_count is refused."""
    _reject_counter(data)
    batch = get_batch(batch_id)

    values = _values(data, BATCH_FIELDS)
    _require(values, *(name for name in BATCH_REQUIRED if name in values))
    seat_limit = values.pop("seat_limit", None)
    if seat_limit is not None and seat_limit < 1:
        raise ValidationError("seat_limit must be at least 1")

    for key, value in values.items():
        setattr(batch, key, value)
    _check_schedule(batch)

    if seat_limit is not None:
        # Conditional on the live counter so a concurrent enrollment cannot
        # slip in between the check and the write
        resized = db.session.execute(
            update(Batch)
            .where(Batch.id == batch.id, Batch.enrolled_count <= seat_limit)
            .values(seat_limit=seat_limit)
            .execution_options(synchronize_session=False)
        ).rowcount
        if resized != 1:
            db.session.rollback()
            enrolled = db.session.get(Batch, batch_id).enrolled_count
            raise ConflictError(
                "seat_limit cannot be lower than the number of enrolled students",
                "SEAT_LIMIT_BELOW_ENROLLED",
                details={"enrolled_count": enrolled, "seat_limit": seat_limit},
            )

    db.session.commit()
    logger.info(f"Batch {batch.id} updated")
    return batch


# Library items

def create_library_item(data):
    values = _values(data, LIBRARY_FIELDS)
    _require(values, "title")

    item = LibraryItem(slug=_unique_slug(LibraryItem, values["title"]), **values)
    db.session.add(item)
    _commit("Library item")

    logger.info(f"Library item {item.id} created: {item.slug}")
    return item


def update_library_item(item_id, data):
    item = get_library_item(item_id)
    values = _values(data, LIBRARY_FIELDS)
    if "title" in values:
        _require(values, "title")
        if values["title"] != item.title:
            item.slug = _unique_slug(LibraryItem, values["title"], exclude_id=item.id)

    for key, value in values.items():
        setattr(item, key, value)
    _commit("Library item")

    logger.info(f"Library item {item.id} updated")
    return item
