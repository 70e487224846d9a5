import itertools
from datetime import date

import pytest
from flask_jwt_extended import create_access_token

from app import create_app
from app.config import TestingConfig
from app.extensions import db as _db
from app.models import (
    Batch,
    CertificateTemplate,
    Course,
    CourseLesson,
    LibraryItem,
    PaymentGatewaySettings,
    User,
)

_seq = itertools.count(1)


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(db):
    def _make(role="student", full_name=None, title=None, password="secret123"):
        n = next(_seq)
        user = User(
            full_name=full_name or f"User {n}",
            email=f"user{n}@example.com",
            role=role,
            title=title,
        )
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def make_course(db):
    def _make(price=5000.0, discount_price=None, modules=None, **fields):
        n = next(_seq)
        course = Course(
            title=fields.pop("title", f"Course {n}"),
            slug=fields.pop("slug", f"course-{n}"),
            price=price,
            discount_price=discount_price,
            modules=modules or [],
            **fields,
        )
        db.session.add(course)
        db.session.commit()
        return course

    return _make


@pytest.fixture
def make_batch(db, make_course):
    def _make(course=None, seat_limit=10, status="upcoming", trainer=None):
        course = course or make_course()
        n = next(_seq)
        batch = Batch(
            course_id=course.id,
            trainer_id=trainer.id if trainer else None,
            batch_name=f"Batch {n}",
            batch_number=f"B-{n}",
            start_date=date(2026, 1, 10),
            end_date=date(2026, 3, 10),
            days_of_week=["Sat", "Mon"],
            start_time="10:00 AM",
            end_time="12:00 PM",
            mode="online",
            seat_limit=seat_limit,
            enrolled_count=0,
            status=status,
        )
        db.session.add(batch)
        db.session.commit()
        return batch

    return _make


@pytest.fixture
def make_lessons(db):
    def _make(course, count, modules=1):
        lessons = []
        for i in range(count):
            lesson = CourseLesson(
                course_id=course.id,
                module_title=f"Module {i % modules + 1}",
                module_order=i % modules,
                lesson_title=f"Lesson {i + 1}",
                lesson_order=i,
                lesson_type="video",
                is_active=True,
            )
            db.session.add(lesson)
            lessons.append(lesson)
        db.session.commit()
        return lessons

    return _make


@pytest.fixture
def make_item(db):
    def _make(price=250.0, **fields):
        n = next(_seq)
        item = LibraryItem(
            title=fields.pop("title", f"Handbook {n}"),
            slug=fields.pop("slug", f"handbook-{n}"),
            price=price,
            download_url=fields.pop("download_url", f"https://files.example.com/handbook-{n}.pdf"),
            **fields,
        )
        db.session.add(item)
        db.session.commit()
        return item

    return _make


@pytest.fixture
def make_template(db):
    def _make(name="Classic", is_default=True, is_active=True):
        template = CertificateTemplate(name=name, is_default=is_default, is_active=is_active)
        db.session.add(template)
        db.session.commit()
        return template

    return _make


@pytest.fixture
def enable_gateways(db):
    settings = PaymentGatewaySettings.get()
    settings.sslcommerz_enabled = True
    settings.bkash_enabled = True
    db.session.commit()
    return settings


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        token = create_access_token(identity=str(user.id))
        return {"Authorization": f"Bearer {token}"}

    return _headers
