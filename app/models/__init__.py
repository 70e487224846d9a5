from .user import User
from .course import Course
from .lesson import CourseLesson
from .batch import Batch
from .enrollment import Enrollment
from .library import LibraryItem, LibraryPurchase
from .certificate import Certificate, CertificateTemplate
from .progress import CourseProgress
from .settings import PaymentGatewaySettings

__all__ = [
    "User",
    "Course",
    "CourseLesson",
    "Batch",
    "Enrollment",
    "LibraryItem",
    "LibraryPurchase",
    "Certificate",
    "CertificateTemplate",
    "CourseProgress",
    "PaymentGatewaySettings",
]
