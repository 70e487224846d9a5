# Importing certificates connects its course_completed receiver
from app.services import certificates  # noqa: F401
