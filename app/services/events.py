"""
In-process domain signals.

``course_completed`` is sent once per (student, course), after the progress
row that reached 100% has been committed. Receivers are called with
``student_id``, ``course_id``, ``batch_id`` and ``completion_date`` and return
whether their side effect happened.
"""
from blinker import Namespace

_signals = Namespace()

course_completed = _signals.signal("course-completed")
