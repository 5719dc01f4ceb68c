from .base import Base

# import models so create_all sees every mapper
from .classroom import Classroom, Student  # noqa: F401
from .selection_record import SelectionRecord  # noqa: F401

__all__ = [
    "Base",
    "Classroom",
    "Student",
    "SelectionRecord",
]
