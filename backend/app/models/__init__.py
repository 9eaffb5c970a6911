from app.models.activity_log import ActivityLog  # noqa: F401
from app.models.calendar import AcademicYear, Group, LearningType, StudyYear  # noqa: F401
from app.models.classroom import Classroom  # noqa: F401
from app.models.discipline import Discipline  # noqa: F401
from app.models.event import (  # noqa: F401
    Event,
    EventGroup,
    EventRecurrence,
    EventStatus,
    EventType,
    WeekDay,
)
from app.models.notification import Notification, NotificationType  # noqa: F401
from app.models.teacher import Teacher  # noqa: F401
from app.models.user import User, UserRole  # noqa: F401
