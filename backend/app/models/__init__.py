from app.models.activity_log import ActivityLog  # noqa: F401
from app.models.publish_status import PublishStatus, TargetGroup  # noqa: F401
from app.models.reference import Room, SchoolClass, Subject, Teacher  # noqa: F401
from app.models.substitution import ALL_CLASSES, Substitution, SubstitutionType  # noqa: F401
from app.models.teacher_absence import TeacherAbsence  # noqa: F401
from app.models.template import TimetableTemplate, TimetableTemplateEntry  # noqa: F401
from app.models.timetable_entry import TimetableEntry  # noqa: F401
from app.models.user import User, UserRole  # noqa: F401
