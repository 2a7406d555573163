"""
ORM models for the ShieldCuisine domain: tenancy, security, APPCC controls,
warehouse, CMS, e-learning and notifications.

Importing this package ensures model classes are registered with the Base
metadata for Alembic and runtime usage.
"""

from .tenancy import (  # noqa: F401
    Tenant,
    Location,
)
from .security import (  # noqa: F401
    User,
    Role,
    UserRole,
)
from .appcc import (  # noqa: F401
    ControlTemplate,
    ControlRecord,
)
from .inventory import (  # noqa: F401
    Supplier,
    Product,
    StockMovement,
)
from .cms import (  # noqa: F401
    Page,
    PageVersion,
    MediaCategory,
    MediaFile,
    FormSubmission,
)
from .elearning import (  # noqa: F401
    Course,
    CourseModule,
    Lesson,
    Enrollment,
    LessonProgress,
    Quiz,
    QuizQuestion,
    QuizAttempt,
    Certificate,
)
from .notifications import (  # noqa: F401
    Notification,
    NotificationPreferences,
)
