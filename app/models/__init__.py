from app.models.access_code import RecoveryCode  # noqa: F401
from app.models.actor import (  # noqa: F401
    ActorKind,
    ActorRef,
    Agent,
    AnonymousIdentity,
    Citizen,
    Staff,
    StaffRole,
)
from app.models.complaint import (  # noqa: F401
    Complaint,
    ComplaintPriority,
    ComplaintResponse,
    ComplaintStatus,
    ResponseAuthorType,
    SubmissionType,
)
from app.models.directory import Agency, Category  # noqa: F401
from app.models.feedback import Feedback  # noqa: F401
from app.models.notification import (  # noqa: F401
    Notification,
    NotificationPriority,
    NotificationType,
    RelatedEntity,
)
