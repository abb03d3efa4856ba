"""Enumerated values stored in string columns.

The values are persisted verbatim; existing rows were written with these exact
upper-case strings.
"""
import enum


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    CREATIVE = "CREATIVE"
    CLIENT = "CLIENT"


class OrganizationRole(str, enum.Enum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    MEMBER = "MEMBER"
    VIEWER = "VIEWER"


class SubscriptionStatus(str, enum.Enum):
    TRIAL = "TRIAL"
    ACTIVE = "ACTIVE"
    PAST_DUE = "PAST_DUE"
    CANCELLED = "CANCELLED"


class IdeaStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class DraftStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    AWAITING_FEEDBACK = "AWAITING_FEEDBACK"
    AWAITING_REVISION = "AWAITING_REVISION"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PUBLISHED = "PUBLISHED"


class ContentType(str, enum.Enum):
    NEWSLETTER = "NEWSLETTER"
    BLOG_POST = "BLOG_POST"
    SOCIAL_MEDIA_POST = "SOCIAL_MEDIA_POST"
    WEBSITE_COPY = "WEBSITE_COPY"
    EMAIL_CAMPAIGN = "EMAIL_CAMPAIGN"


class MediaType(str, enum.Enum):
    PHOTO = "PHOTO"
    GRAPH_OR_INFOGRAPHIC = "GRAPH_OR_INFOGRAPHIC"
    VIDEO = "VIDEO"
    SOCIAL_CARD = "SOCIAL_CARD"
    POLL = "POLL"
    CAROUSEL = "CAROUSEL"


class ScheduleStatus(str, enum.Enum):
    SCHEDULED = "SCHEDULED"
    PUBLISHED = "PUBLISHED"
    FAILED = "FAILED"


class DeliveryPlanStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class DeliveryItemStatus(str, enum.Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    REVIEW = "REVIEW"
    APPROVED = "APPROVED"
    DELIVERED = "DELIVERED"


def values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]
