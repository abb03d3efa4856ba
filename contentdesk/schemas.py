import re
from pydantic import BaseModel, Field, AliasChoices, field_validator
from datetime import datetime
from typing import Any

from .enums import UserRole, OrganizationRole, ContentType, MediaType

def _check_choice(value, enum_cls, field: str):
    if value is None:
        return value
    allowed = [m.value for m in enum_cls]
    if value not in allowed:
        raise ValueError(f"{field} must be one of {', '.join(allowed)}")
    return value

class UserCreate(BaseModel):
    name: str
    email: str
    password: str

    @field_validator("password")
    @classmethod
    def password_length(cls, v):
        if len(v) < 8:
            raise ValueError("password must be at least 8 characters")
        return v

class UserOut(BaseModel):
    id: int
    email: str
    name: str | None = None
    role: str
    is_super_admin: bool = False
    is_active: bool = True
    created_at: datetime | None = None
    class Config:
        from_attributes = True

class UserRoleUpdate(BaseModel):
    role: str

    @field_validator("role")
    @classmethod
    def valid_role(cls, v):
        return _check_choice(v, UserRole, "role")

class PasswordReset(BaseModel):
    password: str

    @field_validator("password")
    @classmethod
    def password_length(cls, v):
        if len(v) < 8:
            raise ValueError("password must be at least 8 characters")
        return v

# --- Organizations ---

class OrganizationOut(BaseModel):
    id: int
    name: str
    slug: str
    primary_color: str | None = None
    domain: str | None = None
    subscription_status: str
    created_at: datetime | None = None
    class Config:
        from_attributes = True

class OrganizationCreate(BaseModel):
    name: str
    slug: str | None = None
    primary_color: str | None = None
    domain: str | None = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v):
        if not v.strip():
            raise ValueError("name is required")
        return v.strip()

class OrganizationSettingsUpdate(BaseModel):
    name: str | None = None
    slug: str | None = None
    primary_color: str | None = None
    domain: str | None = None

    @field_validator("name", "slug")
    @classmethod
    def not_blank(cls, v, info):
        if v is None or not v.strip():
            raise ValueError(f"{info.field_name} is required")
        return v.strip()

    @field_validator("primary_color")
    @classmethod
    def hex_color(cls, v):
        if v and not re.fullmatch(r"#[0-9a-fA-F]{6}", v):
            raise ValueError("primary_color must be a hex color like #1f2937")
        return v or None

    @field_validator("domain")
    @classmethod
    def normalize_domain(cls, v):
        return v.strip().lower() if v and v.strip() else None

class OrganizationMembershipOut(BaseModel):
    id: int
    name: str
    slug: str
    primary_color: str | None = None
    domain: str | None = None
    role: str

class OrganizationContextOut(BaseModel):
    organization_id: int
    user_id: int
    user_role: str | None
    organization_role: str
    permissions: list[str] = Field(default_factory=list)
    class Config:
        from_attributes = True

class MemberOut(BaseModel):
    user_id: int
    email: str
    name: str | None = None
    user_role: str
    role: str
    is_active: bool
    permissions: list[str] = Field(default_factory=list)
    joined_at: datetime | None = None
    invited_at: datetime | None = None

class InviteIn(BaseModel):
    email: str
    name: str | None = None
    role: str = OrganizationRole.MEMBER.value
    user_role: str = UserRole.CLIENT.value

    @field_validator("role")
    @classmethod
    def valid_org_role(cls, v):
        return _check_choice(v, OrganizationRole, "role")

    @field_validator("user_role")
    @classmethod
    def valid_user_role(cls, v):
        return _check_choice(v, UserRole, "user_role")

class MemberRoleUpdate(BaseModel):
    role: str

    @field_validator("role")
    @classmethod
    def valid_org_role(cls, v):
        return _check_choice(v, OrganizationRole, "role")

# --- Ideas ---

class IdeaCreate(BaseModel):
    title: str
    description: str
    content_type: str
    media_type: str | None = None
    publishing_date_time: datetime | None = None
    saved_for_later: bool = False

    @field_validator("title")
    @classmethod
    def title_length(cls, v):
        v = v.strip()
        if not 1 <= len(v) <= 200:
            raise ValueError("title must be between 1 and 200 characters")
        return v

    @field_validator("description")
    @classmethod
    def description_length(cls, v):
        v = v.strip()
        if not 1 <= len(v) <= 1000:
            raise ValueError("description must be between 1 and 1000 characters")
        return v

    @field_validator("content_type")
    @classmethod
    def valid_content_type(cls, v):
        return _check_choice(v, ContentType, "content_type")

    @field_validator("media_type")
    @classmethod
    def valid_media_type(cls, v):
        return _check_choice(v, MediaType, "media_type")

class IdeaUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    content_type: str | None = None
    media_type: str | None = None
    publishing_date_time: datetime | None = None
    saved_for_later: bool | None = None

    # validators only see explicit values; omitted fields stay unset
    @field_validator("title", "description", "content_type", "saved_for_later")
    @classmethod
    def not_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v

    @field_validator("title")
    @classmethod
    def title_length(cls, v):
        if not 1 <= len(v.strip()) <= 200:
            raise ValueError("title must be between 1 and 200 characters")
        return v

    @field_validator("description")
    @classmethod
    def description_length(cls, v):
        if not 1 <= len(v.strip()) <= 1000:
            raise ValueError("description must be between 1 and 1000 characters")
        return v

    @field_validator("content_type")
    @classmethod
    def valid_content_type(cls, v):
        return _check_choice(v, ContentType, "content_type")

    @field_validator("media_type")
    @classmethod
    def valid_media_type(cls, v):
        return _check_choice(v, MediaType, "media_type")

class IdeaOut(BaseModel):
    id: int
    organization_id: int
    created_by_id: int
    title: str
    description: str
    status: str
    content_type: str
    media_type: str | None = None
    publishing_date_time: datetime | None = None
    saved_for_later: bool = False
    delivery_item_id: int | None = None
    created_at: datetime
    updated_at: datetime
    class Config:
        from_attributes = True

class IdeaPage(BaseModel):
    items: list[IdeaOut]
    total: int
    page: int
    limit: int

class StatusUpdate(BaseModel):
    status: str
    reason: str | None = None
    revision_notes: str | None = None

# --- Drafts ---

class DraftCreate(BaseModel):
    idea_id: int
    body: str
    content_type: str | None = None
    metadata: dict[str, Any] | None = None

    @field_validator("content_type")
    @classmethod
    def valid_content_type(cls, v):
        return _check_choice(v, ContentType, "content_type")

class DraftUpdate(BaseModel):
    body: str | None = None
    content_type: str | None = None
    metadata: dict[str, Any] | None = None

    @field_validator("content_type")
    @classmethod
    def valid_content_type(cls, v):
        return _check_choice(v, ContentType, "content_type")

class DraftOut(BaseModel):
    id: int
    organization_id: int
    idea_id: int
    created_by_id: int
    body: str
    content_type: str
    status: str
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias=AliasChoices("draft_metadata", "metadata"))
    created_at: datetime
    updated_at: datetime
    class Config:
        from_attributes = True

class TransitionIn(BaseModel):
    reason: str | None = None

class RejectIn(BaseModel):
    feedback: str

    @field_validator("feedback")
    @classmethod
    def feedback_required(cls, v):
        if not v.strip():
            raise ValueError("Feedback is required when rejecting a draft")
        return v

class PublishIn(BaseModel):
    reason: str | None = None
    publish_to_linkedin: bool = False

class PublishOut(BaseModel):
    draft: DraftOut
    linkedin: dict[str, Any] | None = None

# --- Feedback ---

class FeedbackCreate(BaseModel):
    content_draft_id: int | None = None
    idea_id: int | None = None
    comment: str
    rating: int = Field(default=0, ge=0, le=5)
    category: str = "general"
    priority: str = "medium"
    actionable: bool = False

class FeedbackOut(BaseModel):
    id: int
    organization_id: int
    content_draft_id: int | None = None
    idea_id: int | None = None
    created_by_id: int
    comment: str
    rating: int
    category: str
    priority: str
    actionable: bool
    created_at: datetime
    class Config:
        from_attributes = True

# --- Media ---

class MediaOut(BaseModel):
    id: int
    organization_id: int
    content_draft_id: int | None = None
    uploaded_by_id: int
    url: str
    filename: str
    content_type: str
    size_bytes: int
    created_at: datetime | None = None
    class Config:
        from_attributes = True

# --- Delivery plans ---

class DeliveryItemIn(BaseModel):
    content_type: str
    quantity: int = Field(ge=1)
    due_date: datetime
    priority: int = 1
    notes: str | None = None

    @field_validator("content_type")
    @classmethod
    def valid_content_type(cls, v):
        return _check_choice(v, ContentType, "content_type")

class DeliveryPlanCreate(BaseModel):
    name: str
    description: str | None = None
    start_date: datetime
    end_date: datetime
    target_month: str # YYYY-MM
    items: list[DeliveryItemIn] = Field(default_factory=list)

    @field_validator("target_month")
    @classmethod
    def valid_month(cls, v):
        try:
            datetime.strptime(v, "%Y-%m")
        except ValueError:
            raise ValueError("target_month must use the YYYY-MM format")
        return v

class DeliveryItemOut(BaseModel):
    id: int
    plan_id: int
    content_type: str
    quantity: int
    due_date: datetime
    priority: int
    notes: str | None = None
    status: str
    class Config:
        from_attributes = True

class DeliveryPlanOut(BaseModel):
    id: int
    organization_id: int
    client_id: int
    name: str
    description: str | None = None
    start_date: datetime
    end_date: datetime
    target_month: datetime
    status: str
    is_archived: bool
    items: list[DeliveryItemOut] = Field(default_factory=list)
    created_at: datetime | None = None
    class Config:
        from_attributes = True

class AssignIdeasIn(BaseModel):
    idea_ids: list[int]

    @field_validator("idea_ids")
    @classmethod
    def not_empty(cls, v):
        if not v:
            raise ValueError("idea_ids must not be empty")
        return list(dict.fromkeys(v))

# --- Scheduled posts ---

class ScheduledPostCreate(BaseModel):
    content_draft_id: int
    scheduled_date: datetime
    timezone: str | None = None # IANA name applied when scheduled_date is naive
    platform: str = "LINKEDIN"

    @field_validator("platform")
    @classmethod
    def supported_platform(cls, v):
        if v != "LINKEDIN":
            raise ValueError("Only LINKEDIN publishing is supported")
        return v

class ScheduledPostOut(BaseModel):
    id: int
    organization_id: int
    content_draft_id: int
    scheduled_by_id: int
    scheduled_date: datetime
    platform: str
    status: str
    last_error: str | None = None
    remote_id: str | None = None
    published_at: datetime | None = None
    created_at: datetime
    class Config:
        from_attributes = True

class ArchiveIn(BaseModel):
    is_archived: bool = True

# --- Writing assistant ---

class ChatMessage(BaseModel):
    role: str
    content: str

    @field_validator("role")
    @classmethod
    def valid_role(cls, v):
        if v not in ("user", "assistant"):
            raise ValueError("role must be user or assistant")
        return v

class AIChatIn(BaseModel):
    idea_id: int
    message: str
    conversation: list[ChatMessage] = Field(default_factory=list)
    model: str | None = None
