# Copyright (c) 2026 Mohammed Hassan. All rights reserved.
# Proprietary and confidential. Unauthorized copying, modification, distribution, or use is prohibited.

from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, ForeignKey, Boolean, UniqueConstraint, Index
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()

class Organization(Base):
    __tablename__ = "organizations"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, index=True, nullable=False)
    primary_color = Column(String, nullable=True) # hex, e.g. "#1f2937"
    domain = Column(String, nullable=True)
    subscription_status = Column(String, nullable=False, default="TRIAL") # TRIAL, ACTIVE, PAST_DUE, CANCELLED
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    members = relationship("OrganizationUser", back_populates="organization")
    ideas = relationship("Idea", back_populates="organization")
    content_drafts = relationship("ContentDraft", back_populates="organization")
    media = relationship("Media", back_populates="organization")
    delivery_plans = relationship("ContentDeliveryPlan", back_populates="organization")

class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=True)
    role = Column(String, nullable=False, default="CREATIVE") # ADMIN, CREATIVE, CLIENT
    is_super_admin = Column(Boolean, default=False)
    password_hash = Column(String, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    memberships = relationship("OrganizationUser", back_populates="user", foreign_keys="[OrganizationUser.user_id]")
    oauth_accounts = relationship("OAuthAccount", back_populates="user")

class OrganizationUser(Base):
    __tablename__ = "organization_users"
    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    role = Column(String, nullable=False, default="MEMBER") # OWNER, ADMIN, MANAGER, MEMBER, VIEWER
    is_active = Column(Boolean, nullable=False, default=True)
    permissions = Column(JSON, nullable=False, default=list)
    joined_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    invited_at = Column(DateTime(timezone=True), nullable=True)
    invited_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    organization = relationship("Organization", back_populates="members")
    user = relationship("User", back_populates="memberships", foreign_keys=[user_id])

    __table_args__ = (UniqueConstraint("organization_id", "user_id", name="uq_organization_user"),)

class Idea(Base):
    __tablename__ = "ideas"
    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    status = Column(String, nullable=False, default="PENDING", index=True)
    content_type = Column(String, nullable=False, default="SOCIAL_MEDIA_POST")
    media_type = Column(String, nullable=True)
    publishing_date_time = Column(DateTime(timezone=True), nullable=True)
    saved_for_later = Column(Boolean, nullable=False, default=False)

    delivery_item_id = Column(Integer, ForeignKey("content_delivery_items.id"), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    organization = relationship("Organization", back_populates="ideas")
    created_by = relationship("User")
    content_drafts = relationship("ContentDraft", back_populates="idea", cascade="all, delete-orphan")
    feedbacks = relationship("Feedback", back_populates="idea", cascade="all, delete-orphan")
    delivery_item = relationship("ContentDeliveryItem", back_populates="ideas")

class ContentDraft(Base):
    __tablename__ = "content_drafts"
    id = Column(Integer, primary_key=True, index=True)
    # Must equal the parent idea's organization_id; the create path copies it from the idea
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    idea_id = Column(Integer, ForeignKey("ideas.id"), nullable=False, index=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    body = Column(Text, nullable=False, default="")
    content_type = Column(String, nullable=False, default="SOCIAL_MEDIA_POST")
    status = Column(String, nullable=False, default="DRAFT", index=True)

    # "metadata" is reserved on declarative classes; the column keeps its name
    draft_metadata = Column("metadata", JSON, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    organization = relationship("Organization", back_populates="content_drafts")
    idea = relationship("Idea", back_populates="content_drafts")
    created_by = relationship("User")
    feedbacks = relationship("Feedback", back_populates="content_draft", cascade="all, delete-orphan")
    media = relationship("Media", back_populates="content_draft")
    scheduled_posts = relationship("ScheduledPost", back_populates="content_draft", cascade="all, delete-orphan")

class StatusEvent(Base):
    """Append-only status history; rows are never updated or deleted."""
    __tablename__ = "status_events"
    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False)
    entity_type = Column(String, nullable=False) # idea, draft
    entity_id = Column(Integer, nullable=False)
    previous_status = Column(String, nullable=True)
    status = Column(String, nullable=False)
    changed_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    reason = Column(Text, nullable=True)
    changed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (Index("ix_status_events_entity", "entity_type", "entity_id"),)

class Feedback(Base):
    __tablename__ = "feedbacks"
    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    # exactly one of content_draft_id / idea_id is set
    content_draft_id = Column(Integer, ForeignKey("content_drafts.id"), nullable=True, index=True)
    idea_id = Column(Integer, ForeignKey("ideas.id"), nullable=True, index=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    comment = Column(Text, nullable=False)
    rating = Column(Integer, nullable=False, default=0)
    category = Column(String, nullable=False, default="general")
    priority = Column(String, nullable=False, default="medium")
    actionable = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    content_draft = relationship("ContentDraft", back_populates="feedbacks")
    idea = relationship("Idea", back_populates="feedbacks")
    created_by = relationship("User")

class Media(Base):
    __tablename__ = "media"
    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    content_draft_id = Column(Integer, ForeignKey("content_drafts.id"), nullable=True, index=True)
    uploaded_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    url = Column(Text, nullable=False) # Public path
    storage_path = Column(Text, nullable=True) # Internal path
    filename = Column(String, nullable=False)
    content_type = Column(String, nullable=False)
    size_bytes = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    organization = relationship("Organization", back_populates="media")
    content_draft = relationship("ContentDraft", back_populates="media")

class ScheduledPost(Base):
    __tablename__ = "scheduled_posts"
    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    content_draft_id = Column(Integer, ForeignKey("content_drafts.id"), nullable=False, index=True)
    scheduled_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    scheduled_date = Column(DateTime(timezone=True), nullable=False, index=True)
    platform = Column(String, nullable=False, default="LINKEDIN")
    status = Column(String, nullable=False, default="SCHEDULED", index=True) # SCHEDULED, PUBLISHED, FAILED
    last_error = Column(Text, nullable=True)
    remote_id = Column(String, nullable=True)
    published_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    content_draft = relationship("ContentDraft", back_populates="scheduled_posts")

class ContentDeliveryPlan(Base):
    __tablename__ = "content_delivery_plans"
    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    target_month = Column(DateTime(timezone=True), nullable=False, index=True) # first day of the month
    status = Column(String, nullable=False, default="DRAFT")
    is_archived = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    organization = relationship("Organization", back_populates="delivery_plans")
    items = relationship("ContentDeliveryItem", back_populates="plan", cascade="all, delete-orphan")

class ContentDeliveryItem(Base):
    __tablename__ = "content_delivery_items"
    id = Column(Integer, primary_key=True, index=True)
    # organization is inherited from the plan
    plan_id = Column(Integer, ForeignKey("content_delivery_plans.id"), nullable=False, index=True)

    content_type = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    due_date = Column(DateTime(timezone=True), nullable=False)
    priority = Column(Integer, nullable=False, default=1)
    notes = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="PENDING")

    plan = relationship("ContentDeliveryPlan", back_populates="items")
    ideas = relationship("Idea", back_populates="delivery_item")

class OAuthAccount(Base):
    __tablename__ = "oauth_accounts"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    provider = Column(String, nullable=False) # linkedin
    provider_account_id = Column(String, nullable=True)
    access_token = Column(Text, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    scope = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="oauth_accounts")

    __table_args__ = (UniqueConstraint("user_id", "provider", name="uq_oauth_user_provider"),)
