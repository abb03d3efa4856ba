import os, re
from fastapi import APIRouter, Depends, UploadFile, File, Form
from sqlalchemy.orm import Session
from sqlalchemy import select
from contentdesk.db import get_db
from contentdesk.config import settings
from contentdesk.errors import ValidationError
from contentdesk.logging_setup import log_event
from contentdesk.models import Media, ContentDraft, User
from contentdesk.schemas import MediaOut
from contentdesk.security.org_context import OrganizationContext, require_org_context, get_scoped_or_404
from contentdesk.security.session import require_user
from datetime import datetime, timezone

router = APIRouter(prefix="/api/media", tags=["media"])

ALLOWED_TYPES = {
    "image/png", "image/jpeg", "image/jpg", "image/webp", "image/gif",
    "video/mp4", "application/pdf",
}
CHUNK_SIZE = 1024 * 1024

def _utcnow():
    return datetime.now(timezone.utc)

def _ensure_uploads_dir():
    os.makedirs(settings.uploads_dir, exist_ok=True)

def _safe_name(filename: str | None) -> str:
    base = os.path.basename(filename or "upload")
    return re.sub(r"[^A-Za-z0-9._-]+", "_", base)[:120] or "upload"

@router.get("", response_model=list[MediaOut])
def list_media(
    content_draft_id: int | None = None,
    ctx: OrganizationContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    stmt = select(Media).where(Media.organization_id == ctx.organization_id).order_by(Media.created_at.desc(), Media.id.desc())
    if content_draft_id is not None:
        stmt = stmt.where(Media.content_draft_id == content_draft_id)
    return db.execute(stmt).scalars().all()

@router.post("", response_model=MediaOut)
def upload_media(
    file: UploadFile = File(...),
    content_draft_id: int | None = Form(None),
    user: User = Depends(require_user),
    ctx: OrganizationContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    if file.content_type not in ALLOWED_TYPES:
        raise ValidationError(f"File type '{file.content_type}' is not supported. Use PNG, JPG, WEBP, GIF, MP4 or PDF.")
    if content_draft_id is not None:
        get_scoped_or_404(db, ContentDraft, content_draft_id, ctx.organization_id, "Draft")

    _ensure_uploads_dir()
    filename = f"org{ctx.organization_id}_{int(_utcnow().timestamp() * 1000)}_{_safe_name(file.filename)}"
    local_path = os.path.join(settings.uploads_dir, filename)
    max_bytes = settings.max_upload_mb * 1024 * 1024

    size = 0
    with open(local_path, "wb") as f:
        while chunk := file.file.read(CHUNK_SIZE):
            size += len(chunk)
            if size > max_bytes:
                break
            f.write(chunk)
    if size > max_bytes:
        os.remove(local_path)
        raise ValidationError(f"File exceeds the {settings.max_upload_mb} MB upload limit")

    media = Media(
        organization_id=ctx.organization_id,
        content_draft_id=content_draft_id,
        uploaded_by_id=user.id,
        url=f"{settings.public_base_url.rstrip('/')}/uploads/{filename}",
        storage_path=local_path,
        filename=file.filename or filename,
        content_type=file.content_type,
        size_bytes=size,
    )
    db.add(media)
    db.commit()
    db.refresh(media)
    log_event("media_uploaded", media_id=media.id, organization_id=ctx.organization_id, size_bytes=size)
    return media

@router.delete("/{media_id}")
def delete_media(
    media_id: int,
    ctx: OrganizationContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    media = get_scoped_or_404(db, Media, media_id, ctx.organization_id, "Media")

    if media.storage_path and os.path.exists(media.storage_path):
        try:
            os.remove(media.storage_path)
        except OSError as e:
            log_event("media_file_remove_fail", level="warning", media_id=media.id, error=str(e))

    db.delete(media)
    db.commit()
    log_event("media_deleted", media_id=media_id, organization_id=ctx.organization_id)
    return {"ok": True}
