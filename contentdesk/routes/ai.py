from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from contentdesk.db import get_db
from contentdesk.errors import Forbidden, InternalError
from contentdesk.logging_setup import log_event
from contentdesk.models import Idea, User
from contentdesk.schemas import AIChatIn
from contentdesk.security.org_context import OrganizationContext, require_org_context, get_scoped_or_404
from contentdesk.security.roles import is_creative
from contentdesk.security.session import require_user
from contentdesk.services.llm import generate_completion, parse_generated_content

router = APIRouter(prefix="/api/ai", tags=["ai"])

@router.post("/chat")
def chat(
    payload: AIChatIn,
    user: User = Depends(require_user),
    ctx: OrganizationContext = Depends(require_org_context),
    db: Session = Depends(get_db),
):
    """One assistant turn for refining an idea. Nothing is stored; the client keeps the conversation."""
    if not is_creative(user):
        raise Forbidden("Only creatives can use the writing assistant")
    idea = get_scoped_or_404(db, Idea, payload.idea_id, ctx.organization_id, "Idea")

    try:
        text = generate_completion(
            payload.message,
            [m.model_dump() for m in payload.conversation],
            {"title": idea.title, "description": idea.description},
            payload.model,
        )
    except RuntimeError as e:
        log_event("ai_chat_fail", level="error", idea_id=idea.id, error=str(e))
        raise InternalError(str(e))
    return {"message": text, "content": parse_generated_content(text)}
