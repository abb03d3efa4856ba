# Copyright (c) 2026 Mohammed Hassan. All rights reserved.
# Proprietary and confidential. Unauthorized copying, modification, distribution, or use is prohibited.

import requests
from datetime import datetime, timezone, timedelta
from urllib.parse import urlencode
from sqlalchemy.orm import Session
from contentdesk.config import settings
from contentdesk.logging_setup import log_event
from contentdesk.models import OAuthAccount, ContentDraft

AUTHORIZE_URL = "https://www.linkedin.com/oauth/v2/authorization"
TOKEN_URL = "https://www.linkedin.com/oauth/v2/accessToken"
USERINFO_URL = "https://api.linkedin.com/v2/userinfo"
UGC_POSTS_URL = "https://api.linkedin.com/v2/ugcPosts"

PROVIDER = "linkedin"
SCOPE = "openid profile email w_member_social"
MAX_POST_CHARS = 3000

def _utcnow():
    return datetime.now(timezone.utc)

def _as_utc(dt: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything is stored as UTC
    if dt is None:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)

def redirect_uri() -> str:
    return settings.linkedin_redirect_uri or f"{settings.public_base_url.rstrip('/')}/auth/linkedin/callback"

def build_authorization_url(state: str) -> str:
    params = {
        "response_type": "code",
        "client_id": settings.linkedin_client_id,
        "redirect_uri": redirect_uri(),
        "state": state,
        "scope": SCOPE,
    }
    return f"{AUTHORIZE_URL}?{urlencode(params)}"

def exchange_code(db: Session, *, user_id: int, code: str) -> dict:
    """Swap an authorization code for a token and store it on the user's LinkedIn account."""
    if not settings.linkedin_client_id or not settings.linkedin_client_secret:
        return {"ok": False, "error": "LinkedIn client is not configured"}

    log_event("linkedin_token_exchange_start", user_id=user_id)
    try:
        r1 = requests.post(
            TOKEN_URL,
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri(),
                "client_id": settings.linkedin_client_id,
                "client_secret": settings.linkedin_client_secret,
            },
            timeout=30,
        )
    except requests.RequestException as e:
        log_event("linkedin_token_exchange_fail", level="error", user_id=user_id, error=str(e))
        return {"ok": False, "error": "LinkedIn token request failed"}
    if r1.status_code >= 400:
        log_event("linkedin_token_exchange_fail", level="error", user_id=user_id, status_code=r1.status_code)
        return {"ok": False, "error": {"step": "token", "status": r1.status_code}}

    j1 = r1.json()
    access_token = j1.get("access_token")
    if not access_token:
        return {"ok": False, "error": {"step": "token", "response": "missing access_token"}}
    expires_in = int(j1.get("expires_in") or 0)

    # Member id becomes the author URN when posting
    try:
        r2 = requests.get(USERINFO_URL, headers={"Authorization": f"Bearer {access_token}"}, timeout=30)
    except requests.RequestException as e:
        log_event("linkedin_userinfo_fail", level="error", user_id=user_id, error=str(e))
        return {"ok": False, "error": "LinkedIn userinfo request failed"}
    if r2.status_code >= 400:
        log_event("linkedin_userinfo_fail", level="error", user_id=user_id, status_code=r2.status_code)
        return {"ok": False, "error": {"step": "userinfo", "status": r2.status_code}}
    member_id = r2.json().get("sub")

    account = db.query(OAuthAccount).filter(
        OAuthAccount.user_id == user_id,
        OAuthAccount.provider == PROVIDER,
    ).first()
    if not account:
        account = OAuthAccount(user_id=user_id, provider=PROVIDER)
        db.add(account)
    account.provider_account_id = member_id
    account.access_token = access_token
    account.expires_at = _utcnow() + timedelta(seconds=expires_in) if expires_in else None
    account.scope = j1.get("scope") or SCOPE
    db.commit()
    db.refresh(account)

    log_event("linkedin_connected", user_id=user_id, account_id=account.id)
    return {"ok": True, "account_id": account.id, "expires_at": account.expires_at}

def get_linkedin_account(db: Session, user_id: int) -> OAuthAccount | None:
    return db.query(OAuthAccount).filter(
        OAuthAccount.user_id == user_id,
        OAuthAccount.provider == PROVIDER,
    ).first()

def publish_text_post(*, text: str, access_token: str, member_id: str) -> dict:
    if not access_token or not member_id:
        return {"ok": False, "error": "Missing LinkedIn member id or access_token"}

    payload = {
        "author": f"urn:li:person:{member_id}",
        "lifecycleState": "PUBLISHED",
        "specificContent": {
            "com.linkedin.ugc.ShareContent": {
                "shareCommentary": {"text": text[:MAX_POST_CHARS]},
                "shareMediaCategory": "NONE",
            }
        },
        "visibility": {"com.linkedin.ugc.MemberNetworkVisibility": "PUBLIC"},
    }

    log_event("linkedin_publish_start", member_id=member_id)
    try:
        r = requests.post(
            UGC_POSTS_URL,
            json=payload,
            headers={
                "Authorization": f"Bearer {access_token}",
                "X-Restli-Protocol-Version": "2.0.0",
            },
            timeout=30,
        )
    except requests.RequestException as e:
        log_event("linkedin_publish_fail", level="error", member_id=member_id, error=str(e))
        return {"ok": False, "error": {"step": "publish", "message": str(e)}}

    if r.status_code >= 400:
        log_event("linkedin_publish_fail", level="error", member_id=member_id, status_code=r.status_code)
        return {"ok": False, "error": {"step": "publish", "status": r.status_code, "response": r.text[:500]}}

    remote_id = r.headers.get("x-restli-id") or (r.json() if r.content else {}).get("id")
    log_event("linkedin_publish_success", member_id=member_id, remote_id=remote_id)
    return {
        "ok": True,
        "platform": "linkedin",
        "published_at": _utcnow().isoformat(),
        "remote_id": remote_id,
    }

def publish_draft(db: Session, draft: ContentDraft, user_id: int) -> dict:
    """Post a draft's body through the given user's connected LinkedIn account."""
    account = get_linkedin_account(db, user_id)
    if not account:
        return {"ok": False, "error": "LinkedIn account is not connected"}
    expires_at = _as_utc(account.expires_at)
    if expires_at and expires_at <= _utcnow():
        return {"ok": False, "error": "LinkedIn access token has expired; reconnect the account"}

    text = (draft.body or "").strip()
    if not text:
        return {"ok": False, "error": "Draft has no content to publish"}
    return publish_text_post(text=text, access_token=account.access_token, member_id=account.provider_account_id)
