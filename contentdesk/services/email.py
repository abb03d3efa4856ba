import requests
from contentdesk.config import settings
from contentdesk.logging_setup import log_event

def send_email(to: str, subject: str, html: str) -> dict:
    """Send through the transactional email HTTP API.

    Unconfigured environments skip the send and report it, so invitations still
    succeed locally.
    """
    if not settings.email_api_key or not settings.email_from:
        log_event("email_skipped", level="warning", to=to, subject=subject, reason="email provider not configured")
        return {"ok": False, "skipped": True}

    try:
        r = requests.post(
            settings.email_api_url,
            json={"from": settings.email_from, "to": [to], "subject": subject, "html": html},
            headers={"Authorization": f"Bearer {settings.email_api_key}"},
            timeout=15,
        )
    except requests.RequestException as e:
        log_event("email_send_fail", level="error", to=to, error=str(e))
        return {"ok": False, "error": str(e)}

    if r.status_code >= 400:
        log_event("email_send_fail", level="error", to=to, status_code=r.status_code)
        return {"ok": False, "error": {"status": r.status_code, "response": r.text[:500]}}

    message_id = r.json().get("id") if r.content else None
    log_event("email_sent", to=to, subject=subject, message_id=message_id)
    return {"ok": True, "id": message_id}

def send_invitation(to: str, organization_name: str, inviter_name: str | None) -> dict:
    inviter = inviter_name or "A teammate"
    login_url = f"{settings.public_base_url.rstrip('/')}/auth/login"
    html = (
        f"<p>{inviter} invited you to join <strong>{organization_name}</strong>.</p>"
        f"<p><a href=\"{login_url}\">Sign in</a> to get started.</p>"
    )
    return send_email(to, f"You're invited to {organization_name}", html)
