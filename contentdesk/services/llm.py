from typing import Any
import re
from openai import OpenAI
from contentdesk.config import settings
from contentdesk.logging_setup import log_event

HISTORY_LIMIT = 10

def get_client():
    if not settings.openai_api_key:
        raise RuntimeError("OPENAI_API_KEY is missing. Please set it in your environment or .env file.")
    return OpenAI(api_key=settings.openai_api_key)

def _system_prompt(idea: dict[str, Any]) -> str:
    return f"""You are a professional content creator helping to create and refine content for the following idea:
Title: {idea.get('title', '')}
Description: {idea.get('description', '')}

Your responses should be helpful and focused on improving the content. If asked to generate new content, format it with these sections:
1. Post Text: [the main content]
2. Hashtags: [relevant hashtags, each starting with #]
3. Call to Action: [compelling call to action]"""

def build_messages(message: str, conversation: list[dict[str, str]] | None, idea: dict[str, Any]) -> list[dict[str, str]]:
    history = [
        {"role": m["role"], "content": m["content"]}
        for m in (conversation or [])
        if m.get("role") in ("user", "assistant") and isinstance(m.get("content"), str)
    ]
    return [
        {"role": "system", "content": _system_prompt(idea)},
        *history[-HISTORY_LIMIT:],
        {"role": "user", "content": message},
    ]

def generate_completion(message: str, conversation: list[dict[str, str]] | None, idea: dict[str, Any], model: str | None = None) -> str:
    """Chat completion for refining an idea's content. Returns the assistant text."""
    client = get_client()
    model = model or settings.openai_model
    try:
        response = client.chat.completions.create(
            model=model,
            messages=build_messages(message, conversation, idea),
            temperature=0.7,
        )
    except Exception as e:
        log_event("llm_completion_fail", level="error", model=model, error=str(e))
        raise RuntimeError(f"LLM Generation failed: {str(e)}")
    log_event("llm_completion", model=model)
    return response.choices[0].message.content or ""

def parse_generated_content(text: str) -> dict[str, Any] | None:
    """Split a structured reply into post text, hashtags and call to action."""
    post = re.search(r"Post Text:\s*([\s\S]*?)(?=Hashtags:|$)", text)
    tags = re.search(r"Hashtags:\s*([\s\S]*?)(?=Call to Action:|$)", text)
    cta = re.search(r"Call to Action:\s*([\s\S]*?)$", text)
    if not (post and tags and cta):
        return None
    return {
        "post_text": post.group(1).strip(),
        "hashtags": [t[1:] for t in tags.group(1).split() if t.startswith("#")],
        "call_to_action": cta.group(1).strip(),
    }
