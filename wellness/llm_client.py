import json
import logging
import re
from functools import lru_cache
from typing import Dict

import google.generativeai as genai
from django.conf import settings
from google.generativeai.types import HarmBlockThreshold, HarmCategory
from openai import OpenAI

from .models import SENDER_USER

logger = logging.getLogger(__name__)

MOODS = ("sad", "anxious", "angry", "calm", "happy", "lonely", "neutral")

DEFAULT_MOOD = "neutral"
DEFAULT_REPLY = "Sorry, I had trouble thinking."

SYSTEM_PROMPT = f"""You are “Safe Harbor AI” — an empathetic student companion for mental well-being.
Detect the user's mood ({", ".join(MOODS)}) from their message,
respond warmly and naturally with one short empathetic reply.

Do not mention “I detect your mood”.
If distress/self-harm is mentioned, remind them to reach a counselor or emergency help.

You MUST return ONLY a valid JSON object matching this exact schema:
{{"mood":"<oneword>","reply":"<short empathetic response>"}}
"""

_fence_pattern = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def format_history(messages) -> str:
    """Render stored messages as `User: ...` / `AI: ...` lines, or "None"."""
    lines = [
        f"{'User' if m.sender == SENDER_USER else 'AI'}: {m.text}"
        for m in messages
    ]
    return "\n".join(lines) if lines else "None"


def build_user_prompt(history_text: str, message: str) -> str:
    return f"""Previous conversation:
{history_text or "None"}

User: {message}
"""


def build_prompt(history_text: str, message: str) -> str:
    """Single-turn prompt: the system prompt followed by history and the new message."""
    return f"{SYSTEM_PROMPT}\n{build_user_prompt(history_text, message)}"


def parse_reply(raw: str) -> Dict[str, str]:
    """Best-effort parse of the model's `{"mood", "reply"}` object.

    Anything that is not a JSON object becomes the reply text itself, with
    stray double quotes removed; the mood then stays neutral.
    """
    result = {"mood": DEFAULT_MOOD, "reply": DEFAULT_REPLY}
    text = _fence_pattern.sub("", (raw or "").strip())

    try:
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    except ValueError as e:
        logger.error("Model JSON parse fail: %s (raw length=%d)", e, len(raw or ""))
        fallback = text.replace('"', "").strip()
        if fallback:
            result["reply"] = fallback
        return result

    mood = data.get("mood")
    if isinstance(mood, str) and mood.strip():
        word = mood.strip().split()[0].lower().strip(".,!")
        if word:
            result["mood"] = word
    reply = data.get("reply")
    if isinstance(reply, str) and reply.strip():
        result["reply"] = reply.strip()
    return result


# ------------------ Providers ------------------

class GeminiProvider:
    """Google Gemini through google-generativeai, forced into JSON output."""

    name = "gemini"

    def __init__(self, api_key: str, model_name: str, timeout: int):
        genai.configure(api_key=api_key)
        safety_settings = {
            HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
            HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
            HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
            HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
        }
        self.model = genai.GenerativeModel(
            model_name,
            safety_settings=safety_settings,
            generation_config={"response_mime_type": "application/json"},
        )
        self.timeout = timeout

    def complete(self, history_text: str, message: str) -> str:
        prompt = build_prompt(history_text, message)
        response = self.model.generate_content(prompt, request_options={"timeout": self.timeout})
        return safe_get_response_text(response)


class OpenAIProvider:
    """OpenAI chat completions in JSON-object mode."""

    name = "openai"

    def __init__(self, api_key: str, model_name: str, timeout: int):
        self.client = OpenAI(api_key=api_key, timeout=timeout)
        self.model_name = model_name

    def complete(self, history_text: str, message: str) -> str:
        resp = self.client.chat.completions.create(
            model=self.model_name,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_user_prompt(history_text, message)},
            ],
            response_format={"type": "json_object"},
        )
        return (resp.choices[0].message.content or "").strip()


PROVIDERS = {
    "gemini": (GeminiProvider, "GEMINI_API_KEY", "GEMINI_MODEL"),
    "openai": (OpenAIProvider, "OPENAI_API_KEY", "OPENAI_MODEL"),
}


def safe_get_response_text(response) -> str:
    """Extract text from a Gemini response; blocked or empty responses give ""."""
    try:
        if response.text:
            return response.text.strip()
    except ValueError as e:
        # `.text` raises when the candidate was blocked or carries no parts
        logger.warning("Could not extract response.text: %s", e)

    candidates = getattr(response, "candidates", None) or []
    if candidates:
        content = getattr(candidates[0], "content", None)
        parts = getattr(content, "parts", None) or []
        if parts:
            return (parts[0].text or "").strip()
        logger.warning("Gemini candidate had no parts (finish_reason=%s)",
                       getattr(candidates[0], "finish_reason", None))
    return ""


@lru_cache(maxsize=1)
def get_provider():
    provider_name = settings.CHAT_PROVIDER
    if provider_name not in PROVIDERS:
        raise ValueError(f"Unknown CHAT_PROVIDER {provider_name!r}; expected one of {sorted(PROVIDERS)}")
    cls, key_setting, model_setting = PROVIDERS[provider_name]
    api_key = getattr(settings, key_setting)
    if not api_key:
        raise ValueError(f"{key_setting} is not set")
    model_name = getattr(settings, model_setting)
    logger.info("Using %s provider with model %s", provider_name, model_name)
    return cls(api_key, model_name, settings.LLM_TIMEOUT)


def generate_reply(history_text: str, message: str) -> Dict[str, str]:
    """Ask the configured model for a `{"mood", "reply"}` answer to `message`."""
    raw = get_provider().complete(history_text, message)
    return parse_reply(raw)
