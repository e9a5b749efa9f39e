from typing import Optional, Tuple

# Unambiguous danger signals; matched as lower-case substrings
EXPLICIT_CRISIS_MARKERS = {
    "suicide": [
        "kill myself", "killing myself", "want to die", "end my life",
        "end it all", "take my life", "suicide", "suicidal",
    ],
    "self_harm": [
        "cut myself", "cutting myself", "self-harm", "self harm",
        "hurt myself", "hurting myself", "harm myself",
    ],
    "hopelessness_with_intent": [
        "no point in living", "better off dead", "shouldn't be alive",
        "don't deserve to live",
    ],
}

SUPPORT_HINTS = ("counselor", "counsellor", "emergency", "hotline", "crisis line")

SUPPORT_REMINDER = (
    "Please reach out to a campus counselor or someone you trust, and if you are "
    "in immediate danger, contact your local emergency number right away. "
    "You don't have to go through this alone."
)


def find_crisis_marker(text: str) -> Optional[Tuple[str, str]]:
    """Return `(category, marker)` for the first explicit crisis phrase in `text`."""
    lowered = (text or "").lower()
    for category, markers in EXPLICIT_CRISIS_MARKERS.items():
        for marker in markers:
            if marker in lowered:
                return category, marker
    return None


def ensure_support_reminder(reply: str) -> str:
    lowered = reply.lower()
    if any(hint in lowered for hint in SUPPORT_HINTS):
        return reply
    return f"{reply.rstrip()}\n\n{SUPPORT_REMINDER}"
