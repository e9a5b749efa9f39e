"""GAD-7 and PHQ-9 scoring for the wellness check-in questionnaire.

Questions 1-7 are the GAD-7 (anxiety) items and 8-16 the PHQ-9 (depression)
items; every item is answered on the same four-point frequency scale.
"""
from typing import Dict, List, Mapping

from .models import CheckIn

ANSWER_SCALE = {
    "Not at all": 0,
    "Several days": 1,
    "More than half the days": 2,
    "Nearly every day": 3,
}

GAD7_ITEMS = range(1, 8)
PHQ9_ITEMS = range(8, 17)
SELF_HARM_ITEM = 16

GAD7_BANDS = [(4, "minimal"), (9, "mild"), (14, "moderate"), (21, "severe")]
PHQ9_BANDS = [(4, "minimal"), (9, "mild"), (14, "moderate"), (19, "moderately severe"), (27, "severe")]

ELEVATED = {"moderate", "moderately severe", "severe"}

RECOMMENDATIONS = {
    "chat": {
        "title": "Talk it Through",
        "description": "Discuss these feelings with our 24/7 AI Companion.",
    },
    "resources": {
        "title": "Explore Resources",
        "description": "View articles and exercises tailored to you.",
    },
    "counselor": {
        "title": "Connect with a Pro",
        "description": "Schedule a session with a university counselor.",
    },
}


def severity(score: int, bands) -> str:
    for upper, label in bands:
        if score <= upper:
            return label
    return bands[-1][1]


def _item_scores(answers: Mapping) -> Dict[int, int]:
    scores = {}
    for key, answer in answers.items():
        try:
            item = int(key)
        except (TypeError, ValueError):
            raise ValueError(f"Unknown question id: {key!r}") from None
        if item not in GAD7_ITEMS and item not in PHQ9_ITEMS:
            raise ValueError(f"Unknown question id: {key!r}")
        if not isinstance(answer, str) or answer not in ANSWER_SCALE:
            raise ValueError(f"Unknown answer for question {item}: {answer!r}")
        scores[item] = ANSWER_SCALE[answer]

    missing = [i for i in list(GAD7_ITEMS) + list(PHQ9_ITEMS) if i not in scores]
    if missing:
        raise ValueError(f"Missing answers for questions: {', '.join(map(str, missing))}")
    return scores


def score_checkin(uid: str, answers: Mapping) -> CheckIn:
    """Score a complete set of answers; raises ValueError on bad input."""
    if not isinstance(answers, Mapping):
        raise ValueError("answers must be an object keyed by question id")
    items = _item_scores(answers)
    gad7 = sum(items[i] for i in GAD7_ITEMS)
    phq9 = sum(items[i] for i in PHQ9_ITEMS)
    return CheckIn(
        user_id=uid,
        answers={str(k): v for k, v in answers.items()},
        gad7_score=gad7,
        gad7_severity=severity(gad7, GAD7_BANDS),
        phq9_score=phq9,
        phq9_severity=severity(phq9, PHQ9_BANDS),
        self_harm_flag=items[SELF_HARM_ITEM] > 0,
    )


def recommendations(checkin: CheckIn) -> List[Dict[str, str]]:
    needs_counselor = (
        checkin.self_harm_flag
        or checkin.gad7_severity in ELEVATED
        or checkin.phq9_severity in ELEVATED
    )
    order = ["counselor", "chat", "resources"] if needs_counselor else ["chat", "resources", "counselor"]
    return [dict(RECOMMENDATIONS[key], key=key) for key in order]
