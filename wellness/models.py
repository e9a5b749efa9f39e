"""Firestore document records.

Each feature keeps its own flat collection and every document carries the
owner's Firebase uid in `userId`; ownership is enforced by filtering on it.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from django.utils import timezone

SESSIONS_COLLECTION = "chatSessions"
GOALS_COLLECTION = "goals"
JOURNALS_COLLECTION = "journals"
CHECKINS_COLLECTION = "checkins"

SENDER_USER = "user"
SENDER_AI = "ai"
SENDER_CHOICES = (SENDER_USER, SENDER_AI)

JOURNAL_KINDS = ("mood", "cbt")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class ChatMessage:
    """One side of a chat exchange. Written once, never updated."""
    user_id: str
    sender: str
    text: str
    timestamp: datetime = field(default_factory=timezone.now)
    mood: Optional[str] = None
    session_id: Optional[str] = None
    id: Optional[str] = None

    def to_document(self) -> Dict[str, Any]:
        doc = {
            "userId": self.user_id,
            "sender": self.sender,
            "text": self.text,
            "timestamp": self.timestamp,
        }
        if self.mood:
            doc["mood"] = self.mood
        if self.session_id:
            doc["sessionId"] = self.session_id
        return doc

    @classmethod
    def from_snapshot(cls, snapshot) -> "ChatMessage":
        data = snapshot.to_dict() or {}
        return cls(
            id=snapshot.id,
            user_id=data.get("userId"),
            sender=data.get("sender", SENDER_AI),
            text=data.get("text", ""),
            timestamp=data.get("timestamp"),
            mood=data.get("mood"),
            session_id=data.get("sessionId"),
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sender": self.sender,
            "text": self.text,
            "mood": self.mood,
            "sessionId": self.session_id,
            "timestamp": _iso(self.timestamp),
        }


@dataclass
class ChatSession:
    user_id: str
    title: str = "New Chat"
    created_at: datetime = field(default_factory=timezone.now)
    last_message_at: Optional[datetime] = None
    message_count: int = 0
    id: Optional[str] = None

    def __post_init__(self):
        if self.last_message_at is None:
            self.last_message_at = self.created_at

    def to_document(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "title": self.title,
            "createdAt": self.created_at,
            "lastMessageAt": self.last_message_at,
            "messageCount": self.message_count,
        }

    @classmethod
    def from_snapshot(cls, snapshot) -> "ChatSession":
        data = snapshot.to_dict() or {}
        return cls(
            id=snapshot.id,
            user_id=data.get("userId"),
            title=data.get("title") or "New Chat",
            created_at=data.get("createdAt"),
            last_message_at=data.get("lastMessageAt"),
            message_count=data.get("messageCount", 0),
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "createdAt": _iso(self.created_at),
            "lastMessageAt": _iso(self.last_message_at),
            "messageCount": self.message_count,
        }


@dataclass
class Goal:
    user_id: str
    text: str
    created_at: datetime = field(default_factory=timezone.now)
    id: Optional[str] = None

    def to_document(self) -> Dict[str, Any]:
        return {"userId": self.user_id, "text": self.text, "createdAt": self.created_at}

    @classmethod
    def from_snapshot(cls, snapshot) -> "Goal":
        data = snapshot.to_dict() or {}
        return cls(id=snapshot.id, user_id=data.get("userId"), text=data.get("text", ""),
                   created_at=data.get("createdAt"))

    def to_json(self) -> Dict[str, Any]:
        return {"id": self.id, "text": self.text, "createdAt": _iso(self.created_at)}


@dataclass
class JournalEntry:
    """A mood journal or CBT thought journal entry."""
    user_id: str
    kind: str
    text: str
    created_at: datetime = field(default_factory=timezone.now)
    id: Optional[str] = None

    def to_document(self) -> Dict[str, Any]:
        return {"userId": self.user_id, "kind": self.kind, "text": self.text, "createdAt": self.created_at}

    @classmethod
    def from_snapshot(cls, snapshot) -> "JournalEntry":
        data = snapshot.to_dict() or {}
        return cls(id=snapshot.id, user_id=data.get("userId"), kind=data.get("kind", "mood"),
                   text=data.get("text", ""), created_at=data.get("createdAt"))

    def to_json(self) -> Dict[str, Any]:
        return {"id": self.id, "kind": self.kind, "text": self.text, "createdAt": _iso(self.created_at)}


@dataclass
class CheckIn:
    """A scored GAD-7 / PHQ-9 wellness check-in."""
    user_id: str
    answers: Dict[str, str]
    gad7_score: int
    gad7_severity: str
    phq9_score: int
    phq9_severity: str
    self_harm_flag: bool = False
    created_at: datetime = field(default_factory=timezone.now)
    id: Optional[str] = None

    def to_document(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "answers": self.answers,
            "gad7Score": self.gad7_score,
            "gad7Severity": self.gad7_severity,
            "phq9Score": self.phq9_score,
            "phq9Severity": self.phq9_severity,
            "selfHarmFlag": self.self_harm_flag,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_snapshot(cls, snapshot) -> "CheckIn":
        data = snapshot.to_dict() or {}
        return cls(
            id=snapshot.id,
            user_id=data.get("userId"),
            answers=data.get("answers", {}),
            gad7_score=data.get("gad7Score", 0),
            gad7_severity=data.get("gad7Severity", "minimal"),
            phq9_score=data.get("phq9Score", 0),
            phq9_severity=data.get("phq9Severity", "minimal"),
            self_harm_flag=data.get("selfHarmFlag", False),
            created_at=data.get("createdAt"),
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "gad7": {"score": self.gad7_score, "severity": self.gad7_severity},
            "phq9": {"score": self.phq9_score, "severity": self.phq9_severity},
            "selfHarmFlag": self.self_harm_flag,
            "createdAt": _iso(self.created_at),
        }
