import logging
from datetime import timedelta
from typing import List, Optional, Tuple

from django.conf import settings
from django.utils import timezone
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from . import firebase
from .models import (
    CHECKINS_COLLECTION, GOALS_COLLECTION, JOURNALS_COLLECTION, SESSIONS_COLLECTION,
    SENDER_AI, SENDER_USER, ChatMessage, ChatSession, CheckIn, Goal, JournalEntry,
)
from .security import decrypt_value, encrypt_value

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("audit")

# Keeps the AI reply strictly after the user message it answers
REPLY_OFFSET = timedelta(milliseconds=1)


class NotFound(Exception):
    """The document does not exist or belongs to another user."""


def _owned_by(db, collection: str, uid: str):
    return db.collection(collection).where(filter=FieldFilter("userId", "==", uid))


def _chat_query(db, uid: str, session_id: Optional[str]):
    query = _owned_by(db, settings.CHAT_COLLECTION, uid)
    if session_id:
        query = query.where(filter=FieldFilter("sessionId", "==", session_id))
    return query


def _load_message(snapshot) -> ChatMessage:
    message = ChatMessage.from_snapshot(snapshot)
    message.text = decrypt_value(message.text)
    return message


# ------------------ Chat messages ------------------

def recent_messages(uid: str, limit: Optional[int] = None, session_id: Optional[str] = None) -> List[ChatMessage]:
    """Return the caller's last `limit` messages, oldest first."""
    limit = limit or settings.CHAT_HISTORY_LIMIT
    query = (
        _chat_query(firebase.get_db(), uid, session_id)
        .order_by("timestamp", direction=firestore.Query.DESCENDING)
        .limit(limit)
    )
    messages = [_load_message(snap) for snap in query.stream()]
    messages.reverse()
    return messages


def list_messages(uid: str, session_id: Optional[str] = None, limit: int = 50) -> List[ChatMessage]:
    query = (
        _chat_query(firebase.get_db(), uid, session_id)
        .order_by("timestamp", direction=firestore.Query.ASCENDING)
        .limit(limit)
    )
    return [_load_message(snap) for snap in query.stream()]


def save_exchange(
    uid: str,
    user_text: str,
    reply: str,
    mood: Optional[str],
    session_id: Optional[str] = None,
) -> Tuple[ChatMessage, ChatMessage]:
    """Persist both sides of an exchange in one batched write."""
    db = firebase.get_db()
    chats = db.collection(settings.CHAT_COLLECTION)
    now = timezone.now()

    user_msg = ChatMessage(user_id=uid, sender=SENDER_USER, text=user_text,
                           timestamp=now, session_id=session_id)
    ai_msg = ChatMessage(user_id=uid, sender=SENDER_AI, text=reply, mood=mood,
                         timestamp=now + REPLY_OFFSET, session_id=session_id)

    batch = db.batch()
    for message in (user_msg, ai_msg):
        ref = chats.document()
        message.id = ref.id
        doc = message.to_document()
        doc["text"] = encrypt_value(message.text)
        batch.set(ref, doc)

    if session_id:
        batch.update(db.collection(SESSIONS_COLLECTION).document(session_id), {
            "lastMessageAt": ai_msg.timestamp,
            "messageCount": firestore.Increment(2),
        })

    batch.commit()
    audit_logger.info(
        "Exchange stored: user_id=%s, session_id=%s, user_message_id=%s, ai_message_id=%s",
        uid, session_id, user_msg.id, ai_msg.id)
    return user_msg, ai_msg


# ------------------ Chat sessions ------------------

def create_session(uid: str, title: Optional[str] = None) -> ChatSession:
    session = ChatSession(user_id=uid, title=title or "New Chat")
    ref = firebase.get_db().collection(SESSIONS_COLLECTION).document()
    ref.set(session.to_document())
    session.id = ref.id
    return session


def get_session(uid: str, session_id: str) -> ChatSession:
    snapshot = firebase.get_db().collection(SESSIONS_COLLECTION).document(session_id).get()
    if not snapshot.exists:
        raise NotFound(f"Chat session {session_id} not found")
    session = ChatSession.from_snapshot(snapshot)
    if session.user_id != uid:
        audit_logger.warning("Session ownership mismatch: user_id=%s, session_id=%s", uid, session_id)
        raise NotFound(f"Chat session {session_id} not found")
    return session


def list_sessions(uid: str) -> List[ChatSession]:
    query = (
        _owned_by(firebase.get_db(), SESSIONS_COLLECTION, uid)
        .order_by("lastMessageAt", direction=firestore.Query.DESCENDING)
    )
    return [ChatSession.from_snapshot(snap) for snap in query.stream()]


# ------------------ Goals ------------------

def add_goal(uid: str, text: str) -> Goal:
    goal = Goal(user_id=uid, text=text)
    ref = firebase.get_db().collection(GOALS_COLLECTION).document()
    ref.set(goal.to_document())
    goal.id = ref.id
    return goal


def list_goals(uid: str) -> List[Goal]:
    query = (
        _owned_by(firebase.get_db(), GOALS_COLLECTION, uid)
        .order_by("createdAt", direction=firestore.Query.ASCENDING)
    )
    return [Goal.from_snapshot(snap) for snap in query.stream()]


def delete_goal(uid: str, goal_id: str) -> None:
    ref = firebase.get_db().collection(GOALS_COLLECTION).document(goal_id)
    snapshot = ref.get()
    if not snapshot.exists or (snapshot.to_dict() or {}).get("userId") != uid:
        raise NotFound(f"Goal {goal_id} not found")
    ref.delete()
    audit_logger.info("Goal deleted: user_id=%s, goal_id=%s", uid, goal_id)


# ------------------ Journals ------------------

def add_journal_entry(uid: str, kind: str, text: str) -> JournalEntry:
    entry = JournalEntry(user_id=uid, kind=kind, text=text)
    ref = firebase.get_db().collection(JOURNALS_COLLECTION).document()
    ref.set(entry.to_document())
    entry.id = ref.id
    return entry


def list_journal_entries(uid: str, kind: Optional[str] = None) -> List[JournalEntry]:
    query = _owned_by(firebase.get_db(), JOURNALS_COLLECTION, uid)
    if kind:
        query = query.where(filter=FieldFilter("kind", "==", kind))
    query = query.order_by("createdAt", direction=firestore.Query.DESCENDING)
    return [JournalEntry.from_snapshot(snap) for snap in query.stream()]


# ------------------ Check-ins ------------------

def add_checkin(checkin: CheckIn) -> CheckIn:
    ref = firebase.get_db().collection(CHECKINS_COLLECTION).document()
    ref.set(checkin.to_document())
    checkin.id = ref.id
    return checkin


def list_checkins(uid: str) -> List[CheckIn]:
    query = (
        _owned_by(firebase.get_db(), CHECKINS_COLLECTION, uid)
        .order_by("createdAt", direction=firestore.Query.DESCENDING)
    )
    return [CheckIn.from_snapshot(snap) for snap in query.stream()]
