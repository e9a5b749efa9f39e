import pytest
from cryptography.fernet import Fernet
from django.core.management import CommandError, call_command

from wellness.errors import diagnose
from wellness.security import is_encrypted


@pytest.mark.parametrize("text,status,hint", [
    ("Firebase ID token has expired (auth/id-token-expired)", 401, "refresh"),
    ("403 Missing or insufficient permissions: PERMISSION_DENIED", 500, "IAM"),
    ("400 The query requires an index. You can create it here: ...", 500, "composite index"),
    ("429 Resource exhausted: quota exceeded", 500, "quota"),
    ("API key not valid. Please pass a valid API key.", 500, "API key"),
    ("504 Deadline Exceeded", 500, "timed out"),
])
def test_diagnose_known_failures(text, status, hint):
    got_status, message, got_hint = diagnose(RuntimeError(text))
    assert got_status == status
    assert hint in got_hint


def test_diagnose_unknown_failure():
    assert diagnose(RuntimeError("something odd")) == (500, "Internal server error", None)


def test_encrypt_messages_command(fake_db, settings):
    settings.ENCRYPTION_KEY = Fernet.generate_key().decode()
    chats = fake_db.collection("ai-chats")
    chats.document("a").set({"userId": "alice", "text": "plain"})
    chats.document("b").set({"userId": "alice", "text": ""})

    call_command("encrypt_messages")
    assert is_encrypted(fake_db.docs("ai-chats")["a"]["text"])
    first_pass = fake_db.docs("ai-chats")["a"]["text"]

    call_command("encrypt_messages")
    assert fake_db.docs("ai-chats")["a"]["text"] == first_pass
    assert fake_db.docs("ai-chats")["b"]["text"] == ""


def test_encrypt_messages_requires_key(fake_db, settings):
    settings.ENCRYPTION_KEY = None
    with pytest.raises(CommandError):
        call_command("encrypt_messages")


def test_diagnose_unrelated_index_error_has_no_firestore_hint():
    assert diagnose(IndexError("list index out of range")) == (500, "Internal server error", None)
