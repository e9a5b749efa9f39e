import logging
from functools import lru_cache
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from django.conf import settings

logger = logging.getLogger(__name__)

# Fernet tokens are URL-safe base64 and always start with the version byte 0x80
FERNET_PREFIX = "gAAAA"


@lru_cache(maxsize=4)
def _fernet_for(key: str) -> Fernet:
    return Fernet(key.encode())


def get_fernet() -> Optional[Fernet]:
    key = getattr(settings, "ENCRYPTION_KEY", None)
    if not key:
        return None
    return _fernet_for(key)


def encrypt_value(plaintext: str) -> str:
    f = get_fernet()
    if not f or not plaintext:
        return plaintext
    return f.encrypt(plaintext.encode()).decode()


def decrypt_value(token: str) -> str:
    f = get_fernet()
    if not f or not token or not token.startswith(FERNET_PREFIX):
        return token
    try:
        return f.decrypt(token.encode()).decode()
    except InvalidToken:
        # Written before encryption was switched on, or under another key
        logger.debug("Value is not a token for the current key, returning as-is")
        return token


def is_encrypted(value: str) -> bool:
    f = get_fernet()
    if not f or not value or not value.startswith(FERNET_PREFIX):
        return False
    try:
        f.decrypt(value.encode())
        return True
    except InvalidToken:
        return False
