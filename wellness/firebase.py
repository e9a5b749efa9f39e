import json
import logging
from typing import Any, Dict, Optional

import firebase_admin
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials, firestore
from django.conf import settings
from google.auth.exceptions import DefaultCredentialsError

logger = logging.getLogger(__name__)

_app: Optional[firebase_admin.App] = None


class FirebaseConfigError(Exception):
    """The Firebase Admin app could not be initialised from the configured credentials."""


def _build_credential():
    """Pick the credential form that is configured.

    A full service-account JSON wins over the discrete project/email/key
    triple; with neither, Application Default Credentials are used.
    """
    if settings.FIREBASE_SERVICE_ACCOUNT:
        return credentials.Certificate(json.loads(settings.FIREBASE_SERVICE_ACCOUNT))

    if settings.FIREBASE_CLIENT_EMAIL and settings.FIREBASE_PRIVATE_KEY:
        return credentials.Certificate({
            "type": "service_account",
            "project_id": settings.FIREBASE_PROJECT_ID,
            "client_email": settings.FIREBASE_CLIENT_EMAIL,
            # Env files usually carry the PEM with literal \n escapes
            "private_key": settings.FIREBASE_PRIVATE_KEY.replace("\\n", "\n"),
            "token_uri": "https://oauth2.googleapis.com/token",
        })

    return credentials.ApplicationDefault()


def get_app() -> firebase_admin.App:
    global _app
    if _app is not None:
        return _app
    try:
        _app = firebase_admin.get_app()
        return _app
    except ValueError:
        pass

    try:
        credential = _build_credential()
    except (ValueError, DefaultCredentialsError) as e:
        raise FirebaseConfigError(f"Invalid Firebase credentials: {e}") from e

    options = {"projectId": settings.FIREBASE_PROJECT_ID} if settings.FIREBASE_PROJECT_ID else None
    try:
        _app = firebase_admin.initialize_app(credential, options)
        logger.info("Firebase Admin initialised (credential=%s)", type(credential).__name__)
    except DefaultCredentialsError as e:
        raise FirebaseConfigError(f"Invalid Firebase credentials: {e}") from e
    except ValueError:
        # Another thread initialised the default app first
        _app = firebase_admin.get_app()
    return _app


def get_db():
    return firestore.client(get_app())


def verify_token(token: str) -> Dict[str, Any]:
    """Verify a Firebase ID token and return its decoded claims.

    Revocation and disabled accounts are checked too, which costs one lookup
    against the Auth backend per call.
    """
    app = get_app()
    try:
        return firebase_auth.verify_id_token(token, app=app, check_revoked=True)
    except DefaultCredentialsError as e:
        # ADC is resolved lazily, on first use
        raise FirebaseConfigError(f"Invalid Firebase credentials: {e}") from e
