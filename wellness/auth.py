import logging
from functools import wraps

from django.http import JsonResponse
from firebase_admin import auth as firebase_auth

from . import firebase
from .errors import log_failure

audit_logger = logging.getLogger("audit")

BEARER_PREFIX = "Bearer "


def bearer_token(request):
    """Return the token from an `Authorization: Bearer <token>` header, or None."""
    header = request.headers.get("Authorization", "")
    if not header.startswith(BEARER_PREFIX):
        return None
    token = header[len(BEARER_PREFIX):].strip()
    return token or None


def firebase_login_required(view):
    """Verify the caller's Firebase ID token and expose its uid as `request.uid`."""

    @wraps(view)
    def wrapper(request, *args, **kwargs):
        token = bearer_token(request)
        if not token:
            return JsonResponse({"error": "Unauthorized"}, status=401)

        try:
            claims = firebase.verify_token(token)
        except firebase.FirebaseConfigError as e:
            status, message = log_failure("Firebase initialisation error", e)
            return JsonResponse({"error": message}, status=status)
        except firebase_auth.ExpiredIdTokenError:
            audit_logger.info("Rejected expired ID token: path=%s", request.path)
            return JsonResponse({"error": "Token expired, please refresh."}, status=401)
        except (firebase_auth.RevokedIdTokenError, firebase_auth.UserDisabledError) as e:
            audit_logger.warning("Rejected ID token: path=%s reason=%s", request.path, type(e).__name__)
            return JsonResponse({"error": "Invalid token"}, status=401)
        except (firebase_auth.InvalidIdTokenError, ValueError) as e:
            audit_logger.warning("Rejected ID token: path=%s reason=%s", request.path, type(e).__name__)
            return JsonResponse({"error": "Invalid token"}, status=401)
        except firebase_auth.CertificateFetchError:
            audit_logger.error("Could not fetch Firebase signing certificates", exc_info=True)
            return JsonResponse({"error": "Internal server error"}, status=500)

        request.uid = claims["uid"]
        return view(request, *args, **kwargs)

    return wrapper
