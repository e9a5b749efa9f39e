import json
import logging
import time

from django.conf import settings
from django.core.cache import cache
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from . import repository
from .auth import firebase_login_required
from .checkin import recommendations, score_checkin
from .crisis import ensure_support_reminder, find_crisis_marker
from .errors import log_failure
from .llm_client import format_history, generate_reply
from .models import JOURNAL_KINDS
from .repository import NotFound

# Set up audit logging
audit_logger = logging.getLogger('audit')

RATE_LIMIT_CACHE_PREFIX = "rate_limit_"

MAX_TITLE_LENGTH = 120


def _json_body(request):
    """Decode a JSON object body; None when the body is not one."""
    try:
        data = json.loads(request.body or b"{}")
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return data if isinstance(data, dict) else None


def _bad_request(message):
    return JsonResponse({'error': message}, status=400)


def _failure(context, exc):
    status, message = log_failure(context, exc)
    return JsonResponse({'error': message}, status=status)


def _check_rate_limit(uid):
    """Return a 429 response when `uid` is sending faster than allowed, else None."""
    window = settings.RATE_LIMIT_SECONDS
    if window <= 0:
        return None

    rate_limit_key = f"{RATE_LIMIT_CACHE_PREFIX}{uid}"
    last_request_time = cache.get(rate_limit_key)
    current_time = time.time()

    if last_request_time:
        time_since_last_request = current_time - last_request_time
        if time_since_last_request < window:
            retry_after = int(window - time_since_last_request) + 1
            return JsonResponse({
                'error': f'Rate limit exceeded. Please wait {retry_after} more seconds.',
                'retry_after': retry_after,
            }, status=429)

    cache.set(rate_limit_key, current_time, timeout=window + 1)
    return None


@require_http_methods(["GET"])
def api_health(request):
    return JsonResponse({'status': 'healthy', 'provider': settings.CHAT_PROVIDER})


@csrf_exempt
@require_http_methods(["POST"])
@firebase_login_required
def api_chat(request):
    """Answer one chat message with `{mood, reply}` and store both sides."""
    uid = request.uid
    data = _json_body(request)
    if data is None:
        return _bad_request('Invalid JSON body')

    message = data.get('message')
    if not isinstance(message, str) or not message.strip():
        return _bad_request('Missing message')
    session_id = data.get('sessionId')
    if session_id is not None and (not isinstance(session_id, str) or not session_id.strip()):
        return _bad_request('sessionId must be a non-empty string')

    limited = _check_rate_limit(uid)
    if limited:
        return limited

    try:
        if session_id:
            repository.get_session(uid, session_id)

        history = repository.recent_messages(uid, session_id=session_id)
        result = generate_reply(format_history(history), message)

        crisis = find_crisis_marker(message)
        if crisis:
            audit_logger.warning(f"Crisis marker in chat message: user_id={uid}, category={crisis[0]}")
            result['reply'] = ensure_support_reminder(result['reply'])

        repository.save_exchange(uid, message, result['reply'], result['mood'], session_id=session_id)
    except NotFound:
        return JsonResponse({'error': 'Chat session not found'}, status=404)
    except Exception as e:
        return _failure("Chat error", e)

    return JsonResponse({'mood': result['mood'], 'reply': result['reply']})


@csrf_exempt
@require_http_methods(["GET"])
@firebase_login_required
def api_chat_history(request):
    """Return the caller's messages (default 50), oldest first."""
    try:
        limit = int(request.GET.get('limit', 50))
    except ValueError:
        return _bad_request('limit must be an integer')
    limit = max(1, min(limit, 200))  # clamp
    session_id = request.GET.get('sessionId') or None

    try:
        if session_id:
            repository.get_session(request.uid, session_id)
        messages = repository.list_messages(request.uid, session_id=session_id, limit=limit)
    except NotFound:
        return JsonResponse({'error': 'Chat session not found'}, status=404)
    except Exception as e:
        return _failure("Chat history error", e)

    return JsonResponse({'messages': [m.to_json() for m in messages]})


@csrf_exempt
@require_http_methods(["GET", "POST"])
@firebase_login_required
def api_chat_sessions(request):
    """List the caller's chat sessions, or start a new one."""
    if request.method == "POST":
        data = _json_body(request)
        if data is None:
            return _bad_request('Invalid JSON body')
        title = data.get('title')
        if title is not None and not isinstance(title, str):
            return _bad_request('title must be a string')
        title = (title or '').strip()[:MAX_TITLE_LENGTH] or None
        try:
            session = repository.create_session(request.uid, title)
        except Exception as e:
            return _failure("Create session error", e)
        return JsonResponse(session.to_json(), status=201)

    try:
        sessions = repository.list_sessions(request.uid)
    except Exception as e:
        return _failure("List sessions error", e)
    return JsonResponse({'sessions': [s.to_json() for s in sessions]})


@csrf_exempt
@require_http_methods(["GET", "POST"])
@firebase_login_required
def api_goals(request):
    if request.method == "POST":
        data = _json_body(request)
        if data is None:
            return _bad_request('Invalid JSON body')
        text = data.get('text')
        if not isinstance(text, str) or not text.strip():
            return _bad_request('Please enter a goal before adding.')
        try:
            goal = repository.add_goal(request.uid, text.strip())
        except Exception as e:
            return _failure("Add goal error", e)
        return JsonResponse(goal.to_json(), status=201)

    try:
        goals = repository.list_goals(request.uid)
    except Exception as e:
        return _failure("List goals error", e)
    return JsonResponse({'goals': [g.to_json() for g in goals]})


@csrf_exempt
@require_http_methods(["DELETE"])
@firebase_login_required
def api_delete_goal(request, goal_id):
    try:
        repository.delete_goal(request.uid, goal_id)
    except NotFound:
        return JsonResponse({'error': 'Goal not found'}, status=404)
    except Exception as e:
        return _failure("Delete goal error", e)
    return JsonResponse({'message': 'Goal removed from planner.'})


@csrf_exempt
@require_http_methods(["GET", "POST"])
@firebase_login_required
def api_journals(request):
    """Mood journal and CBT thought journal entries."""
    if request.method == "POST":
        data = _json_body(request)
        if data is None:
            return _bad_request('Invalid JSON body')
        kind = data.get('kind', 'mood')
        text = data.get('text')
        if kind not in JOURNAL_KINDS:
            return _bad_request(f"kind must be one of: {', '.join(JOURNAL_KINDS)}")
        if not isinstance(text, str) or not text.strip():
            return _bad_request('Please write something before saving.')
        try:
            entry = repository.add_journal_entry(request.uid, kind, text.strip())
        except Exception as e:
            return _failure("Add journal entry error", e)
        return JsonResponse(entry.to_json(), status=201)

    kind = request.GET.get('kind') or None
    if kind is not None and kind not in JOURNAL_KINDS:
        return _bad_request(f"kind must be one of: {', '.join(JOURNAL_KINDS)}")
    try:
        entries = repository.list_journal_entries(request.uid, kind=kind)
    except Exception as e:
        return _failure("List journal entries error", e)
    return JsonResponse({'entries': [e.to_json() for e in entries]})


@csrf_exempt
@require_http_methods(["GET", "POST"])
@firebase_login_required
def api_checkins(request):
    """Score and store a GAD-7 / PHQ-9 check-in, or list past ones."""
    if request.method == "POST":
        data = _json_body(request)
        if data is None:
            return _bad_request('Invalid JSON body')
        try:
            checkin = score_checkin(request.uid, data.get('answers'))
        except ValueError as e:
            return _bad_request(str(e))

        if checkin.self_harm_flag:
            audit_logger.warning(f"Check-in self-harm item answered: user_id={request.uid}")
        try:
            repository.add_checkin(checkin)
        except Exception as e:
            return _failure("Add check-in error", e)
        return JsonResponse(dict(checkin.to_json(), recommendations=recommendations(checkin)), status=201)

    try:
        checkins = repository.list_checkins(request.uid)
    except Exception as e:
        return _failure("List check-ins error", e)
    return JsonResponse({'checkins': [c.to_json() for c in checkins]})
