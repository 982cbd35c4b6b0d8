import json
import logging

from django.http               import JsonResponse
from django.middleware.csrf    import get_token
from django.views.decorators.http  import require_GET, require_POST

from portfolio.conversations import get_conversation, list_conversations
from portfolio.models        import record_request
from portfolio.validators    import (
    clean_conversation_id, clean_gap_minutes, clean_question, clean_requester_id,
)
from rag.answer              import get_answer

logger = logging.getLogger(__name__)


def _bad_request(msg: str) -> JsonResponse:
    return JsonResponse({"error": msg}, status=400)


# =============================================================================
# 1. ASK
# =============================================================================
@require_POST
def ask(request):
    try:
        body = json.loads(request.body or "{}")
    except json.JSONDecodeError:
        return _bad_request("Invalid JSON")
    if not isinstance(body, dict):
        return _bad_request("Invalid JSON")

    try:
        question  = clean_question(body.get("question"))
        requester = clean_requester_id(body.get("requesterId") or request.headers.get("X-Requester-Id"))
    except ValueError as exc:
        return _bad_request(str(exc))

    record_request("/ask", "POST", question, requester)
    try:
        answer = get_answer(question)
    except Exception:
        logger.exception("Answering failed")
        return JsonResponse({"error": "Could not answer right now"}, status=502)
    record_request("/ask:response", "POST", answer, requester)
    return JsonResponse({"answer": answer})


# =============================================================================
# 2. CONVERSATIONS
# =============================================================================
def _scope(request):
    gap = clean_gap_minutes(request.GET.get("gapMinutes"))
    requester = clean_requester_id(request.GET.get("requesterId"))
    return gap, requester


@require_GET
def conversations(request):
    try:
        gap, requester = _scope(request)
    except ValueError as exc:
        return _bad_request(str(exc))

    return JsonResponse([
        {
            "id":           s.id,
            "startedAt":    s.started_at,
            "endedAt":      s.ended_at,
            "messageCount": s.message_count,
            "preview":      s.preview,
            "firstEntryId": s.first_entry_id,
        }
        for s in list_conversations(gap, requester)
    ], safe=False)


@require_GET
def conversation_detail(request, conversation_id):
    try:
        cid = clean_conversation_id(conversation_id)
        gap, requester = _scope(request)
    except ValueError as exc:
        return _bad_request(str(exc))

    conv = get_conversation(cid, gap, requester)
    if conv is None:
        return JsonResponse({"error": "not_found"}, status=404)
    return JsonResponse({
        "id":        conv.id,
        "startedAt": conv.started_at,
        "endedAt":   conv.ended_at,
        "messages": [
            {"id": m.id, "role": m.role, "text": m.text, "createdAt": m.created_at}
            for m in conv.messages
        ],
    })


# =============================================================================
# 3. CSRF
# =============================================================================
@require_GET
def get_csrf_token(request):
    return JsonResponse({"csrfToken": get_token(request)})
