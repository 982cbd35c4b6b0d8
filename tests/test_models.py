# tests/test_models.py
import pytest

from portfolio.models import RequestLog, record_request, role_from_path


@pytest.mark.parametrize("path, role", [
    ("/ask", "user"),
    ("/ask:response", "assistant"),
    ("", "system"),
    (None, "system"),
])
def test_role_from_path(path, role):
    assert role_from_path(path) == role


@pytest.mark.django_db
def test_record_request_normalises_blank_values():
    entry = record_request("/ask", "POST", None, "")
    entry.refresh_from_db()
    assert entry.payload == ""
    assert entry.requester_id is None
    assert entry.role == "user"
    assert entry.created_at is not None


@pytest.mark.django_db
def test_log_is_ordered_by_time():
    record_request("/ask", "POST", "first")
    record_request("/ask:response", "POST", "second")
    assert [e.payload for e in RequestLog.objects.all()] == ["first", "second"]
