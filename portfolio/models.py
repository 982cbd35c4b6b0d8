# portfolio/models.py
from django.db import models
from django.utils import timezone

RESPONSE_SUFFIX = ":response"


class RequestLog(models.Model):
    """Append-only audit trail of questions and answers."""

    path         = models.CharField(max_length=255)
    method       = models.CharField(max_length=16)
    payload      = models.TextField()
    requester_id = models.CharField(max_length=128, null=True, blank=True)
    created_at   = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "request_log"
        ordering = ("created_at", "id")
        indexes = [
            models.Index(fields=["created_at"], name="request_log_created_idx"),
            models.Index(fields=["requester_id", "created_at"], name="request_log_req_created_idx"),
        ]

    @property
    def role(self) -> str:
        return role_from_path(self.path)

    def __str__(self):
        return f"{self.method} {self.path} @ {self.created_at:%Y-%m-%d %H:%M:%S}"


def role_from_path(path) -> str:
    if not path:
        return "system"
    if path.endswith(RESPONSE_SUFFIX):
        return "assistant"
    return "user"


def record_request(path: str, method: str, payload: str, requester_id=None) -> RequestLog:
    return RequestLog.objects.create(
        path=path, method=method, payload=payload or "", requester_id=requester_id or None,
    )
