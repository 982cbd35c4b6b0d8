"""
portfolio/urls.py – routes
"""
from django.urls import path

from portfolio.views import ask, conversation_detail, conversations, get_csrf_token

urlpatterns = [
    # CSRF helper
    path("api/csrf", get_csrf_token, name="get_csrf_token"),

    # Chat + RAG
    path("api/ask", ask, name="ask"),

    # Conversation history
    path("api/conversations",           conversations,       name="conversations"),
    path("api/conversations/<str:conversation_id>", conversation_detail, name="conversation_detail"),
]
