"""
URL configuration for the safeharbor project.

Every route is a JSON API; the single-page frontend is served separately.
"""
from django.urls import path
from wellness.views import (
    api_health, api_chat, api_chat_history, api_chat_sessions,
    api_goals, api_delete_goal, api_journals, api_checkins,
)

urlpatterns = [
    path('api/health', api_health, name='api_health'),
    path('api/chat', api_chat, name='api_chat'),
    path('api/chat/history', api_chat_history, name='api_chat_history'),
    path('api/chat/sessions', api_chat_sessions, name='api_chat_sessions'),
    path('api/goals', api_goals, name='api_goals'),
    path('api/goals/<str:goal_id>', api_delete_goal, name='api_delete_goal'),
    path('api/journals', api_journals, name='api_journals'),
    path('api/checkins', api_checkins, name='api_checkins'),
]
