"""Observability utilities and metrics."""

from .metrics import keep_alives_sent, request_duration, request_failures, requests_sent, subscription_conflicts, subscriptions_closed, subscriptions_opened

__all__ = [
    # Request metrics
    "requests_sent",
    "request_failures",
    "request_duration",
    # Subscription metrics
    "subscriptions_opened",
    "subscriptions_closed",
    "subscription_conflicts",
    "keep_alives_sent",
]
