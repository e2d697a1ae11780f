"""Real-time event bus.

The scheduling code depends only on ``EventBus.publish(topic, payload)``.
Which implementation is used is configured in ``settings.REALTIME``:

    REALTIME = {
        'BACKEND': 'theatre_backend.realtime.bus.RedisEventBus',
        'OPTIONS': {'url': 'redis://localhost:6379/0', 'channel_prefix': ''},
    }
"""

from __future__ import annotations

import json
import logging
from typing import Any

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.utils.module_loading import import_string

import redis

logger = logging.getLogger(__name__)


class EventBus:
    """Topic-based publish interface."""

    def publish(self, topic: str, payload: dict[str, Any]) -> None:
        raise NotImplementedError


class InMemoryEventBus(EventBus):
    """Keeps published events on the instance. Used in development and tests."""

    def __init__(self, **options):
        self.events: list[tuple[str, dict[str, Any]]] = []

    def publish(self, topic, payload):
        self.events.append((topic, payload))

    def topics(self) -> list[str]:
        return [topic for topic, _ in self.events]


class RedisEventBus(EventBus):
    """Publishes JSON payloads on Redis channels named after the topic."""

    def __init__(self, url: str = 'redis://localhost:6379/0', channel_prefix: str = '', client=None, **options):
        self.channel_prefix = channel_prefix or ''
        self.client = client if client is not None else redis.Redis.from_url(url)

    def publish(self, topic, payload):
        message = json.dumps(payload, cls=DjangoJSONEncoder)
        receivers = self.client.publish(f'{self.channel_prefix}{topic}', message)
        logger.debug('Published %s to %s subscriber(s)', topic, receivers)


def build_event_bus() -> EventBus:
    """Construct the configured bus. A fresh instance per call, no module-level singleton."""
    config = getattr(settings, 'REALTIME', {}) or {}
    backend = config.get('BACKEND', 'theatre_backend.realtime.bus.InMemoryEventBus')
    options = config.get('OPTIONS', {}) or {}
    return import_string(backend)(**options)
