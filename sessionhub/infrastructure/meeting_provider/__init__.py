"""Meeting provider implementations."""

from .mock_provider import InMemoryMeetingProvider
from .zoom_client import ZoomMeetingProvider

__all__ = ["InMemoryMeetingProvider", "ZoomMeetingProvider"]
