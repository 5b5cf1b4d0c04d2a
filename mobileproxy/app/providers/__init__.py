"""Clients for the third-party APIs the proxy talks to."""

from mobileproxy.app.providers.base import BaseUpstream
from mobileproxy.app.providers.credentials import GoogleTokenSource
from mobileproxy.app.providers.directory import (
    DirectoryEntry,
    FirestoreDirectory,
    InMemoryDirectory,
    UserDirectory,
)
from mobileproxy.app.providers.generative import (
    GenerativeProvider,
    MockGenerativeProvider,
    StudioProvider,
)
from mobileproxy.app.providers.maps import MapsClient
from mobileproxy.app.providers.push import (
    FCMPushSender,
    LoggingPushSender,
    NotificationMessage,
    PushSender,
    SendOutcome,
)
from mobileproxy.app.providers.vision import VisionClient

__all__ = [
    "BaseUpstream",
    "GoogleTokenSource",
    "DirectoryEntry",
    "FirestoreDirectory",
    "InMemoryDirectory",
    "UserDirectory",
    "GenerativeProvider",
    "MockGenerativeProvider",
    "StudioProvider",
    "MapsClient",
    "FCMPushSender",
    "LoggingPushSender",
    "NotificationMessage",
    "PushSender",
    "SendOutcome",
    "VisionClient",
]
