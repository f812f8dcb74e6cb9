"""Kernel write services.  All of them flush; none of them commit."""

from workload_kernel.services.base import BaseService
from workload_kernel.services.catalog_service import CatalogService
from workload_kernel.services.notification import (
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    NullNotificationDispatcher,
    RecordingNotificationDispatcher,
    TransitionNotice,
)
from workload_kernel.services.transition_service import TransitionService

__all__ = [
    "BaseService",
    "CatalogService",
    "LoggingNotificationDispatcher",
    "NotificationDispatcher",
    "NullNotificationDispatcher",
    "RecordingNotificationDispatcher",
    "TransitionNotice",
    "TransitionService",
]
