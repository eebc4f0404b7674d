from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from upload_broker.common.config import Settings, get_settings
from upload_broker.infra.observability.metrics import UPLOAD_OPERATIONS


class ServiceError(Exception):
    """Base class for application service level exceptions."""


class InvalidUploadRequestError(ServiceError):
    """Raised when a request names a bucket or parts this broker will not sign."""


class BackendNotConfiguredError(ServiceError):
    """Raised when the provider a request needs has no configuration."""


class BaseService:
    """Shared settings access and provider call accounting."""

    logger = logging.getLogger("upload_broker.services")

    def __init__(self, settings: Settings | None = None):
        self._settings = settings or get_settings()

    @property
    def settings(self) -> Settings:
        return self._settings

    @contextmanager
    def _provider_call(self, operation: str) -> Iterator[None]:
        """Count one provider call as ``ok`` or ``error`` and let errors through."""
        try:
            yield
        except Exception:
            UPLOAD_OPERATIONS.labels(operation, "error").inc()
            raise
        UPLOAD_OPERATIONS.labels(operation, "ok").inc()
