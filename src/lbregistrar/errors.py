# Copyright 2026 dparv
# See LICENSE file for licensing details.

"""Exceptions raised by the registrar."""


class ConfigError(ValueError):
    """Raised when a declaration, its credentials or the settings are invalid."""


class RegistrationError(RuntimeError):
    """Raised when backends could not be registered to the load balancer."""


class InventoryError(RegistrationError):
    """Raised when cluster state cannot be turned into backend targets."""


class CloudError(RegistrationError):
    """Raised when a load balancer API call fails."""


class NoBackendsError(CloudError):
    """Raised instead of pushing an empty backend list."""


class WorkRequestError(CloudError):
    """Base class for asynchronous work request failures."""

    def __init__(self, message: str, work_request_id: str | None = None):
        super().__init__(message)
        self.work_request_id = work_request_id


class WorkRequestFailed(WorkRequestError):
    """The work request ended as FAILED or CANCELED."""


class WorkRequestTimeout(WorkRequestError):
    """The work request did not finish within the attempt budget."""


class Cancelled(Exception):
    """The enclosing reconciliation was cancelled while waiting."""
