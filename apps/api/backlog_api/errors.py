from __future__ import annotations

from typing import Any


class BacklogError(RuntimeError):
  status_code = 500

  def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
    super().__init__(message)
    self.message = message
    self.details = details or {}


class ValidationError(BacklogError):
  status_code = 400


class InvalidStatus(ValidationError):
  def __init__(self, value: Any) -> None:
    super().__init__(f"Invalid status: {value!r}", details={"status": str(value)})
    self.value = value


class NotFound(BacklogError):
  status_code = 404


class SinkUnavailable(BacklogError):
  """No sink is configured for a submission; the only blocking sink failure."""

  status_code = 409


class TransportFailure(BacklogError):
  """Network/API error against a sink or the refinement endpoint.

  Raised only inside adapters; callers see it converted into a failure value.
  """

  status_code = 502

  def __init__(self, message: str, *, remote_status: int | None = None, details: dict[str, Any] | None = None) -> None:
    super().__init__(message, details=details)
    self.remote_status = remote_status
