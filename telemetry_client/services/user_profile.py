"""User details and op-coded custom property updates."""

from __future__ import annotations

from typing import Any, Mapping

from pydantic import ValidationError

from telemetry_client.core.logger import get_logger
from telemetry_client.domain.payloads import CustomPropertiesUpdate, UserDetails

from .request_queue import RequestQueue

logger = get_logger("telemetry.user_profile")

# Ops whose values accumulate into a list instead of replacing each other.
_LIST_OPS = {"$push", "$pull", "$addToSet"}


class UserProfile:
    def __init__(self, queue: RequestQueue):
        self.queue = queue
        self._custom: dict[str, Any] = {}

    @property
    def pending(self) -> dict[str, Any]:
        return dict(self._custom)

    def user_details(self, details: Mapping[str, Any]) -> bool:
        try:
            payload = UserDetails.model_validate(
                {k: v for k, v in details.items() if k in UserDetails.model_fields and k != "kind"}
            )
        except ValidationError as exc:
            logger.warning("user_details_rejected", extra={"error": str(exc)})
            return False
        return self.queue.enqueue(payload)

    def _change(self, key: str, value: Any, mod: str) -> None:
        entry = self._custom.get(key)
        if not isinstance(entry, dict):
            entry = self._custom[key] = {}
        if mod in _LIST_OPS:
            entry.setdefault(mod, []).append(value)
        else:
            entry[mod] = value

    def set(self, key: str, value: Any) -> None:
        self._custom[key] = value

    def set_once(self, key: str, value: Any) -> None:
        self._change(key, value, "$setOnce")

    def increment(self, key: str) -> None:
        self._change(key, 1, "$inc")

    def increment_by(self, key: str, value: float) -> None:
        self._change(key, value, "$inc")

    def multiply(self, key: str, value: float) -> None:
        self._change(key, value, "$mul")

    def max(self, key: str, value: float) -> None:
        self._change(key, value, "$max")

    def min(self, key: str, value: float) -> None:
        self._change(key, value, "$min")

    def push(self, key: str, value: Any) -> None:
        self._change(key, value, "$push")

    def push_unique(self, key: str, value: Any) -> None:
        self._change(key, value, "$addToSet")

    def pull(self, key: str, value: Any) -> None:
        self._change(key, value, "$pull")

    def save(self) -> bool:
        """Send the accumulated patch as one request and clear it."""
        if not self._custom:
            return False
        custom, self._custom = self._custom, {}
        return self.queue.enqueue(CustomPropertiesUpdate(custom=custom))
