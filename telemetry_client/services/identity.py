from __future__ import annotations

from dataclasses import dataclass

from uuid6 import uuid7

from telemetry_client.constants import StoreKeys
from telemetry_client.core.logger import get_logger
from telemetry_client.infrastructure.storage import FileStore

logger = get_logger("telemetry.identity")


@dataclass
class ClientIdentity:
    """Fields stamped onto every outbound request."""

    app_key: str | None
    device_id: str | None
    country_code: str | None = None
    city: str | None = None
    ip_address: str | None = None

    def missing_fields(self) -> list[str]:
        return [name for name in ("app_key", "device_id") if not getattr(self, name)]

    def enrichment(self) -> dict[str, str]:
        fields = {"app_key": self.app_key, "device_id": self.device_id}
        for name in ("country_code", "city", "ip_address"):
            value = getattr(self, name)
            if value:
                fields[name] = value
        return fields


def resolve_device_id(store: FileStore, configured: str | None = None) -> str:
    """Pick the device id: configured, else persisted, else freshly generated.

    The result is always written back durably so an immediate crash cannot
    lose it.
    """
    device_id = configured or store.get(StoreKeys.DEVICE_ID)
    if not device_id:
        device_id = str(uuid7())
        logger.info("device_id_generated", extra={"device_id": device_id})
    store.set(StoreKeys.DEVICE_ID, device_id, durable=True)
    return device_id
