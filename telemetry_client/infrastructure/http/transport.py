from __future__ import annotations

import time

import httpx

from telemetry_client.core.logger import get_logger
from telemetry_client.domain.payloads import Request
from telemetry_client.metrics import DELIVERY_LATENCY

logger = get_logger("telemetry.transport")

SUCCESS_RESULT = "Success"


class HttpTransport:
    """Sends one request as ``GET <base_url><api_path>?<params>``.

    Success means a 2xx status and a JSON body with ``result == "Success"``;
    anything else, including network errors, is reported as failure.
    """

    def __init__(
        self,
        base_url: str,
        api_path: str = "/i",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_path = api_path
        self.endpoint = f"{self.base_url}{self.api_path}"
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def send(self, request: Request) -> bool:
        start = time.perf_counter()
        try:
            resp = await self._client.get(self.endpoint, params=request)
        except httpx.HTTPError as exc:
            logger.warning(
                "collector_request_error",
                extra={"endpoint": self.endpoint, "error": str(exc)},
            )
            return False
        finally:
            DELIVERY_LATENCY.observe(time.perf_counter() - start)

        if not 200 <= resp.status_code < 300:
            logger.warning(
                "collector_bad_status",
                extra={"endpoint": self.endpoint, "status": resp.status_code},
            )
            return False
        try:
            body = resp.json()
        except ValueError:
            logger.warning(
                "collector_unparsable_body",
                extra={"endpoint": self.endpoint, "status": resp.status_code},
            )
            return False
        if not isinstance(body, dict) or body.get("result") != SUCCESS_RESULT:
            logger.warning(
                "collector_rejected_request",
                extra={"endpoint": self.endpoint, "body": str(body)[:200]},
            )
            return False
        return True

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = ["HttpTransport", "SUCCESS_RESULT"]
