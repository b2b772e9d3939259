"""HTTP health probe for a single service."""

from __future__ import annotations

import asyncio
import time

import httpx
import structlog

from ..errors import ProbeError
from ..models import CheckClassification, CheckOutcome, ServiceRecord, utc_now


logger = structlog.get_logger(__name__)

DEFAULT_USER_AGENT = "Gjallarhorn/1.0"
DEFAULT_TIMEOUT_SECONDS = 30.0

# Case-insensitive URL substring -> extra request headers.
VENDOR_HEADER_RULES: tuple[tuple[str, dict[str, str]], ...] = (
    ("plex", {"Accept": "application/json", "X-Plex-Client-Identifier": "gjallarhorn-monitor"}),
)


def build_probe_headers(url: str, user_agent: str = DEFAULT_USER_AGENT) -> dict[str, str]:
    headers = {"User-Agent": user_agent}
    lowered = (url or "").lower()
    for needle, extra in VENDOR_HEADER_RULES:
        if needle in lowered:
            headers.update(extra)
    return headers


def is_healthy_status(status_code: int) -> bool:
    # 401 means the endpoint is up but wants credentials.
    return 200 <= status_code < 400 or status_code == 401


class HttpProber:
    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.client = client
        self.timeout_seconds = float(timeout_seconds)
        self.user_agent = user_agent

    async def probe(self, record: ServiceRecord) -> CheckOutcome:
        started = time.perf_counter()
        status_code: int | None = None
        try:
            status_code = await asyncio.wait_for(
                self._fetch_status(record.url, build_probe_headers(record.url, self.user_agent)),
                timeout=self.timeout_seconds,
            )
            if not is_healthy_status(status_code):
                raise ProbeError(f"HTTP {status_code}")
        except asyncio.TimeoutError:
            return self._failed(record, started, f"timeout after {self.timeout_seconds:g}s", status_code)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            return self._failed(record, started, f"{type(e).__name__}: {e}", status_code)
        except ProbeError as e:
            return self._failed(record, started, str(e), status_code)
        except Exception as e:
            # URL encoding errors (e.g. bad IDNA labels) surface outside httpx.HTTPError.
            return self._failed(record, started, f"{type(e).__name__}: {e}", status_code)

        elapsed_ms = (time.perf_counter() - started) * 1000.0
        if status_code == 401:
            logger.info("HTTP 401 (unauthorized), marking as online", service=record.name, url=record.url)
        logger.info(
            "Check ok",
            service=record.name,
            url=record.url,
            status_code=status_code,
            elapsed_ms=round(elapsed_ms, 3),
        )
        return CheckOutcome(
            service_id=record.id,
            classification=CheckClassification.ONLINE,
            latency_ms=round(elapsed_ms, 3),
            timestamp=utc_now(),
            status_code=status_code,
        )

    async def _fetch_status(self, url: str, headers: dict[str, str]) -> int:
        # The body is never read; only the final status after redirects matters.
        async with self.client.stream(
            "GET", url, headers=headers, follow_redirects=True, timeout=self.timeout_seconds
        ) as resp:
            return resp.status_code

    def _failed(self, record: ServiceRecord, started: float, error: str, status_code: int | None) -> CheckOutcome:
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        logger.warning(
            "Check failed",
            service=record.name,
            url=record.url,
            error=error,
            elapsed_ms=round(elapsed_ms, 3),
        )
        return CheckOutcome(
            service_id=record.id,
            classification=CheckClassification.FAILED,
            latency_ms=round(elapsed_ms, 3),
            timestamp=utc_now(),
            error=error,
            status_code=status_code,
        )
