"""Load metrics pushed to Dynatrace."""

import threading
from pathlib import Path
from typing import Any

import httpx
import structlog

from bqbatch.config import Config

log = structlog.get_logger()


class MetricsClient:
    """
    Buffers load metrics and pushes them to the Dynatrace ingest API.

    Lines use the Dynatrace metric line protocol:
        bq.load.success,env=int,table=raw.events count=1

    Flushing without an endpoint or token just drops the buffer, so the
    processor can always be given a client.
    """

    def __init__(self, config: Config) -> None:
        self.config = config
        self._buffer: list[str] = []
        self._lock = threading.Lock()
        self._token: str | None = None

    def _get_token(self) -> str | None:
        """Read the Dynatrace API token once and keep it."""
        if self._token is None:
            token_path = Path(self.config.dynatrace_token_path)
            if not token_path.exists():
                log.debug("dynatrace_token_not_found", path=str(token_path))
                return None
            self._token = token_path.read_text().strip()
        return self._token

    def load_succeeded(self, table: str) -> None:
        self._record("bq.load.success", 1, "count", {"table": table})

    def load_failed(self, stage: str, table: str | None = None) -> None:
        """Count a failed load; stage is write, wait or job."""
        dimensions = {"stage": stage}
        if table:
            dimensions["table"] = table
        self._record("bq.load.failure", 1, "count", dimensions)

    def load_duration(self, seconds: float, table: str) -> None:
        self._record("bq.load.duration", round(seconds, 3), "gauge", {"table": table})

    def pending(self) -> list[str]:
        """Lines waiting to be flushed."""
        with self._lock:
            return list(self._buffer)

    def _record(
        self,
        metric: str,
        value: float,
        metric_type: str,
        dimensions: dict[str, Any],
    ) -> None:
        dims = {"env": self.config.env, **dimensions}
        dim_str = ",".join(f"{k}={v}" for k, v in dims.items())

        with self._lock:
            self._buffer.append(f"{metric},{dim_str} {metric_type}={value}")

        log.debug("metric_recorded", metric=metric, value=value)

    def flush(self) -> None:
        """Send buffered lines to Dynatrace and clear the buffer."""
        with self._lock:
            lines, self._buffer = self._buffer, []

        if not lines:
            return

        token = self._get_token()
        if not token or not self.config.dynatrace_endpoint:
            log.debug("metrics_flush_skipped", reason="no endpoint or token configured")
            return

        try:
            response = httpx.post(
                f"{self.config.dynatrace_endpoint}/api/v2/metrics/ingest",
                headers={
                    "Authorization": f"Api-Token {token}",
                    "Content-Type": "text/plain",
                },
                content="\n".join(lines),
                timeout=10,
            )
        except httpx.HTTPError as e:
            log.warning("metrics_flush_error", error=str(e), count=len(lines))
            return

        if response.status_code == 202:
            log.info("metrics_flushed", count=len(lines))
        else:
            log.error(
                "metrics_flush_failed",
                status=response.status_code,
                body=response.text[:500],
            )
