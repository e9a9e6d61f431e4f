"""Health and connectivity probes for backend dependencies."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional
from urllib.parse import urlsplit

from sqlalchemy import text

from . import config
from .db import engine

LOGGER = logging.getLogger(__name__)


@dataclass
class HealthResult:
    """Structured payload describing the outcome of a health probe."""

    service: str
    status: str
    elapsed_seconds: float
    detail: Optional[str] = None
    meta: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the result into a serialisable dictionary."""
        payload: Dict[str, Any] = {
            "service": self.service,
            "status": self.status,
            "elapsed_seconds": self.elapsed_seconds,
        }
        if self.meta:
            payload["meta"] = self.meta
        if self.detail:
            payload["detail"] = self.detail
        return payload


@dataclass
class ProbeResult:
    """Outcome of walking a list of candidate endpoints."""

    endpoint: Optional[str]
    tried: List[str] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def reachable(self) -> bool:
        return self.endpoint is not None


def _dedupe(urls: Iterable[Optional[str]]) -> List[str]:
    seen: List[str] = []
    for url in urls:
        if not url:
            continue
        normalized = url.strip().rstrip("/")
        if normalized and normalized not in seen:
            seen.append(normalized)
    return seen


def probe_endpoints(
    candidates: Iterable[Optional[str]],
    probe: Callable[[str], bool],
) -> ProbeResult:
    """Try each candidate in order and return the first one the probe accepts.

    Duplicates and blanks are skipped. A probe that raises counts as a
    failure for that candidate; the walk always continues to the next one.
    """
    start_time = time.perf_counter()
    tried: List[str] = []
    for candidate in _dedupe(candidates):
        tried.append(candidate)
        try:
            ok = bool(probe(candidate))
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.debug("Probe of %s raised %s", candidate, exc)
            ok = False
        if ok:
            LOGGER.info("Endpoint %s reachable after %d attempt(s)", candidate, len(tried))
            return ProbeResult(
                endpoint=candidate,
                tried=tried,
                elapsed_seconds=time.perf_counter() - start_time,
            )
        LOGGER.info("Endpoint %s unreachable", candidate)

    return ProbeResult(endpoint=None, tried=tried, elapsed_seconds=time.perf_counter() - start_time)


def local_candidates(primary: Optional[str] = None) -> List[str]:
    """Configured local endpoint first, then the fixed alternate addresses."""
    return _dedupe([primary or config.OLLAMA_BASE_URL, *config.OLLAMA_FALLBACK_ENDPOINTS])


def endpoint_variants(endpoint: Optional[str] = None) -> List[str]:
    """Build the address variants worth trying for a user-supplied endpoint.

    ``localhost`` and ``127.0.0.1`` are swapped for each other, and the
    same port is tried on the loopback, wildcard and Docker host names.
    Without an endpoint the default local candidates are returned.
    """
    if not endpoint or not endpoint.strip():
        return local_candidates(config.DEFAULT_OLLAMA_ENDPOINT)

    endpoint = endpoint.strip().rstrip("/")
    variants = [endpoint]
    if "localhost" in endpoint:
        variants.append(endpoint.replace("localhost", "127.0.0.1"))
    if "127.0.0.1" in endpoint:
        variants.append(endpoint.replace("127.0.0.1", "localhost"))

    parts = urlsplit(endpoint if "://" in endpoint else f"http://{endpoint}")
    try:
        port = parts.port or 11434
    except ValueError:
        port = 11434
    scheme = parts.scheme or "http"
    for host in ("127.0.0.1", "localhost", "0.0.0.0", "host.docker.internal"):
        variants.append(f"{scheme}://{host}:{port}")
    return _dedupe(variants)


def check_database_health() -> HealthResult:
    """Run a trivial query to confirm the database connection is healthy."""
    start_time = time.perf_counter()
    try:
        with engine.connect() as connection:
            scalar = connection.execute(text("SELECT 1")).scalar_one_or_none()
    except Exception as exc:  # pylint: disable=broad-except
        return HealthResult(
            service="database",
            status="error",
            elapsed_seconds=time.perf_counter() - start_time,
            detail=str(exc) or exc.__class__.__name__,
        )
    return HealthResult(
        service="database",
        status="ok",
        elapsed_seconds=time.perf_counter() - start_time,
        meta={"result": scalar},
    )
