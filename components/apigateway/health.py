from __future__ import annotations
import logging
import time
from typing import Callable, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field

log = logging.getLogger("apigateway.health")

Probe = Callable[[], bool]
Status = Literal["Healthy", "Unhealthy"]


class HealthEntry(BaseModel):
    status: Status
    duration_ms: int
    error: Optional[str] = None


class HealthReport(BaseModel):
    status: Status
    total_duration_ms: int
    entries: Dict[str, HealthEntry] = Field(default_factory=dict)

    @property
    def healthy(self) -> bool:
        return self.status == "Healthy"


class HealthRegistry:
    """Named boolean probes aggregated into one report. A probe that raises counts as Unhealthy."""

    def __init__(self):
        self._probes: List[Tuple[str, Probe]] = []

    def register(self, name: str, probe: Probe) -> None:
        if any(n == name for n, _ in self._probes):
            raise ValueError(f"Duplicate health probe: {name}")
        self._probes.append((name, probe))

    def names(self) -> List[str]:
        return [n for n, _ in self._probes]

    def run(self) -> HealthReport:
        start = time.perf_counter()
        entries: Dict[str, HealthEntry] = {}
        for name, probe in self._probes:
            t0 = time.perf_counter()
            error = None
            try:
                ok = bool(probe())
            except Exception as ex:
                log.warning("health_probe_raised name=%s", name, exc_info=True)
                ok, error = False, type(ex).__name__
            entries[name] = HealthEntry(
                status="Healthy" if ok else "Unhealthy",
                duration_ms=int((time.perf_counter() - t0) * 1000),
                error=error,
            )
        status: Status = "Healthy" if all(e.status == "Healthy" for e in entries.values()) else "Unhealthy"
        if status != "Healthy":
            log.warning("health_unhealthy failing=%s", [n for n, e in entries.items() if e.status != "Healthy"])
        return HealthReport(
            status=status,
            total_duration_ms=int((time.perf_counter() - start) * 1000),
            entries=entries,
        )
