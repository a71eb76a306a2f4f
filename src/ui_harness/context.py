"""Execution context of a logical session and the shared metrics sink.

An interactive run has no credential and no metrics sink. A load-campaign
virtual user carries both, plus the variable bag the load tool scoped to it.
"""
from __future__ import annotations

import threading
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

from ui_harness.credentials import SOURCE_CONTEXT, Credential

METRIC_LOGIN_SUCCESS = "login.success"
METRIC_LOGIN_FAILURE = "login.failure"


class MetricsSink(Protocol):
    def emit_metric(self, name: str, value: float) -> None:
        ...


class InMemoryMetrics:
    """Thread-safe counter sink shared by concurrent sessions."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._totals: Dict[str, float] = defaultdict(float)
        self._events: List[Tuple[str, float]] = []

    def emit_metric(self, name: str, value: float) -> None:
        with self._lock:
            self._totals[name] += value
            self._events.append((name, value))

    def total(self, name: str) -> float:
        with self._lock:
            return self._totals.get(name, 0.0)

    def events(self) -> List[Tuple[str, float]]:
        with self._lock:
            return list(self._events)


@dataclass
class ExecutionContext:
    """Who is running this session: one interactive user or one virtual user of a campaign."""

    credential: Optional[Credential] = None
    metrics: Optional[MetricsSink] = None
    vars: Dict[str, Any] = field(default_factory=dict)
    campaign_id: Optional[str] = None
    virtual_user: Optional[str] = None

    @classmethod
    def from_vars(
        cls,
        variables: Mapping[str, Any],
        metrics: Optional[MetricsSink] = None,
        campaign_id: Optional[str] = None,
    ) -> "ExecutionContext":
        """Build a context from a load tool's per-user payload (``email``/``password`` keys)."""
        variables = dict(variables)
        identity = variables.get("email")
        secret = variables.get("password")
        credential = Credential(identity, secret, SOURCE_CONTEXT) if identity and secret else None
        return cls(
            credential=credential,
            metrics=metrics,
            vars=variables,
            campaign_id=campaign_id,
            virtual_user=variables.get("$uuid") or variables.get("user_id"),
        )

    @property
    def is_load_campaign(self) -> bool:
        return self.credential is not None and bool(self.credential.identity and self.credential.secret)

    def emit_metric(self, name: str, value: float = 1) -> None:
        if self.metrics is not None:
            self.metrics.emit_metric(name, value)

    def record_login(self, instant_ms: Optional[int] = None) -> None:
        self.vars["login_timestamp"] = instant_ms if instant_ms is not None else int(time.time() * 1000)
