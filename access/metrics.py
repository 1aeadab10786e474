"""
ACCESS METRICS
==============
Prometheus-backed counters for route decisions and feature checks.
"""

from __future__ import annotations

from typing import Dict

from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest

from access.access_config import ACCESS_SETTINGS


_ROUTE_DECISIONS = None
_FEATURE_CHECKS = None
_AUDIT_EVENTS = None

METRICS_CONTENT_TYPE = CONTENT_TYPE_LATEST


def _enabled() -> bool:
    return bool(ACCESS_SETTINGS["PROMETHEUS_ENABLED"])


def _init_metrics() -> None:
    global _ROUTE_DECISIONS, _FEATURE_CHECKS, _AUDIT_EVENTS
    if _ROUTE_DECISIONS is not None or not _enabled():
        return
    _ROUTE_DECISIONS = Counter(
        "access_route_decisions_total",
        "Route resolver decisions by outcome",
        ["outcome"],
    )
    _FEATURE_CHECKS = Counter(
        "access_feature_checks_total",
        "Feature gate checks by feature and result",
        ["feature", "result"],
    )
    _AUDIT_EVENTS = Counter(
        "access_audit_events_total",
        "Audit trail events by name",
        ["event"],
    )


def record_route_decision(outcome: str) -> None:
    _init_metrics()
    if _ROUTE_DECISIONS is None:
        return
    _ROUTE_DECISIONS.labels(outcome=outcome).inc()


def record_feature_check(feature: str, granted: bool) -> None:
    _init_metrics()
    if _FEATURE_CHECKS is None:
        return
    _FEATURE_CHECKS.labels(feature=feature, result="granted" if granted else "denied").inc()


def record_audit_event(event: str) -> None:
    _init_metrics()
    if _AUDIT_EVENTS is None:
        return
    _AUDIT_EVENTS.labels(event=event).inc()


def _counter_value(counter, **labels) -> int:
    try:
        return int(counter.labels(**labels)._value.get())
    except Exception:
        return 0


def get_route_metrics_snapshot(outcomes: list[str]) -> Dict[str, int]:
    _init_metrics()
    if _ROUTE_DECISIONS is None:
        return {outcome: 0 for outcome in outcomes}
    return {outcome: _counter_value(_ROUTE_DECISIONS, outcome=outcome) for outcome in outcomes}


def render_latest() -> bytes:
    _init_metrics()
    return generate_latest()
