"""
FEATURE GATE
============
Answers "may this subscription use feature X, and how much of it".

FLOW:
- Records from the subscription source are coerced into a read-only
  SubscriptionSnapshot (or None when malformed).
- Every query first checks the snapshot is active (status + end date);
  an inactive snapshot behaves exactly like no subscription.

HOW:
- Pure functions over the snapshot; FeatureGate binds one snapshot and a
  clock for callers that ask several questions.
- Nothing here raises on bad input; every failure resolves to "no access".
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence

FEATURE_KEYS = (
    "mockTests",
    "liveClasses",
    "studyMaterials",
    "tutorSupport",
    "analysisReports",
    "downloadAccess",
    "customization",
)

TIERS = ("basic", "standard", "premium", "enterprise")
DEFAULT_TIER = "basic"

STATUS_ACTIVE = "active"
STATUS_EXPIRED = "expired"
STATUS_CANCELLED = "cancelled"
STATUSES = (STATUS_ACTIVE, STATUS_EXPIRED, STATUS_CANCELLED)

# Callers must test for this value before treating a limit as a bound.
UNLIMITED = -1

_NO_ACCESS: Mapping[str, Any] = MappingProxyType({"enabled": False})


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def to_utc(value: Any) -> Optional[dt.datetime]:
    """
    Normalize to a timezone-aware UTC datetime.
    - None / unparseable -> None
    - str -> ISO-8601 parse (a trailing 'Z' is accepted)
    - date -> midnight UTC
    - naive datetime -> assumed UTC
    """
    if value is None:
        return None

    if isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            value = dt.datetime.fromisoformat(raw)
        except ValueError:
            return None

    if isinstance(value, dt.date) and not isinstance(value, dt.datetime):
        value = dt.datetime(value.year, value.month, value.day)

    if not isinstance(value, dt.datetime):
        return None

    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)


def _pick(record: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in record:
            return record[key]
    return None


def _freeze(value: Any) -> Any:
    # lists become tuples, dicts become read-only proxies, all the way down
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple, set, frozenset)):
        return tuple(_freeze(item) for item in value)
    return value


def _thaw(value: Any) -> Any:
    """Plain dicts and lists again, for JSON responses."""
    if isinstance(value, Mapping):
        return {key: _thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [_thaw(item) for item in value]
    return value


def _freeze_features(raw: Any) -> Mapping[str, Mapping[str, Any]]:
    if not isinstance(raw, Mapping):
        return MappingProxyType({})
    frozen = {}
    for key, descriptor in raw.items():
        if isinstance(key, str) and isinstance(descriptor, Mapping):
            frozen[key] = _freeze(descriptor)
    return MappingProxyType(frozen)


@dataclass(frozen=True)
class SubscriptionSnapshot:
    id: Any
    status: str
    start_date: Optional[dt.datetime]
    end_date: Optional[dt.datetime]
    plan_id: Any = None
    plan_name: str = ""
    tier: str = DEFAULT_TIER
    features: Mapping[str, Mapping[str, Any]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @classmethod
    def from_record(cls, record: Any) -> Optional["SubscriptionSnapshot"]:
        """
        Accepts the API shape {"subscription": {...}, "plan": {...}}.
        Returns None for anything that does not look like one.
        """
        if not isinstance(record, Mapping):
            return None
        sub = record.get("subscription")
        plan = record.get("plan")
        if not isinstance(sub, Mapping) or not isinstance(plan, Mapping):
            return None

        status = sub.get("status")
        return cls(
            id=sub.get("id"),
            status=status if isinstance(status, str) else "",
            start_date=to_utc(_pick(sub, "startDate", "start_date")),
            end_date=to_utc(_pick(sub, "endDate", "end_date")),
            plan_id=plan.get("id"),
            plan_name=str(plan.get("name") or ""),
            tier=plan.get("tier") if plan.get("tier") in TIERS else DEFAULT_TIER,
            features=_freeze_features(plan.get("features")),
        )

    def is_active(self, now: Optional[dt.datetime] = None) -> bool:
        if self.status != STATUS_ACTIVE:
            return False
        if self.end_date is None:
            return False
        now = to_utc(now) or _utcnow()
        return now <= self.end_date


def coerce_subscription(subscription: Any) -> Optional[SubscriptionSnapshot]:
    if isinstance(subscription, SubscriptionSnapshot):
        return subscription
    if isinstance(subscription, Mapping):
        return SubscriptionSnapshot.from_record(subscription)
    return None


def select_active(records: Any) -> Optional[SubscriptionSnapshot]:
    """First record in provider order; no reconciliation between several."""
    if isinstance(records, (Mapping, SubscriptionSnapshot)):
        return coerce_subscription(records)
    if isinstance(records, Sequence) and not isinstance(records, (str, bytes)):
        if not records:
            return None
        return coerce_subscription(records[0])
    return None


def active_subscription(subscription: Any, now: Optional[dt.datetime] = None) -> Optional[SubscriptionSnapshot]:
    snapshot = coerce_subscription(subscription)
    if snapshot is None or not snapshot.is_active(now):
        return None
    return snapshot


def _descriptor(subscription: Any, feature_key: Any, now: Optional[dt.datetime]) -> Optional[Mapping[str, Any]]:
    if feature_key not in FEATURE_KEYS:
        return None
    snapshot = active_subscription(subscription, now)
    if snapshot is None:
        return None
    return snapshot.features.get(feature_key)


def has_feature(subscription: Any, feature_key: Any, now: Optional[dt.datetime] = None) -> bool:
    descriptor = _descriptor(subscription, feature_key, now)
    return descriptor is not None and descriptor.get("enabled") is True


def get_feature_limit(subscription: Any, feature_key: Any, now: Optional[dt.datetime] = None) -> int:
    """
    The plan's numeric cap, UNLIMITED (-1) verbatim, or 0 without an active
    subscription or a usable limit. The enabled flag is not consulted here;
    pair with has_feature().
    """
    descriptor = _descriptor(subscription, feature_key, now)
    if descriptor is None:
        return 0
    limit = descriptor.get("limit")
    if isinstance(limit, bool) or not isinstance(limit, int):
        return 0
    if limit == UNLIMITED or limit >= 0:
        return limit
    return 0


def tier(subscription: Any, now: Optional[dt.datetime] = None) -> str:
    snapshot = active_subscription(subscription, now)
    if snapshot is None:
        return DEFAULT_TIER
    return snapshot.tier


def feature_details(subscription: Any, feature_key: Any, now: Optional[dt.datetime] = None) -> Mapping[str, Any]:
    descriptor = _descriptor(subscription, feature_key, now)
    if descriptor is None or descriptor.get("enabled") is not True:
        return _NO_ACCESS
    return descriptor


def is_unlimited(limit: Any) -> bool:
    return not isinstance(limit, bool) and limit == UNLIMITED


def within_limit(limit: int, used: int) -> bool:
    """True when one more use fits under `limit`."""
    if is_unlimited(limit):
        return True
    return used < limit


class FeatureGate:
    """
    One subscription snapshot plus a clock.
    All feature checks for a request should go through one instance.
    """

    def __init__(self, subscription: Any = None, now: Optional[dt.datetime] = None):
        self.subscription = coerce_subscription(subscription)
        self.now = to_utc(now) or _utcnow()

    @classmethod
    def from_records(cls, records: Any, now: Optional[dt.datetime] = None) -> "FeatureGate":
        return cls(select_active(records), now=now)

    @property
    def is_active(self) -> bool:
        return active_subscription(self.subscription, self.now) is not None

    @property
    def tier(self) -> str:
        return tier(self.subscription, self.now)

    def has_feature(self, feature_key: Any) -> bool:
        return has_feature(self.subscription, feature_key, self.now)

    def get_feature_limit(self, feature_key: Any) -> int:
        return get_feature_limit(self.subscription, feature_key, self.now)

    def feature_details(self, feature_key: Any) -> Mapping[str, Any]:
        return feature_details(self.subscription, feature_key, self.now)

    def summary(self) -> dict:
        features = {}
        for key in FEATURE_KEYS:
            details = _thaw(self.feature_details(key))
            details["enabled"] = self.has_feature(key)
            if "limit" in details:
                details["limit"] = self.get_feature_limit(key)
            features[key] = details
        return {
            "active": self.is_active,
            "tier": self.tier,
            "subscriptionId": self.subscription.id if self.is_active else None,
            "features": features,
        }
