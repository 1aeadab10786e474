# =====================================================
# PLAN CATALOG
# =====================================================
# Default subscription plans seeded into an empty database.
# Feature limits use -1 for "unlimited".
# =====================================================

import copy

from sqlalchemy.orm import Session

from access.feature_gate import FEATURE_KEYS, TIERS, UNLIMITED
from .models import SubscriptionPlan

DEFAULT_PLANS = [
    {
        "name": "Basic",
        "tier": "basic",
        "description": "Practice tests and core study material",
        "duration_days": 30,
        "price": 0,
        "features": {
            "mockTests": {"enabled": True, "limit": 5},
            "liveClasses": {"enabled": False, "limit": 0},
            "studyMaterials": {"enabled": True, "categories": ["Mathematics"]},
            "tutorSupport": {"enabled": False, "hoursPerMonth": 0},
            "analysisReports": {"enabled": True, "detailed": False},
            "downloadAccess": {"enabled": False, "formats": []},
            "customization": {"enabled": False, "features": []},
        },
    },
    {
        "name": "Standard",
        "tier": "standard",
        "description": "More tests, live classes and tutor hours",
        "duration_days": 30,
        "price": 499,
        "features": {
            "mockTests": {"enabled": True, "limit": 20},
            "liveClasses": {"enabled": True, "limit": 4},
            "studyMaterials": {"enabled": True, "categories": ["Mathematics", "Science"]},
            "tutorSupport": {"enabled": True, "hoursPerMonth": 2},
            "analysisReports": {"enabled": True, "detailed": False},
            "downloadAccess": {"enabled": True, "formats": ["pdf"]},
            "customization": {"enabled": False, "features": []},
        },
    },
    {
        "name": "Premium",
        "tier": "premium",
        "description": "Unlimited tests and classes with detailed reports",
        "duration_days": 30,
        "price": 999,
        "features": {
            "mockTests": {"enabled": True, "limit": UNLIMITED},
            "liveClasses": {"enabled": True, "limit": UNLIMITED},
            "studyMaterials": {
                "enabled": True,
                "categories": ["Mathematics", "Science", "Chemistry", "Reasoning"],
            },
            "tutorSupport": {"enabled": True, "hoursPerMonth": 8},
            "analysisReports": {"enabled": True, "detailed": True},
            "downloadAccess": {"enabled": True, "formats": ["pdf", "docx"]},
            "customization": {"enabled": False, "features": []},
        },
    },
    {
        "name": "Enterprise",
        "tier": "enterprise",
        "description": "Everything in Premium plus branding for institutes",
        "duration_days": 365,
        "price": 9999,
        "features": {
            "mockTests": {"enabled": True, "limit": UNLIMITED},
            "liveClasses": {"enabled": True, "limit": UNLIMITED},
            "studyMaterials": {
                "enabled": True,
                "categories": ["Mathematics", "Science", "Chemistry", "Reasoning"],
            },
            "tutorSupport": {"enabled": True, "hoursPerMonth": 40},
            "analysisReports": {"enabled": True, "detailed": True},
            "downloadAccess": {"enabled": True, "formats": ["pdf", "docx", "csv"]},
            "customization": {"enabled": True, "features": ["branding", "custom-tests"]},
        },
    },
]


def validate_features(features) -> list[str]:
    """Problems with a plan's feature payload; empty when it is usable."""
    if not isinstance(features, dict):
        return ["features must be an object"]
    problems = []
    for key, descriptor in features.items():
        if key not in FEATURE_KEYS:
            problems.append(f"unknown feature '{key}'")
            continue
        if not isinstance(descriptor, dict) or not isinstance(descriptor.get("enabled"), bool):
            problems.append(f"{key}.enabled must be a boolean")
            continue
        limit = descriptor.get("limit")
        if "limit" in descriptor and (isinstance(limit, bool) or not isinstance(limit, int) or limit < UNLIMITED):
            problems.append(f"{key}.limit must be an integer >= -1")
    return problems


def validate_tier(tier) -> bool:
    return tier in TIERS


def seed_default_plans(db: Session) -> int:
    """Insert the default plans when no plan exists yet. Returns rows added."""
    if db.query(SubscriptionPlan.id).first():
        return 0
    for plan in DEFAULT_PLANS:
        db.add(SubscriptionPlan(is_active=True, **copy.deepcopy(plan)))
    db.commit()
    return len(DEFAULT_PLANS)
