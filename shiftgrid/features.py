"""
Capability checks driven by the company subscription.

Views ask a single question, ``has_access(feature)``, instead of inspecting
subscriptions and manager permissions themselves.
"""

from collections.abc import Sequence

from shiftgrid.models import Subscription

ADDON_KEYS = (
    "time_tracking",
    "vacation",
    "schedules",
    "messages",
    "reminders",
    "documents",
    "ai_assistant",
    "work_reports",
)

FEATURE_NAMES = {
    "time_tracking": "Time tracking",
    "vacation": "Vacations",
    "schedules": "Shift schedule",
    "messages": "Internal messaging",
    "reminders": "Reminders",
    "documents": "Document management",
    "ai_assistant": "AI assistant",
    "work_reports": "Work reports",
}

LEGACY_FEATURE_MAP = {
    "timeTracking": "time_tracking",
    "analytics": "work_reports",
    "reports": "work_reports",
}

ACCESS_STATUSES = ("active", "trial")


def canonical_feature(feature: str) -> str:
    return LEGACY_FEATURE_MAP.get(feature, feature)


def check_feature_access(subscription: Subscription | None, feature: str) -> bool:
    if subscription is None:
        return False
    if subscription.status not in ACCESS_STATUSES:
        return False
    key = canonical_feature(feature)
    if key not in ADDON_KEYS:
        return False
    return subscription.features.get(key, False)


def feature_name(feature: str) -> str:
    key = canonical_feature(feature)
    return FEATURE_NAMES.get(key, feature)


def restriction_message(feature: str) -> str:
    return (
        f"The {feature_name(feature)} feature is not available. "
        "You can add it from the add-on store."
    )


class FeatureGate:
    """
    ``has_access`` combines the subscription with manager visibility.

    ``visible_features`` of ``None`` means a manager sees everything the
    subscription allows; an empty list hides every feature.
    """

    def __init__(
        self,
        subscription: Subscription | None,
        role: str = "admin",
        visible_features: Sequence[str] | None = None,
    ) -> None:
        self.subscription = subscription
        self.role = role
        self.visible_features = visible_features

    def has_access(self, feature: str) -> bool:
        if not check_feature_access(self.subscription, feature):
            return False
        if self.role == "manager" and self.visible_features is not None:
            return canonical_feature(feature) in {
                canonical_feature(f) for f in self.visible_features
            }
        return True

    def is_restricted(self, feature: str) -> bool:
        return not self.has_access(feature)
