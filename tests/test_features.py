import pytest

from shiftgrid.features import (
    FeatureGate,
    canonical_feature,
    check_feature_access,
    feature_name,
    restriction_message,
)
from shiftgrid.models import Subscription


@pytest.fixture
def subscription():
    return Subscription(
        plan="pro",
        status="active",
        features={"schedules": True, "vacation": False, "time_tracking": True},
        max_users=5,
    )


def test_no_subscription_means_no_access():
    assert not check_feature_access(None, "schedules")
    assert FeatureGate(None).is_restricted("schedules")


def test_access_follows_feature_flags(subscription):
    assert check_feature_access(subscription, "schedules")
    assert not check_feature_access(subscription, "vacation")
    assert not check_feature_access(subscription, "messages")


@pytest.mark.parametrize(
    "status, allowed", [("active", True), ("trial", True), ("blocked", False), ("inactive", False)]
)
def test_subscription_status_gates_everything(subscription, status, allowed):
    subscription.status = status

    assert check_feature_access(subscription, "schedules") is allowed


def test_legacy_names_are_mapped(subscription):
    assert canonical_feature("timeTracking") == "time_tracking"
    assert canonical_feature("reports") == "work_reports"
    assert check_feature_access(subscription, "timeTracking")


def test_restriction_message_uses_display_name():
    assert feature_name("schedules") == "Shift schedule"
    assert feature_name("unknown_thing") == "unknown_thing"
    assert restriction_message("schedules") == (
        "The Shift schedule feature is not available. "
        "You can add it from the add-on store."
    )


def test_unknown_feature_keys_are_never_granted():
    subscription = Subscription(features={"schedules": True, "payroll": True})

    assert check_feature_access(subscription, "schedules")
    assert not check_feature_access(subscription, "payroll")


def test_manager_visibility_narrows_access(subscription):
    admin = FeatureGate(subscription, role="admin", visible_features=[])
    manager = FeatureGate(subscription, role="manager", visible_features=["timeTracking"])
    unrestricted_manager = FeatureGate(subscription, role="manager")

    assert admin.has_access("schedules")
    assert manager.is_restricted("schedules")
    assert manager.has_access("time_tracking")
    assert unrestricted_manager.has_access("schedules")


def test_manager_cannot_see_what_the_plan_lacks(subscription):
    manager = FeatureGate(subscription, role="manager", visible_features=["vacation"])

    assert manager.is_restricted("vacation")
