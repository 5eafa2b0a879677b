"""Tests for the trial/premium/free state machine."""

from datetime import datetime, timedelta, timezone

from modules.entitlements import Entitlement, Role, TransitionKind, evaluate


NOW = datetime(2026, 5, 10, 12, 0, tzinfo=timezone.utc)


def _entitlement(**fields) -> Entitlement:
    return Entitlement(id="m-1", email="a@example.com", **fields)


class TestTrial:
    def test_active_trial_unchanged(self):
        entitlement = _entitlement(role=Role.TRIAL, trial_start=NOW, trial_end=NOW + timedelta(days=3))

        transition = evaluate(entitlement, NOW)

        assert transition.kind == TransitionKind.ACTIVE_TRIAL
        assert transition.entitlement == entitlement
        assert not transition.downgraded

    def test_expired_trial_becomes_free(self):
        entitlement = _entitlement(
            role=Role.TRIAL,
            trial_start=NOW - timedelta(days=8),
            trial_end=NOW - timedelta(days=1),
        )

        transition = evaluate(entitlement, NOW)

        assert transition.kind == TransitionKind.TRIAL_EXPIRED
        assert transition.downgraded
        assert transition.changes == {"role": "free", "trial_start": None, "trial_end": None}
        assert transition.entitlement.role == Role.FREE
        assert transition.entitlement.trial_end is None

    def test_trial_ending_exactly_now_is_expired(self):
        entitlement = _entitlement(role=Role.TRIAL, trial_end=NOW)
        assert evaluate(entitlement, NOW).kind == TransitionKind.TRIAL_EXPIRED

    def test_trial_without_end_is_expired(self):
        entitlement = _entitlement(role=Role.TRIAL)
        assert evaluate(entitlement, NOW).entitlement.role == Role.FREE


class TestPremium:
    def test_active_premium(self):
        entitlement = _entitlement(
            role=Role.PREMIUM,
            subscription_start=NOW - timedelta(days=10),
            subscription_end=NOW + timedelta(days=20),
            subscription_type="monthly",
        )

        transition = evaluate(entitlement, NOW)

        assert transition.kind == TransitionKind.ACTIVE_PREMIUM
        assert not transition.downgraded

    def test_non_expiring_premium(self):
        entitlement = _entitlement(role=Role.PREMIUM, subscription_type="lifetime")
        assert evaluate(entitlement, NOW).kind == TransitionKind.ACTIVE_PREMIUM

    def test_expired_premium_clears_subscription(self):
        entitlement = _entitlement(
            role=Role.PREMIUM,
            subscription_start=NOW - timedelta(days=40),
            subscription_end=NOW - timedelta(seconds=1),
            subscription_type="monthly",
        )

        transition = evaluate(entitlement, NOW)

        assert transition.kind == TransitionKind.PREMIUM_EXPIRED
        assert transition.changes == {
            "role": "free",
            "subscription_start": None,
            "subscription_end": None,
            "subscription_type": None,
        }
        downgraded = transition.entitlement
        assert downgraded.role == Role.FREE
        assert downgraded.subscription_end is None
        assert downgraded.subscription_type is None


class TestFree:
    def test_free_unchanged(self):
        entitlement = _entitlement(role=Role.FREE, exports_today=1)

        transition = evaluate(entitlement, NOW)

        assert transition.kind == TransitionKind.FREE
        assert transition.entitlement is entitlement
        assert transition.changes == {}
