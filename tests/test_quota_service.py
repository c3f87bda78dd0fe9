"""
Unit tests for the quota ledger.
Tests plan assignment, top-ups and the check-and-decrement precedence.
"""
import pytest
from datetime import datetime, timedelta

from app.core.exceptions import (
    ConfigurationError,
    InvalidTopUpAmount,
    PlanNotFound,
    QuotaExhausted,
    ValidationError,
)
from app.db.models.quota_usage_log import QuotaUsageLog
from app.db.models.top_up_pack import TopUpPack
from app.db.models.user_quota import UserQuota
from app.services.quota_service import (
    add_top_up,
    add_top_up_pack,
    assign_default_plan,
    assign_plan,
    check_and_decrement,
    get_user_plan_details,
)

NOW = datetime(2026, 3, 10, 12, 0, 0)


def ledger_rows(db, user_id):
    return db.query(UserQuota).filter(UserQuota.user_id == user_id).all()


def test_assign_default_plan_creates_exactly_one_row(db_session, default_plan, test_user):
    """Assigning the default plan twice still leaves a single ledger row."""
    assign_default_plan(db_session, test_user.id)
    assign_default_plan(db_session, test_user.id)

    rows = ledger_rows(db_session, test_user.id)
    assert len(rows) == 1
    assert rows[0].plan_id == default_plan.id
    assert rows[0].subscription_quota == 3
    assert rows[0].subscription_expires_at is None


def test_assign_default_plan_only_repoints_existing_row(db_session, default_plan, pro_plan, test_user):
    """An existing row keeps its balances; only plan_id changes."""
    db_session.add(UserQuota(
        user_id=test_user.id, plan_id=pro_plan.id, subscription_quota=42, permanent_quota=7,
    ))
    db_session.commit()

    entry = assign_default_plan(db_session, test_user.id)

    assert entry.plan_id == default_plan.id
    assert entry.subscription_quota == 42
    assert entry.permanent_quota == 7


def test_assign_default_plan_without_default_is_configuration_error(db_session, pro_plan, test_user):
    with pytest.raises(ConfigurationError):
        assign_default_plan(db_session, test_user.id)
    assert ledger_rows(db_session, test_user.id) == []


def test_assign_subscription_plan_sets_window(db_session, default_plan, pro_plan, test_user):
    assign_default_plan(db_session, test_user.id)
    add_top_up(db_session, test_user.id, 5)

    entry = assign_plan(db_session, test_user.id, pro_plan.id, now=NOW)

    assert entry.plan_id == pro_plan.id
    assert entry.subscription_quota == 50
    assert entry.subscription_expires_at == NOW + timedelta(days=30)
    assert entry.permanent_quota == 5


def test_assign_permanent_plan_credits_permanent_pool(db_session, default_plan, lifetime_plan, test_user):
    assign_default_plan(db_session, test_user.id)
    add_top_up(db_session, test_user.id, 5)

    entry = assign_plan(db_session, test_user.id, lifetime_plan.id, now=NOW)

    assert entry.plan_id == lifetime_plan.id
    assert entry.permanent_quota == 105
    assert entry.subscription_quota == 0
    assert entry.subscription_expires_at is None


def test_assign_unknown_plan_raises(db_session, default_plan, test_user):
    with pytest.raises(PlanNotFound):
        assign_plan(db_session, test_user.id, 9999)


def test_decrement_prefers_subscription_pool(db_session, default_plan, test_user):
    assign_default_plan(db_session, test_user.id)
    add_top_up(db_session, test_user.id, 2)

    usage = check_and_decrement(db_session, test_user.id)

    assert usage.source == "subscription"
    assert usage.subscription_quota == 2
    assert usage.permanent_quota == 2


def test_expired_subscription_falls_back_to_permanent(db_session, default_plan, pro_plan, test_user):
    """Subscription quota past its expiry is not spendable even if nonzero."""
    assign_plan(db_session, test_user.id, pro_plan.id, now=NOW)
    add_top_up(db_session, test_user.id, 1)

    later = NOW + timedelta(days=31)
    usage = check_and_decrement(db_session, test_user.id, now=later)

    assert usage.source == "permanent"
    assert usage.permanent_quota == 0
    assert usage.subscription_quota == 50

    with pytest.raises(QuotaExhausted):
        check_and_decrement(db_session, test_user.id, now=later)

    entry = ledger_rows(db_session, test_user.id)[0]
    assert entry.subscription_quota == 50
    assert entry.permanent_quota == 0


def test_decrement_never_goes_negative(db_session, default_plan, test_user):
    """N callers against an initial balance leave initial - min(N, initial)."""
    assign_default_plan(db_session, test_user.id)
    add_top_up(db_session, test_user.id, 2)
    initial = 3 + 2
    attempts = 8

    succeeded = 0
    for _ in range(attempts):
        try:
            check_and_decrement(db_session, test_user.id)
            succeeded += 1
        except QuotaExhausted:
            pass

    entry = ledger_rows(db_session, test_user.id)[0]
    db_session.refresh(entry)
    assert succeeded == min(attempts, initial)
    assert entry.subscription_quota == 0
    assert entry.permanent_quota == 0

    failures = (
        db_session.query(QuotaUsageLog)
        .filter(QuotaUsageLog.user_id == test_user.id, QuotaUsageLog.is_success.is_(False))
        .count()
    )
    assert failures == attempts - initial


def test_decrement_creates_ledger_row_lazily(db_session, default_plan, test_user):
    usage = check_and_decrement(db_session, test_user.id)

    assert usage.source == "subscription"
    assert usage.subscription_quota == 2
    assert len(ledger_rows(db_session, test_user.id)) == 1


def test_decrement_unknown_feature_rejected(db_session, default_plan, test_user):
    with pytest.raises(ValidationError):
        check_and_decrement(db_session, test_user.id, feature="video_calls")


def test_top_up_is_monotonic(db_session, default_plan, test_user):
    assign_default_plan(db_session, test_user.id)

    before = add_top_up(db_session, test_user.id, 10).permanent_quota
    after = add_top_up(db_session, test_user.id, 15).permanent_quota

    assert before == 10
    assert after == before + 15


@pytest.mark.parametrize("amount", [0, -5])
def test_top_up_rejects_non_positive_amounts(db_session, default_plan, test_user, amount):
    assign_default_plan(db_session, test_user.id)

    with pytest.raises(InvalidTopUpAmount):
        add_top_up(db_session, test_user.id, amount)

    assert ledger_rows(db_session, test_user.id)[0].permanent_quota == 0


def test_top_up_pack_credits_pack_amount(db_session, default_plan, test_user):
    pack = TopUpPack(name="10 Optimizations", price=4.99, features={"resume_optimizations": 10})
    db_session.add(pack)
    db_session.commit()

    entry = add_top_up_pack(db_session, test_user.id, pack.id)

    assert entry.permanent_quota == 10


def test_plan_details_self_heal(db_session, default_plan, test_user):
    """Reading details for a user without a ledger row provisions one."""
    details = get_user_plan_details(db_session, test_user.id)

    assert details["plan_id"] == default_plan.id
    assert details["plan_name"] == "Free"
    assert details["quotas"]["subscription"]["resume_optimizations"] == 3
    assert details["quotas"]["permanent"]["resume_optimizations"] == 0
    assert details["subscription_active"] is True
    assert len(ledger_rows(db_session, test_user.id)) == 1
