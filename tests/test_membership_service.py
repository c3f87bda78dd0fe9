"""
Unit tests for the membership lifecycle and its monthly AI quota.
"""
import pytest
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError

from app.core.exceptions import (
    ConfigurationError,
    MembershipExpired,
    MembershipNotFound,
    QuotaExhausted,
    TierInUse,
    UserNotFound,
    ValidationError,
)
from app.db.models.quota_usage_log import QuotaUsageLog
from app.db.models.user_membership import UserMembership
from app.services import membership_service
from app.services.membership_service import (
    activate_membership,
    check_and_update_expired,
    consume_ai_quota,
    ensure_membership,
    get_current_membership,
    validate_ai_quota,
)

MARCH_10 = datetime(2026, 3, 10, 9, 30, 0)


def active_rows(db, user_id):
    return (
        db.query(UserMembership)
        .filter(UserMembership.user_id == user_id, UserMembership.status == "active")
        .all()
    )


def test_activation_supersedes_previous_membership(db_session, free_tier, pro_tier, test_user):
    """Activating leaves exactly one active row; the old one becomes expired."""
    first = activate_membership(db_session, test_user.id, free_tier.id, now=MARCH_10)
    second = activate_membership(db_session, test_user.id, pro_tier.id, now=MARCH_10)

    rows = active_rows(db_session, test_user.id)
    assert [row.id for row in rows] == [second.id]

    db_session.refresh(first)
    assert first.status == "expired"
    assert first.remaining_ai_quota == 5


def test_schema_allows_one_active_row_per_user(db_session, free_tier, test_user):
    activate_membership(db_session, test_user.id, free_tier.id, now=MARCH_10)

    db_session.add(UserMembership(
        user_id=test_user.id, membership_tier_id=free_tier.id, status="active",
        start_date=MARCH_10, remaining_ai_quota=5,
    ))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()

    assert len(active_rows(db_session, test_user.id)) == 1


def test_activation_for_unknown_user(db_session, free_tier):
    with pytest.raises(UserNotFound):
        activate_membership(db_session, 999, free_tier.id, now=MARCH_10)


def test_activation_sets_dates_and_quota(db_session, pro_tier, test_user):
    membership = activate_membership(db_session, test_user.id, pro_tier.id, now=MARCH_10)

    assert membership.status == "active"
    assert membership.remaining_ai_quota == 50
    assert membership.start_date == MARCH_10
    assert membership.end_date == MARCH_10 + timedelta(days=30)
    assert membership.quota_reset_date == datetime(2026, 4, 1)


def test_zero_duration_never_ends(db_session, free_tier, test_user):
    membership = activate_membership(db_session, test_user.id, free_tier.id, now=MARCH_10)
    assert membership.end_date is None


def test_ensure_membership_provisions_free_tier(db_session, free_tier, test_user):
    membership = ensure_membership(db_session, test_user.id)

    assert membership.membership_tier_id == free_tier.id
    assert membership.payment_method == "auto_free"
    assert membership.remaining_ai_quota == 5
    assert len(active_rows(db_session, test_user.id)) == 1


def test_missing_free_tier_is_configuration_error(db_session, pro_tier, test_user):
    with pytest.raises(ConfigurationError):
        ensure_membership(db_session, test_user.id)


def test_quota_exhaustion_and_monthly_reset(db_session, free_tier, test_user):
    """5 uses drain the quota, the 6th is rejected, next month starts again at 5."""
    activate_membership(db_session, test_user.id, free_tier.id, now=MARCH_10)

    remaining = [consume_ai_quota(db_session, test_user.id, now=MARCH_10).remaining_quota for _ in range(5)]
    assert remaining == [4, 3, 2, 1, 0]

    with pytest.raises(QuotaExhausted):
        consume_ai_quota(db_session, test_user.id, now=MARCH_10)

    april = datetime(2026, 4, 1, 0, 0, 1)
    usage = consume_ai_quota(db_session, test_user.id, now=april)
    assert usage.remaining_quota == 4
    assert usage.total_quota == 5

    membership = get_current_membership(db_session, test_user.id, now=april)
    assert membership.quota_reset_date == datetime(2026, 5, 1)


def test_reset_is_idempotent_within_window(db_session, free_tier, test_user):
    activate_membership(db_session, test_user.id, free_tier.id, now=MARCH_10)
    consume_ai_quota(db_session, test_user.id, now=MARCH_10)
    consume_ai_quota(db_session, test_user.id, now=MARCH_10)

    april_2 = datetime(2026, 4, 2)
    assert validate_ai_quota(db_session, test_user.id, now=april_2).remaining_quota == 5
    consume_ai_quota(db_session, test_user.id, now=april_2)

    check = validate_ai_quota(db_session, test_user.id, now=datetime(2026, 4, 3))
    assert check.remaining_quota == 4
    check = validate_ai_quota(db_session, test_user.id, now=datetime(2026, 4, 20))
    assert check.remaining_quota == 4


def test_validate_does_not_spend(db_session, free_tier, test_user):
    activate_membership(db_session, test_user.id, free_tier.id, now=MARCH_10)

    validate_ai_quota(db_session, test_user.id, now=MARCH_10)
    check = validate_ai_quota(db_session, test_user.id, now=MARCH_10)

    assert check.has_quota is True
    assert check.remaining_quota == 5
    assert check.tier_name == "Free"


def test_lapsed_membership_is_expired_then_replaced(db_session, free_tier, pro_tier, test_user):
    """A lapsed paid membership is rejected once, then the user falls back to Free."""
    pro = activate_membership(db_session, test_user.id, pro_tier.id, now=datetime(2026, 1, 1))
    march = datetime(2026, 3, 1)

    with pytest.raises(MembershipExpired):
        validate_ai_quota(db_session, test_user.id, now=march)

    db_session.refresh(pro)
    assert pro.status == "expired"

    check = validate_ai_quota(db_session, test_user.id, now=march)
    assert check.tier_name == "Free"
    assert check.remaining_quota == 5


def test_consume_logs_success_and_failure(db_session, free_tier, test_user):
    membership = activate_membership(db_session, test_user.id, free_tier.id, now=MARCH_10)
    membership.remaining_ai_quota = 1
    db_session.commit()

    consume_ai_quota(db_session, test_user.id, usage_type="resume_generation", resume_id=12, now=MARCH_10)
    with pytest.raises(QuotaExhausted):
        consume_ai_quota(db_session, test_user.id, usage_type="resume_generation", now=MARCH_10)

    logs = (
        db_session.query(QuotaUsageLog)
        .filter(QuotaUsageLog.user_id == test_user.id, QuotaUsageLog.source == "membership")
        .order_by(QuotaUsageLog.id.asc())
        .all()
    )
    assert [(log.is_success, log.remaining_quota) for log in logs] == [(True, 0), (False, 0)]
    assert logs[0].related_resource_type == "resume"
    assert logs[0].related_resource_id == 12
    assert logs[1].error_message


def test_expiry_sweep_is_idempotent(db_session, free_tier, pro_tier, make_user):
    january = datetime(2026, 1, 1)
    for _ in range(2):
        user = make_user()
        activate_membership(db_session, user.id, pro_tier.id, now=january)
    keeper = make_user()
    activate_membership(db_session, keeper.id, free_tier.id, now=january)

    march = datetime(2026, 3, 1)
    assert check_and_update_expired(db_session, now=march) == 2
    assert check_and_update_expired(db_session, now=march) == 0
    assert len(active_rows(db_session, keeper.id)) == 1


def test_terminal_membership_cannot_change_status(db_session, free_tier, pro_tier, test_user):
    old = activate_membership(db_session, test_user.id, free_tier.id, now=MARCH_10)
    activate_membership(db_session, test_user.id, pro_tier.id, now=MARCH_10)

    with pytest.raises(ValidationError):
        membership_service.update_user_membership(db_session, old.id, {"status": "active"})

    updated = membership_service.update_user_membership(db_session, old.id, {"admin_notes": "kept for audit"})
    assert updated.status == "expired"
    assert updated.admin_notes == "kept for audit"


def test_tier_in_use_cannot_be_deleted(db_session, free_tier, pro_tier, test_user):
    activate_membership(db_session, test_user.id, pro_tier.id, now=MARCH_10)

    with pytest.raises(TierInUse):
        membership_service.delete_tier(db_session, pro_tier.id)

    membership_service.delete_tier(db_session, free_tier.id)
    assert membership_service.list_tiers(db_session)["pagination"]["total"] == 1


def test_toggle_and_sort_tiers(db_session, free_tier, pro_tier):
    toggled = membership_service.toggle_tier(db_session, pro_tier.id)
    assert toggled.is_active is False
    assert [t.id for t in membership_service.list_active_tiers(db_session)] == [free_tier.id]

    membership_service.update_tier_sort_order(
        db_session, [{"id": free_tier.id, "sort_order": 9}, {"id": pro_tier.id, "sort_order": 1}]
    )
    tiers = membership_service.list_tiers(db_session)["data"]
    assert [t.id for t in tiers] == [pro_tier.id, free_tier.id]


def test_manual_reset_refills_to_tier_quota(db_session, free_tier, test_user):
    activate_membership(db_session, test_user.id, free_tier.id, now=MARCH_10)
    consume_ai_quota(db_session, test_user.id, now=MARCH_10)

    membership = membership_service.reset_monthly_quota(db_session, test_user.id, now=MARCH_10)

    assert membership.remaining_ai_quota == 5
    assert membership.quota_reset_date == datetime(2026, 4, 1)


def test_manual_reset_without_membership(db_session, free_tier, test_user):
    with pytest.raises(MembershipNotFound):
        membership_service.reset_monthly_quota(db_session, test_user.id)
