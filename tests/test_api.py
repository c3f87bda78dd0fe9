"""
HTTP-level tests: status codes, payload shapes and error details.
"""
from datetime import datetime

from app.services.membership_service import activate_membership


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["database"] == "connected"


def test_products_are_public(client, default_plan, pro_plan):
    response = client.get("/api/billing/products")

    assert response.status_code == 200
    assert [p["name"] for p in response.json()["plans"]] == ["Free", "Pro Monthly"]
    assert response.json()["top_up_packs"] == []


# --- Quota ledger --------------------------------------------------------------

def test_quota_me_self_heals(client, default_plan, user_headers):
    response = client.get("/api/quota/me", headers=user_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["plan_name"] == "Free"
    assert data["quotas"]["subscription"]["resume_optimizations"] == 3
    assert data["quotas"]["permanent"]["resume_optimizations"] == 0
    assert data["subscription_active"] is True


def test_quota_consume_until_exhausted(client, default_plan, user_headers):
    for expected in (2, 1, 0):
        response = client.post("/api/quota/consume", json={}, headers=user_headers)
        assert response.status_code == 200
        assert response.json()["source"] == "subscription"
        assert response.json()["subscription_quota"] == expected

    response = client.post("/api/quota/consume", json={}, headers=user_headers)

    assert response.status_code == 429
    assert response.json()["detail"]["error"] == "quota_exhausted"


def test_quota_consume_unknown_feature(client, default_plan, user_headers):
    response = client.post("/api/quota/consume", json={"feature": "teleportation"}, headers=user_headers)

    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "validation_error"


# --- Memberships ---------------------------------------------------------------

def test_public_tier_list_hides_inactive(client, free_tier, pro_tier, db_session):
    pro_tier.is_active = False
    db_session.commit()

    response = client.get("/api/memberships/tiers")

    assert response.status_code == 200
    assert [t["name"] for t in response.json()] == ["Free"]


def test_membership_status_provisions_free(client, free_tier, user_headers):
    response = client.get("/api/memberships/status", headers=user_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["tier_name"] == "Free"
    assert data["remaining_ai_quota"] == 5
    assert data["total_ai_quota"] == 5
    assert data["end_date"] is None


def test_check_quota_and_consume(client, db_session, free_tier, test_user, user_headers):
    membership = activate_membership(db_session, test_user.id, free_tier.id)
    membership.remaining_ai_quota = 1
    db_session.commit()

    response = client.post("/api/memberships/check-quota", headers=user_headers)
    assert response.json() == {"hasQuota": True, "remainingQuota": 1}

    response = client.post("/api/memberships/consume", json={"usageType": "resume_generation", "resumeId": 3}, headers=user_headers)
    assert response.status_code == 200
    assert response.json() == {"remainingQuota": 0, "totalQuota": 5, "usageType": "resume_generation"}

    response = client.post("/api/memberships/check-quota", headers=user_headers)
    assert response.status_code == 200
    assert response.json() == {"hasQuota": False, "remainingQuota": 0}

    response = client.post("/api/memberships/consume", json={}, headers=user_headers)
    assert response.status_code == 429
    assert response.json()["detail"]["error"] == "quota_exhausted"


def test_lapsed_membership_answers_402_once(client, db_session, free_tier, pro_tier, test_user, user_headers):
    activate_membership(db_session, test_user.id, pro_tier.id, now=datetime(2020, 1, 1))

    response = client.post("/api/memberships/check-quota", headers=user_headers)
    assert response.status_code == 402
    assert response.json()["detail"]["error"] == "membership_expired"

    response = client.post("/api/memberships/check-quota", headers=user_headers)
    assert response.status_code == 200
    assert response.json()["remainingQuota"] == 5


def test_order_flow(client, free_tier, pro_tier, user_headers):
    response = client.post(
        "/api/memberships/orders",
        json={"membershipTierId": pro_tier.id, "paymentMethod": "wechat"},
        headers=user_headers,
    )
    assert response.status_code == 201
    order = response.json()
    assert order["status"] == "pending"
    assert order["final_amount"] == 19.99
    assert order["payment_method"] == "wechat"

    response = client.post(
        f"/api/memberships/orders/{order['id']}/activate",
        json={"transactionId": "TX-42"},
        headers=user_headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "active"
    assert response.json()["membership_tier_id"] == pro_tier.id

    response = client.post(f"/api/memberships/orders/{order['id']}/activate", headers=user_headers)
    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "order_already_activated"

    response = client.get("/api/memberships/orders", headers=user_headers)
    assert response.json()["pagination"]["total"] == 1
    assert response.json()["data"][0]["payment_transaction_id"] == "TX-42"


def test_activate_unknown_order(client, user_headers):
    response = client.post("/api/memberships/orders/999/activate", headers=user_headers)

    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "order_not_found"


def test_disabled_user_is_refused(client, make_user, auth_headers):
    user = make_user(status="disabled")

    response = client.get("/api/memberships/status", headers=auth_headers(user))

    assert response.status_code == 403


# --- Admin ---------------------------------------------------------------------

def test_admin_routes_require_admin_role(client, user_headers):
    assert client.get("/api/admin/statistics", headers=user_headers).status_code == 403
    assert client.get("/api/admin/plans", headers=user_headers).status_code == 403
    assert client.get("/api/admin/statistics").status_code == 401


def test_admin_statistics(client, admin_headers):
    response = client.get("/api/admin/statistics", headers=admin_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["users"]["total_users"] == 1
    assert data["users"]["admin_count"] == 1
    assert data["system"]["database_status"] == "healthy"
    assert client.get("/api/admin/dashboard/stats", headers=admin_headers).json()["users"] == data["users"]


def test_admin_plan_crud(client, admin_headers):
    response = client.post(
        "/api/admin/plans",
        json={"name": "Free", "price": 0, "duration_days": 0, "features": {"resume_optimizations": 3}, "is_default": True},
        headers=admin_headers,
    )
    assert response.status_code == 201
    free = response.json()
    assert free["features"] == {"type": "subscription", "resume_optimizations": 3}

    response = client.post(
        "/api/admin/plans",
        json={"name": "Broken", "features": {"resume_optimizations": -1}},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "validation_error"
    assert response.json()["detail"]["errors"]

    response = client.put(f"/api/admin/plans/{free['id']}", json={"price": 1.5}, headers=admin_headers)
    assert response.json()["price"] == 1.5

    assert client.get("/api/admin/plans/999", headers=admin_headers).status_code == 404
    response = client.delete(f"/api/admin/plans/{free['id']}", headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "validation_error"

    response = client.put(f"/api/admin/plans/{free['id']}", json={"is_default": False}, headers=admin_headers)
    assert response.status_code == 400
    assert client.get("/api/admin/plans", headers=admin_headers).json()["pagination"]["total"] == 1


def test_admin_feature_registry(client, admin_headers):
    response = client.get("/api/admin/features", headers=admin_headers)

    assert response.status_code == 200
    keys = [f["key"] for f in response.json()]
    assert "resume_optimizations" in keys
    assert "template_access_level" in keys


def test_admin_tier_management(client, free_tier, pro_tier, test_user, db_session, admin_headers):
    activate_membership(db_session, test_user.id, pro_tier.id)

    response = client.delete(f"/api/admin/membership-tiers/{pro_tier.id}", headers=admin_headers)
    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "tier_in_use"

    response = client.patch(f"/api/admin/membership-tiers/{free_tier.id}/toggle", headers=admin_headers)
    assert response.json()["is_active"] is False

    response = client.put(
        "/api/admin/membership-tiers/sort",
        json={"items": [{"id": free_tier.id, "sort_order": 5}, {"id": pro_tier.id, "sort_order": 1}]},
        headers=admin_headers,
    )
    assert response.status_code == 200
    tiers = client.get("/api/admin/membership-tiers", headers=admin_headers).json()["data"]
    assert [t["id"] for t in tiers] == [pro_tier.id, free_tier.id]


def test_admin_grant_membership_and_assign_quota(client, default_plan, free_tier, pro_tier, test_user, admin_headers):
    response = client.post(
        "/api/admin/grant-membership",
        json={"userId": test_user.id, "tierName": "Pro", "durationDays": 7},
        headers=admin_headers,
    )
    assert response.status_code == 201
    assert response.json()["membership_tier_id"] == pro_tier.id

    response = client.post(
        "/api/admin/assign-quota",
        json={"userId": test_user.id, "permanentQuota": 10},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["quotas"]["permanent"]["resume_optimizations"] == 10

    response = client.post("/api/admin/assign-quota", json={"userId": test_user.id}, headers=admin_headers)
    assert response.status_code == 400

    logs = client.get(f"/api/admin/action-logs?userId={test_user.id}", headers=admin_headers).json()
    assert {log["action_type"] for log in logs["data"]} == {"activate_membership", "grant_permanent_quota"}


def test_admin_disable_user(client, test_user, admin_headers, user_headers):
    response = client.put(
        f"/api/admin/users/{test_user.id}/status",
        json={"status": "disabled", "reason": "chargeback"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "disabled"

    assert client.get("/auth/me", headers=user_headers).status_code == 403


def test_admin_update_user_duplicate_email(client, test_user, make_user, admin_headers):
    other = make_user(email="taken@example.com")

    response = client.put(f"/api/admin/users/{test_user.id}", json={"email": other.email}, headers=admin_headers)

    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "duplicate_email"


def test_expire_sweep_endpoint(client, db_session, free_tier, pro_tier, test_user, admin_headers):
    activate_membership(db_session, test_user.id, pro_tier.id, now=datetime(2020, 1, 1))

    assert client.post("/api/admin/memberships/expire", headers=admin_headers).json() == {"expired": 1}
    assert client.post("/api/admin/memberships/expire", headers=admin_headers).json() == {"expired": 0}


def test_only_super_admin_creates_admins(client, admin_headers, super_admin_user, auth_headers):
    payload = {"full_name": "Ops", "email": "ops@example.com", "password": "longpassword", "role": "admin"}

    assert client.post("/api/admin/admins", json=payload, headers=admin_headers).status_code == 403

    response = client.post("/api/admin/admins", json=payload, headers=auth_headers(super_admin_user))
    assert response.status_code == 201
    assert response.json()["role"] == "admin"


def test_admin_membership_records(client, free_tier, pro_tier, test_user, admin_headers):
    response = client.post(
        "/api/admin/user-memberships",
        json={"userId": test_user.id, "membershipTierId": free_tier.id},
        headers=admin_headers,
    )
    assert response.status_code == 201
    first_id = response.json()["id"]

    client.post(
        "/api/admin/user-memberships",
        json={"userId": test_user.id, "membershipTierId": pro_tier.id, "paidAmount": 10},
        headers=admin_headers,
    )

    response = client.get(f"/api/admin/user-memberships?userId={test_user.id}&status=active", headers=admin_headers)
    assert [m["membership_tier_id"] for m in response.json()["data"]] == [pro_tier.id]

    response = client.put(f"/api/admin/user-memberships/{first_id}", json={"status": "active"}, headers=admin_headers)
    assert response.status_code == 400

    response = client.put(f"/api/admin/user-memberships/{first_id}", json={"admin_notes": "refund"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["admin_notes"] == "refund"

    assert client.put("/api/admin/user-memberships/999", json={}, headers=admin_headers).status_code == 404
