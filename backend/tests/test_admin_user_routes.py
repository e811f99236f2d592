"""
Admin API Route Tests

Exercises the HTTP surface with the in-memory store behind FastAPI's
dependency overrides: auth, status codes and response envelopes.
"""

from datetime import timedelta

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from db.database import get_database
from main import app
from services.feature_flags import get_feature_flags
from utils.timezone import now_utc


@pytest.fixture
def client(database, feature_flags):
    app.dependency_overrides[get_database] = lambda: database
    app.dependency_overrides[get_feature_flags] = lambda: feature_flags
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(make_user):
    admin = make_user(role="admin", email="admin@toolsaustralia.com.au")
    return {"Authorization": f"Bearer user:{admin['_id']}"}


class TestAuth:
    def test_missing_header(self, client):
        response = client.get(f"/api/admin/users/{ObjectId()}")
        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Missing Authorization header"}

    def test_non_admin_rejected(self, client, make_user):
        caller = make_user()
        target = make_user()

        response = client.patch(
            f"/api/admin/users/{target['_id']}",
            json={"basicInfo": {"firstName": "Nope"}},
            headers={"Authorization": f"Bearer user:{caller['_id']}"},
        )

        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Unauthorized"}

    def test_malformed_token(self, client):
        response = client.get(f"/api/admin/users/{ObjectId()}", headers={"Authorization": "Token abc"})
        assert response.status_code == 401


class TestGetUser:
    def test_invalid_id(self, client, admin_headers):
        response = client.get("/api/admin/users/12345", headers=admin_headers)

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Invalid user ID format"}

    def test_unknown_user(self, client, admin_headers):
        response = client.get(f"/api/admin/users/{ObjectId()}", headers=admin_headers)
        assert response.status_code == 404

    def test_profile_is_json_safe(self, client, admin_headers, make_user, make_major_draw):
        user = make_user(password="hashed")
        draw = make_major_draw(entries=[{"userId": user["_id"], "totalEntries": 4,
                                         "entriesBySource": {"membership": 4}}])

        response = client.get(f"/api/admin/users/{user['_id']}", headers=admin_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["id"] == str(user["_id"])
        assert body["data"]["majorDrawParticipation"][0]["drawId"] == str(draw["_id"])
        assert body["data"]["statistics"]["currentDrawEntries"] == 4
        assert "password" not in body["data"]


class TestPatchUser:
    def test_update_returns_fresh_profile(self, client, admin_headers, make_user):
        user = make_user()

        response = client.patch(
            f"/api/admin/users/{user['_id']}",
            json={"basicInfo": {"firstName": "Robin", "state": "wa"}},
            headers=admin_headers,
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["firstName"] == "Robin"
        assert data["state"] == "WA"

    def test_validation_issues_listed(self, client, admin_headers, make_user):
        user = make_user()

        response = client.patch(
            f"/api/admin/users/{user['_id']}",
            json={"basicInfo": {"email": "bad"}, "rewards": {"rewardsPoints": -5}},
            headers=admin_headers,
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Validation failed"
        assert {issue["path"] for issue in body["issues"]} == {"basicInfo.email", "rewards.rewardsPoints"}

    def test_invalid_json(self, client, admin_headers, make_user):
        user = make_user()

        response = client.patch(
            f"/api/admin/users/{user['_id']}",
            content="{not json",
            headers={**admin_headers, "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Validation failed"

    def test_body_that_is_not_utf8(self, client, admin_headers, make_user):
        user = make_user()

        response = client.patch(
            f"/api/admin/users/{user['_id']}",
            content=b'{"basicInfo": {"firstName": "\xff"}}',
            headers={**admin_headers, "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["issues"][0]["message"] == "Request body must be valid JSON"

    def test_rewards_paused(self, client, admin_headers, feature_flags, make_user):
        feature_flags.rewards_enabled.return_value = False
        user = make_user()

        response = client.patch(
            f"/api/admin/users/{user['_id']}",
            json={"rewards": {"entryWallet": 10}},
            headers=admin_headers,
        )

        assert response.status_code == 503
        assert response.json()["code"] == "REWARDS_PAUSED"

    def test_unknown_draw_is_404_and_nothing_changes(self, client, admin_headers, database, make_user):
        user = make_user(firstName="Kept")

        response = client.patch(
            f"/api/admin/users/{user['_id']}",
            json={
                "basicInfo": {"firstName": "Lost"},
                "majorDrawParticipation": [{"drawId": str(ObjectId()), "totalEntries": 3}],
            },
            headers=admin_headers,
        )

        assert response.status_code == 404
        assert database.users.find_one({"_id": user["_id"]})["firstName"] == "Kept"

    def test_admin_correction_on_closed_mini_draw(self, client, admin_headers, database, make_user, make_mini_draw):
        user = make_user()
        mini = make_mini_draw(status="cancelled")

        response = client.patch(
            f"/api/admin/users/{user['_id']}",
            json={"miniDrawParticipation": [{"miniDrawId": str(mini["_id"]), "totalEntries": 3}]},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert database.minidraws.find_one({"_id": mini["_id"]})["totalEntries"] == 3


class TestReferralEntries:
    def test_referral_lands_in_active_draw(self, client, admin_headers, database, make_user, make_major_draw):
        user = make_user()
        draw = make_major_draw()

        response = client.post(f"/api/admin/users/{user['_id']}/referral-entries", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["data"] == {"drawId": str(draw["_id"]), "entriesAwarded": 100}
        record = database.majordraws.find_one({"_id": draw["_id"]})["entries"][0]
        assert record["entriesBySource"]["referral"] == 100
        assert record["totalEntries"] == 100

    def test_no_active_draw_uses_error_envelope(self, client, admin_headers, make_user):
        user = make_user()

        response = client.post(f"/api/admin/users/{user['_id']}/referral-entries", headers=admin_headers)

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "No active major draw for referral entries"}

    def test_unknown_user(self, client, admin_headers):
        response = client.post(f"/api/admin/users/{ObjectId()}/referral-entries", headers=admin_headers)
        assert response.status_code == 404


class TestFeatureFlagRoutes:
    @pytest.fixture
    def flag_client(self, database):
        app.dependency_overrides[get_database] = lambda: database
        yield TestClient(app)
        app.dependency_overrides.clear()

    def test_pause_and_list(self, flag_client, admin_headers):
        response = flag_client.put(
            "/api/admin/feature-flags/FEATURE_REWARDS",
            json={"enabled": False, "reason": "Quarterly audit"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["data"]["enabled"] is False

        listing = flag_client.get("/api/admin/feature-flags", headers=admin_headers).json()
        assert listing["data"]["FEATURE_REWARDS"]["changed_by"] == "admin@toolsaustralia.com.au"

    def test_unknown_flag(self, flag_client, admin_headers):
        response = flag_client.put(
            "/api/admin/feature-flags/FEATURE_TELEPORT",
            json={"enabled": True, "reason": "why not"},
            headers=admin_headers,
        )
        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Unknown feature flag: FEATURE_TELEPORT"}


class TestPackageRoutes:
    def test_mini_draw_catalog_with_promo(self, client, database):
        current = now_utc()
        database.promos.insert_one({
            "type": "mini-packages", "multiplier": 2, "isActive": True,
            "startDate": current - timedelta(days=1), "endDate": current + timedelta(days=1),
        })

        body = client.get("/api/packages/mini-draw").json()

        assert body["data"]["promo"]["multiplier"] == 2
        assert body["data"]["packages"][0]["entries"] == 2
        assert body["data"]["packages"][0]["originalEntries"] == 1

    def test_non_members_do_not_see_member_only_packs(self, client):
        ids = [pkg["_id"] for pkg in client.get("/api/packages/membership").json()["data"]["packages"]]
        member_ids = [
            pkg["_id"] for pkg in client.get("/api/packages/membership?member=true").json()["data"]["packages"]
        ]

        assert "additional-boss-pack" not in ids
        assert "additional-boss-pack" in member_ids
        assert "boss-subscription" in ids


class TestDrawRoutes:
    def test_sweep_completes_overdue_draw(self, client, admin_headers, database, make_major_draw):
        draw = make_major_draw(status="frozen", drawDate=now_utc() - timedelta(minutes=1))

        response = client.post("/api/admin/draws/sweep", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["data"]["completed"] == 1
        assert database.majordraws.find_one({"_id": draw["_id"]})["status"] == "completed"

    def test_sweep_is_admin_only(self, client, make_user):
        caller = make_user()

        response = client.post("/api/admin/draws/sweep", headers={"Authorization": f"Bearer user:{caller['_id']}"})

        assert response.status_code == 401
        assert response.json()["success"] is False
