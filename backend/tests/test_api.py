"""
API endpoint tests.

Runs the FastAPI app against fakeredis and the scripted contract client.
"""

import pytest

from swipesync.chain.client import OnChainPosition
from swipesync.chain.contracts import ContractVersion
from swipesync.db.models import Asset, AssetPosition
from swipesync.db.repositories import PositionRepository

from api.ratelimit import limiter

from tests.fakes import ALICE, FAR_FUTURE, TEST_INTERNAL_SECRET, tx


def create(test_client, admin_headers, prediction_id, **fields):
    response = test_client.post(
        "/predictions",
        json={"id": prediction_id, "question": "Q?", "deadline": FAR_FUTURE, **fields},
        headers=admin_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestAdminProtection:

    @pytest.mark.parametrize("method,path", [
        ("post", "/sync"),
        ("post", "/sync/drift"),
        ("get", "/sync/compare/17"),
        ("post", "/daily-tasks/admin/recount"),
        ("get", "/daily-tasks/admin/list-achievements"),
        ("post", "/predictions/prune-active"),
    ])
    def test_admin_key_required(self, test_client, method, path):
        response = getattr(test_client, method)(path, headers={"X-Admin-Key": "wrong"})

        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["error_code"] == "UNAUTHORIZED"

    def test_unconfigured_admin_key(self, test_client, monkeypatch):
        from swipesync.config import settings
        monkeypatch.setattr(settings, "admin_key", "")

        response = test_client.post("/sync/drift", headers={"X-Admin-Key": "anything"})
        assert response.status_code == 500
        assert response.json()["error_code"] == "CONFIGURATION_ERROR"


class TestSyncEndpoints:

    def test_sync_usdc_by_numeric_id(self, test_client, admin_headers, chain):
        create(test_client, admin_headers, "pred_v2_224")
        chain.add_prediction(ContractVersion.USDC, 224, yes_pool=2_000_000, participants=[ALICE])
        chain.add_position(ContractVersion.USDC, 224, ALICE, OnChainPosition(Asset.USDC, yes_amount=2_000_000))

        response = test_client.post("/sync/usdc", json={"predictionIds": [224, 225]}, headers=admin_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["synced"] == 1
        assert body["results"]["pred_v2_224"]["yesPool"] == 2.0
        assert body["results"]["pred_v2_225"]["status"] == "not_registered"

        position = test_client.get(f"/predictions/pred_v2_224/positions/{ALICE}").json()["data"]
        assert position["USDC"]["yesAmount"] == 2_000_000

    def test_sync_usdc_get_rejects_bad_ids(self, test_client, admin_headers):
        response = test_client.get("/sync/usdc?ids=1,abc", headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_INPUT"

    def test_sync_single_prediction(self, test_client, admin_headers, chain):
        create(test_client, admin_headers, "17")
        chain.add_prediction(ContractVersion.LEGACY, 17, yes_pool=10**18, resolved=True, outcome=True)

        body = test_client.post("/sync/predictions/17", headers=admin_headers).json()

        assert body["status"] == "synced"
        assert body["version"] == "legacy"
        record = test_client.get("/predictions/17").json()["data"]
        assert record["resolved"] is True
        assert test_client.get("/predictions/active").json()["count"] == 0

    def test_compare_and_drift(self, test_client, admin_headers, chain):
        create(test_client, admin_headers, "pred_v2_3")
        chain.add_prediction(ContractVersion.USDC, 3, yes_pool=5)

        comparison = test_client.get("/sync/compare/pred_v2_3", headers=admin_headers).json()
        assert comparison["needsSync"] is True

        drift = test_client.post("/sync/drift", headers=admin_headers).json()
        assert drift["success"] is True

    def test_compare_rejects_bad_user(self, test_client, admin_headers):
        response = test_client.get("/sync/compare/pred_v2_3?user=bob", headers=admin_headers)
        assert response.status_code == 400

    def test_route_registration(self, test_client, admin_headers):
        response = test_client.post(
            "/sync/routes",
            json={"predictionId": "launch-1", "version": "usdc", "onchainId": 300},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["onchainId"] == 300

        resolved = test_client.get("/sync/routes/launch-1", headers=admin_headers).json()
        assert resolved["version"] == "usdc"
        assert resolved["explicit"] is True

    def test_unroutable_id(self, test_client, admin_headers):
        response = test_client.get("/sync/routes/offchain-only", headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error_code"] == "ROUTING_ERROR"

    def test_audit(self, test_client, admin_headers):
        create(test_client, admin_headers, "17", yesTotalAmount=0)
        body = test_client.get("/sync/audit/17", headers=admin_headers).json()
        assert body["consistent"] is True

        missing = test_client.get("/sync/audit/18", headers=admin_headers)
        assert missing.status_code == 404


class TestDailyTaskEndpoints:

    def test_confirm_twice(self, test_client):
        payload = {"address": ALICE, "taskType": "BETA_TESTER", "txHash": tx(1)}

        first = test_client.post("/daily-tasks/confirm", json=payload).json()
        second = test_client.post("/daily-tasks/confirm", json=payload).json()

        assert first["alreadyConfirmed"] is False
        assert second["alreadyConfirmed"] is True

    def test_confirm_invalid_address(self, test_client):
        response = test_client.post(
            "/daily-tasks/confirm",
            json={"address": "0x1", "taskType": "BETA_TESTER", "txHash": tx(1)},
        )
        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_INPUT"

    def test_confirm_missing_field(self, test_client):
        response = test_client.post("/daily-tasks/confirm", json={"address": ALICE})
        assert response.status_code == 422

    def test_record_and_read_stats(self, test_client):
        response = test_client.post(
            "/daily-tasks/stats",
            json={"address": ALICE, "amount": 2.5, "streak": 3, "isJackpot": True, "secret": TEST_INTERNAL_SECRET},
        )
        assert response.status_code == 200
        assert response.json()["totalClaims"] == 1

        stats = test_client.get("/daily-tasks/stats").json()
        assert stats["stats"]["jackpotsHit"] == 1
        assert stats["leaderboard"][0]["address"] == ALICE

    def test_record_stats_wrong_secret(self, test_client):
        response = test_client.post("/daily-tasks/stats", json={"address": ALICE, "amount": 1, "secret": "bad"})
        assert response.status_code == 401

    def test_admin_recount_and_list(self, test_client, admin_headers):
        test_client.post("/daily-tasks/confirm", json={"address": ALICE, "taskType": "BETA_TESTER", "txHash": tx(1)})

        recount = test_client.post(
            "/daily-tasks/admin/recount", json={"taskType": "BETA_TESTER"}, headers=admin_headers
        ).json()
        assert recount["consistent"] is True

        listing = test_client.get(
            "/daily-tasks/admin/list-achievements?taskType=BETA_TESTER", headers=admin_headers
        ).json()
        assert listing["users"][0]["address"] == ALICE

    def test_admin_rejects_unknown_achievement(self, test_client, admin_headers):
        response = test_client.post(
            "/daily-tasks/admin/reset-stats", json={"taskType": "NOT_A_THING"}, headers=admin_headers
        )
        assert response.status_code == 400


class TestPredictionEndpoints:

    def test_create_and_get(self, test_client, admin_headers):
        create(test_client, admin_headers, "17", category="sports")

        body = test_client.get("/predictions/17").json()
        assert body["data"]["category"] == "sports"

    def test_duplicate_create_conflicts(self, test_client, admin_headers):
        create(test_client, admin_headers, "17")
        response = test_client.post("/predictions", json={"id": "17"}, headers=admin_headers)
        assert response.status_code == 409

    def test_get_missing(self, test_client):
        response = test_client.get("/predictions/404")
        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"

    def test_resolve_removes_from_active(self, test_client, admin_headers):
        create(test_client, admin_headers, "17")
        assert test_client.get("/predictions/active").json()["count"] == 1

        test_client.post("/predictions/17/resolve", json={"outcome": True}, headers=admin_headers)
        assert test_client.get("/predictions/active").json()["count"] == 0

    def test_price_history_round(self, test_client):
        response = test_client.post(
            "/predictions/17/price-history",
            json={"yesPool": 1, "noPool": 2, "betAmount": 1, "betSide": "NO", "bettor": ALICE},
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["totalPoints"] == 1
        assert data["point"]["yesPrice"] + data["point"]["noPrice"] == 100

        series = test_client.get("/predictions/17/price-history").json()["data"]
        assert series["predictionId"] == "17"
        assert len(series["history"]) == 1

    def test_price_history_rejects_negative_pool(self, test_client):
        response = test_client.post("/predictions/17/price-history", json={"yesPool": -1, "noPool": 2})
        assert response.status_code == 422

    def test_list_all_paged(self, test_client, admin_headers):
        for n in range(3):
            create(test_client, admin_headers, str(n))
        body = test_client.get("/predictions?count=1000", headers=admin_headers).json()
        assert body["done"] is True
        assert len(body["data"]) == 3

    def test_stakes_report_winning_assets(self, test_client, admin_headers, store):
        create(test_client, admin_headers, "17")
        PositionRepository(store).upsert(ALICE, "17", Asset.ETH, AssetPosition(yes_amount=5))
        test_client.post("/predictions/17/resolve", json={"outcome": True}, headers=admin_headers)

        stakes = test_client.get("/predictions/17/stakes").json()
        assert stakes["count"] == 1
        assert stakes["data"][0]["winningAssets"] == ["ETH"]

        position = test_client.get(f"/predictions/17/positions/{ALICE}").json()["data"]
        assert position["winningAssets"] == ["ETH"]


class TestRateLimiting:

    def test_confirm_rate_limited(self, test_client):
        limiter.enabled = True
        limiter.reset()

        statuses = [
            test_client.post(
                "/daily-tasks/confirm",
                json={"address": ALICE, "taskType": "BETA_TESTER", "txHash": tx(n)},
            ).status_code
            for n in range(40)
        ]

        assert statuses[0] == 200
        assert statuses[-1] == 429

    def test_record_claim_rate_limited(self, test_client):
        limiter.enabled = True
        limiter.reset()

        statuses = [
            test_client.post(
                "/daily-tasks/stats",
                json={"address": ALICE, "amount": 1, "streak": 1, "secret": TEST_INTERNAL_SECRET},
            ).status_code
            for _ in range(65)
        ]

        assert statuses[0] == 200
        assert statuses[-1] == 429


def test_health(test_client):
    body = test_client.get("/healthz").json()
    assert body["status"] == "healthy"
    assert body["store"]["healthy"] is True
