"""Endpoint tests for favourites, contact requests, stories, payments and stats."""

import pytest
import pytest_asyncio
from bson import ObjectId

from exceptions import UpstreamUnavailableError
from security import TOKEN_COOKIE


@pytest_asyncio.fixture
async def user_client(test_client, normal_user, token_for):
    test_client.cookies.set(TOKEN_COOKIE, token_for(normal_user))
    return test_client


@pytest_asyncio.fixture
async def admin_client(test_client, admin_user, token_for):
    test_client.cookies.set(TOKEN_COOKIE, token_for(admin_user))
    return test_client


class TestContactRequests:

    @pytest.mark.asyncio
    async def test_cannot_delete_approved_request(self, user_client, stores):
        oid = stores.contact_requests.insert_one({"userEmail": "user@example.com", "status": "Approve"}).inserted_id
        response = await user_client.delete(f"/data-info/{oid}")
        assert response.status_code == 409
        assert response.json()["error"] == "conflict"
        assert stores.contact_requests.find_one({"_id": oid}) is not None

    @pytest.mark.asyncio
    async def test_delete_pending_request(self, user_client, stores):
        oid = stores.contact_requests.insert_one({"userEmail": "user@example.com", "status": "Pending"}).inserted_id
        response = await user_client.delete(f"/data-info/{oid}")
        assert response.status_code == 200
        assert response.json()["deletedCount"] == 1
        assert stores.contact_requests.find_one({"_id": oid}) is None

    @pytest.mark.asyncio
    async def test_delete_missing_request(self, user_client):
        response = await user_client.delete(f"/data-info/{ObjectId()}")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_requires_token(self, test_client, stores):
        oid = stores.contact_requests.insert_one({"status": "Pending"}).inserted_id
        response = await test_client.delete(f"/data-info/{oid}")
        assert response.status_code == 401
        assert stores.contact_requests.find_one({"_id": oid}) is not None

    @pytest.mark.asyncio
    async def test_create_defaults_to_pending_and_lists_by_user(self, user_client, stores):
        response = await user_client.post("/data", json={"userEmail": "user@example.com", "biodataId": 3})
        assert response.status_code == 200
        assert stores.contact_requests.find_one({"biodataId": 3})["status"] == "Pending"

        response = await user_client.get("/data/user@example.com")
        assert len(response.json()) == 1

    @pytest.mark.asyncio
    async def test_approve(self, user_client, stores):
        oid = stores.contact_requests.insert_one({"status": "Pending"}).inserted_id
        response = await user_client.patch(f"/data-info/{oid}", json={"status": "Approve"})
        assert response.status_code == 200
        assert stores.contact_requests.find_one({"_id": oid})["status"] == "Approve"


class TestFavourites:

    @pytest.mark.asyncio
    async def test_add_list_delete(self, user_client, stores):
        response = await user_client.post("/favourites", json={"email": "user@example.com", "biodataId": 2})
        favourite_id = response.json()["insertedId"]

        response = await user_client.get("/favourites/user@example.com")
        assert [f["biodataId"] for f in response.json()] == [2]

        response = await user_client.delete(f"/orders/{favourite_id}")
        assert response.json()["deletedCount"] == 1
        assert stores.favourites.count_documents({}) == 0

        response = await user_client.delete(f"/orders/{favourite_id}")
        assert response.status_code == 404


class TestSuccessStories:

    @pytest.mark.asyncio
    async def test_sorted_by_marriage_date(self, test_client, stores):
        stores.success_stories.insert_many([
            {"marriageDate": "2023-05-01"},
            {"marriageDate": "2021-01-15"},
            {"marriageDate": "2024-11-30"},
        ])
        response = await test_client.get("/success")
        assert [s["marriageDate"] for s in response.json()] == ["2021-01-15", "2023-05-01", "2024-11-30"]

        response = await test_client.get("/success", params={"sortOrder": "descending"})
        assert [s["marriageDate"] for s in response.json()] == ["2024-11-30", "2023-05-01", "2021-01-15"]

    @pytest.mark.asyncio
    async def test_admin_listing_guarded(self, user_client):
        response = await user_client.get("/success-stories")
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_listing(self, admin_client, stores):
        stores.success_stories.insert_one({"review": "Happy"})
        response = await admin_client.get("/success-stories")
        assert [s["review"] for s in response.json()] == ["Happy"]


class TestPayments:

    @pytest.mark.asyncio
    async def test_create_intent_in_cents(self, test_client, payment_gateway):
        response = await test_client.post("/create-payment-intent", json={"price": 5.99})
        assert response.status_code == 200
        assert response.json() == {"clientSecret": "pi_123_secret_456"}
        payment_gateway.create_intent.assert_called_once_with(599)

    @pytest.mark.asyncio
    async def test_rejects_non_positive_price(self, test_client, payment_gateway):
        response = await test_client.post("/create-payment-intent", json={"price": 0})
        assert response.status_code == 400
        payment_gateway.create_intent.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("price", ["inf", "Infinity", "nan"])
    async def test_rejects_non_finite_price(self, test_client, payment_gateway, price):
        response = await test_client.post("/create-payment-intent", json={"price": price})
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_parameter"
        payment_gateway.create_intent.assert_not_called()

    @pytest.mark.asyncio
    async def test_gateway_failure_is_503(self, test_client, payment_gateway):
        payment_gateway.create_intent.side_effect = UpstreamUnavailableError(service="stripe")
        response = await test_client.post("/create-payment-intent", json={"price": 5})
        assert response.status_code == 503
        assert response.json()["error"] == "upstream_unavailable"

    @pytest.mark.asyncio
    async def test_save_payment_info(self, test_client, stores):
        response = await test_client.post(
            "/save-payment-info",
            json={"transactionId": "pi_1", "amount": 5, "email": "user@example.com"},
        )
        assert response.json()["success"] is True
        record = stores.payments.find_one({"transactionId": "pi_1"})
        assert record["amount"] == 5
        assert record["date"] is not None

    @pytest.mark.asyncio
    async def test_save_rejects_infinite_amount(self, admin_client, stores):
        response = await admin_client.post(
            "/save-payment-info",
            json={"transactionId": "pi_2", "amount": "Infinity", "email": "user@example.com"},
        )
        assert response.status_code == 400
        assert stores.payments.count_documents({}) == 0

        response = await admin_client.get("/admin-stat")
        assert response.json()["totalRevenue"] == 0


class TestAdminStats:

    @pytest.mark.asyncio
    async def test_counts_and_revenue(self, admin_client, stores):
        stores.biodata.insert_many([
            {"gender": "male"},
            {"gender": "male", "type": "premium"},
            {"gender": "female"},
        ])
        stores.payments.insert_many([{"amount": 5}, {"amount": 7.5}])

        response = await admin_client.get("/admin-stat")
        assert response.status_code == 200
        assert response.json() == {
            "totalBiodata": 3,
            "maleBiodataCount": 2,
            "femaleBiodataCount": 1,
            "premiumBiodataCount": 1,
            "totalRevenue": 12.5,
        }

    @pytest.mark.asyncio
    async def test_revenue_defaults_to_zero(self, admin_client):
        response = await admin_client.get("/admin-stat")
        assert response.json()["totalRevenue"] == 0

    @pytest.mark.asyncio
    async def test_non_admin_forbidden(self, user_client):
        response = await user_client.get("/admin-stat")
        assert response.status_code == 403
        assert response.json()["error"] == "forbidden"


class TestUpstreamFailure:

    @pytest.mark.asyncio
    async def test_store_error_maps_to_503(self, test_client, stores, monkeypatch):
        from pymongo.errors import ServerSelectionTimeoutError

        def unavailable(*args, **kwargs):
            raise ServerSelectionTimeoutError("no servers")

        monkeypatch.setattr(stores.bikes, "find", unavailable)
        response = await test_client.get("/bike")
        assert response.status_code == 503
        assert response.json()["error"] == "upstream_unavailable"
