"""
HTTP surface tests: auth, method handling, CORS and the ledger endpoints.
"""
import pytest

from models import ActivationRequest, AdminPayout, Withdrawal, RequestStatus
from ledger.activation import ActivationLedger


class TestAuth:

    def test_missing_token(self, client):
        response = client.post("/api/submitActivationRequest", json={"utrNumber": "123456789012"})
        assert response.status_code == 401
        assert response.get_json() == {"error": "No authentication token provided"}

    def test_garbage_token(self, client):
        response = client.post(
            "/api/submitActivationRequest",
            json={"utrNumber": "123456789012"},
            headers={"Authorization": "Bearer not-a-real-token"},
        )
        assert response.status_code == 401
        assert response.get_json() == {"error": "Invalid token"}

    def test_token_for_deleted_user(self, client, factory):
        headers = factory.headers(987654)
        response = client.post("/api/submitActivationRequest", json={"utrNumber": "123456789012"}, headers=headers)
        assert response.status_code == 404
        assert response.get_json() == {"error": "User not found"}

    def test_non_admin_is_forbidden(self, client, factory):
        user_id = factory.user()
        response = client.post("/api/approveActivation", json={"requestId": 1}, headers=factory.headers(user_id))
        assert response.status_code == 403
        assert response.get_json() == {"error": "Admin access required"}

    def test_admin_route_without_token(self, client):
        response = client.post("/api/approveWithdrawal", json={"withdrawalId": 1})
        assert response.status_code == 401

    def test_tokens_are_per_request(self, client, factory):
        admin_id = factory.admin()
        user_id = factory.user()

        assert client.get("/api/admin/dashboard", headers=factory.headers(admin_id)).status_code == 200
        assert client.get("/api/admin/dashboard", headers=factory.headers(user_id)).status_code == 403
        assert client.get("/api/admin/dashboard").status_code == 401


class TestMethods:

    @pytest.mark.parametrize("path", [
        "/api/submitActivationRequest",
        "/api/approveActivation",
        "/api/rejectActivation",
        "/api/createWithdrawalRequest",
        "/api/approveWithdrawal",
        "/api/rejectWithdrawal",
        "/api/submitSupportTicket",
        "/api/sendSupportEmail",
    ])
    def test_get_is_not_allowed(self, client, path):
        response = client.get(path)
        assert response.status_code == 405
        assert response.get_json() == {"error": "Method not allowed"}

    def test_options_preflight(self, client):
        response = client.options(
            "/api/approveActivation",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Authorization, Content-Type",
            },
        )
        assert response.status_code == 200
        assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:3000"
        assert response.headers["Access-Control-Allow-Credentials"] == "true"

    def test_unlisted_origin_gets_no_cors_headers(self, client):
        response = client.options(
            "/api/approveActivation",
            headers={"Origin": "https://evil.example", "Access-Control-Request-Method": "POST"},
        )
        assert "Access-Control-Allow-Origin" not in response.headers

    def test_unknown_route_is_json(self, client):
        response = client.get("/api/nope")
        assert response.status_code == 404
        assert response.get_json() == {"error": "Not found"}

    def test_unexpected_error_is_opaque(self, client, factory, monkeypatch):
        user_id = factory.user()

        def explode(*args, **kwargs):
            raise RuntimeError("connection string with password=hunter2")

        monkeypatch.setattr(ActivationLedger, "submit_request", staticmethod(explode))
        response = client.post(
            "/api/submitActivationRequest",
            json={"utrNumber": "123456789012"},
            headers=factory.headers(user_id),
        )
        assert response.status_code == 500
        assert response.get_json() == {"error": "Internal server error"}

    def test_healthz(self, client):
        response = client.get("/healthz")
        assert response.status_code == 200
        assert response.get_json()["status"] == "ok"


class TestActivationEndpoints:

    def test_full_activation_flow(self, client, factory):
        admin_id = factory.admin()
        referrer_id = factory.user(name="Referrer", active=True)
        user_id = factory.user(name="Newbie", referrer_id=referrer_id)

        response = client.post(
            "/api/submitActivationRequest",
            json={"utrNumber": "ABCDEFGHIJKL"},
            headers=factory.headers(user_id),
        )
        assert response.status_code == 200
        assert response.get_json() == {
            "success": True,
            "message": "Activation request submitted! Admin will verify your payment.",
        }

        request_id = factory.get(ActivationRequest, 1).id
        response = client.post(
            "/api/approveActivation",
            json={"requestId": request_id},
            headers=factory.headers(admin_id),
        )
        assert response.status_code == 200
        assert response.get_json() == {"success": True, "message": "Activation approved successfully"}

        assert factory.balance(referrer_id) == 10
        assert factory.balance(admin_id) == 10
        assert factory.balance(user_id) == 0

        again = client.post(
            "/api/approveActivation",
            json={"requestId": request_id},
            headers=factory.headers(admin_id),
        )
        assert again.status_code == 400
        assert again.get_json() == {"error": "Request already processed"}

    def test_missing_request_id(self, client, factory):
        admin_id = factory.admin()
        for path in ("/api/approveActivation", "/api/rejectActivation"):
            response = client.post(path, json={}, headers=factory.headers(admin_id))
            assert response.status_code == 400
            assert response.get_json() == {"error": "Request ID is required"}

    def test_unknown_request_id(self, client, factory):
        admin_id = factory.admin()
        response = client.post("/api/approveActivation", json={"requestId": 404}, headers=factory.headers(admin_id))
        assert response.status_code == 404
        assert response.get_json() == {"error": "Request not found"}

    def test_reject_endpoint(self, client, factory):
        admin_id = factory.admin()
        user_id = factory.user()
        client.post("/api/submitActivationRequest", json={"utrNumber": "123456789012"}, headers=factory.headers(user_id))

        response = client.post(
            "/api/rejectActivation",
            json={"requestId": 1, "reason": "UTR not found in statement"},
            headers=factory.headers(admin_id),
        )
        assert response.status_code == 200
        assert response.get_json()["message"] == "Activation rejected"
        assert factory.get(ActivationRequest, 1).status == RequestStatus.REJECTED.value

    def test_short_utr(self, client, factory):
        user_id = factory.user()
        response = client.post("/api/submitActivationRequest", json={"utrNumber": "123"}, headers=factory.headers(user_id))
        assert response.status_code == 400
        assert response.get_json() == {"error": "Invalid UTR number. Must be at least 12 characters."}

    def test_body_must_be_json(self, client, factory):
        user_id = factory.user()
        response = client.post(
            "/api/submitActivationRequest",
            data="utrNumber=123456789012",
            headers=factory.headers(user_id),
        )
        assert response.status_code == 400
        assert response.get_json() == {"error": "Invalid or missing JSON body"}


class TestWithdrawalEndpoints:

    def test_request_and_approve(self, client, factory):
        admin_id = factory.admin()
        user_id = factory.user(balance=6000)

        response = client.post(
            "/api/createWithdrawalRequest",
            json={"amount": 5000, "upiId": "rahul@okaxis"},
            headers=factory.headers(user_id),
        )
        assert response.status_code == 200
        assert response.get_json() == {"success": True, "message": "Withdrawal request submitted"}

        response = client.post(
            "/api/approveWithdrawal",
            json={"withdrawalId": 1, "adminNote": "Paid via IMPS"},
            headers=factory.headers(admin_id),
        )
        assert response.status_code == 200
        assert response.get_json() == {"success": True, "message": "Withdrawal approved"}
        assert factory.balance(user_id) == 1000
        assert factory.get(Withdrawal, 1).admin_note == "Paid via IMPS"

    def test_request_and_reject(self, client, factory):
        admin_id = factory.admin()
        user_id = factory.user(balance=6000)
        client.post(
            "/api/createWithdrawalRequest",
            json={"amount": 5000, "upiId": "rahul@okaxis"},
            headers=factory.headers(user_id),
        )

        response = client.post(
            "/api/rejectWithdrawal",
            json={"withdrawalId": 1, "reason": "Suspicious activity"},
            headers=factory.headers(admin_id),
        )
        assert response.status_code == 200
        assert factory.balance(user_id) == 6000

    @pytest.mark.parametrize("body,error", [
        ({"amount": 50, "upiId": "rahul@okaxis"}, "Minimum withdrawal is ₹100"),
        ({"amount": 20000, "upiId": "rahul@okaxis"}, "Maximum withdrawal is ₹10000"),
        ({"amount": 500, "upiId": "not-an-upi"}, "Invalid UPI ID format"),
        ({"amount": 7000, "upiId": "rahul@okaxis"}, "Insufficient balance"),
    ])
    def test_rejected_requests(self, client, factory, body, error):
        user_id = factory.user(balance=6000)
        response = client.post("/api/createWithdrawalRequest", json=body, headers=factory.headers(user_id))
        assert response.status_code == 400
        assert response.get_json() == {"error": error}

    def test_missing_withdrawal_id(self, client, factory):
        admin_id = factory.admin()
        response = client.post("/api/approveWithdrawal", json={"adminNote": "x"}, headers=factory.headers(admin_id))
        assert response.status_code == 400
        assert response.get_json() == {"error": "Withdrawal ID is required"}


class TestReadEndpoints:

    def test_profile_and_history(self, client, factory):
        admin_id = factory.admin()
        user_id = factory.user(name="Reader", balance=0)
        client.post("/api/submitActivationRequest", json={"utrNumber": "123456789012"}, headers=factory.headers(user_id))
        client.post("/api/approveActivation", json={"requestId": 1}, headers=factory.headers(admin_id))

        profile = client.get("/api/user/profile", headers=factory.headers(user_id)).get_json()
        assert profile["wallet"]["balance"] == 10
        assert profile["isReferralActive"] is True
        assert profile["referralLink"].startswith("http://localhost:3000/register?ref=")

        history = client.get("/api/user/transactions", headers=factory.headers(user_id)).get_json()
        assert history["balance"] == 10
        assert [t["type"] for t in history["transactions"]] == ["ACTIVATION_PAYMENT"]

        withdrawals = client.get("/api/user/withdrawals", headers=factory.headers(user_id)).get_json()
        assert withdrawals == {"withdrawals": []}

    def test_admin_views(self, client, factory):
        admin_id = factory.admin()
        user_id = factory.user()
        client.post("/api/submitActivationRequest", json={"utrNumber": "123456789012"}, headers=factory.headers(user_id))

        queue = client.get("/api/admin/activation-requests", headers=factory.headers(admin_id)).get_json()
        assert [r["utrNumber"] for r in queue["requests"]] == ["123456789012"]

        client.post("/api/approveActivation", json={"requestId": 1}, headers=factory.headers(admin_id))

        earnings = client.get("/api/admin/earnings", headers=factory.headers(admin_id)).get_json()
        assert earnings == {
            "totalEarnings": 10,
            "totalActivations": 1,
            "adminUserId": admin_id,
            "adminWalletBalance": 10,
        }

        dashboard = client.get("/api/admin/dashboard", headers=factory.headers(admin_id)).get_json()
        assert dashboard["activations"] == {"pending": 0, "approved": 1, "rejected": 0}
        assert dashboard["users"]["active"] == 1

        users = client.get("/api/admin/users", headers=factory.headers(admin_id)).get_json()
        assert len(users["users"]) == 2


class TestRecordIds:

    @pytest.mark.parametrize("request_id", [1.9, 1.5, "1.5", "abc", "", -1, 0, True, [1], {"id": 1}])
    def test_malformed_request_id_moves_nothing(self, client, factory, request_id):
        admin_id = factory.admin()
        user_id = factory.user()
        client.post("/api/submitActivationRequest", json={"utrNumber": "123456789012"}, headers=factory.headers(user_id))

        response = client.post(
            "/api/approveActivation",
            json={"requestId": request_id},
            headers=factory.headers(admin_id),
        )
        assert response.status_code == 400
        assert response.get_json() == {"error": "Request ID is required"}

        assert factory.get(ActivationRequest, 1).status == RequestStatus.PENDING.value
        assert factory.balance(user_id) == 0
        assert factory.balance(admin_id) == 0

    @pytest.mark.parametrize("request_id", ["1", " 1 ", 1.0])
    def test_whole_number_forms_are_accepted(self, client, factory, request_id):
        admin_id = factory.admin()
        user_id = factory.user()
        client.post("/api/submitActivationRequest", json={"utrNumber": "123456789012"}, headers=factory.headers(user_id))

        response = client.post(
            "/api/approveActivation",
            json={"requestId": request_id},
            headers=factory.headers(admin_id),
        )
        assert response.status_code == 200
        assert factory.balance(user_id) == 10

    def test_fractional_withdrawal_id(self, client, factory):
        admin_id = factory.admin()
        user_id = factory.user(balance=6000)
        client.post(
            "/api/createWithdrawalRequest",
            json={"amount": 5000, "upiId": "rahul@okaxis"},
            headers=factory.headers(user_id),
        )

        for path in ("/api/approveWithdrawal", "/api/rejectWithdrawal"):
            response = client.post(path, json={"withdrawalId": 1.2}, headers=factory.headers(admin_id))
            assert response.status_code == 400
            assert response.get_json() == {"error": "Withdrawal ID is required"}

        assert factory.get(Withdrawal, 1).status == RequestStatus.PENDING.value
        assert factory.balance(user_id) == 6000


BANK = {
    "accountNumber": "123456789012",
    "ifscCode": "HDFC0001234",
    "accountHolderName": "Platform Admin",
    "bankName": "HDFC Bank",
}


class TestAdminEarningsPayout:

    def test_withdraw_earnings(self, client, factory):
        admin_id = factory.admin(balance=15000)

        response = client.post(
            "/api/admin/earnings/withdraw",
            json={"amount": 12000, "bankDetails": BANK},
            headers=factory.headers(admin_id),
        )
        assert response.status_code == 200
        assert response.get_json() == {"success": True, "message": "Withdrawal processed successfully!"}
        assert factory.balance(admin_id) == 3000
        assert factory.get(AdminPayout, 1).amount == 12000

        listing = client.get("/api/admin/earnings/withdrawals", headers=factory.headers(admin_id)).get_json()
        assert len(listing["withdrawals"]) == 1
        assert listing["withdrawals"][0]["bankDetails"]["accountNumber"] == "****9012"
        assert listing["withdrawals"][0]["status"] == "APPROVED"

    @pytest.mark.parametrize("body,error", [
        ({"amount": 50, "bankDetails": BANK}, "Minimum withdrawal is ₹100"),
        ({"amount": 500}, "Please fill all bank details"),
        ({"amount": 20000, "bankDetails": BANK}, "Insufficient balance"),
    ])
    def test_refused_payouts(self, client, factory, body, error):
        admin_id = factory.admin(balance=15000)
        response = client.post("/api/admin/earnings/withdraw", json=body, headers=factory.headers(admin_id))
        assert response.status_code == 400
        assert response.get_json() == {"error": error}
        assert factory.balance(admin_id) == 15000

    def test_users_cannot_withdraw_earnings(self, client, factory):
        user_id = factory.user(balance=5000)
        response = client.post(
            "/api/admin/earnings/withdraw",
            json={"amount": 500, "bankDetails": BANK},
            headers=factory.headers(user_id),
        )
        assert response.status_code == 403
        assert factory.balance(user_id) == 5000


class TestAdminTransactions:

    def _activate_referred_user(self, client, factory):
        admin_id = factory.admin()
        referrer_id = factory.user(name="Referrer", active=True)
        user_id = factory.user(name="Newbie", referrer_id=referrer_id)
        client.post("/api/submitActivationRequest", json={"utrNumber": "123456789012"}, headers=factory.headers(user_id))
        client.post("/api/approveActivation", json={"requestId": 1}, headers=factory.headers(admin_id))
        return admin_id, referrer_id, user_id

    def test_lists_every_user(self, client, factory):
        admin_id, referrer_id, user_id = self._activate_referred_user(client, factory)

        body = client.get("/api/admin/transactions", headers=factory.headers(admin_id)).get_json()

        assert {(t["userId"], t["type"]) for t in body["transactions"]} == {
            (user_id, "ACTIVATION_PAYMENT"),
            (referrer_id, "REFERRAL_BONUS"),
            (admin_id, "PLATFORM_FEE"),
        }
        assert body["totals"] == {"credits": 10, "debits": 0}

    def test_type_filter(self, client, factory):
        admin_id, referrer_id, _ = self._activate_referred_user(client, factory)

        body = client.get(
            "/api/admin/transactions?type=referral_bonus",
            headers=factory.headers(admin_id),
        ).get_json()

        assert [(t["userId"], t["amount"]) for t in body["transactions"]] == [(referrer_id, 10)]

    def test_unknown_type(self, client, factory):
        admin_id = factory.admin()
        response = client.get("/api/admin/transactions?type=BONUS", headers=factory.headers(admin_id))
        assert response.status_code == 400
        assert response.get_json() == {"error": "Invalid transaction type"}

    def test_admin_only(self, client, factory):
        user_id = factory.user()
        response = client.get("/api/admin/transactions", headers=factory.headers(user_id))
        assert response.status_code == 403
