"""Tests for the Stripe service and /api/stripe/* endpoints.

Covers:
- Dollar -> cent conversion (half-up rounding, invalid amounts)
- Not-configured responses
- Customer, payment intent, subscription and checkout creation
- Subscription cancel requires confirmation
- Stripe API errors become JSON 500s
- Billing endpoints are admin-only
"""

from unittest.mock import MagicMock, patch

import pytest
import stripe

from app.services import stripe_service


def _stripe_object(cls, values):
    return cls.construct_from(values, "sk_test_fake")


@pytest.fixture
def admin_client(client, seed_data, login):
    login("ada_admin", "admin123")
    return client


class TestToCents:

    @pytest.mark.parametrize("amount, cents", [
        (10, 1000),
        ("19.99", 1999),
        (0.125, 13),
        ("2.005", 201),
    ])
    def test_rounds_half_up(self, amount, cents):
        assert stripe_service.to_cents(amount) == cents

    @pytest.mark.parametrize("amount", [0, -5, "abc", None, "nan"])
    def test_invalid_amounts(self, amount):
        with pytest.raises(ValueError):
            stripe_service.to_cents(amount)


class TestStatus:

    def test_status_reports_configured(self, client):
        resp = client.get("/api/stripe/status")
        assert resp.get_json() == {"configured": True, "public_key": "pk_test_fake"}

    def test_not_configured(self, app, admin_client):
        app.config["STRIPE_SECRET_KEY"] = None
        try:
            status = admin_client.get("/api/stripe/status").get_json()
            resp = admin_client.post("/api/stripe/customers", json={"lead_id": "L1"})
        finally:
            app.config["STRIPE_SECRET_KEY"] = "sk_test_fake"
        assert status["configured"] is False
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Stripe not configured"}

    def test_service_raises_when_not_configured(self, app):
        app.config["STRIPE_SECRET_KEY"] = None
        try:
            with pytest.raises(stripe_service.StripeNotConfigured):
                stripe_service.list_prices()
        finally:
            app.config["STRIPE_SECRET_KEY"] = "sk_test_fake"


class TestCustomersAndPayments:

    @patch("app.services.stripe_service.stripe")
    def test_create_customer_tags_lead(self, mock_stripe, admin_client):
        mock_stripe.Customer.create.return_value = _stripe_object(
            stripe.Customer, {"id": "cus_123", "name": "Acme"},
        )

        resp = admin_client.post("/api/stripe/customers", json={
            "lead_id": "L1", "name": "Acme", "email": "a@acme.test", "address": "1 Main St",
        })

        assert resp.status_code == 200
        assert resp.get_json()["customer_id"] == "cus_123"
        kwargs = mock_stripe.Customer.create.call_args.kwargs
        assert kwargs["metadata"] == {"leadId": "L1"}
        assert kwargs["address"] == {"line1": "1 Main St"}
        assert "phone" not in kwargs

    @patch("app.services.stripe_service.stripe")
    def test_payment_intent_in_cents(self, mock_stripe, admin_client):
        mock_stripe.PaymentIntent.create.return_value = MagicMock(
            id="pi_1", client_secret="pi_1_secret",
        )

        resp = admin_client.post("/api/stripe/payment-intent", json={
            "amount": "49.99", "customer_id": "cus_123", "lead_id": "L1",
        })

        assert resp.get_json() == {
            "success": True, "client_secret": "pi_1_secret", "payment_intent_id": "pi_1",
        }
        kwargs = mock_stripe.PaymentIntent.create.call_args.kwargs
        assert kwargs["amount"] == 4999
        assert kwargs["currency"] == "usd"

    def test_bad_amount_is_400(self, admin_client):
        resp = admin_client.post("/api/stripe/payment-intent", json={"amount": -1})
        assert resp.status_code == 400

    @patch("app.services.stripe_service.stripe")
    def test_stripe_error_is_500(self, mock_stripe, admin_client):
        mock_stripe.PaymentIntent.create.side_effect = stripe.error.InvalidRequestError(
            "No such customer: cus_missing", "customer",
        )
        resp = admin_client.post("/api/stripe/payment-intent", json={
            "amount": 10, "customer_id": "cus_missing",
        })
        assert resp.status_code == 500
        assert "No such customer" in resp.get_json()["error"]

    @patch("app.services.stripe_service.stripe")
    def test_payment_history(self, mock_stripe, admin_client):
        mock_stripe.PaymentIntent.list.return_value = MagicMock(
            data=[_stripe_object(stripe.PaymentIntent, {"id": "pi_1", "amount": 4999})],
        )
        mock_stripe.Charge.list.return_value = MagicMock(
            data=[_stripe_object(stripe.Charge, {"id": "ch_1", "paid": True})],
        )

        resp = admin_client.get("/api/stripe/customers/cus_123/payments")

        assert resp.get_json() == {
            "success": True,
            "payments": [{"id": "pi_1", "amount": 4999}],
            "charges": [{"id": "ch_1", "paid": True}],
        }


class TestSubscriptions:

    @patch("app.services.stripe_service.stripe")
    def test_create_subscription_returns_client_secret(self, mock_stripe, admin_client):
        mock_stripe.Subscription.create.return_value = _stripe_object(stripe.Subscription, {
            "id": "sub_1",
            "status": "incomplete",
            "latest_invoice": {"id": "in_1", "payment_intent": {"client_secret": "sec_1"}},
        })

        resp = admin_client.post("/api/stripe/subscriptions", json={
            "customer_id": "cus_123", "price_id": "price_1",
        })

        assert resp.get_json() == {
            "success": True, "subscription_id": "sub_1",
            "client_secret": "sec_1", "status": "incomplete",
        }

    def test_subscription_needs_customer_and_price(self, admin_client):
        resp = admin_client.post("/api/stripe/subscriptions", json={"customer_id": "cus_1"})
        assert resp.status_code == 400

    @patch("app.services.stripe_service.stripe")
    def test_cancel_requires_confirmation(self, mock_stripe, admin_client):
        mock_stripe.Subscription.cancel.return_value = _stripe_object(
            stripe.Subscription, {"id": "sub_1", "status": "canceled"},
        )

        resp = admin_client.delete("/api/stripe/subscriptions/sub_1")
        assert resp.status_code == 409
        mock_stripe.Subscription.cancel.assert_not_called()

        resp = admin_client.delete("/api/stripe/subscriptions/sub_1?confirm=true")
        assert resp.get_json() == {"success": True, "status": "canceled"}
        mock_stripe.Subscription.cancel.assert_called_once_with("sub_1")

    @patch("app.services.stripe_service.stripe")
    def test_list_subscriptions_serializes(self, mock_stripe, admin_client):
        mock_stripe.Subscription.list.return_value = MagicMock(data=[
            _stripe_object(stripe.Subscription, {
                "id": "sub_1", "status": "active",
                "items": {"object": "list", "data": [{"id": "si_1", "price": {"id": "price_1"}}]},
            }),
        ])

        resp = admin_client.get("/api/stripe/customers/cus_123/subscriptions")

        assert resp.status_code == 200
        sub = resp.get_json()["subscriptions"][0]
        assert sub["status"] == "active"
        assert sub["items"]["data"][0]["price"]["id"] == "price_1"

    @patch("app.services.stripe_service.stripe")
    def test_cancel_reads_status_from_stripe_object(self, mock_stripe, app):
        mock_stripe.Subscription.cancel.return_value = _stripe_object(
            stripe.Subscription, {"id": "sub_9", "status": "canceled"},
        )
        with app.app_context():
            subscription = stripe_service.cancel_subscription("sub_9")
        assert subscription.status == "canceled"

    def test_rep_cannot_manage_subscriptions(self, client, seed_data, login):
        login("sam_rep", "rep123")
        resp = client.post("/api/stripe/subscriptions", json={"customer_id": "c", "price_id": "p"})
        assert resp.status_code == 403


class TestCheckout:

    @patch("app.services.stripe_service.stripe")
    def test_one_time_checkout(self, mock_stripe, admin_client):
        mock_stripe.checkout.Session.create.return_value = MagicMock(
            id="cs_1", url="https://checkout.stripe.com/c/cs_1",
        )

        resp = admin_client.post("/api/stripe/checkout", json={
            "lead_id": "L1", "amount": 250, "description": "Website build",
        })

        assert resp.get_json()["url"] == "https://checkout.stripe.com/c/cs_1"
        kwargs = mock_stripe.checkout.Session.create.call_args.kwargs
        assert kwargs["mode"] == "payment"
        assert kwargs["line_items"][0]["price_data"]["unit_amount"] == 25000
        assert kwargs["success_url"] == "http://localhost:5000/crm?payment=success"
        assert "customer" not in kwargs

    @patch("app.services.stripe_service.stripe")
    def test_subscription_checkout(self, mock_stripe, admin_client):
        mock_stripe.checkout.Session.create.return_value = MagicMock(id="cs_2", url="u")

        admin_client.post("/api/stripe/checkout", json={
            "customer_id": "cus_1", "is_subscription": True, "price_id": "price_1",
        })

        kwargs = mock_stripe.checkout.Session.create.call_args.kwargs
        assert kwargs["mode"] == "subscription"
        assert kwargs["line_items"] == [{"price": "price_1", "quantity": 1}]
        assert kwargs["customer"] == "cus_1"

    def test_rep_cannot_view_billing(self, client, seed_data, login):
        login("sam_rep", "rep123")
        assert client.get("/api/stripe/prices").status_code == 403


class TestPrices:

    @patch("app.services.stripe_service.stripe")
    def test_prices_expand_product(self, mock_stripe, admin_client):
        mock_stripe.Price.list.return_value = MagicMock(data=[
            _stripe_object(stripe.Price, {
                "id": "price_1", "unit_amount": 5900,
                "product": {"id": "prod_1", "name": "Website care"},
            }),
        ])

        resp = admin_client.get("/api/stripe/prices")

        assert resp.status_code == 200
        assert resp.get_json()["prices"] == [{
            "id": "price_1", "unit_amount": 5900,
            "product": {"id": "prod_1", "name": "Website care"},
        }]
