"""Stripe service — all Stripe API calls and webhook handling.

Responsible for:
- Reporting whether Stripe is configured
- Customers, one-time payments (Payment Intents) and subscriptions
- Hosted Checkout Sessions (one-time or subscription mode)
- Payment history and price listing
- Verifying and logging incoming webhooks (idempotent via stripe_events)

Stripe is optional: every public call raises StripeNotConfigured when no
secret key is set, and the blueprint turns that into a structured response.

Webhook events are logged only. They are NOT applied to lead records yet.
"""

import json
import logging
from decimal import ROUND_HALF_UP, Decimal

import stripe
from flask import current_app

from app.extensions import db
from app.models.stripe_event import StripeEvent

logger = logging.getLogger(__name__)


class StripeNotConfigured(Exception):
    """STRIPE_SECRET_KEY is not set."""


def is_configured():
    return bool(current_app.config.get("STRIPE_SECRET_KEY"))


def get_status():
    return {
        "configured": is_configured(),
        "public_key": current_app.config.get("STRIPE_PUBLIC_KEY") or None,
    }


def _client():
    """Point the SDK at the configured key, or refuse."""
    if not is_configured():
        raise StripeNotConfigured("Stripe not configured")
    stripe.api_key = current_app.config["STRIPE_SECRET_KEY"]
    return stripe


def to_cents(amount):
    """Dollars -> integer cents, rounding half up."""
    try:
        value = Decimal(str(amount))
    except (ArithmeticError, ValueError):
        raise ValueError(f"Invalid amount: {amount}")
    if not value.is_finite() or value <= 0:
        raise ValueError(f"Invalid amount: {amount}")
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# ──────────────────────────────────────────────
# Customers & Payments
# ──────────────────────────────────────────────

def create_customer(lead_id, name=None, email=None, phone=None, address=None):
    """Create a Stripe customer tagged with the lead id."""
    client = _client()
    params = {
        "name": name,
        "email": email,
        "phone": phone,
        "metadata": {"leadId": lead_id or ""},
    }
    if address:
        params["address"] = {"line1": address}
    customer = client.Customer.create(**{k: v for k, v in params.items() if v is not None})
    logger.info(f"Stripe customer {customer.id} created for lead {lead_id}")
    return customer


def create_payment_intent(amount, customer_id, description=None, lead_id=None):
    client = _client()
    intent = client.PaymentIntent.create(
        amount=to_cents(amount),
        currency=current_app.config.get("STRIPE_CURRENCY", "usd"),
        customer=customer_id,
        description=description,
        metadata={"leadId": lead_id or ""},
    )
    return intent


def create_subscription(customer_id, price_id, lead_id=None):
    client = _client()
    subscription = client.Subscription.create(
        customer=customer_id,
        items=[{"price": price_id}],
        payment_behavior="default_incomplete",
        expand=["latest_invoice.payment_intent"],
        metadata={"leadId": lead_id or ""},
    )
    return subscription


def latest_client_secret(subscription):
    """client_secret of the subscription's first payment, if Stripe expanded it."""
    invoice = subscription.to_dict().get("latest_invoice") or {}
    if isinstance(invoice, str):
        return None
    intent = invoice.get("payment_intent") or {}
    if isinstance(intent, str):
        return None
    return intent.get("client_secret")


def cancel_subscription(subscription_id):
    client = _client()
    subscription = client.Subscription.cancel(subscription_id)
    logger.info(f"Subscription {subscription_id} canceled ({subscription.status})")
    return subscription


def list_payment_history(customer_id):
    """Payment intents and charges for a customer (latest 100 of each)."""
    client = _client()
    payments = client.PaymentIntent.list(customer=customer_id, limit=100)
    charges = client.Charge.list(customer=customer_id, limit=100)
    return [p.to_dict() for p in payments.data], [c.to_dict() for c in charges.data]


def list_subscriptions(customer_id):
    client = _client()
    subscriptions = client.Subscription.list(customer=customer_id, limit=10)
    return [s.to_dict() for s in subscriptions.data]


def list_prices():
    """Active prices with their products expanded (subscription plans)."""
    client = _client()
    prices = client.Price.list(active=True, limit=20, expand=["data.product"])
    return [p.to_dict() for p in prices.data]


# ──────────────────────────────────────────────
# Checkout Sessions
# ──────────────────────────────────────────────

def create_checkout_session(customer_id=None, lead_id=None, amount=None,
                            description=None, is_subscription=False,
                            price_id=None, success_url=None, cancel_url=None):
    """Create a hosted Checkout Session.

    Subscription mode when is_subscription and a price_id are given,
    otherwise a one-time payment for `amount` dollars.

    Returns the Stripe session (id + url).
    Raises ValueError on a bad amount, stripe.error.StripeError on API failures.
    """
    client = _client()
    app_base_url = current_app.config["APP_BASE_URL"]

    params = {
        "customer": customer_id,
        "payment_method_types": ["card"],
        "success_url": success_url or f"{app_base_url}/crm?payment=success",
        "cancel_url": cancel_url or f"{app_base_url}/crm?payment=cancelled",
        "metadata": {"leadId": lead_id or ""},
    }

    if is_subscription and price_id:
        params["mode"] = "subscription"
        params["line_items"] = [{"price": price_id, "quantity": 1}]
    else:
        params["mode"] = "payment"
        params["line_items"] = [{
            "price_data": {
                "currency": current_app.config.get("STRIPE_CURRENCY", "usd"),
                "product_data": {"name": description or "One-time payment"},
                "unit_amount": to_cents(amount),
            },
            "quantity": 1,
        }]

    if not customer_id:
        params.pop("customer")

    return client.checkout.Session.create(**params)


# ──────────────────────────────────────────────
# Webhook Handling
# ──────────────────────────────────────────────

def parse_webhook_event(payload, sig_header):
    """Verify the signature (when a webhook secret is set) and build the event.

    Without STRIPE_WEBHOOK_SECRET the body is trusted and parsed as JSON.
    Either way the event comes back as a plain dict.
    Raises stripe.error.SignatureVerificationError or ValueError on bad input.
    """
    webhook_secret = current_app.config.get("STRIPE_WEBHOOK_SECRET")
    if webhook_secret:
        if not sig_header:
            raise ValueError("Missing Stripe-Signature header")
        event = stripe.Webhook.construct_event(payload, sig_header, webhook_secret)
        return event.to_dict()
    return json.loads(payload)


def handle_webhook_event(event):
    """Log a verified Stripe webhook event.

    Idempotency: checks stripe_events table before logging.
    If the event was already seen, returns immediately.

    Returns (success: bool, message: str).
    """
    event_id = event.get("id")
    event_type = event.get("type", "")

    if event_id:
        existing = StripeEvent.query.filter_by(stripe_event_id=event_id).first()
        if existing:
            logger.info(f"Duplicate webhook event {event_id}, skipping")
            return True, "already_processed"

    logger.info(f"Stripe webhook event: {event_type}")
    obj = (event.get("data") or {}).get("object") or {}

    handler = _HANDLERS.get(event_type)
    if handler:
        handler(event_type, obj)
    else:
        logger.info(f"Unhandled event type: {event_type}")

    if event_id:
        db.session.add(StripeEvent(stripe_event_id=event_id, event_type=event_type))
        db.session.commit()

    return True, "processed"


# ──────────────────────────────────────────────
# Event Handlers (logging only)
# ──────────────────────────────────────────────

def _dollars(cents):
    return (cents or 0) / 100


def _log_payment_succeeded(event_type, intent):
    # TODO: record the payment on the lead named in metadata.leadId once the
    # lead billing fields have an agreed owner
    logger.info(
        f"PaymentIntent {intent.get('id')} succeeded for "
        f"{_dollars(intent.get('amount'))} {intent.get('currency')}"
    )


def _log_subscription_changed(event_type, subscription):
    action = event_type.split(".")[-1]
    logger.info(
        f"Subscription {subscription.get('id')} {action} - "
        f"Status: {subscription.get('status')}"
    )


def _log_subscription_deleted(event_type, subscription):
    logger.info(f"Subscription {subscription.get('id')} canceled")


def _log_invoice_paid(event_type, invoice):
    logger.info(f"Invoice {invoice.get('id')} paid - Amount: {_dollars(invoice.get('amount_paid'))}")


def _log_invoice_failed(event_type, invoice):
    logger.warning(f"Invoice {invoice.get('id')} payment failed")


_HANDLERS = {
    "payment_intent.succeeded": _log_payment_succeeded,
    "customer.subscription.created": _log_subscription_changed,
    "customer.subscription.updated": _log_subscription_changed,
    "customer.subscription.deleted": _log_subscription_deleted,
    "invoice.paid": _log_invoice_paid,
    "invoice.payment_failed": _log_invoice_failed,
}
