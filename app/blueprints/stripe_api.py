"""Stripe blueprint — /api/stripe/*

JSON endpoints for collecting payments from leads. When STRIPE_SECRET_KEY
is unset every endpoint except /status answers
400 {"error": "Stripe not configured"}.

Route Map:
  GET    /api/stripe/status                          — Configured? + public key
  POST   /api/stripe/customers                       — Create customer for a lead
  POST   /api/stripe/payment-intent                  — One-time payment
  POST   /api/stripe/subscriptions                   — Start subscription
  DELETE /api/stripe/subscriptions/<id>              — Cancel (confirm required)
  GET    /api/stripe/customers/<id>/payments         — Payment history
  GET    /api/stripe/customers/<id>/subscriptions    — Subscriptions
  POST   /api/stripe/checkout                        — Hosted Checkout Session
  GET    /api/stripe/prices                          — Active prices
"""

import logging
from functools import wraps

import stripe
from flask import Blueprint, jsonify, request

from app.decorators import permission_required
from app.services import stripe_service
from app.services.stripe_service import StripeNotConfigured

logger = logging.getLogger(__name__)

stripe_bp = Blueprint("stripe_api", __name__, url_prefix="/api/stripe")


def _stripe_endpoint(action):
    """Map service failures onto JSON responses, logging what failed."""

    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            if not stripe_service.is_configured():
                return jsonify({"error": "Stripe not configured"}), 400
            try:
                return f(*args, **kwargs)
            except StripeNotConfigured:
                return jsonify({"error": "Stripe not configured"}), 400
            except ValueError as e:
                return jsonify({"error": str(e)}), 400
            except stripe.error.StripeError as e:
                logger.error(f"Error {action}: {e}")
                return jsonify({"error": e.user_message or str(e)}), 500

        return decorated

    return decorator


@stripe_bp.route("/status")
def status():
    return jsonify(stripe_service.get_status())


@stripe_bp.route("/customers", methods=["POST"])
@permission_required("view_billing")
@_stripe_endpoint("creating Stripe customer")
def create_customer():
    data = request.get_json(silent=True) or {}
    customer = stripe_service.create_customer(
        data.get("lead_id"),
        name=data.get("name"),
        email=data.get("email"),
        phone=data.get("phone"),
        address=data.get("address"),
    )
    return jsonify({"success": True, "customer_id": customer.id, "customer": customer.to_dict()})


@stripe_bp.route("/payment-intent", methods=["POST"])
@permission_required("view_billing")
@_stripe_endpoint("creating payment intent")
def create_payment_intent():
    data = request.get_json(silent=True) or {}
    intent = stripe_service.create_payment_intent(
        data.get("amount"),
        data.get("customer_id"),
        description=data.get("description"),
        lead_id=data.get("lead_id"),
    )
    return jsonify({
        "success": True,
        "client_secret": intent.client_secret,
        "payment_intent_id": intent.id,
    })


@stripe_bp.route("/subscriptions", methods=["POST"])
@permission_required("manage_subscriptions")
@_stripe_endpoint("creating subscription")
def create_subscription():
    data = request.get_json(silent=True) or {}
    if not data.get("customer_id") or not data.get("price_id"):
        return jsonify({"error": "customer_id and price_id are required"}), 400
    subscription = stripe_service.create_subscription(
        data["customer_id"], data["price_id"], lead_id=data.get("lead_id"),
    )
    return jsonify({
        "success": True,
        "subscription_id": subscription.id,
        "client_secret": stripe_service.latest_client_secret(subscription),
        "status": subscription.status,
    })


@stripe_bp.route("/subscriptions/<subscription_id>", methods=["DELETE"])
@permission_required("manage_subscriptions")
@_stripe_endpoint("canceling subscription")
def cancel_subscription(subscription_id):
    data = request.get_json(silent=True) or {}
    confirmed = request.args.get("confirm", "").lower() in ("1", "true", "yes")
    if not (confirmed or data.get("confirm") is True):
        return jsonify({
            "error": "Cancellation was not confirmed",
            "confirm": f"Cancel subscription {subscription_id}?",
        }), 409
    subscription = stripe_service.cancel_subscription(subscription_id)
    return jsonify({"success": True, "status": subscription.status})


@stripe_bp.route("/customers/<customer_id>/payments")
@permission_required("view_billing")
@_stripe_endpoint("fetching payment history")
def payment_history(customer_id):
    payments, charges = stripe_service.list_payment_history(customer_id)
    return jsonify({"success": True, "payments": payments, "charges": charges})


@stripe_bp.route("/customers/<customer_id>/subscriptions")
@permission_required("view_billing")
@_stripe_endpoint("fetching subscriptions")
def subscriptions(customer_id):
    return jsonify({
        "success": True,
        "subscriptions": stripe_service.list_subscriptions(customer_id),
    })


@stripe_bp.route("/checkout", methods=["POST"])
@permission_required("view_billing")
@_stripe_endpoint("creating checkout session")
def checkout():
    data = request.get_json(silent=True) or {}
    session = stripe_service.create_checkout_session(
        customer_id=data.get("customer_id"),
        lead_id=data.get("lead_id"),
        amount=data.get("amount"),
        description=data.get("description"),
        is_subscription=bool(data.get("is_subscription")),
        price_id=data.get("price_id"),
        success_url=data.get("success_url"),
        cancel_url=data.get("cancel_url"),
    )
    return jsonify({"success": True, "session_id": session.id, "url": session.url})


@stripe_bp.route("/prices")
@permission_required("view_billing")
@_stripe_endpoint("fetching prices")
def prices():
    return jsonify({"success": True, "prices": stripe_service.list_prices()})
