"""Webhooks blueprint — /api/stripe/webhook

Receives Stripe webhook events. CSRF-exempt.
Raw body is required for signature verification.
"""

import logging

from flask import Blueprint, request, jsonify

from app.services.stripe_service import (
    handle_webhook_event,
    is_configured,
    parse_webhook_event,
)

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint("webhooks", __name__, url_prefix="/api/stripe")


@webhooks_bp.route("/webhook", methods=["POST"])
def stripe_webhook():
    """Receive and log Stripe webhook events.

    1. Get raw body (required for signature verification)
    2. Verify signature with STRIPE_WEBHOOK_SECRET (when set)
    3. Pass to handle_webhook_event (idempotent via stripe_events table)
    4. Return 200 to acknowledge receipt

    A failed verification is rejected before anything is logged or stored.
    CSRF is exempted for this blueprint in create_app().
    """
    if not is_configured():
        return jsonify({"error": "Stripe not configured"}), 400

    payload = request.get_data(as_text=True)
    sig_header = request.headers.get("Stripe-Signature")

    # --- Verify signature ---
    try:
        event = parse_webhook_event(payload, sig_header)
    except Exception as e:
        logger.warning(f"Webhook signature verification failed: {e}")
        return jsonify({"error": f"Webhook Error: {e}"}), 400

    # --- Log event (idempotent) ---
    success, message = handle_webhook_event(event)

    if success:
        return jsonify({"received": True, "status": message}), 200
    else:
        logger.error(f"Webhook processing failed: {message}")
        return jsonify({"error": message}), 500
