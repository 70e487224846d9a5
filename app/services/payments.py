"""
Payment reconciliation: gateway checkout initiation and the success/fail
signals that settle it.
"""
import logging
import secrets
import time
from datetime import datetime
from urllib.parse import quote

from flask import current_app

from app.errors import NotFoundError, ValidationError
from app.extensions import db
from app.models import PaymentGatewaySettings, User
from app.services import enrollment as enrollment_service
from app.services import library as library_service
from app.services.ledger import enrollments, library_purchases
from app.services.notifications import notify_enrollment_confirmed, notify_purchase_confirmed
from app.services.payment_methods import BKASH, PAY_LATER, SSLCOMMERZ, require_gateway
from app.utils.gateways import gateway_for

logger = logging.getLogger(__name__)

GATEWAY_LABELS = {SSLCOMMERZ: "SSLCommerz", BKASH: "bKash"}

SUCCESS_REDIRECT = "/student/dashboard?success=payment_completed"
FAIL_REDIRECT = "/student/dashboard?error=payment_failed"


def generate_transaction_id():
    return f"TXN{int(time.time() * 1000)}{secrets.token_hex(4).upper()}"


def list_payment_methods():
    settings = PaymentGatewaySettings.get()
    return {method: {"enabled": settings.is_enabled(method)} for method in (PAY_LATER, SSLCOMMERZ, BKASH)}


def _find_by_transaction(transaction_id):
    if not transaction_id:
        raise ValidationError("tranId is required")

    enrollment = enrollments.find_by_transaction(transaction_id)
    purchase = None if enrollment else library_purchases.find_by_transaction(transaction_id)
    if enrollment is None and purchase is None:
        raise NotFoundError("Purchase", transaction_id)
    return enrollment, purchase


def initiate_payment(student_id, method, batch_id=None, product_type=None, item_id=None,
                     item_slug=None, course_slug=None):
    """Open a gateway checkout for a course batch or a library item.

    Returns ``{"payment_url", "transaction_id"}``. The amount charged is
    always the server-side price.
    """
    require_gateway(method)

    settings = PaymentGatewaySettings.get()
    if not settings.is_enabled(method):
        raise ValidationError(f"{GATEWAY_LABELS[method]} is coming soon")

    user = db.session.get(User, student_id)
    if user is None:
        raise NotFoundError("User", student_id)

    transaction_id = generate_transaction_id()
    base_url = current_app.config["FRONTEND_URL"].rstrip("/")
    success_url = f"{base_url}/payments/success?tranId={transaction_id}&method={method}"
    fail_url = f"{base_url}/payments/fail?tranId={transaction_id}&method={method}"

    if product_type == "book":
        item = library_service.get_item(slug=item_slug, item_id=item_id)
        library_service.upsert_purchase(user.id, item, method, transaction_id=transaction_id)
        amount = item.price
        product_name, product_category = item.title, "Book"
        cancel_url = f"{base_url}/checkout?type=book&slug={quote(item.slug)}"
    else:
        enrollment = enrollment_service.create_enrollment(
            user.id, batch_id, method, transaction_id=transaction_id
        )
        course = enrollment.course
        amount = course.effective_price
        product_name, product_category = course.title, "Education"
        cancel_url = f"{base_url}/checkout?course={course_slug or course.slug}&batch={enrollment.batch_id}"

    gateway = gateway_for(method, settings)
    if method == SSLCOMMERZ:
        session = gateway.generate_session(
            total_amount=amount,
            tran_id=transaction_id,
            success_url=success_url,
            fail_url=fail_url,
            cancel_url=cancel_url,
            customer_name=user.full_name,
            customer_email=user.email,
            customer_phone=user.phone or "",
            product_name=product_name,
            product_category=product_category,
        )
        payment_url = session.redirect_url
    else:
        # The descriptor is built for the caller to send; the student lands
        # on the frontend bKash page keyed by the transaction id.
        create = gateway.create_payment(amount, transaction_id, success_url)
        logger.debug(f"bKash create request for {transaction_id}: {create.method} {create.url}")
        payment_url = f"{base_url}/payments/bkash?tranId={transaction_id}"

    logger.info(f"Payment initiated: {transaction_id} method={method} user={user.id} amount={amount}")
    return {"payment_url": payment_url, "transaction_id": transaction_id}


def confirm_payment(transaction_id, method):
    """Gateway success signal. Safe to call any number of times."""
    require_gateway(method)
    enrollment, purchase = _find_by_transaction(transaction_id)

    if enrollment is not None:
        course = enrollment.course
        amount = course.effective_price if course is not None else 0
        changed = enrollments.confirm(enrollment, amount_paid=amount)
    else:
        changed = library_purchases.confirm(purchase, approved_by=None, approved_at=datetime.utcnow())
    db.session.commit()

    notified = False
    if changed:
        if enrollment is not None:
            notified = notify_enrollment_confirmed(enrollment)
        else:
            notified = notify_purchase_confirmed(purchase)

    return {
        "enrollment_id": enrollment.id if enrollment else None,
        "library_purchase_id": purchase.id if purchase else None,
        "changed": changed,
        "notified": notified,
        "redirect_to": SUCCESS_REDIRECT,
    }


def confirm_fail(transaction_id):
    """Gateway failure signal. Never overrides a paid row."""
    enrollment, purchase = _find_by_transaction(transaction_id)

    if enrollment is not None:
        changed = enrollments.fail(enrollment)
    else:
        changed = library_purchases.fail(purchase)
    db.session.commit()

    return {
        "enrollment_id": enrollment.id if enrollment else None,
        "library_purchase_id": purchase.id if purchase else None,
        "changed": changed,
        "redirect_to": FAIL_REDIRECT,
    }


def update_gateway_settings(payload):
    """Shallow merge of the admin gateway settings form."""
    settings = PaymentGatewaySettings.get()

    sections = {
        "sslcommerz": ("enabled", "store_id", "store_password", "is_live"),
        "bkash": ("enabled", "app_key", "app_secret", "username", "password", "is_live"),
        "pay_later": ("enabled",),
    }
    for section, keys in sections.items():
        values = payload.get(section) or {}
        for key in keys:
            if key in values:
                setattr(settings, f"{section}_{key}", values[key])

    db.session.commit()
    logger.info("Payment gateway settings updated")
    return settings
