"""
Library purchase ledger: purchase requests, gateway upserts, admin approval
and download access.
"""
import logging
from datetime import datetime

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from app.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.extensions import db
from app.models import LibraryItem, LibraryPurchase
from app.models.library import PURCHASE_METHODS
from app.services.ledger import PAID, PENDING, ensure_transaction_free, library_purchases, transaction_conflict
from app.services.notifications import notify_purchase_confirmed
from app.utils.pagination import paginate

logger = logging.getLogger(__name__)


def list_items(category=None, item_format=None, search=None, members_only=False,
               authenticated=False, page=1, limit=12):
    query = LibraryItem.query
    if category:
        query = query.filter(LibraryItem.category == category)
    if item_format:
        query = query.filter(LibraryItem.format == item_format)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(LibraryItem.title.ilike(pattern), LibraryItem.description.ilike(pattern)))

    # Anonymous visitors never see members-only items
    if not authenticated:
        query = query.filter(LibraryItem.is_members_only.is_(False))
    elif members_only:
        query = query.filter(LibraryItem.is_members_only.is_(True))

    return paginate(query.order_by(LibraryItem.created_at.desc(), LibraryItem.id.desc()), page, limit)


def get_item(slug=None, item_id=None):
    item = None
    if item_id:
        item = db.session.get(LibraryItem, item_id)
    elif slug:
        item = LibraryItem.query.filter_by(slug=slug).first()
    if item is None:
        raise NotFoundError("Library item", slug or item_id)
    return item


def item_access(item, user_id=None):
    """What the given user may see of ``item``. Anonymous users pass None."""
    if item.is_members_only and user_id is None:
        raise ForbiddenError("Members-only content. Please login to access.")

    purchase = None
    if user_id is not None and item.is_paid_item:
        purchase = LibraryPurchase.query.filter_by(user_id=user_id, item_id=item.id).first()

    can_access = not item.is_paid_item or (purchase is not None and purchase.payment_status == PAID)
    exposed = bool(item.download_url) and can_access

    if purchase is not None:
        purchase_status = purchase.payment_status
    else:
        purchase_status = "none" if item.is_paid_item else "free"

    return {
        "is_paid_item": item.is_paid_item,
        "price": item.price or 0,
        "currency": item.currency or "BDT",
        "purchase_status": purchase_status,
        "can_view_pdf": exposed,
        "can_download": exposed,
    }


def upsert_purchase(user_id, item, payment_method, transaction_id="", phone_number="", note=""):
    """Reset the single (user, item) purchase row to pending with new payment details."""
    if not item.is_paid_item:
        raise ValidationError("This item is free. No purchase required.")

    purchase = LibraryPurchase.query.filter_by(user_id=user_id, item_id=item.id).first()
    if purchase is not None and purchase.payment_status == PAID:
        raise ConflictError("You already own this item", "ALREADY_PURCHASED")

    ensure_transaction_free(transaction_id, owner=purchase)

    if purchase is None:
        purchase = LibraryPurchase(user_id=user_id, item_id=item.id)
        db.session.add(purchase)

    purchase.amount = item.price
    purchase.currency = item.currency or "BDT"
    purchase.payment_method = payment_method
    purchase.transaction_id = transaction_id or None
    purchase.phone_number = phone_number or ""
    purchase.note = note or ""
    purchase.payment_status = PENDING
    purchase.approved_by = None
    purchase.approved_at = None

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        if transaction_id and library_purchases.find_by_transaction(transaction_id) is not None:
            raise transaction_conflict()
        raise ConflictError("A purchase request for this item is already being processed", "DUPLICATE_PURCHASE")

    logger.info(f"Purchase {purchase.id} pending: user={user_id} item={item.id} method={payment_method}")
    return purchase


def request_purchase(user_id, item_slug, payment_method="manual", transaction_id="", phone_number="", note=""):
    """Manual or pay-later purchase request awaiting admin approval."""
    item = get_item(slug=item_slug)

    if payment_method not in PURCHASE_METHODS:
        raise ValidationError(
            f"Invalid payment method '{payment_method}'",
            details={"allowed": list(PURCHASE_METHODS)},
        )

    if payment_method == "pay_later":
        transaction_id, phone_number = "", ""
    elif not transaction_id or not phone_number:
        raise ValidationError("Transaction ID and phone number are required.")

    return upsert_purchase(
        user_id,
        item,
        payment_method,
        transaction_id=transaction_id,
        phone_number=phone_number,
        note=note,
    )


def set_purchase_status(purchase_id, new_status, actor_id):
    """Admin approve/reject. Returns (purchase, changed)."""
    purchase = library_purchases.get(purchase_id)

    if new_status == PENDING:
        audit = {"approved_by": None, "approved_at": None}
    else:
        audit = {"approved_by": actor_id, "approved_at": datetime.utcnow()}

    changed = library_purchases.override(purchase, new_status, **audit)
    db.session.commit()

    if changed and purchase.payment_status == PAID:
        notify_purchase_confirmed(purchase)
    return purchase, changed


def list_purchases(status=None, page=1, limit=20):
    query = LibraryPurchase.query
    if status:
        query = query.filter(LibraryPurchase.payment_status == status)
    query = query.order_by(LibraryPurchase.created_at.desc(), LibraryPurchase.id.desc())
    return paginate(query, page, limit)
