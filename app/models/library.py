from app.extensions import db
from datetime import datetime

PURCHASE_STATUSES = ("pending", "paid", "failed", "rejected")
PURCHASE_METHODS = ("pay_later", "manual", "bkash", "nagad", "rocket", "sslcommerz", "other")
LIBRARY_FORMATS = ("pdf", "link", "video", "other")


class LibraryItem(db.Model):
    __tablename__ = "library_item"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(200), unique=True, nullable=False)
    category = db.Column(db.String(50), nullable=False, default="Other")
    format = db.Column(db.Enum(*LIBRARY_FORMATS, name="library_format"), nullable=False, default="pdf")
    description = db.Column(db.Text, default="")
    cover_image = db.Column(db.String(255), default="")
    download_url = db.Column(db.String(255), default="")
    external_url = db.Column(db.String(255), default="")
    is_members_only = db.Column(db.Boolean, default=False)
    price = db.Column(db.Float, default=0.0)
    currency = db.Column(db.String(10), default="BDT")
    author = db.Column(db.String(120), default="")
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    @property
    def is_paid_item(self):
        return (self.price or 0) > 0

    def to_dict(self, expose_download=True):
        return {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "category": self.category,
            "format": self.format,
            "description": self.description,
            "cover_image": self.cover_image,
            "download_url": self.download_url if expose_download else "",
            "external_url": self.external_url,
            "is_members_only": self.is_members_only,
            "price": self.price or 0,
            "currency": self.currency or "BDT",
            "author": self.author,
        }


class LibraryPurchase(db.Model):
    __tablename__ = "library_purchase"
    # One row per user+item; repeated attempts update it in place
    __table_args__ = (db.UniqueConstraint("user_id", "item_id", name="uq_library_purchase_user_item"),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("library_item.id"), nullable=False, index=True)
    amount = db.Column(db.Float, default=0.0)
    currency = db.Column(db.String(10), default="BDT")
    payment_method = db.Column(db.Enum(*PURCHASE_METHODS, name="purchase_payment_method"), nullable=False, default="manual")
    payment_status = db.Column(
        db.Enum(*PURCHASE_STATUSES, name="purchase_payment_status"),
        nullable=False,
        default="pending",
        index=True,
    )
    transaction_id = db.Column(db.String(64), unique=True, nullable=True)
    phone_number = db.Column(db.String(50), default="")
    note = db.Column(db.Text, default="")
    approved_by = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)
    approved_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship("User", foreign_keys=[user_id])
    item = db.relationship("LibraryItem")

    def to_dict(self):
        return {
            "id": self.id,
            "user": self.user.to_summary() if self.user else None,
            "item": {"id": self.item.id, "title": self.item.title, "slug": self.item.slug} if self.item else None,
            "amount": self.amount,
            "currency": self.currency,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "transaction_id": self.transaction_id,
            "phone_number": self.phone_number,
            "note": self.note,
            "approved_by": self.approved_by,
            "approved_at": self.approved_at.isoformat() if self.approved_at else None,
        }
