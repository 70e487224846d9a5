from app.extensions import db
from datetime import datetime


class PaymentGatewaySettings(db.Model):
    """Single-row table holding the admin-managed gateway configuration."""

    __tablename__ = "payment_gateway_settings"

    id = db.Column(db.Integer, primary_key=True)

    sslcommerz_enabled = db.Column(db.Boolean, default=False)
    sslcommerz_store_id = db.Column(db.String(120), default="")
    sslcommerz_store_password = db.Column(db.String(120), default="")
    sslcommerz_is_live = db.Column(db.Boolean, default=False)

    bkash_enabled = db.Column(db.Boolean, default=False)
    bkash_app_key = db.Column(db.String(120), default="")
    bkash_app_secret = db.Column(db.String(120), default="")
    bkash_username = db.Column(db.String(120), default="")
    bkash_password = db.Column(db.String(120), default="")
    bkash_is_live = db.Column(db.Boolean, default=False)

    pay_later_enabled = db.Column(db.Boolean, default=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @classmethod
    def get(cls):
        settings = cls.query.first()

        # Auto-create default if missing
        if not settings:
            settings = cls()
            db.session.add(settings)
            db.session.commit()
        return settings

    def is_enabled(self, method):
        return {
            "pay_later": self.pay_later_enabled is not False,
            "sslcommerz": bool(self.sslcommerz_enabled),
            "bkash": bool(self.bkash_enabled),
        }.get(method, False)

    def to_dict(self):
        return {
            "sslcommerz": {
                "enabled": bool(self.sslcommerz_enabled),
                "store_id": self.sslcommerz_store_id,
                "store_password": self.sslcommerz_store_password,
                "is_live": bool(self.sslcommerz_is_live),
            },
            "bkash": {
                "enabled": bool(self.bkash_enabled),
                "app_key": self.bkash_app_key,
                "app_secret": self.bkash_app_secret,
                "username": self.bkash_username,
                "password": self.bkash_password,
                "is_live": bool(self.bkash_is_live),
            },
            "pay_later": {"enabled": self.pay_later_enabled is not False},
        }
