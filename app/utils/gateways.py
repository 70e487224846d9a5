"""
Outbound request descriptors for the SSLCommerz and bKash gateways.

Nothing here talks to the network. Each method returns a ``GatewayRequest``
describing the call; redirect URLs are built with ``requests``.
"""
from collections import namedtuple

import requests
from flask import current_app

BKASH_API_VERSION = "v1.2.0-beta"


class GatewayRequest(namedtuple("GatewayRequest", ["url", "method", "data", "params", "headers"])):
    __slots__ = ()

    @property
    def redirect_url(self):
        """The session URL with the form data encoded as its query string."""
        params = dict(self.params or {})
        params.update(self.data or {})
        return requests.Request("GET", self.url, params=params).prepare().url


def _request(url, method, data=None, params=None, headers=None):
    return GatewayRequest(url, method, data, params, headers or {})


def _setting(settings, attr, config_key):
    value = getattr(settings, attr, None) if settings is not None else None
    return value or current_app.config.get(config_key)


def _live(settings, attr, config_key):
    if settings is not None and isinstance(getattr(settings, attr, None), bool):
        return getattr(settings, attr)
    return bool(current_app.config.get(config_key))


class SSLCommerzGateway:
    def __init__(self, settings=None):
        # Admin settings first, then environment config
        self.store_id = _setting(settings, "sslcommerz_store_id", "SSLCOMMERZ_STORE_ID")
        self.store_password = _setting(settings, "sslcommerz_store_password", "SSLCOMMERZ_STORE_PASSWORD")
        self.is_live = _live(settings, "sslcommerz_is_live", "SSLCOMMERZ_IS_LIVE")
        self.base_url = (
            "https://securepay.sslcommerz.com" if self.is_live else "https://sandbox.sslcommerz.com"
        )

    def generate_session(self, total_amount, tran_id, success_url, fail_url, cancel_url,
                         customer_name="", customer_email="", customer_phone="",
                         customer_address="", product_name="", product_category="",
                         currency="BDT", product_profile="general"):
        data = {
            "store_id": self.store_id,
            "store_passwd": self.store_password,
            "total_amount": total_amount,
            "currency": currency,
            "tran_id": tran_id,
            "success_url": success_url,
            "fail_url": fail_url,
            "cancel_url": cancel_url,
            "cus_name": customer_name,
            "cus_email": customer_email,
            "cus_phone": customer_phone,
            "cus_add1": customer_address,
            "product_name": product_name,
            "product_category": product_category,
            "product_profile": product_profile,
        }
        return _request(f"{self.base_url}/gwprocess/v4/api.php", "POST", data=data)


class BkashGateway:
    def __init__(self, settings=None):
        self.app_key = _setting(settings, "bkash_app_key", "BKASH_APP_KEY")
        self.is_live = _live(settings, "bkash_is_live", "BKASH_IS_LIVE")
        self.base_url = (
            "https://tokenized.pay.bka.sh" if self.is_live else "https://tokenized.sandbox.bka.sh"
        )

    def _url(self, path):
        return f"{self.base_url}/{BKASH_API_VERSION}/tokenized/checkout/{path}"

    def _auth_headers(self, token):
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": f"Bearer {token}",
            "X-APP-Key": self.app_key,
        }

    def create_payment(self, amount, merchant_invoice_number, callback_url,
                       currency="BDT", intent="sale", token="{token}"):
        data = {
            "amount": amount,
            "currency": currency,
            "intent": intent,
            "merchantInvoiceNumber": merchant_invoice_number,
            "callbackURL": callback_url,
        }
        return _request(
            self._url("payment/create"), "POST", data=data, headers=self._auth_headers(token)
        )


GATEWAYS = {
    "sslcommerz": SSLCommerzGateway,
    "bkash": BkashGateway,
}


def gateway_for(method, settings=None):
    return GATEWAYS[method](settings)
