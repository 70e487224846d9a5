import re
from urllib.parse import parse_qs, urlparse

import pytest

from app.errors import ConflictError, ValidationError
from app.models import Enrollment, LibraryPurchase
from app.services import payments
from app.utils.gateways import BkashGateway, SSLCommerzGateway, gateway_for


def test_transaction_id_format():
    assert re.match(r"^TXN\d{13}[0-9A-F]{8}$", payments.generate_transaction_id())


def test_sslcommerz_uses_config_fallbacks_and_sandbox(app):
    gateway = SSLCommerzGateway()
    assert gateway.store_id == "demo"
    assert gateway.base_url == "https://sandbox.sslcommerz.com"


def test_sslcommerz_settings_override_config(app, enable_gateways, db):
    enable_gateways.sslcommerz_store_id = "store-42"
    enable_gateways.sslcommerz_is_live = True
    db.session.commit()

    gateway = gateway_for("sslcommerz", enable_gateways)

    assert gateway.store_id == "store-42"
    assert gateway.base_url == "https://securepay.sslcommerz.com"


def test_sslcommerz_session_redirect_url(app):
    session = SSLCommerzGateway().generate_session(
        total_amount=3500,
        tran_id="TXN1",
        success_url="http://localhost:3000/payments/success?tranId=TXN1&method=sslcommerz",
        fail_url="http://localhost:3000/payments/fail?tranId=TXN1&method=sslcommerz",
        cancel_url="http://localhost:3000/checkout?course=costing&batch=1",
        customer_name="Rahim",
        product_name="Garment Costing",
    )

    assert session.method == "POST"
    assert session.url == "https://sandbox.sslcommerz.com/gwprocess/v4/api.php"
    query = parse_qs(urlparse(session.redirect_url).query)
    assert query["tran_id"] == ["TXN1"]
    assert query["total_amount"] == ["3500"]
    assert query["success_url"] == ["http://localhost:3000/payments/success?tranId=TXN1&method=sslcommerz"]
    assert query["product_profile"] == ["general"]


def test_bkash_create_payment_descriptor(app):
    create = BkashGateway().create_payment(1500, "TXN9", "http://localhost:3000/payments/success", token="abc")

    assert create.method == "POST"
    assert create.url == "https://tokenized.sandbox.bka.sh/v1.2.0-beta/tokenized/checkout/payment/create"
    assert create.headers["Authorization"] == "Bearer abc"
    assert create.headers["X-APP-Key"] == "demo_app_key"
    assert create.data["merchantInvoiceNumber"] == "TXN9"
    assert create.data["intent"] == "sale"


def test_payment_methods_reflect_settings(db, enable_gateways):
    enable_gateways.bkash_enabled = False
    db.session.commit()

    methods = payments.list_payment_methods()

    assert methods == {
        "pay_later": {"enabled": True},
        "sslcommerz": {"enabled": True},
        "bkash": {"enabled": False},
    }


def test_initiate_rejects_disabled_gateway(db, make_user, make_batch):
    with pytest.raises(ValidationError) as exc:
        payments.initiate_payment(make_user().id, "sslcommerz", batch_id=make_batch().id)
    assert "coming soon" in exc.value.message


def test_initiate_rejects_non_gateway_method(db, make_user, make_batch):
    with pytest.raises(ValidationError):
        payments.initiate_payment(make_user().id, "pay_later", batch_id=make_batch().id)


def test_initiate_course_checkout(db, enable_gateways, make_user, make_course, make_batch):
    batch = make_batch(course=make_course(price=5000, discount_price=4000, slug="costing"), seat_limit=1)
    student = make_user()

    result = payments.initiate_payment(student.id, "sslcommerz", batch_id=batch.id)

    enrollment = Enrollment.query.filter_by(student_id=student.id).one()
    assert enrollment.transaction_id == result["transaction_id"]
    assert enrollment.payment_method == "sslcommerz"
    assert enrollment.seat_held is True
    query = parse_qs(urlparse(result["payment_url"]).query)
    assert query["total_amount"] == ["4000.0"]
    assert query["cancel_url"] == [f"http://localhost:3000/checkout?course=costing&batch={batch.id}"]

    with pytest.raises(ConflictError):
        payments.initiate_payment(make_user().id, "sslcommerz", batch_id=batch.id)


def test_initiate_book_checkout_with_bkash(db, enable_gateways, make_user, make_item):
    item = make_item(price=250, slug="qc-handbook")
    student = make_user()

    result = payments.initiate_payment(student.id, "bkash", product_type="book", item_slug=item.slug)

    purchase = LibraryPurchase.query.filter_by(user_id=student.id, item_id=item.id).one()
    assert purchase.transaction_id == result["transaction_id"]
    assert purchase.payment_method == "bkash"
    assert purchase.payment_status == "pending"
    assert result["payment_url"] == f"http://localhost:3000/payments/bkash?tranId={result['transaction_id']}"
