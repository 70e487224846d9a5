"""Per-method seat accounting rules for enrollments."""
from collections import namedtuple

from app.errors import ValidationError

PaymentMethodPolicy = namedtuple("PaymentMethodPolicy", ["counts_at_creation", "is_gateway"])

PAY_LATER = "pay_later"
SSLCOMMERZ = "sslcommerz"
BKASH = "bkash"

POLICIES = {
    # Needs admin approval before it takes a seat
    PAY_LATER: PaymentMethodPolicy(counts_at_creation=False, is_gateway=False),
    # Gateway checkouts reserve the seat while the student is at the gateway
    SSLCOMMERZ: PaymentMethodPolicy(counts_at_creation=True, is_gateway=True),
    BKASH: PaymentMethodPolicy(counts_at_creation=True, is_gateway=True),
}

GATEWAY_METHODS = tuple(name for name, policy in POLICIES.items() if policy.is_gateway)


def policy_for(method):
    try:
        return POLICIES[method]
    except KeyError:
        raise ValidationError(
            f"Invalid payment method '{method}'",
            details={"allowed": sorted(POLICIES)},
        )


def require_gateway(method):
    if method not in GATEWAY_METHODS:
        raise ValidationError(
            "Invalid payment method",
            details={"allowed": list(GATEWAY_METHODS)},
        )
    return POLICIES[method]
