import pytest

from models.orderModels import ORDER_STATUSES
from services.orders import compute_shipping, compute_final_amount, can_transition


@pytest.mark.parametrize("subtotal, expected", [
    (0, 0),
    (1, 50),
    (499, 50),
    (499.99, 50),
    (500, 0),
    (2500, 0),
])
def test_shipping(app, subtotal, expected):
    assert compute_shipping(subtotal) == expected


def test_shipping_follows_config(app):
    app.config.update(FREE_SHIPPING_THRESHOLD=1000.0, SHIPPING_FEE=80.0)

    assert compute_shipping(999) == 80
    assert compute_shipping(1000) == 0


def test_final_amount_never_negative():
    assert compute_final_amount(100, 50, 30) == 120
    assert compute_final_amount(100, 50, 500) == 0


def test_transition_table():
    assert can_transition("pending", "confirmed")
    assert can_transition("shipped", "delivered")
    assert not can_transition("delivered", "pending")
    assert not can_transition("cancelled", "confirmed")
    assert all(can_transition(status, status) for status in ORDER_STATUSES)
