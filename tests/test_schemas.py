"""Tests for the order and element role data model."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from schemas import ElementRoleMap, Order, OrderedArticle, REQUIRED_ROLES, RequiredRole
from utils import format_price
from fakes import ERP_ELEMENT_IDS


def test_order_keys_match_case_insensitively():
    order = Order.model_validate({
        "CUSTOMERNAME": "Smith & Co. Ltd.",
        "orderedarticles": [{"ArticleName": "Router", "QUANTITY": 2, "priceperunit": Decimal("9.5")}],
    })
    assert order.customer_name == "Smith & Co. Ltd."
    assert order.ordered_articles[0].article_name == "Router"
    assert order.ordered_articles[0].quantity == 2


def test_order_is_immutable():
    order = Order.model_validate({
        "customerName": "ACME",
        "orderedArticles": [{"articleName": "Bolt", "quantity": 1, "pricePerUnit": 1}],
    })
    assert isinstance(order.ordered_articles, tuple)
    with pytest.raises(ValidationError):
        order.customer_name = "Other"


def test_blank_customer_name_is_rejected():
    with pytest.raises(ValidationError):
        Order.model_validate({
            "customerName": "   ",
            "orderedArticles": [{"articleName": "Bolt", "quantity": 1, "pricePerUnit": 1}],
        })


@pytest.mark.parametrize("price, expected", [
    (Decimal("120"), "120.00"),
    (Decimal("15.00"), "15.00"),
    (Decimal("0.125"), "0.13"),
    (Decimal("1299.5"), "1299.50"),
    (0, "0.00"),
])
def test_price_text_has_two_fractional_digits(price, expected):
    article = OrderedArticle(articleName="Cable", quantity=3, pricePerUnit=price)
    assert article.price_text == expected
    assert article.quantity_text == "3"


def test_price_longer_than_a_unit_price_is_rejected():
    with pytest.raises(ValidationError, match="digits"):
        OrderedArticle(articleName="Cable", quantity=1, pricePerUnit=10 ** 28)


def test_format_price_beyond_default_decimal_precision():
    assert format_price(Decimal(10) ** 28) == "1" + "0" * 28 + ".00"
    assert format_price(Decimal("123456789012345678901234567.995")) == "123456789012345678901234568.00"
    assert format_price(Decimal("9.995")) == "10.00"


def test_price_keeps_original_precision():
    article = OrderedArticle(articleName="Cable", quantity=1, pricePerUnit=Decimal("15.000"))
    assert str(article.price_per_unit) == "15.000"


def test_role_wire_keys():
    assert RequiredRole.CUSTOMER_NAME.wire_key == "elementIdCustomerName"
    assert RequiredRole.SAVE_ORDER_BUTTON.wire_key == "elementIdSaveOrderButton"
    assert {role.wire_key for role in REQUIRED_ROLES} == set(ERP_ELEMENT_IDS)


def test_element_for_every_role():
    role_map = ElementRoleMap.model_validate(ERP_ELEMENT_IDS)
    for role in RequiredRole:
        assert role_map.element_for(role) == ERP_ELEMENT_IDS[role.wire_key]
    assert role_map.resolved_roles == REQUIRED_ROLES
