import pytest

from boutique.checkout.models import CartItemIn, ShippingInfoIn
from boutique.checkout.validation import aggregate_items, validate_customer, validate_shipping_method
from boutique.errors import ValidationError


def _info(**overrides):
    data = {
        "firstName": "Jean",
        "lastName": "Dupont",
        "email": "jean.dupont@example.com",
        "address": "1 rue de la Paix",
        "city": "Paris",
        "postalCode": "75002",
    }
    data.update(overrides)
    return ShippingInfoIn(**data)


def test_empty_cart_is_rejected():
    for items in (None, []):
        with pytest.raises(ValidationError) as exc:
            aggregate_items(items)
        assert exc.value.field == "items"
        assert exc.value.message == "Le panier est vide"


def test_duplicate_lines_are_aggregated_in_order():
    lines = aggregate_items([
        CartItemIn(merchandiseId="gid://shopify/ProductVariant/11", quantity=1),
        CartItemIn(merchandiseId="22", quantity="2"),
        CartItemIn(merchandiseId="gid://shopify/ProductVariant/11", quantity=3),
    ])
    assert [(l.merchandise_id, l.quantity) for l in lines] == [
        ("gid://shopify/ProductVariant/11", 4),
        ("22", 2),
    ]


@pytest.mark.parametrize("item, field", [
    ({"quantity": 1}, "items[0].merchandiseId"),
    ({"merchandiseId": "gid://shopify/ProductVariant/abc", "quantity": 1}, "items[0].merchandiseId"),
    ({"merchandiseId": "11", "quantity": 0}, "items[0].quantity"),
    ({"merchandiseId": "11", "quantity": -2}, "items[0].quantity"),
    ({"merchandiseId": "11", "quantity": 1.5}, "items[0].quantity"),
    ({"merchandiseId": "11", "quantity": True}, "items[0].quantity"),
])
def test_invalid_lines_report_the_offending_field(item, field):
    with pytest.raises(ValidationError) as exc:
        aggregate_items([CartItemIn(**item)])
    assert exc.value.field == field


def test_customer_is_normalized():
    customer = validate_customer(_info(email="  jean.dupont@example.com ", country=""))
    assert customer.email == "jean.dupont@example.com"
    assert customer.country == "France"
    assert customer.address_payload()["zip"] == "75002"
    assert "address2" not in customer.address_payload()


@pytest.mark.parametrize("overrides, field, message", [
    ({"email": ""}, "shippingInfo.email", "Email, prénom et nom sont requis"),
    ({"lastName": " "}, "shippingInfo.lastName", "Email, prénom et nom sont requis"),
    ({"email": "pas-un-email"}, "shippingInfo.email", "Adresse email invalide"),
    ({"city": ""}, "shippingInfo.city", "Adresse, ville et code postal sont requis"),
])
def test_customer_errors(overrides, field, message):
    with pytest.raises(ValidationError) as exc:
        validate_customer(_info(**overrides))
    assert (exc.value.field, exc.value.message) == (field, message)


def test_missing_shipping_info():
    with pytest.raises(ValidationError) as exc:
        validate_customer(None)
    assert exc.value.field == "shippingInfo"


def test_shipping_method():
    assert validate_shipping_method(None) == "standard"
    assert validate_shipping_method("EXPRESS") == "express"
    with pytest.raises(ValidationError):
        validate_shipping_method("drone")
