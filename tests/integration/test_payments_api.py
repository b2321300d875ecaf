def test_complete_with_paypal_amount(client, shopify):
    shopify.add_draft("1001", total="50.99")
    res = client.post("/api/checkout/payment/complete", json={
        "draftOrderId": "1001",
        "paymentGateway": "paypal",
        "transactionId": "PP-1",
        "paypalAmount": {"value": "50.99", "currency_code": "EUR"},
    })
    assert res.status_code == 200
    data = res.json()
    assert data["success"] is True
    assert data["orderId"] == "5001"
    assert data["orderNumber"] == "1001"
    assert data["paymentGateway"] == "paypal"
    assert data["transactionId"] == "PP-1"


def test_complete_with_paypal_mismatch_is_rejected(client, shopify):
    shopify.add_draft("1001", total="50.99")
    res = client.post("/api/checkout/payment/complete", json={
        "draftOrderId": "1001",
        "paymentGateway": "paypal",
        "paypalOrderID": "PP-1",
        "paypalAmount": {"value": "49.99", "currency_code": "EUR"},
    })
    assert res.status_code == 400
    assert res.json() == {"error": "Le montant du paiement PayPal ne correspond pas", "code": "amount_mismatch"}
    assert shopify.complete_calls == 0


def test_complete_twice_returns_same_order(client, shopify):
    shopify.add_draft("1001")
    body = {"draftOrderId": 1001, "transactionId": "tx-1"}
    first = client.post("/api/checkout/payment/complete", json=body)
    second = client.post("/api/checkout/payment/complete", json=body)
    assert first.status_code == second.status_code == 200
    assert second.json()["orderId"] == first.json()["orderId"]
    assert shopify.complete_calls == 1


def test_complete_errors(client):
    missing = client.post("/api/checkout/payment/complete", json={})
    assert missing.status_code == 400
    assert missing.json()["field"] == "draftOrderId"

    not_found = client.post("/api/checkout/payment/complete", json={"draftOrderId": "404"})
    assert not_found.status_code == 404

    bad_status = client.post("/api/checkout/payment/complete", json={"draftOrderId": "1", "paymentStatus": "refunded"})
    assert bad_status.status_code == 400


def test_create_paypal_order(client, shopify, paypal):
    shopify.add_draft("1001", total="50.99")
    res = client.post("/api/checkout/payment/paypal/create-order", json={"checkoutId": "1001", "amount": "50.99"})
    assert res.status_code == 200
    assert res.json()["orderID"] == "PAYPAL-1"
    assert res.headers["Cache-Control"].startswith("no-store")


def test_create_paypal_order_mismatch_creates_nothing(client, shopify, paypal):
    shopify.add_draft("1001", total="50.99")
    res = client.post("/api/checkout/payment/paypal/create-order", json={"checkoutId": "1001", "amount": "51.99"})
    assert res.status_code == 400
    assert res.json()["error"] == "Le montant ne correspond pas à la commande"
    assert paypal.created == []


def test_paypal_callback(client, shopify):
    shopify.add_draft("1001", total="50.99")
    pending = client.post("/api/checkout/payment/paypal/callback", json={"orderID": "PP-1", "draftOrderId": "1001", "status": "APPROVED"})
    assert pending.json() == {"success": False, "status": "APPROVED", "message": "Paiement PayPal non finalisé"}
    assert shopify.complete_calls == 0

    done = client.post("/api/checkout/payment/paypal/callback", json={
        "orderID": "PP-1", "draftOrderId": "1001", "status": "COMPLETED", "amount": "50.99", "currency": "EUR",
    })
    assert done.status_code == 200
    assert done.json()["success"] is True
    assert shopify.complete_calls == 1


def test_shop_pay_complete(client, shopify):
    shopify.add_draft("1001", total="50.99")
    res = client.post("/api/checkout/payment/shop-pay/complete", json={"checkoutId": "1001", "paymentToken": "tok-1", "amount": "50.99"})
    assert res.status_code == 200
    assert res.json() == {
        "success": True,
        "orderId": "5001",
        "orderName": "#1001",
        "transactionId": "tok-1",
        "orderUrl": "/orders/5001",
    }


def test_create_paypal_order_in_another_currency_is_rejected(client, shopify, paypal):
    shopify.add_draft("1001", total="50.99", currency="EUR")
    res = client.post(
        "/api/checkout/payment/paypal/create-order",
        json={"checkoutId": "1001", "amount": "50.99", "currency": "USD"},
    )
    assert res.status_code == 400
    assert res.json() == {"error": "Le montant ne correspond pas à la commande", "code": "amount_mismatch"}
    assert paypal.created == []


def test_create_paypal_order_with_draft_currency_is_accepted(client, shopify, paypal):
    shopify.add_draft("1001", total="50.99", currency="EUR")
    res = client.post(
        "/api/checkout/payment/paypal/create-order",
        json={"checkoutId": "1001", "amount": "50.99", "currency": "eur"},
    )
    assert res.status_code == 200
    assert res.json()["currency"] == "EUR"
    assert paypal.created[0]["currency"] == "EUR"
