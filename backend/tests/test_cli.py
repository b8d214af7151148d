from vendorpos.cli import ledger_group, vendors_group
from vendorpos.models import Product, Vendor
from vendorpos.services import balance_service, ledger_service


def test_create_vendor_command(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(vendors_group, ["create", "--name", "Gupta Kirana", "--include-pos-payments"])

    assert result.exit_code == 0, result.output
    vendor = db_session.query(Vendor).filter_by(code="GUPTAKIRANA").one()
    assert vendor.exclude_pos_payments_from_balance is False


def test_create_vendor_duplicate_code_fails(app, db_session, vendor):
    runner = app.test_cli_runner()
    result = runner.invoke(vendors_group, ["create", "--name", "Copy", "--code", "sharma"])
    assert result.exit_code == 1
    assert "already exists" in result.output


def test_balances_command(app, db_session, vendor, customer):
    ledger_service.create_ledger_transaction(vendor.id, {
        "customer_id": customer.id,
        "direction": "out",
        "amount_cents": 136,
    })

    runner = app.test_cli_runner()
    result = runner.invoke(ledger_group, ["balances", "--vendor-id", str(vendor.id)])

    assert result.exit_code == 0, result.output
    assert "Ravi Kumar" in result.output
    assert "you_will_get" in result.output


def test_verify_command_reports_drift(app, db_session, vendor, product):
    runner = app.test_cli_runner()
    clean = runner.invoke(ledger_group, ["verify", "--vendor-id", str(vendor.id)])
    assert clean.exit_code == 0, clean.output

    db_session.query(Product).filter(Product.id == product.id).update({"stock": 7})
    db_session.commit()

    drifted = runner.invoke(ledger_group, ["verify", "--vendor-id", str(vendor.id)])
    assert drifted.exit_code == 1
    assert f"product {product.id}" in drifted.output


def test_balances_command_counts_excluded_on_request(app, db_session, vendor, customer):
    ledger_service.post_inner(
        vendor_id=vendor.id,
        customer_id=customer.id,
        direction="in",
        amount_cents=236,
        category="product_sale",
        payment_method="cash",
        exclude_from_balance=True,
        is_pos_sale=True,
    )
    db_session.commit()

    runner = app.test_cli_runner()
    default = runner.invoke(ledger_group, ["balances", "--vendor-id", str(vendor.id)])
    counted = runner.invoke(ledger_group, ["balances", "--vendor-id", str(vendor.id), "--include-excluded"])

    assert "settled" in default.output
    assert "-236" in counted.output
    assert "you_will_give" in counted.output


def test_verify_command_reports_balance_disagreement(app, db_session, vendor, customer, monkeypatch):
    ledger_service.create_ledger_transaction(vendor.id, {
        "customer_id": customer.id,
        "direction": "out",
        "amount_cents": 90,
    })
    monkeypatch.setattr(
        balance_service,
        "list_party_balances",
        lambda vendor_id, party_type, **kwargs: [balance_service.summarize(party_type, customer.id, 100, 0)]
        if party_type == "customer" else [],
    )

    result = app.test_cli_runner().invoke(ledger_group, ["verify", "--vendor-id", str(vendor.id)])

    assert result.exit_code == 1
    assert f"FAIL customer {customer.id}: balance=100 expected=90" in result.output
