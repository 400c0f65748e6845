from shopkeep.models import Customer
from shopkeep.services.credit_policy import check_credit_payment, check_credit_sale


def _customer(balance=0, limit=5000):
    return Customer(name="Otieno", phone="0722000000", credit_limit_cents=limit, current_balance_cents=balance)


def test_sale_within_limit_allowed():
    check = check_credit_sale(_customer(balance=4000, limit=10000), 1500)
    assert check.allowed is True
    assert check.requires_override is False
    assert check.proposed_balance_cents == 5500
    assert check.available_credit_cents == 4500


def test_sale_exactly_at_limit_allowed():
    assert check_credit_sale(_customer(balance=4000, limit=5500), 1500).allowed is True


def test_sale_over_limit_needs_override():
    check = check_credit_sale(_customer(balance=4000, limit=5000), 1500)
    assert check.allowed is False
    assert check.requires_override is True
    assert "credit limit" in check.reason
    assert check.to_dict()["available_credit_cents"] == 0


def test_sale_without_customer_refused():
    check = check_credit_sale(None, 1000)
    assert check.allowed is False
    assert check.requires_override is False


def test_payment_up_to_balance_allowed():
    check = check_credit_payment(_customer(balance=2000), 2000)
    assert check.allowed is True
    assert check.proposed_balance_cents == 0


def test_overpayment_needs_confirmation():
    check = check_credit_payment(_customer(balance=2000), 2500)
    assert check.requires_override is True
    assert check.proposed_balance_cents == -500
