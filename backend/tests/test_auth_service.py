"""
Authentication and POS session lifecycle.
"""

import pytest

from shopkeep.services.auth_service import (
    AuthError,
    PasswordValidationError,
    create_user,
    hash_password,
    login,
    login_with_pin,
    logout,
    verify_password,
)


@pytest.mark.parametrize("weak", ["short1!", "alllowercase1!", "ALLUPPER1!", "NoDigits!!", "NoSpecial123"])
def test_weak_passwords_rejected(weak):
    with pytest.raises(PasswordValidationError):
        hash_password(weak)


def test_password_hash_round_trip(app):
    with app.app_context():
        hashed = hash_password("Password123!")
    assert hashed.startswith("$2")
    assert verify_password("Password123!", hashed) is True
    assert verify_password("Password123?", hashed) is False


def test_duplicate_email_rejected(db_session, cashier):
    with pytest.raises(AuthError):
        create_user(email="CASHIER@shop.local", full_name="Again", password="Password123!")


def test_login_opens_session_for_user(db_session, cashier):
    session = login("cashier@shop.local", "Password123!")

    assert session.is_open
    assert session.user_id == cashier.id
    assert session.cart.is_empty
    assert cashier.last_login_at is not None


def test_login_wrong_password(db_session, cashier):
    with pytest.raises(AuthError):
        login("cashier@shop.local", "WrongPass123!")


def test_inactive_user_cannot_login(db_session, cashier):
    cashier.is_active = False
    db_session.commit()
    with pytest.raises(AuthError):
        login("cashier@shop.local", "Password123!")


def test_pin_login(db_session, cashier):
    session = login_with_pin(cashier.id, "1234")
    assert session.user_id == cashier.id

    with pytest.raises(AuthError):
        login_with_pin(cashier.id, "9999")
    with pytest.raises(AuthError):
        login_with_pin(cashier.id, "12")


def test_logout_clears_cart_and_history(db_session, cashier, product):
    session = login("cashier@shop.local", "Password123!")
    session.cart.add_to_cart(product, 2)

    logout(session)

    assert not session.is_open
    assert session.user is None
    assert session.cart.is_empty
    assert session.transactions == []
