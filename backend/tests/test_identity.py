"""
Identity provider tests.

Verifies:
- Authentication builds the principal from account plus user record
- Sessions end on logout, secret reset and deactivation
- Reset challenges are single-use and silent for unknown emails
- Principal-change listeners
"""

import pytest

from multishop.errors import Unauthenticated, ValidationFailure
from multishop.services import identity_service

PASSWORD = "Password123!"


class TestAuthenticate:

    def test_returns_principal_and_token(self, seed):
        principal, token = identity_service.authenticate("Manager.A@shop.test", PASSWORD)

        assert principal.id == seed.manager_a.id
        assert principal.role == "manager"
        assert principal.shop_id == seed.shop_a
        assert identity_service.get_current_principal(token) == principal

    @pytest.mark.parametrize("email,secret", [
        ("manager.a@shop.test", "WrongPassword1"),
        ("nobody@shop.test", PASSWORD),
        ("", PASSWORD),
    ])
    def test_bad_credentials(self, seed, email, secret):
        with pytest.raises(Unauthenticated):
            identity_service.authenticate(email, secret)

    def test_deactivated_account_cannot_sign_in(self, seed):
        _, token = identity_service.authenticate(seed.rider_1.email, PASSWORD)

        revoked = identity_service.deactivate_account(seed.rider_1.id)

        assert revoked == 1
        assert identity_service.get_current_principal(token) is None
        with pytest.raises(Unauthenticated):
            identity_service.authenticate(seed.rider_1.email, PASSWORD)

    def test_short_secret_rejected(self, db_session):
        with pytest.raises(ValidationFailure):
            identity_service.create_account("new@shop.test", "short")

    def test_duplicate_email_rejected(self, seed):
        with pytest.raises(ValidationFailure):
            identity_service.create_account("ADMIN@shop.test", PASSWORD)


class TestSessions:

    def test_end_session(self, seed):
        _, token = identity_service.authenticate(seed.admin.email, PASSWORD)

        assert identity_service.end_session(token) is True
        assert identity_service.get_current_principal(token) is None
        assert identity_service.end_session(token) is False

    def test_unknown_token(self, seed):
        assert identity_service.get_current_principal("not-a-token") is None
        assert identity_service.get_current_principal(None) is None


class TestSecretReset:

    def test_reset_flow(self, seed):
        _, old_token = identity_service.authenticate(seed.employee_a.email, PASSWORD)
        challenge = identity_service.send_secret_reset_challenge(seed.employee_a.email)

        account_id = identity_service.reset_secret(challenge, "NewPassword456!")

        assert account_id == seed.employee_a.id
        assert identity_service.get_current_principal(old_token) is None
        with pytest.raises(Unauthenticated):
            identity_service.authenticate(seed.employee_a.email, PASSWORD)
        principal, _ = identity_service.authenticate(seed.employee_a.email, "NewPassword456!")
        assert principal.id == seed.employee_a.id

    def test_challenge_is_single_use(self, seed):
        challenge = identity_service.send_secret_reset_challenge(seed.employee_a.email)
        identity_service.reset_secret(challenge, "NewPassword456!")

        with pytest.raises(ValidationFailure):
            identity_service.reset_secret(challenge, "AnotherPassword789!")

    def test_unknown_email_is_silent(self, seed):
        assert identity_service.send_secret_reset_challenge("ghost@shop.test") is None

    def test_malformed_email(self, seed):
        with pytest.raises(ValidationFailure):
            identity_service.send_secret_reset_challenge("not-an-email")


class TestListeners:

    def test_login_and_logout_events(self, seed):
        events = []
        unsubscribe = identity_service.subscribe(lambda event, principal: events.append((event, principal.id)))
        try:
            _, token = identity_service.authenticate(seed.admin.email, PASSWORD)
            identity_service.end_session(token)
        finally:
            unsubscribe()

        assert events == [("login", seed.admin.id), ("logout", seed.admin.id)]

    def test_failing_listener_does_not_block_login(self, seed):
        def broken(event, principal):
            raise RuntimeError("listener failed")

        unsubscribe = identity_service.subscribe(broken)
        try:
            principal, token = identity_service.authenticate(seed.admin.email, PASSWORD)
        finally:
            unsubscribe()

        assert principal.id == seed.admin.id
        assert token
