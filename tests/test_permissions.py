import pytest

from shared.auth.jwt_handler import decode_token
from shared.auth.permissions import Capability, Role, parse_roles, resolve_access
from shared.utils.errors import AccessDenied
from conftest import JWT_SECRET, make_token


def test_super_admin_has_every_capability():
    access = resolve_access(["super_admin"])

    assert access.capabilities == frozenset(Capability)


def test_admin_cannot_manage_staff():
    access = resolve_access(["admin"])

    assert access.allows(Capability.CHECKIN)
    assert access.allows(Capability.MANAGE_SETTINGS)
    assert not access.allows(Capability.MANAGE_STAFF)


def test_checkin_operator_is_limited_to_dashboard_and_checkin():
    access = resolve_access(["checkin_operator"])

    assert access.capabilities == {Capability.VIEW_DASHBOARD, Capability.CHECKIN}


def test_registrations_manager_cannot_check_in():
    access = resolve_access(["registrations_manager"])

    assert access.allows(Capability.EDIT_REGISTRATIONS)
    assert not access.allows(Capability.CHECKIN)
    assert not access.allows(Capability.MANAGE_STAFF)


def test_multiple_roles_grant_the_union():
    access = resolve_access(["checkin_operator", "registrations_manager"])

    assert access.roles == {Role.CHECKIN_OPERATOR, Role.REGISTRATIONS_MANAGER}
    assert access.allows(Capability.CHECKIN)
    assert access.allows(Capability.EDIT_REGISTRATIONS)


def test_unknown_role_tags_are_ignored():
    assert parse_roles(["admin", "viewer", ""]) == {Role.ADMIN}


@pytest.mark.parametrize("tags", [[], ["viewer"], ["ADMIN"]])
def test_identity_without_recognised_role_is_denied(tags):
    with pytest.raises(AccessDenied) as exc_info:
        resolve_access(tags)

    assert exc_info.value.message == "El usuario no tiene permisos de staff"


def test_decode_token_accepts_supabase_claims():
    claims = decode_token(make_token("user-1", "staff@example.com"), secret=JWT_SECRET)

    assert claims["sub"] == "user-1"
    assert claims["email"] == "staff@example.com"


def test_decode_token_rejects_expired_or_foreign_tokens():
    assert decode_token(make_token("user-1", "a@b.c", expires_in=-60), secret=JWT_SECRET) is None
    assert decode_token(make_token("user-1", "a@b.c"), secret="otro-secreto") is None
    assert decode_token("no-es-un-jwt", secret=JWT_SECRET) is None
