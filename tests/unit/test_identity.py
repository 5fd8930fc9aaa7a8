from __future__ import annotations

from batchaudit.audit.identity import (
    AnonymousIdentity,
    ContextIdentity,
    IdentityProvider,
    StaticIdentity,
)


def test_anonymous_identity_has_no_actor() -> None:
    assert AnonymousIdentity().current_actor() is None


def test_static_identity_reports_its_actor() -> None:
    assert StaticIdentity(17).current_actor() == 17


def test_context_identity_binding_is_scoped() -> None:
    identity = ContextIdentity()

    with ContextIdentity.acting_as("alice"):
        assert identity.current_actor() == "alice"
        with ContextIdentity.acting_as("bob"):
            assert identity.current_actor() == "bob"
        assert identity.current_actor() == "alice"

    assert identity.current_actor() is None


def test_providers_satisfy_protocol() -> None:
    for provider in (AnonymousIdentity(), StaticIdentity("x"), ContextIdentity()):
        assert isinstance(provider, IdentityProvider)
