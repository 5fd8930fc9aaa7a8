"""Acting-user lookup for audit rows.

Audit entries record who made a change. Interactive code paths (a request
handler, an admin command run on behalf of someone) bind the actor with
`ContextIdentity.acting_as`; scripts and other non-interactive contexts leave
it unset and entries are written with a NULL actor.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Generator, Optional, Protocol, runtime_checkable

_current_actor: ContextVar[Optional[Any]] = ContextVar("batchaudit_current_actor", default=None)


@runtime_checkable
class IdentityProvider(Protocol):
    def current_actor(self) -> Optional[Any]: ...


class AnonymousIdentity:
    """Always reports no actor (console and batch jobs)."""

    def current_actor(self) -> Optional[Any]:
        return None


class StaticIdentity:
    """Reports one fixed actor, e.g. a service account."""

    def __init__(self, actor: Any) -> None:
        self.actor = actor

    def current_actor(self) -> Optional[Any]:
        return self.actor


class ContextIdentity:
    """Reports the actor bound to the current context, if any."""

    def current_actor(self) -> Optional[Any]:
        return _current_actor.get()

    @staticmethod
    @contextmanager
    def acting_as(actor: Any) -> Generator[None, None, None]:
        """
        Bind `actor` for the duration of the block.

        Parameters
        ----------
        actor : Any
            Identifier stored in the audit row's changed-by column.
        """
        token = _current_actor.set(actor)
        try:
            yield
        finally:
            _current_actor.reset(token)


__all__ = ["AnonymousIdentity", "ContextIdentity", "IdentityProvider", "StaticIdentity"]
