# Overview: Explicit actor context passed into every mutating service call.

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class OperationContext:
    """
    Who is performing an operation, and from where.

    Routes build this from the request (see decorators.require_actor);
    services only ever read it. Tests construct it directly.
    """
    actor_user_id: int | None = None
    ip_address: str | None = None
    user_agent: str | None = None


SYSTEM_CONTEXT = OperationContext()
