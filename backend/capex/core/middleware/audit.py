from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from structlog import contextvars


@dataclass(frozen=True)
class RequestContext:
    """Request id and acting user bound for the current request, if any."""

    request_id: str | None = None
    actor_id: str | None = None
    actor_roles: tuple[str, ...] = ()


def bind_request(request_id: str) -> None:
    contextvars.clear_contextvars()
    contextvars.bind_contextvars(request_id=request_id)


def bind_actor(actor_id: str, roles: Iterable[str]) -> None:
    contextvars.bind_contextvars(actor_id=actor_id, actor_roles=sorted({str(r) for r in roles}))


def current_context() -> RequestContext:
    bound = contextvars.get_contextvars()
    roles = bound.get("actor_roles") or ()
    return RequestContext(
        request_id=str(bound["request_id"]) if bound.get("request_id") is not None else None,
        actor_id=str(bound["actor_id"]) if bound.get("actor_id") is not None else None,
        actor_roles=tuple(str(r) for r in roles),
    )
