from __future__ import annotations

from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Generic, TypeVar

from capex.shared.exceptions import InvalidTransition


S = TypeVar("S", bound=Enum)


class StatusMachine(Generic[S]):
    """
    Finite state machine backed by a static transition table.

    The table is authoritative: a transition is legal iff the target is listed
    for the current status. Statuses with an empty list are terminal.
    """

    def __init__(self, name: str, transitions: Mapping[S, Sequence[S]]) -> None:
        self.name = name
        self.transitions: dict[S, tuple[S, ...]] = {k: tuple(v) for k, v in transitions.items()}

    def can_transition(self, current: S, target: S) -> bool:
        return target in self.transitions.get(current, ())

    def next_states(self, current: S) -> list[S]:
        return list(self.transitions.get(current, ()))

    def transition(self, current: S, target: S) -> S:
        if not self.can_transition(current, target):
            raise InvalidTransition(current.value, target.value, machine=self.name)
        return target

    def is_final_state(self, status: S) -> bool:
        return len(self.transitions.get(status, ())) == 0

    def final_states(self) -> list[S]:
        return [s for s in self.transitions if self.is_final_state(s)]
