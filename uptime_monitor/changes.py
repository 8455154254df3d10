from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Mapping

from .checks import Outcome


class TransitionKind(str, Enum):
    INITIAL_DOWN = "initial_down"
    WENT_DOWN = "went_down"
    RECOVERED = "recovered"


@dataclass(frozen=True)
class Transition:
    outcome: Outcome
    previous_up: bool | None
    kind: TransitionKind

    @property
    def is_down(self) -> bool:
        return self.kind is not TransitionKind.RECOVERED


def detect_change(outcome: Outcome, prior_state: Mapping[str, bool]) -> Transition | None:
    previous_up = prior_state.get(outcome.url)

    if previous_up is None:
        # Never seen before: stay quiet when healthy, but an outage that predates
        # the state file must still be reported.
        if outcome.up:
            return None
        return Transition(outcome=outcome, previous_up=None, kind=TransitionKind.INITIAL_DOWN)

    if previous_up == outcome.up:
        return None

    kind = TransitionKind.RECOVERED if outcome.up else TransitionKind.WENT_DOWN
    return Transition(outcome=outcome, previous_up=previous_up, kind=kind)


def detect_changes(outcomes: Iterable[Outcome], prior_state: Mapping[str, bool]) -> list[Transition]:
    """Transitions in the same order as ``outcomes``."""
    transitions: list[Transition] = []
    for outcome in outcomes:
        transition = detect_change(outcome, prior_state)
        if transition is not None:
            transitions.append(transition)
    return transitions
