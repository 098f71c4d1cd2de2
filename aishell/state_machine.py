"""
aishell/state_machine.py - Danger gate finite state machine.

One machine per command invocation. All transitions are explicit; an illegal
transition raises IllegalTransitionError immediately.

    IDLE ──► CLASSIFIED ──► AWAITING_CONFIRMATION ──► CONFIRMED ──► SPAWNING
      │                                         └──► DECLINED  ──► CANCELLED
      └────────────────────────────────────────────────────────────► SPAWNING
"""

from __future__ import annotations

import logging
from enum import Enum, auto
from typing import Callable

log = logging.getLogger("aishell.gate")


class GateState(Enum):
    IDLE                  = auto()   # command received, not yet classified
    CLASSIFIED            = auto()   # leading verb is in the dangerous set
    AWAITING_CONFIRMATION = auto()   # blocked on the operator
    CONFIRMED             = auto()
    DECLINED              = auto()   # refusal or closed input stream
    SPAWNING              = auto()   # terminal: process is started
    CANCELLED             = auto()   # terminal: nothing was started


class IllegalTransitionError(Exception):
    pass


_TRANSITIONS: dict[GateState, set[GateState]] = {
    GateState.IDLE:                  {GateState.CLASSIFIED, GateState.SPAWNING},
    GateState.CLASSIFIED:            {GateState.AWAITING_CONFIRMATION},
    GateState.AWAITING_CONFIRMATION: {GateState.CONFIRMED, GateState.DECLINED},
    GateState.CONFIRMED:             {GateState.SPAWNING},
    GateState.DECLINED:              {GateState.CANCELLED},
    GateState.SPAWNING:              set(),
    GateState.CANCELLED:             set(),
}

TERMINAL_STATES = frozenset({GateState.SPAWNING, GateState.CANCELLED})


class GateStateMachine:
    def __init__(self, command: str = "") -> None:
        self.command = command
        self._state = GateState.IDLE
        self._history: list[GateState] = [GateState.IDLE]
        self._listeners: list[Callable[[GateState, GateState], None]] = []

    @property
    def state(self) -> GateState:
        return self._state

    @property
    def history(self) -> list[GateState]:
        return list(self._history)

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    def transition(self, new_state: GateState) -> None:
        allowed = _TRANSITIONS.get(self._state, set())
        if new_state not in allowed:
            raise IllegalTransitionError(
                f"Illegal transition: {self._state.name} -> {new_state.name}"
            )
        old = self._state
        self._state = new_state
        self._history.append(new_state)
        log.debug(f"gate[{self.command!r}]: {old.name} -> {new_state.name}")
        for listener in self._listeners:
            listener(old, new_state)

    def add_listener(self, fn: Callable[[GateState, GateState], None]) -> None:
        self._listeners.append(fn)

    def can_transition(self, new_state: GateState) -> bool:
        return new_state in _TRANSITIONS.get(self._state, set())

    def __repr__(self) -> str:
        return f"<GateStateMachine state={self._state.name}>"
