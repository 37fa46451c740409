"""
Canonical workflow types (``credit_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for document state machines, plus the lookup used to
resolve an action against the current state.  The vendor credit lifecycle
in ``credit_modules.vendor_credits.workflows`` is declared with these.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``initial_state`` is a member of ``states``.
* Transitions reference only states in ``Workflow.states``.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the caller registers an
    evaluator per guard name.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    ``posts_entry=True`` marks transitions whose outcome changes ledger
    figures (credit applied to bills).
    """
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    posts_entry: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"initial_state '{self.initial_state}' not in states of '{self.name}'"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Transition {t.from_state} -> {t.to_state} ({t.action}) "
                    f"references unknown state in '{self.name}'"
                )

    def find_transition(self, current_state: str, action: str) -> Transition | None:
        """Find the transition for ``action`` out of ``current_state``."""
        for t in self.transitions:
            if t.from_state == current_state and t.action == action:
                return t
        return None

    def actions_from(self, current_state: str) -> tuple[str, ...]:
        """Actions available from ``current_state``, in declaration order."""
        return tuple(t.action for t in self.transitions if t.from_state == current_state)
