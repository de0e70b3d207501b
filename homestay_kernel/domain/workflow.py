"""
Canonical workflow types (``homestay_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for the registration state machine.  Guard,
Transition and Workflow are defined once and shared by primary
applications and service requests.  A transition names the roles that
may fire it, the preconditions that must hold, an optional routing
condition (when two transitions share ``(from_state, action)``), and the
effects the executor applies when it fires.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/`` or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Guard:
    """A named condition attached to a transition.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the workflow executor does.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition.

    Contract: frozen.  ``roles`` lists the non-administrative roles allowed
    to fire it.  ``guards`` are preconditions; every failing guard is
    reported.  ``route`` selects between transitions sharing
    ``(from_state, action)``; the first whose route holds (or has none)
    wins.  ``effects`` name the record mutations the executor applies.
    """
    from_state: str
    to_state: str
    action: str
    roles: tuple[str, ...]
    guards: tuple[Guard, ...] = ()
    route: Guard | None = None
    requires_remark: bool = False
    effects: tuple[str, ...] = ()


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a record lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    Guarantees: ``initial_state`` is a member of ``states``.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()
    _index: dict[tuple[str, str], tuple[Transition, ...]] = field(
        default_factory=dict, init=False, repr=False, compare=False,
    )

    def __post_init__(self) -> None:
        known = set(self.states)
        if self.initial_state not in known:
            raise ValueError(
                f"Workflow {self.name}: initial state {self.initial_state!r} not in states"
            )
        for t in self.transitions:
            for state in (t.from_state, t.to_state):
                if state not in known:
                    raise ValueError(
                        f"Workflow {self.name}: transition {t.action!r} "
                        f"references unknown state {state!r}"
                    )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow {self.name}: terminal state {t.from_state!r} "
                    f"has outgoing transition {t.action!r}"
                )
        index: dict[tuple[str, str], list[Transition]] = {}
        for t in self.transitions:
            index.setdefault((t.from_state, t.action), []).append(t)
        self._index.update({k: tuple(v) for k, v in index.items()})

    def candidates(self, from_state: str, action: str) -> tuple[Transition, ...]:
        """All transitions for ``(from_state, action)`` in declaration order."""
        return self._index.get((from_state, action), ())

    def transitions_from(self, from_state: str) -> tuple[Transition, ...]:
        return tuple(t for t in self.transitions if t.from_state == from_state)

    def actions_from(self, from_state: str) -> frozenset[str]:
        return frozenset(t.action for t in self.transitions_from(from_state))

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states
