"""Finite state machine helper for lifecycle columns stored as codes.

    ORDER_FSM = TransitionValidator({
        OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.REFUNDED},
        OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.REFUNDED},
        OrderStatus.DELIVERED: set(),
        OrderStatus.REFUNDED: set(),
    })
    ORDER_FSM.assert_can_transition(current, target)

Raises InvalidTransition (409) when the edge is not in the graph. Self loops
are only legal when the graph lists them explicitly.
"""
from __future__ import annotations
from typing import Dict, FrozenSet, Hashable, Iterable, Mapping, Set

from restaurant_pos.errors import InvalidTransition


class TransitionValidator:
    def __init__(self, graph: Mapping[Hashable, Iterable[Hashable]], field_name: str = 'status'):
        self.graph: Dict[Hashable, FrozenSet[Hashable]] = {k: frozenset(v) for k, v in graph.items()}
        self.field_name = field_name

    @property
    def states(self) -> Set[Hashable]:
        return set(self.graph)

    def targets(self, current: Hashable) -> FrozenSet[Hashable]:
        return self.graph.get(current, frozenset())

    def terminal_states(self) -> Set[Hashable]:
        return {s for s, out in self.graph.items() if not out}

    def can_transition(self, current: Hashable, target: Hashable) -> bool:
        return target in self.targets(current)

    def assert_can_transition(self, current: Hashable, target: Hashable):
        if not self.can_transition(current, target):
            raise InvalidTransition(current, target, self.field_name)
        return True


__all__ = ['TransitionValidator']
