"""Status vocabularies and transition graphs.

Each entity has exactly one graph. Services ask ``can_transition`` and never
compare status strings on their own, so the rules live in one place:

- BOOKING_GRAPH: booked -> in_transit -> delivered, cancelled from booked/in_transit
- LINE_GRAPH: booked -> loaded -> in_transit -> unloaded -> out_for_delivery -> delivered,
  with damaged/missing/cancelled reachable from any non-terminal state
- MANIFEST_GRAPH: created -> in_transit -> completed, partially_processed in between
- CONTRACT_GRAPH: draft -> pending_approval -> active -> expired/terminated
"""

from dataclasses import dataclass, field

from django.db import models


class BookingStatus(models.TextChoices):
    BOOKED = 'booked', 'Booked'
    IN_TRANSIT = 'in_transit', 'In transit'
    DELIVERED = 'delivered', 'Delivered'
    CANCELLED = 'cancelled', 'Cancelled'


class LineStatus(models.TextChoices):
    BOOKED = 'booked', 'Booked'
    LOADED = 'loaded', 'Loaded'
    IN_TRANSIT = 'in_transit', 'In transit'
    UNLOADED = 'unloaded', 'Unloaded'
    OUT_FOR_DELIVERY = 'out_for_delivery', 'Out for delivery'
    DELIVERED = 'delivered', 'Delivered'
    DAMAGED = 'damaged', 'Damaged'
    MISSING = 'missing', 'Missing'
    CANCELLED = 'cancelled', 'Cancelled'


class ManifestStatus(models.TextChoices):
    CREATED = 'created', 'Created'
    IN_TRANSIT = 'in_transit', 'In transit'
    PARTIALLY_PROCESSED = 'partially_processed', 'Partially processed'
    COMPLETED = 'completed', 'Completed'
    CANCELLED = 'cancelled', 'Cancelled'


class ManifestPhase(models.TextChoices):
    LOADING = 'loading', 'Loading'
    UNLOADING = 'unloading', 'Unloading'


class ItemOutcome(models.TextChoices):
    PENDING = 'pending', 'Pending'
    SUCCEEDED = 'succeeded', 'Succeeded'
    FAILED = 'failed', 'Failed'
    SKIPPED = 'skipped', 'Skipped'


class UnloadCondition(models.TextChoices):
    GOOD = 'good', 'Good'
    DAMAGED = 'damaged', 'Damaged'
    MISSING = 'missing', 'Missing'


class ContractStatus(models.TextChoices):
    DRAFT = 'draft', 'Draft'
    PENDING_APPROVAL = 'pending_approval', 'Pending approval'
    ACTIVE = 'active', 'Active'
    EXPIRED = 'expired', 'Expired'
    TERMINATED = 'terminated', 'Terminated'


class RateBasis(models.TextChoices):
    PER_WEIGHT = 'per_weight', 'Per unit of weight'
    PER_UNIT = 'per_unit', 'Per unit of quantity'


@dataclass(frozen=True)
class StateGraph:
    """An immutable state machine definition."""

    name: str
    states: tuple[str, ...]
    initial_state: str
    transitions: dict[str, tuple[str, ...]]
    terminal_states: frozenset[str] = field(default_factory=frozenset)

    def allowed_from(self, state: str) -> tuple[str, ...]:
        if state in self.terminal_states:
            return ()
        return self.transitions.get(state, ())

    def can_transition(self, from_state: str, to_state: str) -> bool:
        return to_state in self.allowed_from(from_state)

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states

    def validate(self) -> list[str]:
        """Return graph errors (empty list means the graph is sane)."""
        return validate_graph(
            states=list(self.states),
            transitions={k: list(v) for k, v in self.transitions.items()},
            initial_state=self.initial_state,
            terminal_states=list(self.terminal_states),
        )


def validate_graph(
    states: list[str],
    transitions: dict[str, list[str]],
    initial_state: str,
    terminal_states: list[str],
) -> list[str]:
    """
    Validate a state machine graph is sane and usable.

    Checks:
    - initial_state and terminal_states exist in states
    - all transition sources and targets exist in states
    - terminal states have no outgoing transitions
    - all states reachable from initial_state
    """
    errors = []
    states_set = set(states)

    if initial_state not in states_set:
        errors.append(f"initial_state '{initial_state}' not in states")

    for ts in terminal_states:
        if ts not in states_set:
            errors.append(f"terminal_state '{ts}' not in states")

    for from_state, to_states in transitions.items():
        if from_state not in states_set:
            errors.append(f"transition from unknown state '{from_state}'")
        for to_state in to_states:
            if to_state not in states_set:
                errors.append(f"transition to unknown state '{to_state}'")

    for ts in terminal_states:
        if transitions.get(ts):
            errors.append(f"terminal state '{ts}' has outgoing transitions")

    if initial_state in states_set:
        reachable = _find_reachable_states(initial_state, transitions)
        for state in states:
            if state not in reachable:
                errors.append(f"state '{state}' unreachable from initial_state")

    return errors


def _find_reachable_states(start: str, transitions: dict[str, list[str]]) -> set[str]:
    """BFS over the transition table."""
    visited = {start}
    queue = [start]

    while queue:
        current = queue.pop(0)
        for next_state in transitions.get(current, []):
            if next_state not in visited:
                visited.add(next_state)
                queue.append(next_state)

    return visited


_L = LineStatus
_LINE_EXCEPTIONS = (_L.DAMAGED, _L.MISSING, _L.CANCELLED)

LINE_GRAPH = StateGraph(
    name='line',
    states=tuple(LineStatus.values),
    initial_state=_L.BOOKED,
    transitions={
        _L.BOOKED: (_L.LOADED, *_LINE_EXCEPTIONS),
        _L.LOADED: (_L.IN_TRANSIT, _L.UNLOADED, *_LINE_EXCEPTIONS),
        _L.IN_TRANSIT: (_L.UNLOADED, *_LINE_EXCEPTIONS),
        _L.UNLOADED: (_L.OUT_FOR_DELIVERY, _L.DELIVERED, *_LINE_EXCEPTIONS),
        _L.OUT_FOR_DELIVERY: (_L.DELIVERED, *_LINE_EXCEPTIONS),
    },
    terminal_states=frozenset({_L.DELIVERED, *_LINE_EXCEPTIONS}),
)

BOOKING_GRAPH = StateGraph(
    name='booking',
    states=tuple(BookingStatus.values),
    initial_state=BookingStatus.BOOKED,
    transitions={
        BookingStatus.BOOKED: (BookingStatus.IN_TRANSIT, BookingStatus.CANCELLED),
        BookingStatus.IN_TRANSIT: (BookingStatus.DELIVERED, BookingStatus.CANCELLED),
    },
    terminal_states=frozenset({BookingStatus.DELIVERED, BookingStatus.CANCELLED}),
)

_M = ManifestStatus

MANIFEST_GRAPH = StateGraph(
    name='manifest',
    states=tuple(ManifestStatus.values),
    initial_state=_M.CREATED,
    transitions={
        _M.CREATED: (_M.IN_TRANSIT, _M.PARTIALLY_PROCESSED, _M.CANCELLED),
        _M.PARTIALLY_PROCESSED: (_M.IN_TRANSIT, _M.PARTIALLY_PROCESSED, _M.COMPLETED),
        _M.IN_TRANSIT: (_M.PARTIALLY_PROCESSED, _M.COMPLETED),
    },
    terminal_states=frozenset({_M.COMPLETED, _M.CANCELLED}),
)

_C = ContractStatus

CONTRACT_GRAPH = StateGraph(
    name='rate_contract',
    states=tuple(ContractStatus.values),
    initial_state=_C.DRAFT,
    transitions={
        _C.DRAFT: (_C.PENDING_APPROVAL, _C.TERMINATED),
        _C.PENDING_APPROVAL: (_C.ACTIVE, _C.DRAFT, _C.TERMINATED),
        _C.ACTIVE: (_C.EXPIRED, _C.TERMINATED),
    },
    terminal_states=frozenset({_C.EXPIRED, _C.TERMINATED}),
)

ALL_GRAPHS = (LINE_GRAPH, BOOKING_GRAPH, MANIFEST_GRAPH, CONTRACT_GRAPH)
