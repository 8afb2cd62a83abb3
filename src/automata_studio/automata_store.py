"""Observable, persisted collection of automata.

Every mutation computes a new full snapshot, notifies subscribers
synchronously and then writes the snapshot to the key-value store.
The snapshot loaded at start-up is not written back.
"""
from __future__ import annotations
import copy
import json
import logging
import threading
from typing import Any, Callable

from automata_studio.automaton_model import (
    Automaton, Minimization, TestCase, Transition,
    automata_from_json_data, automata_to_json_data, states_of,
)
from automata_studio.kv_store import KeyValueStore

log = logging.getLogger("automata_studio.store")

STORAGE_KEY = "automata"

Listener = Callable[[Any], None]


class DuplicateAutomatonError(ValueError):
    pass


class UnknownStateError(ValueError):
    pass


class Subscription:
    def __init__(self, detach: Callable[[], None]):
        self._detach = detach
        self.closed = False

    def unsubscribe(self) -> None:
        if not self.closed:
            self.closed = True
            self._detach()


class StoreView:
    """A value derived from the store, re-evaluated on every emission."""

    def __init__(self, store: AutomataStore, selector: Callable[[list[Automaton]], Any]):
        self._store = store
        self._selector = selector

    @property
    def value(self) -> Any:
        return self._selector(self._store.value)

    def subscribe(self, callback: Listener) -> Subscription:
        return self._store.subscribe(lambda automata: callback(self._selector(automata)))


class AutomataStore:
    def __init__(self, kv: KeyValueStore, key: str = STORAGE_KEY):
        self._kv = kv
        self._key = key
        self._lock = threading.RLock()
        self._listeners: list[Listener] = []
        self._automata: list[Automaton] = self._load()
        self._has_loaded = False
        # The persister is the first listener, so it sees the initial replay
        # and flips the guard instead of rewriting what was just loaded.
        self._persister = self._persist
        self.subscribe(self._persister)

    # ------------------------------------------------------------------
    # Loading / persisting
    # ------------------------------------------------------------------

    def _load(self) -> list[Automaton]:
        try:
            raw = self._kv.get(self._key)
        except Exception:
            log.warning("Reading key %r failed, starting empty", self._key, exc_info=True)
            return []
        if raw is None:
            log.debug("No saved automata under %r", self._key)
            return []
        try:
            automata = automata_from_json_data(json.loads(raw))
        except ValueError:
            log.warning("Saved automata under %r are malformed, starting empty", self._key)
            return []
        log.debug("Loaded %d automata", len(automata))
        return _drop_duplicate_names(automata)

    def _persist(self, automata: list[Automaton]) -> None:
        if not self._has_loaded:
            self._has_loaded = True
            return
        self._kv.set(self._key, json.dumps(automata_to_json_data(automata)))

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def value(self) -> list[Automaton]:
        return list(self._automata)

    def subscribe(self, callback: Listener) -> Subscription:
        """Call ``callback`` now with the current snapshot and after every change."""
        with self._lock:
            self._listeners.append(callback)
            callback(self.value)

        def detach():
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return Subscription(detach)

    def select(self, selector: Callable[[list[Automaton]], Any]) -> StoreView:
        return StoreView(self, selector)

    def find_by_name(self, name: str) -> StoreView:
        return self.select(lambda automata: _find(automata, name))

    def names(self) -> list[str]:
        return [a.name for a in self._automata]

    def _publish(self, automata: list[Automaton]) -> None:
        self._automata = automata
        for listener in list(self._listeners):
            if listener is self._persister:
                # Write failures must reach the caller.
                listener(self.value)
                continue
            try:
                listener(self.value)
            except Exception:
                log.exception("Store subscriber %r failed", listener)

    # ------------------------------------------------------------------
    # Collection-level mutations
    # ------------------------------------------------------------------

    def create(self, automaton: Automaton) -> None:
        with self._lock:
            if _find(self._automata, automaton.name) is not None:
                raise DuplicateAutomatonError(
                    f"an automaton named {automaton.name!r} already exists")
            log.info("Creating automaton %r", automaton.name)
            self._publish([*self._automata, copy.deepcopy(automaton)])

    def delete(self, name: str) -> None:
        with self._lock:
            log.info("Deleting automaton %r", name)
            self._publish([a for a in self._automata if a.name != name])

    def update(self, name: str, mutation: Callable[[Automaton], None]) -> None:
        """Apply ``mutation`` to a copy of the named automaton and publish.

        If no automaton has that name the collection is republished as is.
        """
        with self._lock:
            updated = []
            for automaton in self._automata:
                if automaton.name == name:
                    automaton = copy.deepcopy(automaton)
                    mutation(automaton)
                updated.append(automaton)
            self._publish(updated)

    # ------------------------------------------------------------------
    # Automaton-level mutations
    # ------------------------------------------------------------------

    def add_transition(self, name: str, transition: Transition) -> None:
        def mutate(automaton: Automaton):
            automaton.transitions.append(copy.copy(transition))
        self.update(name, mutate)

    def remove_transition(self, name: str, index: int) -> None:
        def mutate(automaton: Automaton):
            automaton.transitions = [
                t for i, t in enumerate(automaton.transitions) if i != index
            ]
            _drop_dangling_state_refs(automaton)
        self.update(name, mutate)

    def remove_state(self, name: str, state: str) -> None:
        """Remove every transition touching ``state``."""
        def mutate(automaton: Automaton):
            automaton.transitions = [
                t for t in automaton.transitions
                if t.state != state and t.next_state != state
            ]
            _drop_dangling_state_refs(automaton)
        self.update(name, mutate)

    def add_test_case(self, name: str, test_case: TestCase) -> None:
        def mutate(automaton: Automaton):
            automaton.test_cases.append(copy.copy(test_case))
        self.update(name, mutate)

    def remove_test_case(self, name: str, index: int) -> None:
        def mutate(automaton: Automaton):
            automaton.test_cases = [
                tc for i, tc in enumerate(automaton.test_cases) if i != index
            ]
        self.update(name, mutate)

    def move_test_case(self, name: str, previous_index: int, current_index: int) -> None:
        def mutate(automaton: Automaton):
            _move_item(automaton.test_cases, previous_index, current_index)
        self.update(name, mutate)

    def set_start_state(self, name: str, state: str | None) -> None:
        """Set (or with ``None`` clear) the start state.

        Raises UnknownStateError if no transition mentions ``state``.
        """
        with self._lock:
            if state is not None:
                self._require_state(name, state)

            def mutate(automaton: Automaton):
                automaton.start_state = state
            self.update(name, mutate)

    def add_accept_state(self, name: str, state: str) -> None:
        with self._lock:
            if not state:
                return
            self._require_state(name, state)

            def mutate(automaton: Automaton):
                automaton.accept_states = [*automaton.accept_states, state]
            self.update(name, mutate)

    def remove_accept_state(self, name: str, state: str) -> None:
        def mutate(automaton: Automaton):
            automaton.accept_states = [s for s in automaton.accept_states if s != state]
        self.update(name, mutate)

    def apply_minimization(self, minimization: Minimization) -> None:
        proposal = minimization.new_automaton
        log.info("Applying minimization to %r (removed states: %s)",
                 proposal.name, ", ".join(minimization.removed_states) or "none")

        def mutate(automaton: Automaton):
            automaton.transitions = copy.deepcopy(proposal.transitions)
            automaton.accept_states = list(proposal.accept_states)
            automaton.start_state = proposal.start_state
        self.update(proposal.name, mutate)

    def _require_state(self, name: str, state: str) -> None:
        automaton = _find(self._automata, name)
        if automaton is None:
            return
        if state not in states_of(automaton):
            raise UnknownStateError(
                f"state {state!r} does not appear in any transition of {name!r}")


def _find(automata: list[Automaton], name: str) -> Automaton | None:
    for automaton in automata:
        if automaton.name == name:
            return automaton
    return None


def _drop_dangling_state_refs(automaton: Automaton) -> None:
    """Clear start/accept states that no transition mentions any more.

    Only needed after removals. Otherwise a state that is deleted and added
    back later would come back as start or accepting state.
    """
    states = states_of(automaton)
    if automaton.start_state not in states:
        automaton.start_state = None
    automaton.accept_states = [s for s in automaton.accept_states if s in states]


def _move_item(items: list, previous_index: int, current_index: int) -> None:
    """Move one element inside ``items``, clamping both indices into range."""
    if not items:
        return
    last = len(items) - 1
    src = max(0, min(previous_index, last))
    dst = max(0, min(current_index, last))
    if src == dst:
        return
    items.insert(dst, items.pop(src))


def _drop_duplicate_names(automata: list[Automaton]) -> list[Automaton]:
    """Keep the first automaton for each name."""
    seen: set[str] = set()
    unique = []
    for automaton in automata:
        if automaton.name in seen:
            log.warning("Dropping duplicate saved automaton %r", automaton.name)
            continue
        seen.add(automaton.name)
        unique.append(automaton)
    return unique
