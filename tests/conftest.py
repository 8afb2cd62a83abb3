"""Shared fixtures for automata_studio tests."""
from __future__ import annotations
import os
import sys
import pytest

# Ensure src/ is on the path so automata_studio is importable without install
_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_SRC = os.path.join(_ROOT, "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)

from automata_studio.automaton_model import Automaton, TestCase, Transition
from automata_studio.automata_store import AutomataStore
from automata_studio.kv_store import MemoryKeyValueStore


# --------------- Automata ---------------

@pytest.fixture
def ping_pong():
    """q0 -a-> q1 -b-> q0, starting and accepting in q0."""
    return Automaton(
        name="ping-pong",
        start_state="q0",
        accept_states=["q0"],
        transitions=[Transition("q0", "a", "q1"), Transition("q1", "b", "q0")],
        test_cases=[TestCase("ab", True), TestCase("a", False), TestCase("", True)],
    )


@pytest.fixture
def even_ones():
    """Accepts binary strings with an even number of 1s."""
    return Automaton(
        name="even-ones",
        start_state="even",
        accept_states=["even"],
        transitions=[
            Transition("even", "0", "even"),
            Transition("even", "1", "odd"),
            Transition("odd", "0", "odd"),
            Transition("odd", "1", "even"),
        ],
        test_cases=[TestCase("11", True), TestCase("1", False), TestCase("0110", True)],
    )


# --------------- Stores ---------------

@pytest.fixture
def kv():
    return MemoryKeyValueStore()


@pytest.fixture
def store(kv):
    return AutomataStore(kv)


@pytest.fixture
def loaded_store(store, ping_pong, even_ones):
    store.create(ping_pong)
    store.create(even_ones)
    return store
