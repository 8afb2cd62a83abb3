"""End-to-end: edit in the store, run tests on a fake backend, replay a trace."""
import json

import httpx

from automata_studio.automaton_model import Automaton, TestCase, Transition
from automata_studio.automata_store import AutomataStore
from automata_studio.graph_builder import (
    apply_simulation_overlay, build_elements, project_edges, project_nodes,
)
from automata_studio.kv_store import MemoryKeyValueStore
from automata_studio.rpc_gateway import RemoteExecutionGateway
from automata_studio.simulation import SimulationStepper


def _run(automaton: dict, word: str):
    """A tiny DFA interpreter standing in for the real backend."""
    delta = {(t["state"], t["input"]): t["next_state"] for t in automaton["transitions"]}
    state = automaton.get("start_state")
    if state is None:
        raise ValueError("no start state")
    visited = [state]
    for char in word:
        if (state, char) not in delta:
            return False, visited
        state = delta[(state, char)]
        visited.append(state)
    return state in automaton["accept_states"], visited


def _backend(request: httpx.Request) -> httpx.Response:
    replies = []
    for call in json.loads(request.content):
        try:
            replies.append({"id": call["id"], "jsonrpc": "2.0",
                            "result": list(_run(*call["params"]))})
        except ValueError as e:
            replies.append({"id": call["id"], "jsonrpc": "2.0",
                            "error": {"code": -32000, "message": str(e)}})
    return httpx.Response(200, json=replies)


def test_full_pipeline():
    store = AutomataStore(MemoryKeyValueStore())
    store.create(Automaton(name="ends-in-1"))
    for t in [Transition("a", "0", "a"), Transition("a", "1", "b"),
              Transition("b", "1", "b"), Transition("b", "0", "a")]:
        store.add_transition("ends-in-1", t)
    store.set_start_state("ends-in-1", "a")
    store.add_accept_state("ends-in-1", "b")
    for word, expected in [("01", True), ("10", False), ("0", True)]:
        store.add_test_case("ends-in-1", TestCase(word, expected))

    automaton = store.find_by_name("ends-in-1").value
    assert [n.id for n in project_nodes(automaton)] == ["a", "b"]
    assert project_edges(automaton)[-1].id == "start"

    gateway = RemoteExecutionGateway(
        "http://backend.test/", client=httpx.Client(transport=httpx.MockTransport(_backend)))
    results = gateway.run_tests(automaton)
    assert [r.was_test_successful for r in results] == [True, True, False]
    assert results[0].visited_states == ["a", "a", "b"]

    stepper = SimulationStepper(results[0])
    elements = build_elements(automaton)
    while stepper.is_next_step_available:
        stepper.next()
    apply_simulation_overlay(elements, stepper)
    assert stepper.current_state == "b"
    assert "accepted the input" in stepper.explanation
    current = [e for e in elements if "sim-current" in e.get("classes", "")]
    assert [e["data"]["id"] for e in current] == ["b"]


def test_backend_error_per_test_case():
    automaton = Automaton(name="no-start", transitions=[Transition("a", "0", "a")],
                          test_cases=[TestCase("0", True)])
    gateway = RemoteExecutionGateway(
        "http://backend.test/", client=httpx.Client(transport=httpx.MockTransport(_backend)))
    [result] = gateway.run_tests(automaton)
    assert result.failed_to_execute
    assert result.error.message == "no start state"
    assert "no start state" in SimulationStepper(result).explanation
