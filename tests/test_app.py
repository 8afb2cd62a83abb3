"""Tests for the Dash application and its edit dispatcher."""
import httpx
import pytest

from automata_studio.automaton_model import Automaton, Minimization, Transition
from automata_studio.automata_store import UnknownStateError
from automata_studio.graph_builder import (
    StateSelected, TransitionSelected, selection_to_dict,
)
from automata_studio.rpc_gateway import RemoteExecutionGateway


@pytest.fixture
def gateway():
    def handler(request):
        return httpx.Response(200, json=[])
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return RemoteExecutionGateway("http://backend.test/", client=client)


class TestAppCreation:
    def test_create_app(self, loaded_store, gateway):
        from automata_studio.app import create_app
        app = create_app(loaded_store, gateway)
        assert app is not None

    def test_app_has_layout(self, loaded_store, gateway):
        from automata_studio.app import create_app
        app = create_app(loaded_store, gateway)
        assert app.layout is not None

    def test_empty_store(self, store, gateway):
        from automata_studio.app import create_app
        assert create_app(store, gateway).layout is not None


class TestDispatchEdit:
    def _dispatch(self, store, action, name="ping-pong", **form):
        from automata_studio.app import dispatch_edit
        return dispatch_edit(store, action, name, form)

    def test_create(self, store):
        shown, _, ok = self._dispatch(store, "btn-create", None, new_name=" dfa ")
        assert ok and shown == "dfa"
        assert store.names() == ["dfa"]

    def test_create_duplicate(self, loaded_store):
        shown, message, ok = self._dispatch(loaded_store, "btn-create", "even-ones",
                                            new_name="ping-pong")
        assert not ok
        assert shown == "even-ones"
        assert "already exists" in message

    def test_requires_selected_automaton(self, loaded_store):
        _, message, ok = self._dispatch(loaded_store, "btn-delete", None)
        assert not ok
        assert "Select an automaton" in message

    def test_delete_shows_next(self, loaded_store):
        shown, _, ok = self._dispatch(loaded_store, "btn-delete")
        assert ok and shown == "even-ones"

    def test_add_transition(self, loaded_store):
        _, _, ok = self._dispatch(loaded_store, "btn-add-transition",
                                  tr_state="q1", tr_input="a", tr_next="q2")
        assert ok
        automaton = loaded_store.find_by_name("ping-pong").value
        assert automaton.transitions[-1] == Transition("q1", "a", "q2")

    def test_redundant_transition_rejected(self, loaded_store):
        _, _, ok = self._dispatch(loaded_store, "btn-add-transition",
                                  tr_state="q0", tr_input="a", tr_next="q0")
        assert not ok
        assert len(loaded_store.find_by_name("ping-pong").value.transitions) == 2

    def test_remove_selected_state(self, loaded_store):
        _, _, ok = self._dispatch(loaded_store, "btn-remove-selected",
                                  selection=selection_to_dict(StateSelected("q1")))
        assert ok
        assert loaded_store.find_by_name("ping-pong").value.transitions == []

    def test_remove_selected_transition(self, loaded_store):
        _, _, ok = self._dispatch(loaded_store, "btn-remove-selected",
                                  selection=selection_to_dict(TransitionSelected(0)))
        assert ok
        assert len(loaded_store.find_by_name("ping-pong").value.transitions) == 1

    def test_toggle_accept(self, loaded_store):
        selection = selection_to_dict(StateSelected("q0"))
        self._dispatch(loaded_store, "btn-toggle-accept", selection=selection)
        assert loaded_store.find_by_name("ping-pong").value.accept_states == []
        self._dispatch(loaded_store, "btn-toggle-accept", selection=selection)
        assert loaded_store.find_by_name("ping-pong").value.accept_states == ["q0"]

    def test_set_start_needs_state(self, loaded_store):
        _, _, ok = self._dispatch(loaded_store, "btn-set-start",
                                  selection=selection_to_dict(TransitionSelected(0)))
        assert not ok

    def test_set_start_unknown_state_raises(self, loaded_store):
        with pytest.raises(UnknownStateError):
            self._dispatch(loaded_store, "btn-set-start",
                           selection=selection_to_dict(StateSelected("q9")))

    def test_duplicate_test_case_rejected(self, loaded_store):
        _, message, ok = self._dispatch(loaded_store, "btn-add-test",
                                        tc_input="ab", tc_expectation=False)
        assert not ok
        assert len(loaded_store.find_by_name("ping-pong").value.test_cases) == 3

    def test_move_test_case_down(self, loaded_store):
        _, _, ok = self._dispatch(loaded_store, "btn-test-down", tc_index=0)
        assert ok
        test_cases = loaded_store.find_by_name("ping-pong").value.test_cases
        assert [tc.test_input for tc in test_cases] == ["a", "ab", ""]

    def test_test_case_index_required(self, loaded_store):
        _, _, ok = self._dispatch(loaded_store, "btn-remove-test", tc_index=None)
        assert not ok

    def test_apply_minimization(self, loaded_store):
        proposal = Automaton(name="ping-pong", start_state="q0", accept_states=[],
                             transitions=[Transition("q0", "a", "q0")])
        _, _, ok = self._dispatch(loaded_store, "btn-apply-minimization",
                                  minimization=Minimization(proposal).to_dict())
        assert ok
        automaton = loaded_store.find_by_name("ping-pong").value
        assert automaton.transitions == [Transition("q0", "a", "q0")]
        assert automaton.accept_states == []

    def test_minimization_for_other_automaton(self, loaded_store):
        proposal = Automaton(name="even-ones")
        _, _, ok = self._dispatch(loaded_store, "btn-apply-minimization",
                                  minimization=Minimization(proposal).to_dict())
        assert not ok
