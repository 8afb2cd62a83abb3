"""Tests for the automaton dataclasses and their JSON shapes."""
import pytest

from automata_studio.automaton_model import (
    Automaton, ErrorInfo, Minimization, TestCase, TestCaseResult, Transition,
    automata_from_json_data, automata_to_json_data, states_of,
)


class TestAutomatonJson:
    def test_to_dict_shape(self, ping_pong):
        data = ping_pong.to_dict()
        assert data["name"] == "ping-pong"
        assert data["start_state"] == "q0"
        assert data["transitions"][0] == {"state": "q0", "input": "a", "next_state": "q1"}
        assert data["test_cases"][0] == {"test_input": "ab", "expectation": True}

    def test_absent_start_state_is_omitted(self):
        assert "start_state" not in Automaton(name="x").to_dict()

    def test_from_dict_fills_missing_lists(self):
        automaton = Automaton.from_dict({"name": "bare"})
        assert automaton.transitions == []
        assert automaton.accept_states == []
        assert automaton.test_cases == []
        assert automaton.start_state is None

    def test_from_dict_round_trip(self, even_ones):
        assert Automaton.from_dict(even_ones.to_dict()) == even_ones

    def test_from_dict_requires_name(self):
        with pytest.raises(ValueError):
            Automaton.from_dict({"transitions": []})

    def test_collection_rejects_non_list(self):
        with pytest.raises(ValueError):
            automata_from_json_data({"name": "x"})

    def test_collection_rejects_broken_transition(self):
        with pytest.raises(ValueError):
            automata_from_json_data([{"name": "x", "transitions": [{"state": "q0"}]}])

    def test_collection_round_trip(self, ping_pong, even_ones):
        data = automata_to_json_data([ping_pong, even_ones])
        assert automata_from_json_data(data) == [ping_pong, even_ones]


class TestStatesOf:
    def test_union_of_sources_and_targets(self):
        automaton = Automaton(name="x", transitions=[
            Transition("a", "0", "b"), Transition("c", "1", "c"),
        ])
        assert states_of(automaton) == {"a", "b", "c"}

    def test_empty(self):
        assert states_of(Automaton(name="x")) == set()
        assert states_of(None) == set()


class TestErrorInfo:
    def test_json_rpc_error_object(self):
        err = ErrorInfo.from_payload({"code": -32000, "message": "boom", "data": [1]})
        assert err.code == -32000
        assert err.message == "boom"
        assert err.data == [1]

    def test_opaque_payload(self):
        err = ErrorInfo.from_payload("something broke")
        assert err.message == "something broke"
        assert err.code is None


class TestResults:
    def test_failed_to_execute(self):
        ok = TestCaseResult(TestCase("a", True), True, ["q0", "q1"], True)
        broken = TestCaseResult(TestCase("a", True), False, [], False,
                                error=ErrorInfo("boom"))
        assert not ok.failed_to_execute
        assert broken.failed_to_execute

    def test_result_survives_dict_conversion(self):
        result = TestCaseResult(TestCase("ab", False), True, ["q0", "q1", "q0"], False,
                                error=None)
        assert TestCaseResult.from_dict(result.to_dict()) == result

    def test_minimization_renaming_flag(self, ping_pong):
        assert not Minimization(ping_pong).has_renaming_operations
        merged = Minimization(ping_pong, ["q2"], {"q0": ["q0", "q2"]})
        assert merged.has_renaming_operations
        assert Minimization.from_dict(merged.to_dict()) == merged
