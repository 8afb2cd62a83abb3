"""Dataclasses for automata, test cases and the results computed remotely."""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any


@dataclass
class Transition:
    state: str
    input: str  # single character
    next_state: str

    def to_dict(self) -> dict:
        return {"state": self.state, "input": self.input, "next_state": self.next_state}

    @classmethod
    def from_dict(cls, data: dict) -> Transition:
        return cls(
            state=str(data["state"]),
            input=str(data["input"]),
            next_state=str(data["next_state"]),
        )


@dataclass
class TestCase:
    """An example input and whether the automaton should accept it."""
    __test__ = False  # not a pytest class

    test_input: str
    expectation: bool

    def to_dict(self) -> dict:
        return {"test_input": self.test_input, "expectation": self.expectation}

    @classmethod
    def from_dict(cls, data: dict) -> TestCase:
        return cls(test_input=str(data["test_input"]),
                   expectation=bool(data["expectation"]))


@dataclass
class Automaton:
    """A named finite-state automaton. States are implied by the transitions."""
    name: str
    start_state: str | None = None
    accept_states: list[str] = field(default_factory=list)
    transitions: list[Transition] = field(default_factory=list)
    test_cases: list[TestCase] = field(default_factory=list)

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"name": self.name}
        if self.start_state is not None:
            data["start_state"] = self.start_state
        data["accept_states"] = list(self.accept_states)
        data["transitions"] = [t.to_dict() for t in self.transitions]
        data["test_cases"] = [tc.to_dict() for tc in self.test_cases]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> Automaton:
        if not isinstance(data, dict):
            raise ValueError(f"automaton must be an object, got {type(data).__name__}")
        name = data.get("name")
        if not isinstance(name, str):
            raise ValueError("automaton has no name")
        start = data.get("start_state")
        return cls(
            name=name,
            start_state=start if start else None,
            accept_states=[str(s) for s in data.get("accept_states") or []],
            transitions=[Transition.from_dict(t) for t in data.get("transitions") or []],
            test_cases=[TestCase.from_dict(tc) for tc in data.get("test_cases") or []],
        )


def states_of(automaton: Automaton | None) -> set[str]:
    """All states mentioned by any transition, as source or target."""
    states: set[str] = set()
    if automaton is None:
        return states
    for t in automaton.transitions:
        states.add(t.state)
        states.add(t.next_state)
    return states


@dataclass
class ErrorInfo:
    """Error payload reported by the backend for a single RPC call."""
    message: str
    code: int | None = None
    data: Any = None

    @classmethod
    def from_payload(cls, payload: Any) -> ErrorInfo:
        if isinstance(payload, dict):
            code = payload.get("code")
            return cls(
                message=str(payload.get("message", "")),
                code=code if isinstance(code, int) else None,
                data=payload.get("data"),
            )
        return cls(message=str(payload))

    def to_dict(self) -> dict:
        return {"message": self.message, "code": self.code, "data": self.data}


@dataclass
class TestCaseResult:
    """Outcome of running one test case on the backend."""
    __test__ = False

    test_case: TestCase
    has_input_been_accepted: bool
    visited_states: list[str]
    was_test_successful: bool
    error: ErrorInfo | None = None

    @property
    def failed_to_execute(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict:
        return {
            "test_case": self.test_case.to_dict(),
            "has_input_been_accepted": self.has_input_been_accepted,
            "visited_states": list(self.visited_states),
            "was_test_successful": self.was_test_successful,
            "error": self.error.to_dict() if self.error else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> TestCaseResult:
        error = data.get("error")
        return cls(
            test_case=TestCase.from_dict(data["test_case"]),
            has_input_been_accepted=bool(data["has_input_been_accepted"]),
            visited_states=[str(s) for s in data.get("visited_states") or []],
            was_test_successful=bool(data["was_test_successful"]),
            error=ErrorInfo.from_payload(error) if error is not None else None,
        )


@dataclass
class Minimization:
    """A proposed minimized replacement for an automaton.

    Nothing changes in the store until the proposal is applied with
    ``AutomataStore.apply_minimization``.
    """
    new_automaton: Automaton
    removed_states: list[str] = field(default_factory=list)
    # new merged state name -> the old state names it replaces
    renaming_operations: dict[str, list[str]] = field(default_factory=dict)

    @property
    def has_renaming_operations(self) -> bool:
        return len(self.renaming_operations) > 0

    def to_dict(self) -> dict:
        return {
            "new_automaton": self.new_automaton.to_dict(),
            "removed_states": list(self.removed_states),
            "renaming_operations": {k: list(v) for k, v in self.renaming_operations.items()},
        }

    @classmethod
    def from_dict(cls, data: dict) -> Minimization:
        return cls(
            new_automaton=Automaton.from_dict(data["new_automaton"]),
            removed_states=[str(s) for s in data.get("removed_states") or []],
            renaming_operations={
                str(k): [str(s) for s in v]
                for k, v in (data.get("renaming_operations") or {}).items()
            },
        )


def automata_to_json_data(automata: list[Automaton]) -> list[dict]:
    return [a.to_dict() for a in automata]


def automata_from_json_data(data: Any) -> list[Automaton]:
    """Inverse of ``automata_to_json_data``; raises ValueError on bad shapes."""
    if not isinstance(data, list):
        raise ValueError(f"expected a list of automata, got {type(data).__name__}")
    try:
        return [Automaton.from_dict(d) for d in data]
    except (KeyError, TypeError) as e:
        raise ValueError(f"malformed automaton: {e}") from e
