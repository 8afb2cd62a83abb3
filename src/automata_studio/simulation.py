"""Step-by-step replay of one test case execution trace."""
from __future__ import annotations

from automata_studio.automaton_model import TestCaseResult


class StepUnavailableError(IndexError):
    pass


class SimulationStepper:
    """Cursor over ``result.visited_states``.

    Step ``n`` means ``n`` input characters have been read and the automaton
    is in ``visited_states[n]``.
    """

    def __init__(self, result: TestCaseResult, cursor: int = 0):
        self.result = result
        if cursor < 0 or cursor > max(self._last_index, 0):
            raise StepUnavailableError(f"step {cursor} is outside the trace")
        self.cursor = cursor

    @property
    def _visited(self) -> list[str]:
        return self.result.visited_states

    @property
    def _input(self) -> str:
        return self.result.test_case.test_input

    @property
    def _last_index(self) -> int:
        return len(self._visited) - 1

    @property
    def is_next_step_available(self) -> bool:
        return self.cursor < self._last_index

    @property
    def is_previous_step_available(self) -> bool:
        return self.cursor > 0

    def next(self) -> None:
        if not self.is_next_step_available:
            raise StepUnavailableError("already at the last step")
        self.cursor += 1

    def previous(self) -> None:
        if not self.is_previous_step_available:
            raise StepUnavailableError("already at the first step")
        self.cursor -= 1

    def reset(self) -> None:
        self.cursor = 0

    @property
    def current_state(self) -> str | None:
        if not self._visited:
            return None
        return self._visited[self.cursor]

    @property
    def processed_input(self) -> str:
        return self._input[:self.cursor]

    @property
    def upcoming_input(self) -> str:
        return self._input[self.cursor:]

    @property
    def next_transition(self) -> tuple[str, str, str] | None:
        """(state, character, next state) taken by the next step, if any."""
        if not self.is_next_step_available or self.cursor >= len(self._input):
            return None
        return (self._visited[self.cursor], self._input[self.cursor],
                self._visited[self.cursor + 1])

    @property
    def explanation(self) -> str:
        if self.result.error is not None:
            return ("The test case could not be executed: "
                    f"{self.result.error.message or 'unknown error'}")
        if not self._visited:
            return "No states were visited."

        state = self.current_state
        step = self.cursor
        if step + 1 < len(self._visited):
            char = self._input[step] if step < len(self._input) else ""
            return (f"Reading the input character '{char}' in state '{state}' "
                    f"will lead the automaton to transition to state "
                    f"'{self._visited[step + 1]}'.")
        if len(self._input) <= len(self._visited) - 1:
            if self.result.has_input_been_accepted:
                verdict = (f"The automaton is in the accepting state '{state}' "
                           "and thus accepted the input.")
            else:
                verdict = (f"The automaton is in the rejecting state '{state}' "
                           "and thus rejected the input.")
            return "There are no more input characters to process. " + verdict
        return (f"In the current state '{state}', there is no transition for "
                f"the next character '{self._input[step]}' which is why the "
                "automaton rejects the input.")
