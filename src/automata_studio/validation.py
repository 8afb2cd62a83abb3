"""Checks run on user input before it reaches the store.

Each function returns a list of human-readable problems; an empty list
means the input can be submitted.
"""
from __future__ import annotations

from automata_studio.automaton_model import Automaton, Transition
from automata_studio.graph_builder import is_redundant_transition


def validate_automaton_name(existing_names: list[str], name: str | None) -> list[str]:
    name = (name or "").strip()
    if not name:
        return ["A name is required."]
    if name in existing_names:
        return [f"An automaton named '{name}' already exists."]
    return []


def validate_transition(automaton: Automaton, transition: Transition) -> list[str]:
    errors = []
    if not transition.state:
        errors.append("The source state is required.")
    if not transition.next_state:
        errors.append("The target state is required.")
    if len(transition.input) != 1:
        errors.append("The input must be exactly one character.")
    if not errors and is_redundant_transition(automaton, transition):
        errors.append(
            f"State '{transition.state}' already has a transition for "
            f"'{transition.input}'.")
    return errors


def validate_test_case(automaton: Automaton, test_input: str | None) -> list[str]:
    # The empty string is a legitimate input.
    if test_input is None:
        return ["The test input is required."]
    if any(tc.test_input == test_input for tc in automaton.test_cases):
        return [f"There already is a test case for '{test_input}'."]
    return []
