"""JSON-RPC client for the backend that runs and minimizes automata."""
from __future__ import annotations

import logging
from typing import Any

import httpx

from automata_studio.automaton_model import (
    Automaton, ErrorInfo, Minimization, TestCaseResult,
)

log = logging.getLogger("automata_studio.gateway")

DEFAULT_TIMEOUT = 10.0
_MINIMIZE_CALL_ID = 1


class GatewayError(RuntimeError):
    """The backend could not be reached or answered with something unusable."""


def build_check_calls(automaton: Automaton) -> list[dict]:
    """One ``check`` call per test case; the id is the test case's index."""
    params_automaton = automaton.to_dict()
    return [
        {
            "jsonrpc": "2.0",
            "method": "check",
            "id": index,
            "params": [params_automaton, test_case.test_input],
        }
        for index, test_case in enumerate(automaton.test_cases)
    ]


def build_minimize_call(automaton: Automaton) -> dict:
    return {
        "jsonrpc": "2.0",
        "method": "minimize",
        "id": _MINIMIZE_CALL_ID,
        "params": [automaton.to_dict()],
    }


def results_from_check_responses(automaton: Automaton,
                                 responses: list[Any]) -> list[TestCaseResult]:
    """Match batched ``check`` responses to test cases by id.

    Results come back in test-case order. Per-call errors, and test cases
    the backend did not answer, become results with ``error`` set.
    """
    by_id: dict[int, dict] = {}
    for response in responses:
        if not isinstance(response, dict):
            raise GatewayError(f"unexpected batch entry: {response!r}")
        call_id = response.get("id")
        if isinstance(call_id, int) and 0 <= call_id < len(automaton.test_cases):
            by_id[call_id] = response
        else:
            log.warning("Ignoring response with unknown id %r", call_id)

    results = []
    for index, test_case in enumerate(automaton.test_cases):
        response = by_id.get(index)
        if response is None:
            error = ErrorInfo(message="no response for this test case")
        elif response.get("error") is not None:
            error = ErrorInfo.from_payload(response["error"])
        else:
            error = None

        if error is None:
            try:
                accepted, visited = _unpack_check_result(response.get("result"))
            except GatewayError as e:
                log.warning("Test case %d: %s", index, e)
                error = ErrorInfo(message=str(e))
            else:
                results.append(TestCaseResult(
                    test_case=test_case,
                    has_input_been_accepted=accepted,
                    visited_states=visited,
                    was_test_successful=accepted == test_case.expectation,
                ))
                continue

        results.append(TestCaseResult(
            test_case=test_case,
            has_input_been_accepted=False,
            visited_states=[],
            was_test_successful=False,
            error=error,
        ))
    return results


def _unpack_check_result(result: Any) -> tuple[bool, list[str]]:
    """Raises GatewayError unless ``result`` is ``[accepted, [state, ...]]``."""
    if not isinstance(result, list) or len(result) < 2:
        raise GatewayError(f"malformed check result: {result!r}")
    accepted, visited = result[0], result[1]
    if not isinstance(accepted, bool) or not isinstance(visited, list):
        raise GatewayError(f"malformed check result: {result!r}")
    return accepted, [str(s) for s in visited]


def minimization_from_response(response: Any) -> Minimization | None:
    if not isinstance(response, dict):
        raise GatewayError(f"unexpected minimize response: {response!r}")
    if response.get("error") is not None:
        log.info("Backend could not minimize: %r", response["error"])
        return None
    result = response.get("result")
    if not isinstance(result, list) or len(result) < 3:
        raise GatewayError(f"malformed minimize result: {result!r}")
    removed, renaming = result[1] or [], result[2] or {}
    if not isinstance(removed, list) or not isinstance(renaming, dict):
        raise GatewayError(f"malformed minimize result: {result!r}")
    try:
        new_automaton = Automaton.from_dict(result[0])
        renaming_operations = {}
        for new_state, old_states in renaming.items():
            if not isinstance(old_states, list):
                raise ValueError(f"renaming of {new_state!r} is not a list")
            renaming_operations[str(new_state)] = [str(s) for s in old_states]
    except (KeyError, TypeError, AttributeError, ValueError) as e:
        raise GatewayError(f"malformed minimize result: {e}") from e
    return Minimization(
        new_automaton=new_automaton,
        removed_states=[str(s) for s in removed],
        renaming_operations=renaming_operations,
    )


class RemoteExecutionGateway:
    def __init__(self, endpoint: str, timeout: float = DEFAULT_TIMEOUT,
                 client: httpx.Client | None = None):
        self.endpoint = endpoint
        self._client = client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> RemoteExecutionGateway:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _post(self, payload: Any) -> Any:
        log.debug("POST %s: %s", self.endpoint, payload)
        try:
            response = self._client.post(self.endpoint, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as e:
            raise GatewayError(f"request to {self.endpoint} failed: {e}") from e
        except ValueError as e:
            raise GatewayError(f"backend returned invalid JSON: {e}") from e
        log.debug("Response: %s", body)
        return body

    def run_tests(self, automaton: Automaton) -> list[TestCaseResult]:
        """Run every test case of ``automaton`` in one batched call."""
        if not automaton.test_cases:
            return []
        body = self._post(build_check_calls(automaton))
        if not isinstance(body, list):
            # A lone object answering a batch is a batch-level error.
            raise GatewayError(f"backend rejected the batch: {body!r}")
        results = results_from_check_responses(automaton, body)
        log.info("Ran %d test cases for %r, %d successful", len(results),
                 automaton.name, sum(r.was_test_successful for r in results))
        return results

    def propose_minimization(self, automaton: Automaton) -> Minimization | None:
        """Ask how the automaton would be minimized. Does not change any store."""
        return minimization_from_response(self._post(build_minimize_call(automaton)))
