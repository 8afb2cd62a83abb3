"""Dash web application for editing, testing and minimizing automata."""
from __future__ import annotations
import logging
import os

import dash
from dash import html, dcc, ctx, Input, Output, State, no_update
import dash_cytoscape as cyto

from automata_studio.automaton_model import (
    Automaton, Minimization, TestCase, TestCaseResult, Transition,
)
from automata_studio.automata_store import AutomataStore
from automata_studio.graph_builder import (
    CYTO_STYLESHEET, StateSelected, TransitionSelected,
    apply_simulation_overlay, build_elements, is_selection_valid,
    selection_from_dict, selection_from_edge, selection_from_node,
    selection_to_dict,
)
from automata_studio.kv_store import JsonFileKeyValueStore
from automata_studio.rpc_gateway import GatewayError, RemoteExecutionGateway
from automata_studio.simulation import SimulationStepper
from automata_studio.validation import (
    validate_automaton_name, validate_test_case, validate_transition,
)

log = logging.getLogger("automata_studio.app")

BACKEND_URL = os.environ.get("AUTOMATA_BACKEND_URL", "http://localhost:8080/")
STORE_PATH = os.environ.get(
    "AUTOMATA_STORE_PATH",
    os.path.join(os.path.expanduser("~"), ".automata_studio", "storage.json"),
)
RPC_TIMEOUT = float(os.environ.get("AUTOMATA_RPC_TIMEOUT", "10"))

EDIT_ACTIONS = [
    "btn-create", "btn-delete", "btn-add-transition", "btn-remove-selected",
    "btn-set-start", "btn-toggle-accept", "btn-add-test", "btn-remove-test",
    "btn-test-up", "btn-test-down", "btn-apply-minimization",
]


def dispatch_edit(store: AutomataStore, action: str, name: str | None,
                  form: dict) -> tuple[str | None, str, bool]:
    """Apply one editor action to the store.

    Returns:
        (automaton to show afterwards, status message, success flag)
    """
    if action == "btn-create":
        new_name = (form.get("new_name") or "").strip()
        errors = validate_automaton_name(store.names(), new_name)
        if errors:
            return name, errors[0], False
        store.create(Automaton(name=new_name))
        return new_name, f"Created '{new_name}'.", True

    automaton = store.find_by_name(name).value if name else None
    if automaton is None:
        return name, "Select an automaton first.", False

    if action == "btn-delete":
        store.delete(name)
        remaining = store.names()
        return (remaining[0] if remaining else None), f"Deleted '{name}'.", True

    if action == "btn-add-transition":
        transition = Transition(
            state=(form.get("tr_state") or "").strip(),
            input=form.get("tr_input") or "",
            next_state=(form.get("tr_next") or "").strip(),
        )
        errors = validate_transition(automaton, transition)
        if errors:
            return name, " ".join(errors), False
        store.add_transition(name, transition)
        return name, (f"Added {transition.state} --{transition.input}--> "
                      f"{transition.next_state}."), True

    selection = selection_from_dict(form.get("selection"))
    if action == "btn-remove-selected":
        if isinstance(selection, StateSelected):
            store.remove_state(name, selection.name)
            return name, f"Removed state '{selection.name}'.", True
        if isinstance(selection, TransitionSelected):
            store.remove_transition(name, selection.index)
            return name, "Removed transition.", True
        return name, "Nothing selected.", False

    if action in ("btn-set-start", "btn-toggle-accept"):
        if not isinstance(selection, StateSelected):
            return name, "Select a state first.", False
        state = selection.name
        if action == "btn-set-start":
            store.set_start_state(name, state)
            return name, f"'{state}' is now the start state.", True
        if state in automaton.accept_states:
            store.remove_accept_state(name, state)
            return name, f"'{state}' no longer accepts.", True
        store.add_accept_state(name, state)
        return name, f"'{state}' now accepts.", True

    if action == "btn-add-test":
        test_input = form.get("tc_input") or ""
        errors = validate_test_case(automaton, test_input)
        if errors:
            return name, errors[0], False
        store.add_test_case(name, TestCase(test_input, bool(form.get("tc_expectation"))))
        return name, f"Added test case '{test_input}'.", True

    if action in ("btn-remove-test", "btn-test-up", "btn-test-down"):
        index = form.get("tc_index")
        if index is None or not 0 <= index < len(automaton.test_cases):
            return name, "Select a test case first.", False
        if action == "btn-remove-test":
            store.remove_test_case(name, index)
            return name, "Removed test case.", True
        target = index - 1 if action == "btn-test-up" else index + 1
        store.move_test_case(name, index, target)
        return name, "Moved test case.", True

    if action == "btn-apply-minimization":
        data = form.get("minimization")
        if not data:
            return name, "There is no minimization to apply.", False
        minimization = Minimization.from_dict(data)
        if minimization.new_automaton.name != name:
            return name, "The minimization belongs to another automaton.", False
        store.apply_minimization(minimization)
        return name, "Applied the minimization.", True

    return name, f"Unknown action '{action}'.", False


def create_app(store: AutomataStore | None = None,
               gateway: RemoteExecutionGateway | None = None) -> dash.Dash:
    if store is None:
        store = AutomataStore(JsonFileKeyValueStore(STORE_PATH))
    if gateway is None:
        gateway = RemoteExecutionGateway(BACKEND_URL, timeout=RPC_TIMEOUT)

    app = dash.Dash(__name__, suppress_callback_exceptions=True)

    names = store.names()
    default_name = names[0] if names else None

    app.layout = html.Div([
        # ---- Header ----
        html.Div([
            html.H2("Automata Studio", style={"margin": "0", "flex": "1"}),
            html.Div([
                dcc.Dropdown(
                    id="automaton-selector",
                    options=[{"label": n, "value": n} for n in names],
                    value=default_name,
                    placeholder="Select automaton...",
                    style={"width": "220px", "color": "#333"},
                    clearable=False,
                ),
                dcc.Input(id="new-automaton-name", type="text",
                          placeholder="New automaton name",
                          style={"marginLeft": "16px"}),
                html.Button("Create", id="btn-create", n_clicks=0,
                            style={**_btn_style("#27ae60"), "marginLeft": "6px"}),
                html.Button("Delete", id="btn-delete", n_clicks=0,
                            style={**_btn_style("#c0392b"), "marginLeft": "6px"}),
            ], style={"display": "flex", "alignItems": "center"}),
        ], style={
            "display": "flex", "justifyContent": "space-between",
            "alignItems": "center", "padding": "10px 20px",
            "backgroundColor": "#2c3e50", "color": "#ecf0f1",
        }),

        html.Div(id="edit-status", style=_status_style(True)),

        html.Div([
            # ---- Left Column: editors ----
            html.Div([
                html.H4("Transitions", style={"marginTop": "0"}),
                html.Div([
                    dcc.Input(id="tr-state", type="text", placeholder="state",
                              style={"width": "70px"}),
                    dcc.Input(id="tr-input", type="text", placeholder="input",
                              maxLength=1, style={"width": "50px"}),
                    dcc.Input(id="tr-next", type="text", placeholder="next state",
                              style={"width": "80px"}),
                    html.Button("Add", id="btn-add-transition", n_clicks=0,
                                style=_btn_style("#3498db")),
                ], style={"display": "flex", "gap": "4px"}),
                html.Ul(id="transition-list", style={"fontSize": "12px"}),

                html.H4("Selection"),
                html.Div(id="selection-info", style={"fontSize": "12px"}),
                html.Div([
                    html.Button("Remove", id="btn-remove-selected", n_clicks=0,
                                style=_btn_style("#c0392b")),
                    html.Button("Set Start", id="btn-set-start", n_clicks=0,
                                style=_btn_style("#27ae60")),
                    html.Button("Toggle Accept", id="btn-toggle-accept", n_clicks=0,
                                style=_btn_style("#8e44ad")),
                ], style={"display": "flex", "gap": "4px", "marginTop": "6px"}),

                html.H4("Test Cases"),
                html.Div([
                    dcc.Input(id="tc-input", type="text", placeholder="input",
                              style={"width": "120px"}),
                    dcc.Checklist(id="tc-expectation",
                                  options=[{"label": " accept", "value": "accept"}],
                                  value=[], inline=True),
                    html.Button("Add", id="btn-add-test", n_clicks=0,
                                style=_btn_style("#3498db")),
                ], style={"display": "flex", "gap": "6px", "alignItems": "center"}),
                html.Ol(id="test-case-list", style={"fontSize": "12px"}),
                html.Div([
                    dcc.Dropdown(id="tc-selector", options=[], value=None,
                                 placeholder="Test case...",
                                 style={"width": "140px", "fontSize": "11px"}),
                    html.Button("Remove", id="btn-remove-test", n_clicks=0,
                                style=_btn_style("#c0392b")),
                    html.Button("Up", id="btn-test-up", n_clicks=0,
                                style=_btn_style("#7f8c8d")),
                    html.Button("Down", id="btn-test-down", n_clicks=0,
                                style=_btn_style("#7f8c8d")),
                ], style={"display": "flex", "gap": "4px"}),

                html.H4("Run"),
                html.Button("Run Tests", id="btn-run-tests", n_clicks=0,
                            style=_btn_style("#e67e22")),
                html.Div(id="test-results", style={"fontSize": "12px", "marginTop": "6px"}),
                dcc.Dropdown(id="result-selector", options=[], value=None,
                             placeholder="Simulate result...",
                             style={"fontSize": "11px", "marginTop": "6px"}),
                html.Div([
                    html.Div(id="sim-input", style={"fontFamily": "Consolas, monospace"}),
                    html.Div(id="sim-explanation", style={"fontSize": "12px"}),
                    html.Div([
                        html.Button("Previous", id="btn-sim-prev", n_clicks=0,
                                    disabled=True, style=_btn_style("#7f8c8d")),
                        html.Button("Next", id="btn-sim-next", n_clicks=0,
                                    disabled=True, style=_btn_style("#7f8c8d")),
                    ], style={"display": "flex", "gap": "4px", "marginTop": "4px"}),
                ], style={"marginTop": "6px"}),

                html.H4("Minimization"),
                html.Div([
                    html.Button("Minimize", id="btn-minimize", n_clicks=0,
                                style=_btn_style("#16a085")),
                    html.Button("Apply", id="btn-apply-minimization", n_clicks=0,
                                style=_btn_style("#2c3e50")),
                ], style={"display": "flex", "gap": "4px"}),
                html.Div(id="minimization-preview", style={"fontSize": "12px"}),
            ], style={
                "width": "380px", "padding": "12px", "overflowY": "auto",
                "borderRight": "1px solid #ddd",
            }),

            # ---- Right Column: graph ----
            html.Div([
                cyto.Cytoscape(
                    id="automaton-graph",
                    elements=build_elements(store.find_by_name(default_name).value
                                            if default_name else None),
                    layout={"name": "cose", "animate": False},
                    stylesheet=CYTO_STYLESHEET,
                    style={"width": "100%", "height": "calc(100vh - 120px)"},
                ),
            ], style={"flex": "1"}),
        ], style={"display": "flex"}),

        dcc.Store(id="store-revision", data=0),
        dcc.Store(id="selection-store", data=None),
        dcc.Store(id="results-store", data=None),
        dcc.Store(id="sim-step-store", data=None),
        dcc.Store(id="minimization-store", data=None),
    ], style={"fontFamily": "Segoe UI, Arial, sans-serif"})

    # ================================================================
    # CALLBACKS
    # ================================================================

    @app.callback(
        Output("store-revision", "data"),
        Output("edit-status", "children"),
        Output("edit-status", "style"),
        Output("automaton-selector", "value"),
        *[Input(action, "n_clicks") for action in EDIT_ACTIONS],
        State("automaton-selector", "value"),
        State("new-automaton-name", "value"),
        State("tr-state", "value"),
        State("tr-input", "value"),
        State("tr-next", "value"),
        State("tc-input", "value"),
        State("tc-expectation", "value"),
        State("tc-selector", "value"),
        State("selection-store", "data"),
        State("minimization-store", "data"),
        State("store-revision", "data"),
        prevent_initial_call=True,
    )
    def edit(*args):
        (name, new_name, tr_state, tr_input, tr_next, tc_input, tc_expectation,
         tc_index, selection, minimization, revision) = args[len(EDIT_ACTIONS):]
        action = ctx.triggered_id
        if action not in EDIT_ACTIONS:
            return (no_update,) * 4
        form = {
            "new_name": new_name, "tr_state": tr_state, "tr_input": tr_input,
            "tr_next": tr_next, "tc_input": tc_input,
            "tc_expectation": "accept" in (tc_expectation or []),
            "tc_index": tc_index, "selection": selection,
            "minimization": minimization,
        }
        try:
            shown, message, ok = dispatch_edit(store, action, name, form)
        except ValueError as e:
            return no_update, str(e), _status_style(False), no_update
        except Exception as e:
            log.exception("Error in edit callback (%s)", action)
            return no_update, f"Error: {e}", _status_style(False), no_update
        return (revision or 0) + 1, message, _status_style(ok), shown

    @app.callback(
        Output("selection-store", "data"),
        Input("automaton-graph", "tapNodeData"),
        Input("automaton-graph", "tapEdgeData"),
        Input("automaton-selector", "value"),
        Input("store-revision", "data"),
        State("selection-store", "data"),
    )
    def update_selection(node_data, edge_data, name, revision, current):
        prop = ctx.triggered[0]["prop_id"] if ctx.triggered else ""
        if prop == "automaton-graph.tapNodeData" and node_data:
            selection = selection_from_node(node_data.get("id", ""))
            return selection_to_dict(selection) if selection else no_update
        if prop == "automaton-graph.tapEdgeData" and edge_data:
            # Taps on the start edge do not change the selection.
            selection = selection_from_edge(edge_data.get("id", ""))
            return selection_to_dict(selection) if selection else no_update
        if prop == "automaton-selector.value":
            return None
        automaton = store.find_by_name(name).value if name else None
        if not is_selection_valid(automaton, selection_from_dict(current)):
            return None
        return no_update

    @app.callback(
        Output("automaton-graph", "elements"),
        Output("automaton-selector", "options"),
        Output("transition-list", "children"),
        Output("test-case-list", "children"),
        Output("tc-selector", "options"),
        Output("selection-info", "children"),
        Input("store-revision", "data"),
        Input("automaton-selector", "value"),
        Input("selection-store", "data"),
        Input("sim-step-store", "data"),
    )
    def render(revision, name, selection_data, sim_data):
        options = [{"label": n, "value": n} for n in store.names()]
        automaton = store.find_by_name(name).value if name else None
        if automaton is None:
            return [], options, [], [], [], "No automaton selected."
        try:
            selection = selection_from_dict(selection_data)
            elements = build_elements(automaton, selection)
            if sim_data and sim_data.get("automaton") == name:
                stepper = SimulationStepper(
                    TestCaseResult.from_dict(sim_data["result"]), sim_data["cursor"])
                elements = apply_simulation_overlay(elements, stepper)
            transitions = [
                html.Li(f"{t.state} --{t.input}--> {t.next_state}")
                for t in automaton.transitions
            ]
            test_cases = [
                html.Li(f"'{tc.test_input}' should be "
                        f"{'accepted' if tc.expectation else 'rejected'}")
                for tc in automaton.test_cases
            ]
            tc_options = [
                {"label": f"{i + 1}: '{tc.test_input}'", "value": i}
                for i, tc in enumerate(automaton.test_cases)
            ]
            return (elements, options, transitions, test_cases, tc_options,
                    _describe_selection(automaton, selection))
        except Exception as e:
            log.exception("Error in render callback")
            return [], options, [], [], [], html.Span(
                f"Error: {e}", style={"color": "#e74c3c"})

    @app.callback(
        Output("results-store", "data"),
        Output("test-results", "children"),
        Output("result-selector", "options"),
        Output("result-selector", "value"),
        Input("btn-run-tests", "n_clicks"),
        Input("automaton-selector", "value"),
        prevent_initial_call=True,
    )
    def run_tests(n, name):
        if ctx.triggered_id != "btn-run-tests" or not name:
            return None, "", [], None
        automaton = store.find_by_name(name).value
        if automaton is None:
            return None, "", [], None
        try:
            results = gateway.run_tests(automaton)
        except GatewayError as e:
            log.warning("Running tests for %r failed: %s", name, e)
            return None, html.Span(f"Could not run tests: {e}",
                                   style={"color": "#e74c3c"}), [], None
        if not results:
            return None, "There are no test cases.", [], None
        data = {"automaton": name, "results": [r.to_dict() for r in results]}
        options = [
            {"label": f"'{r.test_case.test_input}'", "value": i}
            for i, r in enumerate(results) if not r.failed_to_execute
        ]
        return data, html.Ul([_result_item(r) for r in results]), options, None

    @app.callback(
        Output("sim-step-store", "data"),
        Output("sim-input", "children"),
        Output("sim-explanation", "children"),
        Output("btn-sim-prev", "disabled"),
        Output("btn-sim-next", "disabled"),
        Input("result-selector", "value"),
        Input("btn-sim-prev", "n_clicks"),
        Input("btn-sim-next", "n_clicks"),
        State("results-store", "data"),
        State("sim-step-store", "data"),
    )
    def simulate(result_index, n_prev, n_next, results_data, sim_data):
        if result_index is None or not results_data:
            return None, "", "", True, True
        try:
            if ctx.triggered_id == "result-selector" or not sim_data:
                result = results_data["results"][result_index]
                stepper = SimulationStepper(TestCaseResult.from_dict(result))
            else:
                result = sim_data["result"]
                stepper = SimulationStepper(TestCaseResult.from_dict(result),
                                            sim_data["cursor"])
                if ctx.triggered_id == "btn-sim-next" and stepper.is_next_step_available:
                    stepper.next()
                elif (ctx.triggered_id == "btn-sim-prev"
                      and stepper.is_previous_step_available):
                    stepper.previous()
        except (IndexError, KeyError) as e:
            log.exception("Error in simulate callback")
            return None, "", f"Error: {e}", True, True
        data = {"automaton": results_data["automaton"], "result": result,
                "cursor": stepper.cursor}
        shown_input = [
            html.Span(stepper.processed_input, style={"color": "#95a5a6"}),
            html.B(stepper.upcoming_input),
        ]
        return (data, shown_input, stepper.explanation,
                not stepper.is_previous_step_available,
                not stepper.is_next_step_available)

    @app.callback(
        Output("minimization-store", "data"),
        Output("minimization-preview", "children"),
        Input("btn-minimize", "n_clicks"),
        Input("btn-apply-minimization", "n_clicks"),
        Input("automaton-selector", "value"),
        prevent_initial_call=True,
    )
    def minimize(n_minimize, n_apply, name):
        if ctx.triggered_id != "btn-minimize" or not name:
            return None, ""
        automaton = store.find_by_name(name).value
        if automaton is None:
            return None, ""
        try:
            minimization = gateway.propose_minimization(automaton)
        except GatewayError as e:
            log.warning("Minimizing %r failed: %s", name, e)
            return None, html.Span(f"Could not minimize: {e}",
                                   style={"color": "#e74c3c"})
        if minimization is None:
            return None, "The automaton could not be minimized."
        return minimization.to_dict(), _build_minimization_preview(minimization)

    return app


# ================================================================
# Helpers
# ================================================================

def _btn_style(color: str) -> dict:
    return {
        "backgroundColor": color, "color": "#fff", "border": "none",
        "padding": "4px 10px", "borderRadius": "4px", "cursor": "pointer",
        "fontSize": "12px",
    }


def _status_style(ok: bool) -> dict:
    return {
        "padding": "6px 20px", "fontSize": "12px",
        "backgroundColor": "#d4edda" if ok else "#f8d7da",
        "color": "#155724" if ok else "#721c24",
    }


def _describe_selection(automaton: Automaton, selection) -> str:
    if isinstance(selection, StateSelected):
        flags = []
        if selection.name == automaton.start_state:
            flags.append("start")
        if selection.name in automaton.accept_states:
            flags.append("accepting")
        suffix = f" ({', '.join(flags)})" if flags else ""
        return f"State '{selection.name}'{suffix}"
    if (isinstance(selection, TransitionSelected)
            and selection.index < len(automaton.transitions)):
        t = automaton.transitions[selection.index]
        return f"Transition {t.state} --{t.input}--> {t.next_state}"
    return "Click a state or transition in the graph."


def _result_item(result: TestCaseResult) -> html.Li:
    test_input = result.test_case.test_input
    if result.failed_to_execute:
        return html.Li(f"'{test_input}': could not be executed ({result.error.message})",
                       style={"color": "#e67e22"})
    outcome = "accepted" if result.has_input_been_accepted else "rejected"
    if result.was_test_successful:
        return html.Li(f"'{test_input}': {outcome} as expected",
                       style={"color": "#27ae60"})
    return html.Li(f"'{test_input}': {outcome}, expected otherwise",
                   style={"color": "#c0392b"})


def _build_minimization_preview(minimization: Minimization) -> html.Div:
    new = minimization.new_automaton
    parts = [
        html.Div(f"Transitions after minimization: {len(new.transitions)}"),
        html.Div("Removed states: " + (", ".join(minimization.removed_states) or "none")),
    ]
    if minimization.has_renaming_operations:
        parts.append(html.Ul([
            html.Li(f"{new_state} <- {', '.join(old_states)}")
            for new_state, old_states in minimization.renaming_operations.items()
        ]))
    return html.Div(parts)
