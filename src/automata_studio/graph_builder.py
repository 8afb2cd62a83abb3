"""Project automata onto graph nodes/edges and build Cytoscape.js elements."""
from __future__ import annotations
from dataclasses import dataclass
from typing import Union

from automata_studio.automaton_model import Automaton, Transition, states_of

# The edge pointing "from nowhere" at the start state.
START_EDGE_ID = "start"
START_ANCHOR_ID = "__start_anchor__"
EDGE_ID_PREFIX = "link-"


# --- Render model ---

@dataclass
class NodeView:
    id: str
    label: str


@dataclass
class EdgeView:
    id: str
    source: str | None
    target: str
    label: str | None


# --- Selection ---

@dataclass(frozen=True)
class StateSelected:
    name: str


@dataclass(frozen=True)
class TransitionSelected:
    index: int


Selection = Union[StateSelected, TransitionSelected]


def edge_id_for(transition_index: int) -> str:
    return f"{EDGE_ID_PREFIX}{transition_index}"


def transition_index_from_edge_id(edge_id: str) -> int | None:
    """'link-6' -> 6. None for the start edge or anything unparsable."""
    if edge_id == START_EDGE_ID or not edge_id.startswith(EDGE_ID_PREFIX):
        return None
    try:
        index = int(edge_id[len(EDGE_ID_PREFIX):])
    except ValueError:
        return None
    return index if index >= 0 else None


def selection_from_node(node_id: str) -> Selection | None:
    if not node_id or node_id == START_ANCHOR_ID:
        return None
    return StateSelected(node_id)


def selection_from_edge(edge_id: str) -> Selection | None:
    index = transition_index_from_edge_id(edge_id)
    if index is None:
        return None
    return TransitionSelected(index)


def is_selection_valid(automaton: Automaton | None, selection: Selection | None) -> bool:
    """Whether the selected state/transition still exists in ``automaton``."""
    if selection is None:
        return True
    if automaton is None:
        return False
    if isinstance(selection, StateSelected):
        return selection.name in states_of(automaton)
    return 0 <= selection.index < len(automaton.transitions)


def selection_to_dict(selection: Selection | None) -> dict | None:
    """Serialize a selection for a dcc.Store."""
    if isinstance(selection, StateSelected):
        return {"kind": "state", "name": selection.name}
    if isinstance(selection, TransitionSelected):
        return {"kind": "transition", "index": selection.index}
    return None


def selection_from_dict(data: dict | None) -> Selection | None:
    if not data:
        return None
    if data.get("kind") == "state":
        return StateSelected(str(data["name"]))
    if data.get("kind") == "transition":
        return TransitionSelected(int(data["index"]))
    return None


# --- Projection ---

def project_nodes(automaton: Automaton | None) -> list[NodeView]:
    """One node per state, sorted by name so re-renders stay stable."""
    return [NodeView(id=s, label=s) for s in sorted(states_of(automaton))]


def project_edges(automaton: Automaton | None) -> list[EdgeView]:
    if automaton is None:
        return []
    edges = [
        EdgeView(id=edge_id_for(i), source=t.state, target=t.next_state, label=t.input)
        for i, t in enumerate(automaton.transitions)
    ]
    if automaton.start_state:
        edges.append(EdgeView(id=START_EDGE_ID, source=None,
                              target=automaton.start_state, label=None))
    return edges


def is_redundant_transition(automaton: Automaton | None, candidate: Transition) -> bool:
    """True if a transition with the same state and input already exists."""
    if automaton is None:
        return False
    return any(t.state == candidate.state and t.input == candidate.input
               for t in automaton.transitions)


# --- Cytoscape ---

def build_elements(automaton: Automaton | None,
                   selection: Selection | None = None) -> list[dict]:
    """Build Cytoscape elements (nodes + edges) for an automaton.

    The start edge needs a real source in Cytoscape, so it is anchored on
    an invisible node with id START_ANCHOR_ID.
    """
    if automaton is None:
        return []

    accepting = set(automaton.accept_states)
    elements = []
    node_ids = set()
    for node in project_nodes(automaton):
        node_ids.add(node.id)
        classes = []
        if node.id == automaton.start_state:
            classes.append("start")
        if node.id in accepting:
            classes.append("accepting")
        if selection == StateSelected(node.id):
            classes.append("selected")
        elements.append({
            "data": {"id": node.id, "label": node.label},
            "classes": " ".join(classes),
        })

    for edge in project_edges(automaton):
        if edge.id == START_EDGE_ID:
            if edge.target not in node_ids:
                # Start state without transitions has nothing to point at.
                continue
            elements.append({
                "data": {"id": START_ANCHOR_ID, "label": ""},
                "classes": "start-anchor",
                "selectable": False,
            })
            elements.append({
                "data": {"id": START_EDGE_ID, "source": START_ANCHOR_ID,
                         "target": edge.target, "label": ""},
                "classes": "start-edge",
                "selectable": False,
            })
            continue

        classes = []
        if edge.source == edge.target:
            classes.append("self-loop")
        if selection == selection_from_edge(edge.id):
            classes.append("selected")
        elements.append({
            "data": {"id": edge.id, "source": edge.source,
                     "target": edge.target, "label": edge.label},
            "classes": " ".join(classes),
        })

    return elements


def apply_simulation_overlay(elements: list[dict], stepper) -> list[dict]:
    """Highlight the stepper's current state and the transition it takes next.

    Args:
        elements: Elements from ``build_elements``.
        stepper: A ``SimulationStepper``.

    Returns:
        The same elements with sim-current / sim-next classes added.
    """
    current = stepper.current_state
    upcoming = stepper.next_transition
    marked_edge = False

    for elem in elements:
        d = elem["data"]
        classes = elem.get("classes", "")
        if "source" not in d:
            if current is not None and d["id"] == current:
                classes += " sim-current"
        elif upcoming is not None and not marked_edge:
            state, char, next_state = upcoming
            if (d["source"], d.get("label"), d["target"]) == (state, char, next_state):
                classes += " sim-next"
                marked_edge = True
        elem["classes"] = classes.strip()

    return elements


CYTO_STYLESHEET = [
    {
        "selector": "node",
        "style": {
            "label": "data(label)",
            "font-size": "12px",
            "width": 40,
            "height": 40,
            "background-color": "#4a90d9",
            "color": "#fff",
            "text-valign": "center",
            "text-halign": "center",
        },
    },
    {
        "selector": "node.accepting",
        "style": {
            "border-width": 4,
            "border-style": "double",
            "border-color": "#2c3e50",
        },
    },
    {
        "selector": "node.start",
        "style": {
            "background-color": "#27ae60",
        },
    },
    {
        "selector": "node.start-anchor",
        "style": {
            "width": 1,
            "height": 1,
            "opacity": 0,
            "events": "no",
        },
    },
    {
        "selector": "node.selected",
        "style": {
            "border-width": 3,
            "border-color": "#e74c3c",
            "background-color": "#f39c12",
        },
    },
    {
        "selector": "node.sim-current",
        "style": {
            "background-color": "#8e44ad",
            "border-width": 4,
            "border-color": "#f1c40f",
        },
    },
    {
        "selector": "edge",
        "style": {
            "label": "data(label)",
            "curve-style": "bezier",
            "target-arrow-shape": "triangle",
            "width": 2,
            "line-color": "#999",
            "target-arrow-color": "#999",
            "font-size": "12px",
            "text-background-color": "#fff",
            "text-background-opacity": 1,
        },
    },
    {
        "selector": "edge.self-loop",
        "style": {
            "curve-style": "loop",
            "loop-direction": "-45deg",
            "loop-sweep": "-60deg",
        },
    },
    {
        "selector": "edge.start-edge",
        "style": {
            "line-color": "#27ae60",
            "target-arrow-color": "#27ae60",
            "events": "no",
        },
    },
    {
        "selector": "edge.selected",
        "style": {
            "line-color": "#e74c3c",
            "target-arrow-color": "#e74c3c",
            "width": 3,
        },
    },
    {
        "selector": "edge.sim-next",
        "style": {
            "line-color": "#8e44ad",
            "target-arrow-color": "#8e44ad",
            "width": 4,
        },
    },
]
