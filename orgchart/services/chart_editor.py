"""
Chart Editor State

Editing state of a custom org chart as an immutable value. Every editor
operation is a pure function returning a new state, so edits can be
replayed, tested and undone without touching the spreadsheet.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple

from orgchart.schemas.records import OrgChart, OrgNode
from orgchart.services.hierarchy_service import collect_subtree_ids, possible_parents
from orgchart.utils.errors import ValidationError, create_duplicate_error, create_not_found_error


@dataclass(frozen=True)
class ChartEditorState:
    """Snapshot of the chart being edited."""

    name: str = ""
    description: str = ""
    chart_type: str = "macro"
    nodes: Tuple[OrgNode, ...] = ()
    selected_node_id: Optional[str] = None
    expanded_ids: FrozenSet[str] = frozenset()
    # Node being created or edited in the side form
    draft: Optional[OrgNode] = None
    # Stored chart data other than nodes/description (connections, metadata, ...)
    extra_data: Dict[str, Any] = field(default_factory=dict)

    def get_node(self, node_id: str) -> Optional[OrgNode]:
        return next((node for node in self.nodes if node.id == node_id), None)


# =============================================================================
# Node Reducers
# =============================================================================

def add_node(state: ChartEditorState, node: OrgNode) -> ChartEditorState:
    """Append a node; its parent, if any, is expanded."""
    if state.get_node(node.id) is not None:
        raise create_duplicate_error("Node", "id", node.id)
    if node.parent_id and state.get_node(node.parent_id) is None:
        raise create_not_found_error("Parent node", node.parent_id)

    expanded = state.expanded_ids
    if node.parent_id:
        expanded = expanded | {node.parent_id}
    return replace(state, nodes=state.nodes + (node,), expanded_ids=expanded)


def update_node(state: ChartEditorState, node_id: str, changes: Dict[str, Any]) -> ChartEditorState:
    """
    Change fields of a node other than its ID.

    A ``parent_id`` change goes through the same cycle check as
    ``reparent_node``.
    """
    current = state.get_node(node_id)
    if current is None:
        raise create_not_found_error("Node", node_id)

    changes = {key: value for key, value in changes.items() if key != "id"}
    if "parent_id" in changes:
        state = reparent_node(state, node_id, changes.pop("parent_id"))
        current = state.get_node(node_id)

    updated = OrgNode.model_validate({**current.model_dump(), **changes})
    return replace(
        state,
        nodes=tuple(updated if node.id == node_id else node for node in state.nodes),
    )


def reparent_node(
    state: ChartEditorState,
    node_id: str,
    parent_id: Optional[str],
) -> ChartEditorState:
    """
    Move a node under a new parent (``None`` makes it a root).

    Raises:
        ValidationError: If the new parent is the node or one of its descendants
    """
    node = state.get_node(node_id)
    if node is None:
        raise create_not_found_error("Node", node_id)

    parent_id = parent_id or None
    if parent_id is not None:
        allowed = {candidate.id for candidate in possible_parents(state.nodes, node_id)}
        if parent_id not in allowed:
            if state.get_node(parent_id) is None:
                raise create_not_found_error("Parent node", parent_id)
            raise ValidationError(
                message="A node cannot report to itself or to one of its descendants",
                details={"node_id": node_id, "parent_id": parent_id},
            )

    moved = node.model_copy(update={"parent_id": parent_id})
    return replace(
        state,
        nodes=tuple(moved if n.id == node_id else n for n in state.nodes),
    )


def delete_node(state: ChartEditorState, node_id: str) -> ChartEditorState:
    """Remove a node with its whole subtree; selection and draft inside it are cleared."""
    removed = collect_subtree_ids(state.nodes, node_id)
    if not removed:
        return state

    selected = state.selected_node_id
    if selected in removed:
        selected = None
    draft = state.draft
    if draft is not None and draft.id in removed:
        draft = None

    return replace(
        state,
        nodes=tuple(node for node in state.nodes if node.id not in removed),
        selected_node_id=selected,
        expanded_ids=state.expanded_ids - removed,
        draft=draft,
    )


# =============================================================================
# View Reducers
# =============================================================================

def select_node(state: ChartEditorState, node_id: Optional[str]) -> ChartEditorState:
    if node_id is not None and state.get_node(node_id) is None:
        raise create_not_found_error("Node", node_id)
    return replace(state, selected_node_id=node_id)


def toggle_expanded(state: ChartEditorState, node_id: str) -> ChartEditorState:
    if node_id in state.expanded_ids:
        return replace(state, expanded_ids=state.expanded_ids - {node_id})
    return replace(state, expanded_ids=state.expanded_ids | {node_id})


def expand_all(state: ChartEditorState) -> ChartEditorState:
    return replace(state, expanded_ids=frozenset(node.id for node in state.nodes))


def collapse_all(state: ChartEditorState) -> ChartEditorState:
    return replace(state, expanded_ids=frozenset())


def set_draft(state: ChartEditorState, draft: OrgNode) -> ChartEditorState:
    return replace(state, draft=draft)


def clear_draft(state: ChartEditorState) -> ChartEditorState:
    return replace(state, draft=None)


# =============================================================================
# Conversion
# =============================================================================

def to_org_chart(state: ChartEditorState, chart_id: str, visible: bool = True) -> OrgChart:
    """Serialize the edited chart into a storable record, keeping unrelated data keys."""
    return OrgChart(
        id=chart_id,
        name=state.name,
        type=state.chart_type,
        data={
            **state.extra_data,
            "description": state.description,
            "nodes": [node.model_dump(by_alias=True, mode="json") for node in state.nodes],
        },
        visible=visible,
    )


def from_org_chart(chart: OrgChart) -> ChartEditorState:
    """Start editing a stored chart; corrupted chart data opens as an empty chart."""
    data = chart.decoded_data() or {}
    return ChartEditorState(
        name=chart.name,
        description=chart.description,
        chart_type=chart.type,
        nodes=tuple(chart.nodes()),
        extra_data={k: v for k, v in data.items() if k not in ("nodes", "description")},
    )


# =============================================================================
# Action Dispatch
# =============================================================================

class EditorActionType(str, Enum):
    """Operations the editor can dispatch."""

    ADD_NODE = "add_node"
    UPDATE_NODE = "update_node"
    REPARENT_NODE = "reparent_node"
    DELETE_NODE = "delete_node"
    SELECT_NODE = "select_node"
    TOGGLE_EXPANDED = "toggle_expanded"
    EXPAND_ALL = "expand_all"
    COLLAPSE_ALL = "collapse_all"
    SET_DRAFT = "set_draft"
    CLEAR_DRAFT = "clear_draft"
    SET_DETAILS = "set_details"


@dataclass(frozen=True)
class EditorAction:
    """A dispatched editor operation and its arguments."""

    type: EditorActionType
    node_id: Optional[str] = None
    node: Optional[OrgNode] = None
    parent_id: Optional[str] = None
    changes: Dict[str, Any] = field(default_factory=dict)


def apply(state: ChartEditorState, action: EditorAction) -> ChartEditorState:
    """Reduce one action onto the state."""
    kind = action.type

    if kind == EditorActionType.ADD_NODE:
        return add_node(state, action.node)
    if kind == EditorActionType.UPDATE_NODE:
        return update_node(state, action.node_id, action.changes)
    if kind == EditorActionType.REPARENT_NODE:
        return reparent_node(state, action.node_id, action.parent_id)
    if kind == EditorActionType.DELETE_NODE:
        return delete_node(state, action.node_id)
    if kind == EditorActionType.SELECT_NODE:
        return select_node(state, action.node_id)
    if kind == EditorActionType.TOGGLE_EXPANDED:
        return toggle_expanded(state, action.node_id)
    if kind == EditorActionType.EXPAND_ALL:
        return expand_all(state)
    if kind == EditorActionType.COLLAPSE_ALL:
        return collapse_all(state)
    if kind == EditorActionType.SET_DRAFT:
        return set_draft(state, action.node)
    if kind == EditorActionType.CLEAR_DRAFT:
        return clear_draft(state)
    if kind == EditorActionType.SET_DETAILS:
        allowed = {"name", "description", "chart_type"}
        return replace(state, **{k: v for k, v in action.changes.items() if k in allowed})

    raise ValidationError(message=f"Unsupported editor action: {kind}")
