"""Service for building org chart hierarchies from flat node lists."""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence, Set, Tuple

from orgchart.schemas.records import Employee, NodeType, OrgNode


# Ancestor walks stop after this many hops, so corrupted cyclic data
# cannot loop forever.
DEFAULT_MAX_WALK_DEPTH = 32


@dataclass(frozen=True)
class HierarchyNode:
    """A generic hierarchy entry (employee or custom chart position)."""

    id: str
    parent_id: Optional[str] = None
    name: str = ""
    label: str = ""
    type_rank: int = NodeType.STAFF.rank
    visible: bool = True

    @property
    def sort_key(self) -> Tuple[int, str, str, str]:
        """Level first, then name; the ID only breaks exact ties."""
        return (self.type_rank, self.name.casefold(), self.name, self.id)

    @classmethod
    def from_org_node(cls, node: OrgNode) -> "HierarchyNode":
        return cls(
            id=node.id,
            parent_id=node.parent_id or None,
            name=node.name,
            label=node.position,
            type_rank=node.type.rank,
        )

    @classmethod
    def from_employee(cls, employee: Employee) -> "HierarchyNode":
        return cls(
            id=employee.id,
            parent_id=employee.parent_id or None,
            name=employee.name,
            label=employee.position,
            type_rank=infer_employee_type(employee).rank,
            visible=employee.visible,
        )


def infer_employee_type(employee: Employee) -> NodeType:
    """Derive an employee's level from the position text."""
    position = (employee.position or "").lower()

    if "sócio" in position or "socio" in position:
        return NodeType.PARTNER
    if "diretor executivo" in position:
        return NodeType.EXECUTIVE_DIRECTOR
    if "diretor" in position:
        return NodeType.DIRECTORATE
    if employee.is_manager and "gerente" in position:
        return NodeType.MANAGEMENT
    if "coordenador" in position:
        return NodeType.COORDINATION
    return NodeType.STAFF


@dataclass
class Forest:
    """
    A rooted forest over a flat node list.

    Every input node is either in ``roots`` or listed under exactly one
    parent by ``children_of``.
    """

    nodes: List[HierarchyNode]
    roots: List[HierarchyNode]
    _children: Dict[str, List[HierarchyNode]] = field(default_factory=dict, repr=False)

    def children_of(self, parent_id: Optional[str] = None) -> List[HierarchyNode]:
        """
        Children of a node sorted by (type rank, name).

        ``None`` returns the roots.
        """
        if parent_id is None:
            return list(self.roots)
        return list(self._children.get(parent_id, []))

    def walk(self) -> Iterator[Tuple[HierarchyNode, int]]:
        """Depth-first (node, depth) pairs, each input node exactly once."""
        emitted: Set[int] = set()
        expanded: Set[str] = set()
        stack: List[Tuple[HierarchyNode, int]] = [(root, 0) for root in reversed(self.roots)]

        while stack:
            node, depth = stack.pop()
            if id(node) in emitted:
                continue
            emitted.add(id(node))
            yield node, depth
            # Duplicate IDs share one child list; expand it once
            if node.id in expanded:
                continue
            expanded.add(node.id)
            for child in reversed(self._children.get(node.id, [])):
                stack.append((child, depth + 1))

    def to_tree(self) -> List[Dict[str, Any]]:
        """Nested dictionaries for rendering."""
        trees: List[Dict[str, Any]] = []
        parents: List[Dict[str, Any]] = []

        for node, depth in self.walk():
            entry = {
                "id": node.id,
                "parent_id": node.parent_id,
                "name": node.name,
                "label": node.label,
                "type_rank": node.type_rank,
                "visible": node.visible,
                "level": depth,
                "children": [],
            }
            del parents[depth:]
            if depth == 0:
                trees.append(entry)
            else:
                parents[depth - 1]["children"].append(entry)
            parents.append(entry)

        return trees

    def __len__(self) -> int:
        return len(self.nodes)


def build_forest(nodes: Sequence[HierarchyNode]) -> Forest:
    """
    Build a forest from an unordered node list.

    A node is a root when it has no parent or its parent ID does not
    resolve. Nodes caught in a parent cycle cannot reach a root; the first
    member of each such cycle (in sort order) is promoted to a root so no
    node is dropped.
    """
    nodes = list(nodes)
    known_ids = {node.id for node in nodes}

    root_positions: Set[int] = {
        i for i, node in enumerate(nodes)
        if not node.parent_id or node.parent_id not in known_ids
    }

    root_positions |= _cycle_roots(nodes, root_positions)

    children: Dict[str, List[HierarchyNode]] = {}
    for i, node in enumerate(nodes):
        if i in root_positions:
            continue
        children.setdefault(node.parent_id, []).append(node)
    for siblings in children.values():
        siblings.sort(key=lambda n: n.sort_key)

    roots = sorted((nodes[i] for i in root_positions), key=lambda n: n.sort_key)
    return Forest(nodes=nodes, roots=roots, _children=children)


def _cycle_roots(nodes: List[HierarchyNode], root_positions: Set[int]) -> Set[int]:
    """Positions to promote so every node is reachable from a root."""
    by_parent: Dict[str, List[int]] = {}
    for i, node in enumerate(nodes):
        if i not in root_positions:
            by_parent.setdefault(node.parent_id, []).append(i)

    reached: Set[int] = set()

    def reach(start: int) -> None:
        frontier = [start]
        while frontier:
            position = frontier.pop()
            if position in reached:
                continue
            reached.add(position)
            frontier.extend(by_parent.get(nodes[position].id, []))

    for position in root_positions:
        reach(position)

    promoted: Set[int] = set()
    for position in sorted(range(len(nodes)), key=lambda i: nodes[i].sort_key):
        if position in reached:
            continue
        promoted.add(position)
        # Detach from the cycle before reaching the rest of it
        by_parent[nodes[position].parent_id].remove(position)
        reach(position)

    return promoted


def index_by_id(nodes: Sequence[Any]) -> Dict[str, Any]:
    """Map IDs to nodes; the first occurrence of a duplicate ID wins."""
    index: Dict[str, Any] = {}
    for node in nodes:
        index.setdefault(node.id, node)
    return index


def is_descendant(
    nodes: Sequence[Any],
    candidate_ancestor_id: str,
    node_id: str,
    max_depth: int = DEFAULT_MAX_WALK_DEPTH,
) -> bool:
    """
    Whether ``candidate_ancestor_id`` is an ancestor of ``node_id``.

    Walks parent pointers upward from the node's parent for at most
    ``max_depth`` hops; exceeding the bound counts as not found.
    """
    by_id = index_by_id(nodes)
    current = by_id.get(node_id)
    hops = 0

    while current is not None and current.parent_id and hops < max_depth:
        if current.parent_id == candidate_ancestor_id:
            return True
        current = by_id.get(current.parent_id)
        hops += 1

    return False


def possible_parents(
    nodes: Sequence[Any],
    node_id: Optional[str],
    max_depth: int = DEFAULT_MAX_WALK_DEPTH,
) -> List[Any]:
    """Nodes that may become the parent of ``node_id``."""
    if not node_id:
        return list(nodes)
    return [
        candidate for candidate in nodes
        if candidate.id != node_id
        and not is_descendant(nodes, node_id, candidate.id, max_depth)
    ]


def collect_subtree_ids(nodes: Sequence[Any], node_id: str) -> Set[str]:
    """IDs of a node and all its transitive children; empty if absent."""
    if not any(node.id == node_id for node in nodes):
        return set()

    collected: Set[str] = {node_id}
    frontier = [node_id]
    while frontier:
        parent_id = frontier.pop()
        for node in nodes:
            if node.parent_id == parent_id and node.id not in collected:
                collected.add(node.id)
                frontier.append(node.id)
    return collected


def delete_subtree(nodes: Sequence[Any], node_id: str) -> List[Any]:
    """
    Remove a node and all its transitive children.

    Callers holding a selection must clear it when the selected ID is in
    ``collect_subtree_ids(nodes, node_id)``.
    """
    removed = collect_subtree_ids(nodes, node_id)
    return [node for node in nodes if node.id not in removed]


def visible_only(nodes: Sequence[HierarchyNode]) -> List[HierarchyNode]:
    """Nodes shown on public charts."""
    return [node for node in nodes if node.visible]
