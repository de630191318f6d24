"""API endpoints for custom org charts."""

import uuid
from typing import Annotated, Any, Dict, List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from orgchart.api.employees import HierarchyTreeResponse
from orgchart.config.settings import get_settings
from orgchart.data.connection import get_repository
from orgchart.data.org_repository import OrgRepository
from orgchart.schemas.records import OrgChart, OrgNode
from orgchart.services import chart_editor
from orgchart.services.hierarchy_service import (
    HierarchyNode,
    build_forest,
    collect_subtree_ids,
    possible_parents,
)
from orgchart.services.integrity_service import find_reporting_cycles
from orgchart.utils.errors import ValidationError, create_duplicate_error, create_not_found_error


# =============================================================================
# Request/Response Models
# =============================================================================

class OrgChartWriteRequest(BaseModel):
    """Request body for creating or replacing a chart."""

    id: Optional[str] = Field(default=None, description="Ignored on update")
    name: str = Field(..., min_length=1)
    type: str = "macro"
    description: str = ""
    nodes: List[OrgNode] = Field(default_factory=list)
    visible: bool = True


class OrgChartListResponse(BaseModel):
    data: List[OrgChart]
    total: int


class OrgChartResponse(BaseModel):
    data: OrgChart
    message: Optional[str] = None


class PossibleParentsResponse(BaseModel):
    node_id: str
    data: List[OrgNode]


class NodeDeleteResponse(BaseModel):
    removed_ids: List[str]
    remaining: int


# =============================================================================
# Helpers
# =============================================================================

def build_chart(
    chart_id: str,
    request: OrgChartWriteRequest,
    extra_data: Optional[Dict[str, Any]] = None,
) -> OrgChart:
    """
    Turn a submitted chart into a storable record.

    ``extra_data`` carries stored data keys the request does not submit,
    such as ``connections`` and ``metadata``.

    Raises:
        DuplicateError: If two nodes share an ID
        ValidationError: If the parent pointers form a cycle
    """
    seen = set()
    for node in request.nodes:
        if node.id in seen:
            raise create_duplicate_error("Node", "id", node.id)
        seen.add(node.id)

    cycles = find_reporting_cycles(request.nodes)
    if cycles:
        raise ValidationError(
            message="Chart nodes form a reporting cycle",
            details={"cycle": cycles[0]},
        )

    state = chart_editor.ChartEditorState(
        name=request.name,
        description=request.description,
        chart_type=request.type,
        nodes=tuple(request.nodes),
        extra_data=extra_data or {},
    )
    return chart_editor.to_org_chart(state, chart_id, visible=request.visible)


# =============================================================================
# Router Setup
# =============================================================================

org_charts_router = APIRouter(
    prefix="/api/org-charts",
    tags=["Org Charts"],
)


# =============================================================================
# Endpoints
# =============================================================================

@org_charts_router.get("", response_model=OrgChartListResponse, summary="List Org Charts")
async def list_org_charts(
    repository: Annotated[OrgRepository, Depends(get_repository)],
) -> OrgChartListResponse:
    charts = await repository.get_org_charts()
    return OrgChartListResponse(data=charts, total=len(charts))


@org_charts_router.post(
    "",
    response_model=OrgChartResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Org Chart",
)
async def create_org_chart(
    request: OrgChartWriteRequest,
    repository: Annotated[OrgRepository, Depends(get_repository)],
) -> OrgChartResponse:
    charts = await repository.get_org_charts()
    chart_id = request.id or str(uuid.uuid4())
    if any(c.id == chart_id for c in charts):
        raise create_duplicate_error("Org chart", "id", chart_id)

    chart = build_chart(chart_id, request)
    await repository.add_org_chart(chart)
    return OrgChartResponse(data=chart, message="Org chart created")


@org_charts_router.put(
    "/{chart_id}",
    response_model=OrgChartResponse,
    summary="Replace Org Chart",
)
async def update_org_chart(
    chart_id: str,
    request: OrgChartWriteRequest,
    repository: Annotated[OrgRepository, Depends(get_repository)],
) -> OrgChartResponse:
    existing = await repository.get_org_chart(chart_id)
    stored = chart_editor.from_org_chart(existing)
    chart = build_chart(chart_id, request, stored.extra_data)
    await repository.update_org_chart(chart)
    return OrgChartResponse(data=chart, message="Org chart updated")


@org_charts_router.get(
    "/{chart_id}/tree",
    response_model=HierarchyTreeResponse,
    summary="Org Chart Tree",
)
async def get_org_chart_tree(
    chart_id: str,
    repository: Annotated[OrgRepository, Depends(get_repository)],
) -> HierarchyTreeResponse:
    """Nested nodes of a chart; corrupted chart data yields an empty tree."""
    chart = await repository.get_org_chart(chart_id)
    forest = build_forest([HierarchyNode.from_org_node(node) for node in chart.nodes()])
    return HierarchyTreeResponse(roots=forest.to_tree(), total_nodes=len(forest))


@org_charts_router.get(
    "/{chart_id}/nodes/{node_id}/possible-parents",
    response_model=PossibleParentsResponse,
    summary="Possible Parents",
    description="Nodes that may become the parent without creating a cycle.",
)
async def get_possible_parents(
    chart_id: str,
    node_id: str,
    repository: Annotated[OrgRepository, Depends(get_repository)],
) -> PossibleParentsResponse:
    chart = await repository.get_org_chart(chart_id)
    nodes = chart.nodes()
    if not any(node.id == node_id for node in nodes):
        raise create_not_found_error("Node", node_id)

    max_depth = get_settings().hierarchy.max_walk_depth
    return PossibleParentsResponse(
        node_id=node_id,
        data=possible_parents(nodes, node_id, max_depth),
    )


@org_charts_router.delete(
    "/{chart_id}/nodes/{node_id}",
    response_model=NodeDeleteResponse,
    summary="Delete Node",
    description="Delete a node with all of its descendants.",
)
async def delete_chart_node(
    chart_id: str,
    node_id: str,
    repository: Annotated[OrgRepository, Depends(get_repository)],
) -> NodeDeleteResponse:
    chart = await repository.get_org_chart(chart_id)
    state = chart_editor.from_org_chart(chart)

    removed = collect_subtree_ids(state.nodes, node_id)
    if not removed:
        raise create_not_found_error("Node", node_id)

    state = chart_editor.delete_node(state, node_id)
    await repository.update_org_chart(
        chart_editor.to_org_chart(state, chart.id, visible=chart.visible)
    )
    return NodeDeleteResponse(removed_ids=sorted(removed), remaining=len(state.nodes))
