"""In-memory stand-in for the spreadsheet proxy and row builders shared by the tests."""

import copy
import json
from typing import Any, Dict, List, Optional, Tuple

import httpx

from orgchart.infrastructure.sheets.row_schema import (
    department_schema,
    employee_schema,
    org_chart_schema,
    settings_schema,
)


PROXY_URL = "https://proxy.test/functions/v1/google-sheets-proxy"


class InMemorySheetsProxy:
    """Mimics the proxy function: read, write and append on named tabs."""

    def __init__(self, tabs: Optional[Dict[str, List[List[str]]]] = None):
        self.tabs: Dict[str, List[List[str]]] = copy.deepcopy(tabs or {})
        self.failures: Dict[str, Tuple[int, str]] = {}
        self.requests: List[Tuple[str, str]] = []

    def fail(self, sheet: str, status_code: int, message: str) -> None:
        """Make every request for a tab fail."""
        self.failures[sheet] = (status_code, message)

    def writes(self, sheet: Optional[str] = None) -> List[Tuple[str, str]]:
        return [
            r for r in self.requests
            if r[0] in ("write", "append") and (sheet is None or r[1] == sheet)
        ]

    def handle(self, request: httpx.Request) -> httpx.Response:
        action = request.url.params["action"]
        sheet = request.url.params["sheet"]
        self.requests.append((action, sheet))

        if sheet in self.failures:
            status_code, message = self.failures[sheet]
            return httpx.Response(status_code, json={"error": message})

        if action == "read":
            return httpx.Response(200, json={"values": copy.deepcopy(self.tabs.get(sheet, []))})

        body = json.loads(request.content)
        if action == "write":
            self.tabs[sheet] = body["values"]
        elif action == "append":
            self.tabs.setdefault(sheet, []).extend(body["values"])
        else:
            return httpx.Response(400, json={"error": f"Unknown action {action}"})
        return httpx.Response(200, json={"success": True})


def employee_row(
    id: str,
    name: str,
    position: str = "",
    department: str = "",
    parent_id: str = "",
    is_manager: bool = False,
    visible: bool = True,
) -> List[str]:
    return employee_schema().to_row({
        "id": id,
        "name": name,
        "position": position,
        "department": department,
        "parent_id": parent_id,
        "is_manager": is_manager,
        "visible": visible,
    })


def department_row(id: str, name: str, color: str = "#1f4e78") -> List[str]:
    return department_schema().to_row({"id": id, "name": name, "color": color, "visible": True})


def org_chart_row(id: str, name: str, data: Any, type: str = "macro") -> List[str]:
    return org_chart_schema().to_row({"id": id, "name": name, "type": type, "data": data, "visible": True})


def build_tabs(
    employees: List[List[str]],
    departments: List[List[str]],
    org_charts: Optional[List[List[str]]] = None,
    settings: Optional[List[List[str]]] = None,
) -> Dict[str, List[List[str]]]:
    """Tabs with header rows and the given data rows."""
    return {
        "Funcionarios": [employee_schema().header_row()] + employees,
        "Departamentos": [department_schema().header_row()] + departments,
        "Organogramas": [org_chart_schema().header_row()] + (org_charts or []),
        "Configuracoes": [settings_schema().header_row()] + (settings or [["companyName", "Acme"]]),
    }
