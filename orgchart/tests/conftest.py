"""Shared fixtures: an in-memory spreadsheet proxy served through httpx.MockTransport."""

import httpx
import pytest

from orgchart.config.settings import SheetsSettings
from orgchart.data.org_repository import OrgRepository
from orgchart.infrastructure.sheets.sheets_client import SheetsClient
from orgchart.tests.sheets_fake import (
    PROXY_URL,
    InMemorySheetsProxy,
    build_tabs,
    department_row,
    employee_row,
    org_chart_row,
)


@pytest.fixture
def sample_tabs():
    """A small healthy company."""
    employees = [
        employee_row("e1", "Ana", "Sócia", "Diretoria"),
        employee_row("e2", "Bruno", "Diretor Comercial", "Comercial", parent_id="e1"),
        employee_row("e3", "Carla", "Gerente de Vendas", "Comercial", parent_id="e2", is_manager=True),
        employee_row("e4", "Davi", "Vendedor", "Comercial", parent_id="e3"),
    ]
    departments = [
        department_row("d1", "Diretoria"),
        department_row("d2", "Comercial", "#548235"),
    ]
    chart_data = {
        "description": "Estrutura macro",
        "nodes": [
            {"id": "n1", "name": "Diretoria", "type": "diretoria"},
            {"id": "n2", "parentId": "n1", "name": "Comercial", "type": "gerencia"},
            {"id": "n3", "parentId": "n2", "name": "Vendas", "type": "coordenacao"},
        ],
    }
    charts = [org_chart_row("c1", "Macro", chart_data)]
    return build_tabs(employees, departments, charts)


@pytest.fixture
def sheets_proxy(sample_tabs):
    """In-memory proxy seeded with the sample company."""
    return InMemorySheetsProxy(sample_tabs)


@pytest.fixture
def sheets_settings():
    return SheetsSettings(proxy_url=PROXY_URL)


@pytest.fixture
def sheets_client(sheets_proxy, sheets_settings):
    """Real client talking to the in-memory proxy."""
    return SheetsClient(sheets_settings, transport=httpx.MockTransport(sheets_proxy.handle))


@pytest.fixture
def repository(sheets_client):
    return OrgRepository(sheets_client)
