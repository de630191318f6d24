"""Tests for data integrity validation and fixes."""

import asyncio
import json

import httpx
import pytest

from orgchart.data.org_repository import OrgRepository
from orgchart.infrastructure.sheets.sheets_client import SheetsClient
from orgchart.schemas.integrity import IntegrityIssue, IssueEntity, IssueSeverity, IssueType
from orgchart.schemas.records import Department, Employee, OrgChart
from orgchart.services.integrity_service import (
    IntegrityValidator,
    find_reporting_cycles,
    validate_records,
)
from orgchart.tests.sheets_fake import (
    InMemorySheetsProxy,
    build_tabs,
    department_row,
    employee_row,
    org_chart_row,
)


def issues_of(issues, type=None, entity_id=None, field=None):
    return [
        issue for issue in issues
        if (type is None or issue.type == type)
        and (entity_id is None or issue.entity_id == entity_id)
        and (field is None or issue.field == field)
    ]


@pytest.fixture
def departments():
    return [Department(id="d1", name="Comercial"), Department(id="d2", name="TI")]


class TestFindReportingCycles:
    """Tests for find_reporting_cycles."""

    def test_self_reference(self):
        employees = [Employee(id="a", parent_id="a")]

        assert find_reporting_cycles(employees) == [["a"]]

    def test_each_cycle_listed_once(self):
        """Test a cycle with a tail leading into it is reported once."""
        employees = [
            Employee(id="e1", parent_id="e3"),
            Employee(id="e2", parent_id="e1"),
            Employee(id="e3", parent_id="e2"),
            Employee(id="tail", parent_id="e2"),
        ]

        cycles = find_reporting_cycles(employees)

        assert len(cycles) == 1
        assert sorted(cycles[0]) == ["e1", "e2", "e3"]

    def test_acyclic(self):
        employees = [Employee(id="a"), Employee(id="b", parent_id="a")]

        assert find_reporting_cycles(employees) == []


class TestValidateRecords:
    """Tests for validate_records."""

    def test_clean_data(self, departments):
        """Test consistent data yields no issues."""
        employees = [
            Employee(id="e1", name="Ana", department="Comercial"),
            Employee(id="e2", name="Bruno", department="TI", parent_id="e1"),
        ]

        assert validate_records(employees, departments, []) == []

    def test_self_parent_is_flagged(self, departments):
        """Test an employee reporting to themselves yields a reference issue."""
        employees = [
            Employee(id="e1", name="Ana", department="Comercial"),
            Employee(id="e2", name="Bruno", department="TI", parent_id="e2"),
        ]

        issues = validate_records(employees, departments, [])

        flagged = issues_of(issues, IssueType.INVALID_REFERENCE, "e2", "parent_id")
        assert len(flagged) >= 1
        assert flagged[0].severity == IssueSeverity.HIGH
        assert flagged[0].fixable is True

    def test_missing_department_yields_exactly_one_issue(self, departments):
        """Test a nonexistent department is one invalid_reference on that employee."""
        employees = [
            Employee(id="e1", name="Ana", department="Comercial"),
            Employee(id="e2", name="Bruno", department="TI"),
            Employee(id="e3", name="Caio", department="Marketing"),
        ]

        issues = validate_records(employees, departments, [])

        references = issues_of(issues, IssueType.INVALID_REFERENCE)
        assert len(references) == 1
        assert references[0].entity_id == "e3"
        assert references[0].entity == IssueEntity.EMPLOYEE
        assert references[0].field == "department"

    def test_department_id_wins_over_name(self, departments):
        """Test an explicit department ID is used before the name."""
        employees = [
            Employee(id="e1", name="Ana", department="Renamed", department_id="d1"),
            Employee(id="e2", name="Bruno", department="TI"),
        ]

        assert validate_records(employees, departments, []) == []

    def test_duplicate_ids_report_repeats_only(self, departments):
        employees = [
            Employee(id="e1", name="Ana", department="Comercial"),
            Employee(id="e1", name="Ana Clone", department="TI"),
        ]

        duplicates = issues_of(validate_records(employees, departments, []), IssueType.DUPLICATE_ID)

        assert len(duplicates) == 1
        assert duplicates[0].entity_id == "e1"
        assert duplicates[0].severity == IssueSeverity.HIGH

    def test_duplicate_department_names(self):
        departments = [Department(id="d1", name="TI"), Department(id="d2", name="TI")]
        employees = [Employee(id="e1", name="Ana", department="TI")]

        issues = validate_records(employees, departments, [])

        names = issues_of(issues, IssueType.DUPLICATE_ID, field="name")
        assert [issue.entity_id for issue in names] == ["d2"]

    def test_missing_name_and_dangling_manager(self, departments):
        employees = [
            Employee(id="e1", name="", department="Comercial"),
            Employee(id="e2", name="Bruno", department="TI", parent_id="ghost"),
        ]

        issues = validate_records(employees, departments, [])

        assert issues_of(issues, IssueType.MISSING_DATA, "e1", "name")
        assert issues_of(issues, IssueType.INVALID_REFERENCE, "e2", "parent_id")

    def test_orphaned_department_is_low_and_not_fixable(self, departments):
        employees = [Employee(id="e1", name="Ana", department="Comercial")]

        orphans = issues_of(validate_records(employees, departments, []), field="employees")

        assert len(orphans) == 1
        assert orphans[0].entity_id == "d2"
        assert orphans[0].severity == IssueSeverity.LOW
        assert orphans[0].fixable is False

    def test_corrupted_chart_data(self):
        charts = [OrgChart(id="c1", name="Macro", data="{not json")]

        issues = validate_records([], [], charts)

        corrupted = issues_of(issues, IssueType.CORRUPTED_DATA, "c1")
        assert len(corrupted) == 1
        assert corrupted[0].field == "data"

    def test_malformed_chart_nodes(self):
        """Test nodes without a usable id are flagged and skipped when rendering."""
        data = {"nodes": [{"id": "n1", "name": "A"}, {"name": "no id"}, {"id": 7}, "text"]}
        chart = OrgChart(id="c1", name="Macro", data=data)

        corrupted = issues_of(validate_records([], [], [chart]), IssueType.CORRUPTED_DATA, "c1")

        assert len(corrupted) == 1
        assert corrupted[0].severity == IssueSeverity.HIGH
        assert corrupted[0].fixable is True
        assert corrupted[0].field == "data"
        assert [node.id for node in chart.nodes()] == ["n1"]

    def test_nodes_value_not_a_list(self):
        chart = OrgChart(id="c1", name="Macro", data={"nodes": {"id": "n1"}})

        assert len(issues_of(validate_records([], [], [chart]), IssueType.CORRUPTED_DATA)) == 1
        assert chart.nodes() == []

    def test_json_string_literal_is_not_corrupted(self):
        chart = OrgChart(id="c1", name="Macro", data='"abc"')

        assert issues_of(validate_records([], [], [chart]), IssueType.CORRUPTED_DATA) == []
        assert chart.nodes() == []

    def test_serialized_nodes_round_trip(self):
        """Test nodes serialized to JSON and parsed back are accepted."""
        nodes = [
            {"id": "n1", "name": "Diretoria", "type": "diretoria"},
            {"id": "n2", "parentId": "n1", "name": "Vendas", "type": "gerencia"},
        ]
        chart = OrgChart(id="c1", name="Macro", data=json.dumps({"nodes": nodes}))

        issues = validate_records([], [], [chart])

        assert issues_of(issues, IssueType.CORRUPTED_DATA) == []
        assert len(chart.nodes()) == len(nodes)

    def test_skipped_collection_reports_cross_reference_skip(self, departments):
        issues = validate_records(None, departments, [])

        skipped = issues_of(issues, IssueType.CORRUPTED_DATA)
        assert len(skipped) == 1
        assert skipped[0].entity == IssueEntity.SETTINGS


class TestIntegrityValidator:
    """Tests for IntegrityValidator against the in-memory spreadsheet."""

    def test_healthy_spreadsheet(self, repository):
        """Test the sample company has no issues."""
        report = asyncio.run(IntegrityValidator(repository).report())

        assert report.is_valid is True
        assert report.summary.total == 0

    def test_unconfigured_store_short_circuits(self, repository, sheets_proxy):
        """Test an unconfigured store yields a single critical issue."""
        repository.client.config.proxy_url = ""

        issues = asyncio.run(IntegrityValidator(repository).validate())

        assert len(issues) == 1
        assert issues[0].severity == IssueSeverity.CRITICAL
        assert issues[0].type == IssueType.MISSING_DATA
        assert issues[0].entity == IssueEntity.SETTINGS
        assert sheets_proxy.requests == []

    def test_unreachable_store_short_circuits(self, repository, sheets_proxy):
        sheets_proxy.fail("Funcionarios", 403, "Google Sheets API error: 403")

        issues = asyncio.run(IntegrityValidator(repository).validate())

        assert [issue.severity for issue in issues] == [IssueSeverity.CRITICAL]

    def test_one_failing_collection_does_not_hide_others(self, repository, sheets_proxy):
        """Test a failing tab becomes one issue while other tabs are still checked."""
        sheets_proxy.fail("Departamentos", 429, "Quota exceeded")
        sheets_proxy.tabs["Organogramas"].append(org_chart_row("c2", "Broken", "{oops"))

        issues = asyncio.run(IntegrityValidator(repository).validate())

        department_failures = issues_of(issues, IssueType.CORRUPTED_DATA)
        entities = {issue.entity for issue in department_failures}
        assert IssueEntity.DEPARTMENT in entities
        assert IssueEntity.ORG_CHART in entities
        assert IssueEntity.SETTINGS in entities

    def test_summary_counts(self, repository, sheets_proxy):
        sheets_proxy.tabs["Funcionarios"].append(employee_row("e5", "", department="Nada"))

        report = asyncio.run(IntegrityValidator(repository).report())

        assert report.is_valid is False
        assert report.summary.medium == 2
        assert report.summary.total == 2
        assert report.summary.fixable == 2


class TestIntegrityFixes:
    """Tests for IntegrityValidator.fix_issue and fix_all."""

    @pytest.fixture
    def broken_proxy(self):
        employees = [
            employee_row("e1", "Ana", department="Comercial", parent_id="e3"),
            employee_row("e2", "Bruno", department="Comercial", parent_id="e1"),
            employee_row("e3", "Carla", department="Comercial", parent_id="e2"),
            employee_row("e4", "", department="Comercial"),
            employee_row("e5", "Davi", department="Marketing", parent_id="ghost"),
            employee_row("e5", "Eva", department="Comercial"),
        ]
        departments = [
            department_row("d1", "Comercial"),
            department_row("d2", "Comercial"),
        ]
        charts = [org_chart_row("c1", "Broken", "{oops")]
        return InMemorySheetsProxy(build_tabs(employees, departments, charts))

    @pytest.fixture
    def broken_repository(self, broken_proxy, sheets_settings):
        client = SheetsClient(sheets_settings, transport=httpx.MockTransport(broken_proxy.handle))
        return OrgRepository(client)

    def test_non_fixable_issue_returns_false(self, repository, sheets_proxy):
        issue = IntegrityIssue(
            type=IssueType.MISSING_DATA,
            entity=IssueEntity.DEPARTMENT,
            entity_id="d1",
            field="employees",
            message="Department has no employees",
            severity=IssueSeverity.LOW,
            fixable=False,
        )

        assert asyncio.run(IntegrityValidator(repository).fix_issue(issue)) is False
        assert sheets_proxy.writes() == []

    def test_fix_cycle_clears_manager(self, broken_repository):
        """Test fixing a cycle breaks it at the flagged employee."""
        validator = IntegrityValidator(broken_repository)

        async def scenario():
            issues = await validator.validate()
            cycle = [
                issue for issue in issues
                if issue.field == "parent_id" and issue.severity == IssueSeverity.HIGH
            ][0]
            fixed = await validator.fix_issue(cycle)
            return cycle, fixed, await broken_repository.get_employees()

        cycle, fixed, employees = asyncio.run(scenario())

        assert fixed is True
        assert cycle.entity_id == "e1"
        assert next(e for e in employees if e.id == "e1").parent_id is None
        assert find_reporting_cycles(employees) == []

    def test_fix_is_idempotent(self, broken_repository, broken_proxy):
        """Test applying the same fix twice succeeds without a second write."""
        validator = IntegrityValidator(broken_repository)
        issue = IntegrityIssue(
            type=IssueType.MISSING_DATA,
            entity=IssueEntity.EMPLOYEE,
            entity_id="e4",
            field="name",
            message="Required employee name is missing",
            severity=IssueSeverity.MEDIUM,
            fixable=True,
        )

        async def scenario():
            first = await validator.fix_issue(issue)
            writes_after_first = len(broken_proxy.writes())
            second = await validator.fix_issue(issue)
            return first, second, writes_after_first

        first, second, writes_after_first = asyncio.run(scenario())

        assert first is True
        assert second is True
        assert len(broken_proxy.writes()) == writes_after_first == 1

    def test_fix_corrupted_chart(self, broken_repository):
        validator = IntegrityValidator(broken_repository)
        issue = IntegrityIssue(
            type=IssueType.CORRUPTED_DATA,
            entity=IssueEntity.ORG_CHART,
            entity_id="c1",
            field="data",
            message="Corrupted data",
            severity=IssueSeverity.HIGH,
            fixable=True,
        )

        async def scenario():
            fixed = await validator.fix_issue(issue)
            return fixed, await broken_repository.get_org_chart("c1")

        fixed, chart = asyncio.run(scenario())

        assert fixed is True
        assert chart.data == {"nodes": [], "connections": []}

    def test_fix_malformed_nodes_keeps_valid_ones(self, sheets_settings):
        """Test fixing malformed nodes drops only those nodes."""
        data = {
            "nodes": [{"id": "n1", "name": "Diretoria"}, {"name": "no id"}],
            "connections": [{"from": "n1", "to": "n2"}],
        }
        proxy = InMemorySheetsProxy(build_tabs([], [], [org_chart_row("c1", "Macro", data)]))
        repository = OrgRepository(
            SheetsClient(sheets_settings, transport=httpx.MockTransport(proxy.handle))
        )
        validator = IntegrityValidator(repository)

        async def scenario():
            issues = await validator.validate()
            corrupted = [issue for issue in issues if issue.type == IssueType.CORRUPTED_DATA]
            fixed = await validator.fix_issue(corrupted[0])
            return fixed, await repository.get_org_chart("c1"), await validator.validate()

        fixed, chart, remaining = asyncio.run(scenario())

        assert fixed is True
        assert [node.id for node in chart.nodes()] == ["n1"]
        assert chart.data["connections"] == [{"from": "n1", "to": "n2"}]
        assert issues_of(remaining, IssueType.CORRUPTED_DATA) == []

    def test_fix_failure_returns_false(self, broken_repository, broken_proxy):
        """Test a backend failure during a fix is reported as not fixed."""
        broken_proxy.fail("Funcionarios", 500, "Internal error")
        issue = IntegrityIssue(
            type=IssueType.MISSING_DATA,
            entity=IssueEntity.EMPLOYEE,
            entity_id="e4",
            field="name",
            message="Required employee name is missing",
            severity=IssueSeverity.MEDIUM,
            fixable=True,
        )

        assert asyncio.run(IntegrityValidator(broken_repository).fix_issue(issue)) is False

    def test_fix_all_leaves_only_unfixable_issues(self, broken_repository):
        """Test fix-all resolves every fixable issue."""
        result = asyncio.run(IntegrityValidator(broken_repository).fix_all())

        assert result.attempted > 0
        assert result.fixed == result.attempted
        assert result.remaining.summary.fixable == 0
        assert all(not issue.fixable for issue in result.remaining.issues)
