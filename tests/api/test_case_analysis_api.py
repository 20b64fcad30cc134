"""HTTP-level tests for the case analysis endpoints with services mocked out."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from case_analysis.api.v1.endpoints.case_law import get_case_law_lookup
from case_analysis.api.v1.endpoints.workflows import get_workflow_manager
from case_analysis.core.context import get_analysis_context
from case_analysis.core.database import get_async_session
from case_analysis.core.exceptions import APIClientError, StepConflictError, WorkflowNotFoundError
from case_analysis.main import app
from case_analysis.services.case_analysis.case_law_lookup import CaseLawSearchResult
from case_analysis.services.case_analysis.steps import StepCompleted, StepFailed

API = "/api/v1"


@pytest.fixture
def mock_manager():
    manager = AsyncMock()
    app.dependency_overrides[get_workflow_manager] = lambda: manager
    return manager


@pytest.fixture
def mock_session():
    session = MagicMock()
    session.execute = AsyncMock()

    async def override():
        yield session

    app.dependency_overrides[get_async_session] = override
    return session


@pytest.fixture
def mock_context(analysis_context):
    app.dependency_overrides[get_analysis_context] = lambda: analysis_context
    return analysis_context


class TestWorkflowManagerEndpoint:

    def test_missing_action_is_rejected(self, test_client, mock_manager):
        response = test_client.post(f"{API}/case-analysis-workflow-manager", json={"clientId": str(uuid4())})

        assert response.status_code == 400
        assert response.json() == {"error": "action is required"}

    def test_unknown_action_is_rejected(self, test_client, mock_manager):
        response = test_client.post(
            f"{API}/case-analysis-workflow-manager",
            json={"action": "delete_workflow", "clientId": str(uuid4())},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid action"}

    def test_missing_client_id_is_rejected(self, test_client, mock_manager):
        response = test_client.post(f"{API}/case-analysis-workflow-manager", json={"action": "create_workflow"})

        assert response.status_code == 400
        assert response.json() == {"error": "clientId is required"}
        mock_manager.execute_create_workflow.assert_not_awaited()

    def test_status_requires_workflow_id(self, test_client, mock_manager):
        response = test_client.post(
            f"{API}/case-analysis-workflow-manager",
            json={"action": "get_workflow_status", "clientId": str(uuid4())},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "workflowId is required"}

    def test_malformed_uuid_is_a_bad_request(self, test_client, mock_manager):
        response = test_client.post(
            f"{API}/case-analysis-workflow-manager",
            json={"action": "create_workflow", "clientId": "not-a-uuid"},
        )

        assert response.status_code == 400
        assert "error" in response.json()

    def test_create_workflow(self, test_client, mock_manager):
        client_id, workflow_id = uuid4(), uuid4()
        mock_manager.execute_create_workflow.return_value = {
            "workflow_id": workflow_id,
            "current_step": 1,
            "total_steps": 9,
            "status": "running",
        }

        response = test_client.post(
            f"{API}/case-analysis-workflow-manager",
            json={"action": "create_workflow", "clientId": str(client_id)},
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "workflowId": str(workflow_id),
            "currentStep": 1,
            "totalSteps": 9,
            "status": "running",
        }
        mock_manager.execute_create_workflow.assert_awaited_once_with(client_id, None)

    def test_get_workflow_status(self, test_client, mock_manager):
        client_id, workflow_id = uuid4(), uuid4()
        steps = [
            SimpleNamespace(
                id=uuid4(),
                step_number=number,
                step_name=f"Step {number}",
                status="completed" if number == 1 else "pending",
                content="Summary" if number == 1 else None,
                citations=[],
                execution_time_ms=120 if number == 1 else None,
                started_at=None,
                completed_at=None,
                error_message=None,
            )
            for number in range(1, 10)
        ]
        mock_manager.execute_get_workflow_status.return_value = SimpleNamespace(
            id=workflow_id,
            client_id=client_id,
            case_id=None,
            status="running",
            current_step=2,
            total_steps=9,
            started_at=None,
            completed_at=None,
            error_message=None,
            workflow_metadata={"created_by": "step-based-analysis-v1"},
            steps=steps,
        )

        response = test_client.post(
            f"{API}/case-analysis-workflow-manager",
            json={"action": "get_workflow_status", "clientId": str(client_id), "workflowId": str(workflow_id)},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["currentStep"] == 2
        assert body["workflow"]["metadata"] == {"created_by": "step-based-analysis-v1"}
        assert [step["stepNumber"] for step in body["steps"]] == list(range(1, 10))
        assert body["steps"][0]["executionTimeMs"] == 120
        mock_manager.execute_get_workflow_status.assert_awaited_once_with(workflow_id, client_id)

    def test_unknown_workflow_is_not_found(self, test_client, mock_manager):
        workflow_id = uuid4()
        mock_manager.execute_complete_workflow.side_effect = WorkflowNotFoundError(
            f"Workflow {workflow_id} not found"
        )

        response = test_client.post(
            f"{API}/case-analysis-workflow-manager",
            json={"action": "complete_workflow", "clientId": str(uuid4()), "workflowId": str(workflow_id)},
        )

        assert response.status_code == 404
        assert response.json() == {"error": f"Workflow {workflow_id} not found"}

    def test_complete_workflow(self, test_client, mock_manager):
        workflow_id = uuid4()
        mock_manager.execute_complete_workflow.return_value = {
            "workflow_id": workflow_id,
            "status": "completed",
            "analysis_saved": True,
        }

        response = test_client.post(
            f"{API}/case-analysis-workflow-manager",
            json={"action": "complete_workflow", "clientId": str(uuid4()), "workflowId": str(workflow_id)},
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "workflowId": str(workflow_id),
            "status": "completed",
            "analysisSaved": True,
        }


class TestCleanupEndpoints:

    def test_no_running_workflows(self, test_client, mock_manager):
        mock_manager.execute_cancel_running_workflows.return_value = {"cleaned": 0, "workflows": []}

        response = test_client.post(f"{API}/cleanup-workflows", json={"clientId": str(uuid4())})

        assert response.status_code == 200
        assert response.json() == {"message": "No running workflows found", "cleaned": 0, "workflows": []}

    def test_running_workflows_are_cancelled(self, test_client, mock_manager):
        workflow_id = uuid4()
        mock_manager.execute_cancel_running_workflows.return_value = {
            "cleaned": 1,
            "workflows": [{"id": workflow_id, "status": "cancelled"}],
        }

        response = test_client.post(f"{API}/cleanup-workflows", json={"clientId": str(uuid4())})

        assert response.json() == {
            "message": "Workflows cleaned up successfully",
            "cleaned": 1,
            "workflows": [{"id": str(workflow_id), "status": "cancelled"}],
        }

    def test_cleanup_requires_client_id(self, test_client, mock_manager):
        response = test_client.post(f"{API}/cleanup-workflows", json={})

        assert response.status_code == 400
        assert response.json() == {"error": "clientId is required"}

    def test_cleanup_stuck_workflows(self, test_client, mock_manager):
        client_id = uuid4()
        mock_manager.execute_fail_stuck_workflows.return_value = {"cleaned_up": 0, "workflows": []}

        response = test_client.post(
            f"{API}/cleanup-stuck-workflows",
            json={"clientId": str(client_id), "olderThanMinutes": 45},
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "cleanedUp": 0, "workflows": []}
        mock_manager.execute_fail_stuck_workflows.assert_awaited_once_with(client_id, 45)


class TestStepEndpoints:

    def test_completed_step(self, test_client, mock_session, mock_context):
        workflow_id = uuid4()
        executor = MagicMock()
        executor.execute = AsyncMock(
            return_value=StepCompleted(
                step_number=2,
                step_name="Preliminary Analysis",
                content="Issues identified",
                citations=[],
                execution_time_ms=812,
                next_step=3,
            )
        )

        with patch(
            "case_analysis.api.v1.endpoints.steps.StepRegistry.create", return_value=executor
        ) as create:
            response = test_client.post(
                f"{API}/case-analysis-step-2",
                json={"workflowId": str(workflow_id), "stepNumber": 2, "previousContent": "Summary"},
            )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "step": 2,
            "stepName": "Preliminary Analysis",
            "content": "Issues identified",
            "executionTime": 812,
            "citations": [],
            "nextStep": 3,
            "workflowCompleted": False,
        }
        assert create.call_args.args[0] == 2
        executor.execute.assert_awaited_once_with(
            workflow_id=workflow_id, previous_content="Summary", all_previous_content=None
        )

    def test_failed_step_answers_500(self, test_client, mock_session, mock_context):
        executor = MagicMock()
        executor.execute = AsyncMock(
            return_value=StepFailed(step_number=9, step_name="Law References", error_message="LLM unavailable")
        )

        with patch("case_analysis.api.v1.endpoints.steps.StepRegistry.create", return_value=executor):
            response = test_client.post(f"{API}/case-analysis-step-9", json={"workflowId": str(uuid4())})

        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "error": "LLM unavailable",
            "step": 9,
            "stepName": "Law References",
        }

    def test_out_of_order_step_answers_409(self, test_client, mock_session, mock_context):
        executor = MagicMock()
        executor.execute = AsyncMock(
            side_effect=StepConflictError("Step 2 must be completed before step 3", step_number=3)
        )

        with patch("case_analysis.api.v1.endpoints.steps.StepRegistry.create", return_value=executor):
            response = test_client.post(f"{API}/case-analysis-step-3", json={"workflowId": str(uuid4())})

        assert response.status_code == 409
        assert response.json() == {"error": "Step 2 must be completed before step 3"}

    def test_step_requires_workflow_id(self, test_client, mock_session, mock_context):
        response = test_client.post(f"{API}/case-analysis-step-1", json={})

        assert response.status_code == 400
        assert response.json() == {"error": "workflowId is required"}

    def test_mismatched_step_number_is_rejected(self, test_client, mock_session, mock_context):
        response = test_client.post(
            f"{API}/case-analysis-step-4",
            json={"workflowId": str(uuid4()), "stepNumber": 5},
        )

        assert response.status_code == 400

    def test_all_nine_routes_exist(self):
        paths = app.openapi()["paths"]

        for number in range(1, 10):
            assert f"{API}/case-analysis-step-{number}" in paths


class TestCaseLawSearchEndpoint:

    def test_cache_hit(self, test_client):
        lookup = MagicMock()
        lookup.search = AsyncMock(
            return_value=CaseLawSearchResult(
                cases=[{"id": "1001", "caseName": "Amstadt v. U.S. Brass Corp."}],
                cache_hit=True,
                total_results=12,
            )
        )
        app.dependency_overrides[get_case_law_lookup] = lambda: lookup

        response = test_client.post(
            f"{API}/case-law-search", json={"query": "dtpa", "parameters": {"court": "tex"}}
        )

        assert response.status_code == 200
        assert response.json() == {
            "cases": [{"id": "1001", "caseName": "Amstadt v. U.S. Brass Corp."}],
            "cacheHit": True,
            "totalResults": 12,
        }
        lookup.search.assert_awaited_once_with("dtpa", {"court": "tex"})

    def test_empty_query_is_rejected(self, test_client):
        app.dependency_overrides[get_case_law_lookup] = lambda: MagicMock()

        response = test_client.post(f"{API}/case-law-search", json={"query": "  "})

        assert response.status_code == 400
        assert response.json() == {"error": "query is required"}

    def test_upstream_failure_answers_500(self, test_client):
        lookup = MagicMock()
        lookup.search = AsyncMock(side_effect=APIClientError("API HTTP Error 503: unavailable"))
        app.dependency_overrides[get_case_law_lookup] = lambda: lookup

        response = test_client.post(f"{API}/case-law-search", json={"query": "dtpa"})

        assert response.status_code == 500
        assert response.json() == {"error": "API HTTP Error 503: unavailable"}


class TestRunAnalysisEndpoint:

    def test_schedules_background_run(self, test_client, mock_session, mock_context):
        workflow_id = uuid4()
        result = MagicMock()
        result.scalar_one_or_none.return_value = SimpleNamespace(id=workflow_id)
        mock_session.execute.return_value = result

        with patch(
            "case_analysis.api.v1.endpoints.workflows.run_analysis_in_background", new_callable=AsyncMock
        ) as run_in_background:
            response = test_client.post(f"{API}/run-case-analysis", json={"workflowId": str(workflow_id)})

        assert response.status_code == 202
        assert response.json()["workflowId"] == str(workflow_id)
        run_in_background.assert_awaited_once_with(workflow_id, mock_context)

    def test_unknown_workflow_is_not_found(self, test_client, mock_session, mock_context):
        result = MagicMock()
        result.scalar_one_or_none.return_value = None
        mock_session.execute.return_value = result

        response = test_client.post(f"{API}/run-case-analysis", json={"workflowId": str(uuid4())})

        assert response.status_code == 404


def test_root(test_client):
    response = test_client.get("/")

    assert response.status_code == 200
    assert response.json()["message"] == "Server is running"


def test_correlation_id_is_echoed(test_client):
    response = test_client.get("/", headers={"X-Correlation-ID": "abc-123"})

    assert response.headers["X-Correlation-ID"] == "abc-123"


def test_health_reports_degraded_database(test_client):
    with patch(
        "case_analysis.api.v1.endpoints.health.db_client.health_check",
        new_callable=AsyncMock,
        return_value={"status": "unhealthy", "connected": False, "error": "refused"},
    ):
        response = test_client.get("/health/")

    assert response.status_code == 200
    assert response.json()["status"] == "degraded"
    assert response.json()["database"] == "unhealthy"
