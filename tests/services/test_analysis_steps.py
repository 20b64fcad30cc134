"""Tests for the step executors and the sequential runner."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from sqlalchemy import select, update

from case_analysis.core.config import settings
from case_analysis.core.context import AnalysisContext
from case_analysis.core.exceptions import (
    APIClientError,
    StepConflictError,
    ValidationError,
    WorkflowNotFoundError,
)
from case_analysis.core.research_client import ResearchResult, SearchType
from case_analysis.database.models import CaseAnalysisStep, Document, LegalAnalysis, utcnow
from case_analysis.prompts.case_analysis_prompts import (
    LAW_REFERENCES_SYSTEM_PROMPT,
    NO_MATCHED_CASES,
    NO_RESEARCH_AVAILABLE,
    TEXAS_LAWS_SYSTEM_PROMPT,
)
from case_analysis.repositories.document_repository import DocumentRepository
from case_analysis.repositories.workflow_repository import (
    CaseAnalysisStepRepository,
    CaseAnalysisWorkflowRepository,
)
from case_analysis.services.case_analysis.constants import NO_CLIENT_CONTEXT, NO_DOCUMENT_MATCHES
from case_analysis.services.case_analysis.runner import AnalysisRunner
from case_analysis.services.case_analysis.steps import (
    StepCompleted,
    StepFailed,
    StepRegistry,
)
from case_analysis.services.case_analysis.steps.base import merge_prior_content
from case_analysis.services.case_analysis.workflow_manager import CaseAnalysisWorkflowManager


async def _new_workflow(session, client_id):
    created = await CaseAnalysisWorkflowManager(session, settings).execute_create_workflow(client_id)
    return created["workflow_id"]


async def _load(session, workflow_id):
    return await CaseAnalysisWorkflowRepository(session).get_with_steps(workflow_id)


async def _run(session, context, step_number, workflow_id, **kwargs):
    executor = StepRegistry.create(step_number, session, context)
    return await executor.execute(workflow_id=workflow_id, **kwargs)


class HangingLLM:
    """Completion client whose call never returns."""

    def __init__(self):
        self.called = asyncio.Event()

    async def generate_content(self, contents, system_instruction=None, generation_config=None) -> str:
        self.called.set()
        await asyncio.Event().wait()


async def _backdate_step(session, workflow_id, step_number, hours=2):
    await session.execute(
        update(CaseAnalysisStep)
        .where(
            CaseAnalysisStep.workflow_id == workflow_id,
            CaseAnalysisStep.step_number == step_number,
        )
        .values(started_at=utcnow() - timedelta(hours=hours))
    )
    await session.commit()


async def _run_through(session, context, workflow_id, last_step):
    for number in range(1, last_step + 1):
        await _run(session, context, number, workflow_id)


class TestStepRegistry:

    def test_all_nine_steps_registered(self):
        steps = StepRegistry.get_all_steps()
        assert list(steps) == list(range(1, 10))

    def test_unknown_step_is_rejected(self):
        with pytest.raises(ValidationError):
            StepRegistry.get(10)


class TestMergePriorContent:

    def test_request_content_overrides_stored(self):
        merged = merge_prior_content(
            {1: "stored summary", 2: "stored preliminary"},
            step_number=3,
            previous_content="fresh preliminary",
            all_previous_content={"step1": "fresh summary"},
        )
        assert merged == {1: "fresh summary", 2: "fresh preliminary"}

    def test_accepts_numeric_and_name_keys_and_ignores_later_steps(self):
        merged = merge_prior_content(
            {},
            step_number=5,
            all_previous_content={"3": "laws", "Case Law Research": "cases", "step7": "too late", "bogus": "x"},
        )
        assert merged == {3: "laws", 4: "cases"}


class TestStepExecution:

    @pytest.mark.asyncio
    async def test_case_summary_without_messages_uses_placeholder(
        self, db_session, client_record, analysis_context, fake_llm
    ):
        workflow_id = await _new_workflow(db_session, client_record.id)

        outcome = await _run(db_session, analysis_context, 1, workflow_id)

        assert isinstance(outcome, StepCompleted)
        assert outcome.step_name == "Case Summary"
        assert outcome.next_step == 2
        assert outcome.workflow_completed is False
        assert NO_CLIENT_CONTEXT in fake_llm.calls[0]["contents"]

        workflow = await _load(db_session, workflow_id)
        assert workflow.current_step == 2
        step = workflow.steps[0]
        assert step.status == "completed"
        assert step.content == outcome.content
        assert step.execution_time_ms is not None
        assert step.completed_at is not None

    @pytest.mark.asyncio
    async def test_case_summary_reads_messages_in_chronological_order(
        self, db_session, client_record, analysis_context, fake_llm, add_messages
    ):
        await add_messages(
            db_session,
            client_record.id,
            ["I bought a used truck.", "The dealer said it was never wrecked.", "It had frame damage."],
        )
        workflow_id = await _new_workflow(db_session, client_record.id)

        await _run(db_session, analysis_context, 1, workflow_id)

        prompt = fake_llm.calls[0]["contents"]
        assert prompt.index("I bought a used truck.") < prompt.index("It had frame damage.")

    @pytest.mark.asyncio
    async def test_unknown_workflow_is_not_found(self, db_session, analysis_context):
        with pytest.raises(WorkflowNotFoundError):
            await _run(db_session, analysis_context, 1, uuid4())

    @pytest.mark.asyncio
    async def test_out_of_order_step_is_rejected(self, db_session, client_record, analysis_context, fake_llm):
        workflow_id = await _new_workflow(db_session, client_record.id)

        with pytest.raises(StepConflictError):
            await _run(db_session, analysis_context, 3, workflow_id)

        assert fake_llm.calls == []
        workflow = await _load(db_session, workflow_id)
        assert workflow.steps[2].status == "pending"

    @pytest.mark.asyncio
    async def test_completed_step_cannot_run_again(self, db_session, client_record, analysis_context):
        workflow_id = await _new_workflow(db_session, client_record.id)
        await _run(db_session, analysis_context, 1, workflow_id)

        with pytest.raises(StepConflictError):
            await _run(db_session, analysis_context, 1, workflow_id)

    @pytest.mark.asyncio
    async def test_running_step_cannot_be_claimed_twice(
        self, db_session, client_record, analysis_context, fake_llm
    ):
        workflow_id = await _new_workflow(db_session, client_record.id)
        step_repo = CaseAnalysisStepRepository(db_session)

        assert await step_repo.claim(workflow_id, 1) is True
        assert await step_repo.claim(workflow_id, 1) is False
        await db_session.commit()

        with pytest.raises(StepConflictError):
            await _run(db_session, analysis_context, 1, workflow_id)
        assert fake_llm.calls == []

    @pytest.mark.asyncio
    async def test_steps_rejected_once_workflow_is_cancelled(self, db_session, client_record, analysis_context):
        workflow_id = await _new_workflow(db_session, client_record.id)
        await CaseAnalysisWorkflowManager(db_session, settings).execute_cancel_running_workflows(client_record.id)

        with pytest.raises(StepConflictError):
            await _run(db_session, analysis_context, 1, workflow_id)

    @pytest.mark.asyncio
    async def test_interrupted_step_can_be_rerun_once_stale(
        self, db_session, client_record, analysis_context
    ):
        workflow_id = await _new_workflow(db_session, client_record.id)
        hanging = HangingLLM()
        interrupted = AnalysisContext(settings=settings, llm=hanging)

        task = asyncio.create_task(_run(db_session, interrupted, 1, workflow_id))
        await asyncio.wait_for(hanging.called.wait(), timeout=5)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        workflow = await _load(db_session, workflow_id)
        assert workflow.steps[0].status == "running"
        with pytest.raises(StepConflictError):
            await _run(db_session, analysis_context, 1, workflow_id)

        await _backdate_step(db_session, workflow_id, 1)
        outcome = await _run(db_session, analysis_context, 1, workflow_id)

        assert isinstance(outcome, StepCompleted)
        workflow = await _load(db_session, workflow_id)
        assert workflow.steps[0].status == "completed"
        assert workflow.current_step == 2

    @pytest.mark.asyncio
    async def test_llm_failure_marks_step_failed_and_allows_retry(self, db_session, client_record, llm_factory):
        workflow_id = await _new_workflow(db_session, client_record.id)
        failing = AnalysisContext(settings=settings, llm=llm_factory(fail_on=[TEXAS_LAWS_SYSTEM_PROMPT]))

        await _run(db_session, failing, 1, workflow_id)
        await _run(db_session, failing, 2, workflow_id)
        outcome = await _run(db_session, failing, 3, workflow_id)

        assert isinstance(outcome, StepFailed)
        assert outcome.step_number == 3
        assert outcome.error_message == "LLM unavailable"

        workflow = await _load(db_session, workflow_id)
        assert workflow.steps[2].status == "failed"
        assert workflow.steps[2].error_message == "LLM unavailable"
        assert workflow.status == "running"
        assert workflow.current_step == 3

        healthy = AnalysisContext(settings=settings, llm=llm_factory())
        retried = await _run(db_session, healthy, 3, workflow_id)

        assert isinstance(retried, StepCompleted)
        workflow = await _load(db_session, workflow_id)
        assert workflow.steps[2].status == "completed"
        assert workflow.steps[2].error_message is None
        assert workflow.current_step == 4

    @pytest.mark.asyncio
    async def test_previous_content_from_request_reaches_prompt(
        self, db_session, client_record, analysis_context, fake_llm
    ):
        workflow_id = await _new_workflow(db_session, client_record.id)
        await _run(db_session, analysis_context, 1, workflow_id)

        await _run(
            db_session,
            analysis_context,
            2,
            workflow_id,
            previous_content="Edited summary: the dealer concealed frame damage.",
        )

        assert "Edited summary: the dealer concealed frame damage." in fake_llm.calls[-1]["contents"]

    @pytest.mark.asyncio
    async def test_texas_laws_cites_matching_documents(
        self, db_session, client_record, analysis_context, fake_llm
    ):
        db_session.add(
            Document(
                title="Texas Deceptive Trade Practices Act",
                content="Section 17.46 lists false, misleading, or deceptive acts including analysis disclosures.",
                url="https://statutes.capitol.texas.gov/BC/17.46",
            )
        )
        await db_session.commit()
        workflow_id = await _new_workflow(db_session, client_record.id)
        await _run(db_session, analysis_context, 1, workflow_id)
        await _run(db_session, analysis_context, 2, workflow_id)

        outcome = await _run(db_session, analysis_context, 3, workflow_id)

        assert isinstance(outcome, StepCompleted)
        assert outcome.citations[0]["type"] == "document"
        assert outcome.citations[0]["title"] == "Texas Deceptive Trade Practices Act"
        assert set(outcome.citations[0]) == {"type", "id", "title", "url"}
        assert outcome.citations[0]["url"] == "https://statutes.capitol.texas.gov/BC/17.46"
        assert "Section 17.46" in fake_llm.calls[-1]["contents"]

    @pytest.mark.asyncio
    async def test_document_search_failure_leaves_texas_laws_without_context(
        self, db_session, client_record, analysis_context, fake_llm
    ):
        workflow_id = await _new_workflow(db_session, client_record.id)
        await _run_through(db_session, analysis_context, workflow_id, 2)

        with patch.object(
            DocumentRepository, "search", AsyncMock(side_effect=RuntimeError("search index offline"))
        ):
            outcome = await _run(db_session, analysis_context, 3, workflow_id)

        assert isinstance(outcome, StepCompleted)
        assert outcome.citations == []
        assert NO_DOCUMENT_MATCHES in fake_llm.calls[-1]["contents"]


class TestCaseLawResearch:

    @pytest.fixture
    def research_client(self):
        client = MagicMock()
        client.research = AsyncMock(
            return_value=ResearchResult(
                content="Amstadt v. U.S. Brass Corp. limits DTPA claims against remote manufacturers.",
                citations=["https://law.justia.com/cases/texas/supreme-court/1996/95-0240.html"],
            )
        )
        return client

    @pytest.fixture
    def case_search_client(self):
        client = MagicMock()
        client.search_opinions = AsyncMock(
            return_value={
                "results": [
                    {
                        "id": "1001",
                        "caseName": "Amstadt v. U.S. Brass Corp.",
                        "court": "Texas Supreme Court",
                        "dateFiled": "1996-04-11",
                        "absolute_url": "https://www.courtlistener.com/opinion/1001/",
                    }
                ],
                "count": 1,
            }
        )
        return client

    @pytest.mark.asyncio
    async def test_research_and_matched_cases_feed_prompt_and_citations(
        self, db_session, client_record, analysis_context, fake_llm, research_client, case_search_client
    ):
        workflow_id = await _new_workflow(db_session, client_record.id)
        await _run_through(db_session, analysis_context, workflow_id, 3)
        context = AnalysisContext(
            settings=settings, llm=fake_llm, research=research_client, case_search=case_search_client
        )

        outcome = await _run(db_session, context, 4, workflow_id)

        assert isinstance(outcome, StepCompleted)
        assert research_client.research.await_args.args[1] == SearchType.LEGAL_RESEARCH
        case_search_client.search_opinions.assert_awaited_once()
        assert outcome.citations == [
            {"type": "web", "url": "https://law.justia.com/cases/texas/supreme-court/1996/95-0240.html"},
            {
                "type": "case",
                "id": "1001",
                "caseName": "Amstadt v. U.S. Brass Corp.",
                "court": "Texas Supreme Court",
                "dateFiled": "1996-04-11",
                "url": "https://www.courtlistener.com/opinion/1001/",
            },
        ]

        prompt = fake_llm.calls[-1]["contents"]
        assert "limits DTPA claims against remote manufacturers" in prompt
        assert "Amstadt v. U.S. Brass Corp. (Texas Supreme Court, 1996-04-11)" in prompt

        workflow = await _load(db_session, workflow_id)
        assert workflow.steps[3].citations == outcome.citations

    @pytest.mark.asyncio
    async def test_upstream_failures_still_complete_the_step(
        self, db_session, client_record, analysis_context, fake_llm, research_client, case_search_client
    ):
        research_client.research.side_effect = APIClientError("Perplexity unavailable")
        case_search_client.search_opinions.side_effect = APIClientError("CourtListener unavailable")
        workflow_id = await _new_workflow(db_session, client_record.id)
        await _run_through(db_session, analysis_context, workflow_id, 3)
        context = AnalysisContext(
            settings=settings, llm=fake_llm, research=research_client, case_search=case_search_client
        )

        outcome = await _run(db_session, context, 4, workflow_id)

        assert isinstance(outcome, StepCompleted)
        assert outcome.citations == []
        prompt = fake_llm.calls[-1]["contents"]
        assert NO_RESEARCH_AVAILABLE in prompt
        assert NO_MATCHED_CASES in prompt

        workflow = await _load(db_session, workflow_id)
        assert workflow.steps[3].status == "completed"
        assert workflow.current_step == 5


class TestAnalysisRunner:

    @pytest.mark.asyncio
    async def test_full_run_completes_workflow_and_saves_analysis(
        self, db_session, client_record, analysis_context, fake_llm
    ):
        workflow_id = await _new_workflow(db_session, client_record.id)

        outcomes = await AnalysisRunner(db_session, analysis_context).run(workflow_id)

        assert [outcome.step_number for outcome in outcomes] == list(range(1, 10))
        assert all(isinstance(outcome, StepCompleted) for outcome in outcomes)
        assert outcomes[-1].workflow_completed is True
        assert outcomes[-1].next_step is None
        assert len(fake_llm.calls) == 9

        workflow = await _load(db_session, workflow_id)
        assert workflow.status == "completed"
        assert workflow.current_step == 9
        assert workflow.completed_at is not None
        assert all(step.status == "completed" for step in workflow.steps)

        analyses = (await db_session.execute(select(LegalAnalysis))).scalars().all()
        assert len(analyses) == 1
        assert analyses[0].content == workflow.steps[6].content

    @pytest.mark.asyncio
    async def test_law_references_collects_extracted_citations(
        self, db_session, client_record, analysis_context
    ):
        workflow_id = await _new_workflow(db_session, client_record.id)

        outcomes = await AnalysisRunner(db_session, analysis_context).run(workflow_id)

        citations = outcomes[-1].citations
        assert {"type": "statute", "citation": "Tex. Bus. & Com. Code § 17.46"} in citations

    @pytest.mark.asyncio
    async def test_runner_stops_at_first_failure(self, db_session, client_record, llm_factory):
        workflow_id = await _new_workflow(db_session, client_record.id)
        context = AnalysisContext(settings=settings, llm=llm_factory(fail_on=[TEXAS_LAWS_SYSTEM_PROMPT]))

        outcomes = await AnalysisRunner(db_session, context).run(workflow_id)

        assert [outcome.step_number for outcome in outcomes] == [1, 2, 3]
        assert isinstance(outcomes[-1], StepFailed)

        workflow = await _load(db_session, workflow_id)
        assert [step.status for step in workflow.steps[3:]] == ["pending"] * 6

    @pytest.mark.asyncio
    async def test_final_step_failure_fails_workflow(self, db_session, client_record, llm_factory):
        workflow_id = await _new_workflow(db_session, client_record.id)
        context = AnalysisContext(settings=settings, llm=llm_factory(fail_on=[LAW_REFERENCES_SYSTEM_PROMPT]))

        outcomes = await AnalysisRunner(db_session, context).run(workflow_id)

        assert isinstance(outcomes[-1], StepFailed)
        assert outcomes[-1].step_number == 9

        workflow = await _load(db_session, workflow_id)
        assert workflow.status == "failed"
        assert workflow.error_message == "LLM unavailable"
        assert workflow.steps[8].status == "failed"

    @pytest.mark.asyncio
    async def test_runner_resumes_after_completed_steps(
        self, db_session, client_record, analysis_context, fake_llm
    ):
        workflow_id = await _new_workflow(db_session, client_record.id)
        await _run(db_session, analysis_context, 1, workflow_id)
        await _run(db_session, analysis_context, 2, workflow_id)

        outcomes = await AnalysisRunner(db_session, analysis_context).run(workflow_id)

        assert [outcome.step_number for outcome in outcomes] == list(range(3, 10))

    @pytest.mark.asyncio
    async def test_document_search_failure_does_not_block_law_references(
        self, db_session, client_record, analysis_context, fake_llm
    ):
        workflow_id = await _new_workflow(db_session, client_record.id)

        with patch.object(
            DocumentRepository, "search", AsyncMock(side_effect=RuntimeError("search index offline"))
        ):
            outcomes = await AnalysisRunner(db_session, analysis_context).run(workflow_id)

        assert isinstance(outcomes[-1], StepCompleted)
        assert outcomes[-1].workflow_completed is True
        assert NO_DOCUMENT_MATCHES in fake_llm.calls[-1]["contents"]

        workflow = await _load(db_session, workflow_id)
        assert workflow.status == "completed"
