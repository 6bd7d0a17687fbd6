"""
Tests for batch merge request creation.

Tests cover:
- One result per submitted project, in submission order
- Per-project failures recorded as data (lookup and creation)
- Target branch resolution (uniform, per-project, fallback)
- Progress notifications
- Projects blocked by an existing open merge request
"""

import pytest
from pydantic import ValidationError

from app.core.exceptions import GitLabAPIError, InvalidRequestError
from app.schemas.merge_requests import (
    MergeRequestCreateParams,
    PerProjectTarget,
    UniformTarget,
)
from app.services.merge_requests.orchestrator import MergeRequestOrchestrator
from tests.conftest import make_merge_request


def release_params(target="main", **overrides) -> MergeRequestCreateParams:
    values = {
        "source_branch": "develop",
        "target_branch": target,
        "title": "Release 2024.05",
        "description": "Quarterly release",
    }
    values.update(overrides)
    return MergeRequestCreateParams(**values)


class TestBatchOutcomes:
    @pytest.mark.asyncio
    async def test_partial_failure_keeps_going_and_reports_in_order(self, fake_client):
        """Project 2 is forbidden; 1 and 3 still get their merge requests."""
        fake_client.create_errors[2] = GitLabAPIError(
            403, "Forbidden", '{"message":"403 Forbidden"}'
        )
        progress = []

        results = await MergeRequestOrchestrator(fake_client).run(
            [1, 2, 3], release_params(), on_progress=progress.append
        )

        assert [r.project_id for r in results] == [1, 2, 3]
        assert [r.success for r in results] == [True, False, True]
        assert "403" in results[1].error
        assert results[1].merge_request is None
        assert results[0].merge_request is not None
        assert results[0].project_name == "service-1"
        assert progress == results

    @pytest.mark.asyncio
    async def test_every_project_fails_still_one_result_each(self, fake_client):
        for pid in (1, 2, 3):
            fake_client.create_errors[pid] = GitLabAPIError(409, "Conflict", "exists")

        results = await MergeRequestOrchestrator(fake_client).run(
            [3, 1, 2], release_params()
        )

        assert len(results) == 3
        assert sorted(r.project_id for r in results) == [1, 2, 3]
        assert not any(r.success for r in results)

    @pytest.mark.asyncio
    async def test_project_lookup_failure_uses_fallback_name(self, fake_client):
        fake_client.get_project_errors[2] = GitLabAPIError(404, "Not Found", "")

        results = await MergeRequestOrchestrator(fake_client).run(
            [1, 2, 3], release_params()
        )

        failed = results[1]
        assert failed.project_name == "Project 2"
        assert failed.success is False
        assert "404" in failed.error
        assert [c["project_id"] for c in fake_client.create_calls] == [1, 3]

    @pytest.mark.asyncio
    async def test_unknown_project_does_not_abort_batch(self, fake_client):
        results = await MergeRequestOrchestrator(fake_client).run(
            [1, 99], release_params()
        )

        assert results[0].success is True
        assert results[1].project_name == "Project 99"
        assert results[1].success is False

    @pytest.mark.asyncio
    async def test_empty_batch_completes_immediately(self, fake_client):
        progress = []

        results = await MergeRequestOrchestrator(fake_client).run(
            [], release_params(), on_progress=progress.append
        )

        assert results == []
        assert progress == []
        assert fake_client.create_calls == []

    @pytest.mark.asyncio
    async def test_non_api_exception_is_recorded(self, fake_client):
        fake_client.create_errors[1] = RuntimeError("socket closed")

        results = await MergeRequestOrchestrator(fake_client).run([1], release_params())

        assert results[0].success is False
        assert results[0].error == "socket closed"
        assert results[0].status_code is None

    @pytest.mark.asyncio
    async def test_upstream_status_is_recorded(self, fake_client):
        fake_client.get_project_errors[1] = GitLabAPIError(401, "Unauthorized", "")
        fake_client.create_errors[2] = GitLabAPIError(409, "Conflict", "")

        results = await MergeRequestOrchestrator(fake_client).run(
            [1, 2, 3], release_params()
        )

        assert [r.status_code for r in results] == [401, 409, None]


class TestTargetBranch:
    @pytest.mark.asyncio
    async def test_uniform_target_used_for_all(self, fake_client):
        await MergeRequestOrchestrator(fake_client).run([1, 2], release_params("production"))

        assert [c["target_branch"] for c in fake_client.create_calls] == [
            "production",
            "production",
        ]

    @pytest.mark.asyncio
    async def test_per_project_map_with_main_fallback(self, fake_client):
        await MergeRequestOrchestrator(fake_client).run(
            [1, 2, 3], release_params({1: "master", 3: "stable"})
        )

        targets = {c["project_id"]: c["target_branch"] for c in fake_client.create_calls}
        assert targets == {1: "master", 2: "main", 3: "stable"}

    @pytest.mark.asyncio
    async def test_shared_fields_are_forwarded(self, fake_client):
        await MergeRequestOrchestrator(fake_client).run(
            [1], release_params(remove_source_branch=True, squash=True)
        )

        call = fake_client.create_calls[0]
        assert call["source_branch"] == "develop"
        assert call["title"] == "Release 2024.05"
        assert call["description"] == "Quarterly release"
        assert call["remove_source_branch"] is True
        assert call["squash"] is True

    def test_blank_uniform_target_fails_validation(self):
        with pytest.raises(ValidationError, match="target_branch must not be blank"):
            release_params("  ")

    @pytest.mark.asyncio
    async def test_blank_uniform_target_rejected_before_any_call(self, fake_client):
        params = release_params().model_copy(update={"target_branch": "  "})

        with pytest.raises(InvalidRequestError):
            await MergeRequestOrchestrator(fake_client).run([1], params)
        assert fake_client.create_calls == []

    def test_target_spec_union(self):
        assert release_params("main").target_spec() == UniformTarget("main")
        spec = release_params({"5": "prod"}).target_spec()
        assert isinstance(spec, PerProjectTarget)
        assert spec.resolve(5) == "prod"
        assert spec.resolve(6) == "main"


class TestProgressAndBlocking:
    @pytest.mark.asyncio
    async def test_async_progress_callback_is_awaited(self, fake_client):
        seen = []

        async def on_progress(result):
            seen.append(result.project_id)

        await MergeRequestOrchestrator(fake_client).run(
            [2, 1], release_params(), on_progress=on_progress
        )

        assert seen == [2, 1]

    @pytest.mark.asyncio
    async def test_failing_progress_callback_does_not_abort(self, fake_client):
        def on_progress(result):
            raise ValueError("UI went away")

        results = await MergeRequestOrchestrator(fake_client).run(
            [1, 2, 3], release_params(), on_progress=on_progress
        )

        assert len(results) == 3
        assert all(r.success for r in results)

    @pytest.mark.asyncio
    async def test_blocked_project_is_not_submitted(self, fake_client):
        existing = make_merge_request(2, iid=7)

        results = await MergeRequestOrchestrator(fake_client).run(
            [1, 2, 3], release_params(), blocked={2: existing}
        )

        assert [r.success for r in results] == [True, False, True]
        assert "!7" in results[1].error
        assert results[1].project_name == "service-2"
        assert [c["project_id"] for c in fake_client.create_calls] == [1, 3]
