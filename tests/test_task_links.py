"""Tests for task-triggered requisition transitions."""

from datetime import date, datetime
from unittest.mock import patch

import pytest

from hiring.lib.config import PipelineConfig
from hiring.models import Briefing, PlatformAllocation, RequisitionStage, TaskKind, TaskStatus
from hiring.store import JsonStore
from hiring.workflow.engine import PipelineEngine
from hiring.workflow.errors import DanglingReference, GuardViolation, PersistenceFailure, ValidationError
from hiring.workflow.task_links import LINKS, RegistrationForm

NOW = datetime(2026, 10, 17, 10, 0)


def registration(**overrides) -> RegistrationForm:
    form = RegistrationForm(
        briefing=Briefing(requisition_id="", role_title="Backend engineer", openings=2,
                          deadline=date(2026, 11, 30)),
        platforms=[
            PlatformAllocation(requisition_id="", platform="linkedin", description="Sponsored post", budget=300.0),
            PlatformAllocation(requisition_id="", platform="gupy", description="Job listing", budget=200.0),
        ],
    )
    for key, value in overrides.items():
        setattr(form, key, value)
    return form


@pytest.fixture
def engine(tmp_path):
    return PipelineEngine(JsonStore(tmp_path), config=PipelineConfig(notifications=False), clock=lambda: NOW)


@pytest.fixture
def created(engine):
    """A fresh requisition and its register task."""
    return engine.create_requisition("Backend engineer", due_date=date(2026, 11, 15))


class TestLinkTable:
    def test_every_kind_has_an_entry(self):
        assert set(LINKS) == set(TaskKind)

    def test_manual_tasks_have_no_effect(self):
        assert LINKS[TaskKind.MANUAL] is None


class TestCreateRequisition:
    def test_starts_requested_with_register_task(self, engine, created):
        req, task = created
        assert req.stage == RequisitionStage.REQUESTED
        assert task.kind == TaskKind.REGISTER_REQUISITION
        assert task.title == "Register requisition: Backend engineer"
        assert task.requisition_id == req.id
        assert task.due_date == date(2026, 11, 15)

    def test_blank_title_rejected(self, engine):
        with pytest.raises(ValidationError) as exc:
            engine.create_requisition("  ")
        assert exc.value.field == "title"


class TestRegistrationScenario:
    """Drag to registered is refused; completing the register task registers."""

    def test_end_to_end(self, engine, created):
        req, task = created

        result = engine.attempt_move(req.id, RequisitionStage.REQUESTED, RequisitionStage.REGISTERED)
        assert result.accepted is False
        assert isinstance(result.reason, GuardViolation)
        assert engine.store.get_requisition(req.id).stage == RequisitionStage.REQUESTED

        outcome = engine.on_task_completed(task.id, registration())

        assert outcome.requisition_effect_applied is True
        assert engine.store.get_requisition(req.id).stage == RequisitionStage.REGISTERED
        assert engine.store.get_task(task.id).status == TaskStatus.DONE
        assert engine.store.get_task(task.id).completed_at == NOW

        follow_up = outcome.follow_up
        assert follow_up.kind == TaskKind.PUBLISH_CAMPAIGN
        assert follow_up.title == "Publish campaign: Backend engineer"
        assert engine.store.get_task(follow_up.id).status == TaskStatus.TODO

    def test_registration_data_persisted(self, engine, created):
        req, task = created
        engine.on_task_completed(task.id, registration())

        assert engine.store.get_briefing(req.id).role_title == "Backend engineer"
        platforms = engine.store.load_platforms(req.id)
        assert [p.platform for p in platforms] == ["linkedin", "gupy"]
        assert all(p.requisition_id == req.id for p in platforms)

        entry = [e for e in engine.activity.entries(req.id) if e.action == "registered"][0]
        assert entry.details["platforms"] == ["linkedin", "gupy"]
        assert entry.details["total_budget"] == 500.0

    def test_stored_briefing_is_used(self, engine, created):
        req, task = created
        engine.save_briefing(Briefing(requisition_id=req.id, role_title="Backend engineer", openings=1,
                                      deadline=date(2026, 12, 1)))
        outcome = engine.on_task_completed(task.id, registration(briefing=None))
        assert outcome.requisition_effect_applied is True

    def test_publish_campaign_opens_selection(self, engine, created):
        req, task = created
        follow_up = engine.on_task_completed(task.id, registration()).follow_up

        outcome = engine.on_task_completed(follow_up.id)

        assert outcome.requisition_effect_applied is True
        assert outcome.follow_up is None
        assert engine.store.get_requisition(req.id).stage == RequisitionStage.IN_SELECTION


class TestIdempotence:
    """A task applies its effect at most once."""

    def test_done_twice(self, engine, created):
        req, task = created
        engine.on_task_completed(task.id, registration())
        second = engine.on_task_completed(task.id, registration())

        assert second.requisition_effect_applied is False
        publish_tasks = [t for t in engine.store.load_tasks(req.id) if t.kind == TaskKind.PUBLISH_CAMPAIGN]
        assert len(publish_tasks) == 1

    def test_reopen_and_complete_again(self, engine, created):
        req, task = created
        follow_up = engine.on_task_completed(task.id, registration()).follow_up
        engine.on_task_completed(follow_up.id)

        engine.move_task(follow_up.id, TaskStatus.TODO)
        again = engine.move_task(follow_up.id, TaskStatus.DONE)

        assert again.requisition_effect_applied is False
        assert again.task.status == TaskStatus.DONE
        assert engine.store.get_requisition(req.id).stage == RequisitionStage.IN_SELECTION

    def test_intermediate_status_has_no_effect(self, engine, created):
        req, task = created
        outcome = engine.move_task(task.id, TaskStatus.DOING)
        assert outcome.requisition_effect_applied is False
        assert engine.store.get_task(task.id).status == TaskStatus.DOING
        assert engine.store.get_requisition(req.id).stage == RequisitionStage.REQUESTED


class TestFailedCompletion:
    """Failures leave the task exactly as it was."""

    def test_missing_briefing(self, engine, created):
        req, task = created
        with pytest.raises(ValidationError) as exc:
            engine.on_task_completed(task.id, registration(briefing=None))
        assert exc.value.field == "briefing"
        assert engine.store.get_task(task.id).status == TaskStatus.TODO
        assert engine.store.get_requisition(req.id).stage == RequisitionStage.REQUESTED

    def test_incomplete_briefing(self, engine, created):
        _, task = created
        form = registration(briefing=Briefing(requisition_id="", role_title="", openings=1,
                                              deadline=date(2026, 11, 1)))
        with pytest.raises(ValidationError) as exc:
            engine.on_task_completed(task.id, form)
        assert exc.value.field == "briefing.role_title"

    def test_unknown_platform(self, engine, created):
        _, task = created
        form = registration(platforms=[PlatformAllocation(requisition_id="", platform="myspace",
                                                          description="x")])
        with pytest.raises(ValidationError) as exc:
            engine.on_task_completed(task.id, form)
        assert exc.value.field == "platforms[0].platform"

    def test_no_platforms(self, engine, created):
        _, task = created
        with pytest.raises(ValidationError) as exc:
            engine.on_task_completed(task.id, registration(platforms=[]))
        assert exc.value.field == "platforms"

    def test_dangling_requisition(self, engine, created):
        req, task = created
        engine.store.delete_requisition(req.id)

        with pytest.raises(DanglingReference):
            engine.on_task_completed(task.id, registration())
        assert engine.store.get_task(task.id).status == TaskStatus.TODO

    def test_archived_requisition(self, engine, created):
        req, task = created
        engine.archive(req.id)

        with pytest.raises(GuardViolation) as exc:
            engine.on_task_completed(task.id, registration())
        assert exc.value.code == "archived"
        assert engine.store.get_task(task.id).status == TaskStatus.TODO
        assert engine.store.get_task(task.id).completed_at is None

    def test_follow_up_failure_rolls_back(self, engine, created):
        req, task = created
        with patch.object(engine.store, "create_task",
                          side_effect=PersistenceFailure("write:task", "disk full")):
            with pytest.raises(PersistenceFailure):
                engine.on_task_completed(task.id, registration())

        assert engine.store.get_requisition(req.id).stage == RequisitionStage.REQUESTED
        assert engine.store.get_task(task.id).status == TaskStatus.TODO
        assert engine.store.get_briefing(req.id) is None
        assert engine.store.load_platforms(req.id) == []

    def test_task_save_failure_removes_follow_up(self, engine, created):
        req, task = created
        real_save = engine.store.save_task

        def failing_save(t):
            if t.id == task.id:
                raise PersistenceFailure("write:task", "disk full")
            real_save(t)

        with patch.object(engine.store, "save_task", side_effect=failing_save):
            with pytest.raises(PersistenceFailure):
                engine.on_task_completed(task.id, registration())

        assert engine.store.get_requisition(req.id).stage == RequisitionStage.REQUESTED
        assert [t.id for t in engine.store.load_tasks(req.id)] == [task.id]
        assert engine.store.get_task(task.id).status == TaskStatus.TODO


class TestTaskArchive:
    def test_archive_done_tasks(self, engine, created):
        req, task = created
        engine.on_task_completed(task.id, registration())

        assert engine.archive_done_tasks() == 1
        assert engine.store.get_task(task.id).archived is True
        assert engine.store.get_task(task.id).archived_at == NOW
        assert task.id not in [t.id for t in engine.store.load_tasks(req.id)]
        assert task.id in [t.id for t in engine.store.load_tasks(req.id, include_archived=True)]
