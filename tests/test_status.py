import datetime

from compliance_service import schemas
from compliance_service.status import (
    aggregate_overall_status,
    filter_tasks,
    first_year_tasks_completed,
    overall_status_change,
    summarize_tasks,
    task_outcome,
)

Status = schemas.ComplianceStatus


def make_task(task_id="t1", ca="Pending", cs="Pending", ca_required=True, cs_required=True,
              year=2024, frequency=schemas.Frequency.annual, entity="parent"):
    return schemas.ComplianceTask(
        task_id=task_id,
        entity_identifier=entity,
        entity_display_name="Parent Company (IN)",
        year=year,
        task_name=task_id,
        frequency=frequency,
        ca_required=ca_required,
        cs_required=cs_required,
        ca_status=ca,
        cs_status=cs,
    )


def test_task_outcome():
    assert task_outcome(make_task(ca="Verified", cs="Verified")) == "verified"
    assert task_outcome(make_task(ca="Verified", cs="Rejected")) == "rejected"
    assert task_outcome(make_task(ca="Verified", cs="Pending")) == "pending"
    assert task_outcome(make_task(ca="Verified", cs="Rejected", cs_required=False)) == "verified"


def test_overall_status_is_scoped_to_role():
    tasks = [
        make_task("t1", ca="Verified", cs="Rejected"),
        make_task("t2", ca="Verified", cs="Pending"),
    ]
    assert aggregate_overall_status(tasks, "CA") == Status.compliant
    assert aggregate_overall_status(tasks, "CS") == Status.non_compliant
    assert aggregate_overall_status(tasks, "Startup") == Status.non_compliant


def test_overall_status_pending_until_all_required_verified():
    tasks = [
        make_task("t1", ca="Verified", cs="Verified"),
        make_task("t2", ca="Pending", cs_required=False),
    ]
    assert aggregate_overall_status(tasks, "CS") == Status.compliant
    assert aggregate_overall_status(tasks, "CA") == Status.pending
    assert aggregate_overall_status(tasks, "Admin") == Status.pending


def test_overall_status_change_only_when_tasks_exist_and_value_differs():
    assert overall_status_change([], "CA", "Pending") is None

    tasks = [make_task(ca="Verified", cs_required=False)]
    assert overall_status_change(tasks, "CA", "Compliant") is None
    assert overall_status_change(tasks, "CA", "Pending") == Status.compliant


def test_first_year_completion():
    assert first_year_tasks_completed([make_task()]) is True
    assert first_year_tasks_completed([
        make_task("f1", ca="Verified", cs="Verified", frequency=schemas.Frequency.first_year),
        make_task("a1"),
    ]) is True
    assert first_year_tasks_completed([
        make_task("f1", ca="Verified", cs="Pending", frequency=schemas.Frequency.first_year),
    ]) is False


def test_summary_counts_and_rate():
    tasks = [
        make_task("t1", ca="Verified", cs="Verified", year=2022, frequency=schemas.Frequency.first_year),
        make_task("t2", ca="Rejected", cs="Pending", year=2023),
        make_task("t3", ca="Pending", cs="Pending", year=2024),
        make_task("t4", ca="Verified", cs="Verified", year=2024),
    ]

    summary = summarize_tasks(tasks, "Startup", stored_status="Pending", today=datetime.date(2024, 3, 1))

    assert summary.total_tasks == 4
    assert summary.verified_tasks == 2
    assert summary.pending_tasks == 1
    assert summary.rejected_tasks == 1
    assert summary.overdue_tasks == 1
    assert summary.compliance_rate == 50.0
    assert summary.first_year_completed is True
    assert summary.overall_status == Status.non_compliant
    assert summary.stored_status == Status.pending


def test_summary_without_tasks():
    summary = summarize_tasks([], "CA")
    assert summary.total_tasks == 0
    assert summary.compliance_rate == 0.0
    assert summary.overall_status == Status.compliant


def test_filter_tasks():
    tasks = [
        make_task("t1", ca="Verified", entity="parent", year=2023),
        make_task("t2", cs="Rejected", entity="sub-0", year=2024),
        make_task("t3", entity="sub-0", year=2023),
    ]

    assert [task.task_id for task in filter_tasks(tasks, entity="sub-0")] == ["t2", "t3"]
    assert [task.task_id for task in filter_tasks(tasks, year=2023)] == ["t1", "t3"]
    assert [task.task_id for task in filter_tasks(tasks, status="Rejected")] == ["t2"]
    assert [task.task_id for task in filter_tasks(tasks, entity="sub-0", status="Pending")] == ["t2", "t3"]
