"""Roll-up of CA/CS task statuses into task outcomes and the overall startup status."""

import datetime
from typing import Iterable, List, Optional, Sequence

from . import schemas

OUTCOME_VERIFIED = "verified"
OUTCOME_PENDING = "pending"
OUTCOME_REJECTED = "rejected"


def columns_for_role(role: Optional[str]) -> tuple[bool, bool]:
    """Which of the (CA, CS) columns a role looks at."""
    if role == schemas.UserRole.ca.value:
        return True, False
    if role == schemas.UserRole.cs.value:
        return False, True
    return True, True


def _required_statuses(task: schemas.ComplianceTask, use_ca: bool = True, use_cs: bool = True) -> List[str]:
    statuses = []
    if use_ca and task.ca_required:
        statuses.append(task.ca_status)
    if use_cs and task.cs_required:
        statuses.append(task.cs_status)
    return statuses


def task_outcome(task: schemas.ComplianceTask) -> str:
    statuses = _required_statuses(task)
    if any(value == schemas.ComplianceStatus.rejected for value in statuses):
        return OUTCOME_REJECTED
    if all(value == schemas.ComplianceStatus.verified for value in statuses):
        return OUTCOME_VERIFIED
    return OUTCOME_PENDING


def aggregate_overall_status(tasks: Iterable[schemas.ComplianceTask], role: Optional[str]) -> schemas.ComplianceStatus:
    use_ca, use_cs = columns_for_role(role)
    has_rejected = False
    all_verified = True
    for task in tasks:
        for value in _required_statuses(task, use_ca, use_cs):
            if value == schemas.ComplianceStatus.rejected:
                has_rejected = True
            if value != schemas.ComplianceStatus.verified:
                all_verified = False

    if has_rejected:
        return schemas.ComplianceStatus.non_compliant
    if all_verified:
        return schemas.ComplianceStatus.compliant
    return schemas.ComplianceStatus.pending


def overall_status_change(
    tasks: Sequence[schemas.ComplianceTask],
    role: Optional[str],
    stored_status: Optional[str],
) -> Optional[schemas.ComplianceStatus]:
    """Return the new overall status when it must be written back, else None."""
    if not tasks:
        return None
    computed = aggregate_overall_status(tasks, role)
    if computed == (stored_status or schemas.ComplianceStatus.pending):
        return None
    return computed


def first_year_tasks_completed(tasks: Iterable[schemas.ComplianceTask]) -> bool:
    return all(
        task_outcome(task) == OUTCOME_VERIFIED
        for task in tasks
        if task.frequency == schemas.Frequency.first_year
    )


def is_overdue(task: schemas.ComplianceTask, today: datetime.date) -> bool:
    if task.year >= today.year:
        return False
    return any(value == schemas.ComplianceStatus.pending for value in _required_statuses(task))


def summarize_tasks(
    tasks: Sequence[schemas.ComplianceTask],
    role: Optional[str],
    stored_status: Optional[str] = None,
    today: Optional[datetime.date] = None,
) -> schemas.ComplianceSummary:
    today = today or datetime.date.today()
    outcomes = [task_outcome(task) for task in tasks]
    total = len(tasks)
    verified = outcomes.count(OUTCOME_VERIFIED)
    compliance_rate = round(verified / total * 100, 2) if total else 0.0

    return schemas.ComplianceSummary(
        total_tasks=total,
        verified_tasks=verified,
        pending_tasks=outcomes.count(OUTCOME_PENDING),
        rejected_tasks=outcomes.count(OUTCOME_REJECTED),
        overdue_tasks=sum(1 for task in tasks if is_overdue(task, today)),
        compliance_rate=compliance_rate,
        first_year_completed=first_year_tasks_completed(tasks),
        overall_status=aggregate_overall_status(tasks, role),
        stored_status=stored_status or schemas.ComplianceStatus.pending,
    )


def filter_tasks(
    tasks: Iterable[schemas.ComplianceTask],
    entity: Optional[str] = None,
    year: Optional[int] = None,
    status: Optional[str] = None,
) -> List[schemas.ComplianceTask]:
    filtered = []
    for task in tasks:
        if entity and task.entity_identifier != entity:
            continue
        if year is not None and task.year != year:
            continue
        if status and status not in (task.ca_status, task.cs_status):
            continue
        filtered.append(task)
    return filtered
