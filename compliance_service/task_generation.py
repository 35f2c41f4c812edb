"""
Materialization of period-scoped compliance tasks.

A startup is a set of legal entities (the parent company, its subsidiaries and
its international operations). Every rule whose country and company type match
an entity is expanded into one task per applicable period, and the generated
tasks are then merged with the rows already stored in ``compliance_checks`` so
that recorded CA/CS statuses and uploaded documents survive regeneration.

Everything in this module is pure: callers pass ORM rows (or any object with
the same attributes) and get ``schemas.ComplianceTask`` values back.
"""

import datetime
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from . import schemas
from .countries import country_display_name, professional_titles, to_country_code

PARENT_IDENTIFIER = "parent"

MONTH_ABBREVIATIONS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

_FREQUENCY_ALIASES = {
    "first-year": schemas.Frequency.first_year,
    "firstyear": schemas.Frequency.first_year,
    "monthly": schemas.Frequency.monthly,
    "quarterly": schemas.Frequency.quarterly,
    "annual": schemas.Frequency.annual,
}


@dataclass(frozen=True)
class Period:
    year: int
    period: Optional[str] = None

    @property
    def is_quarter(self) -> bool:
        return bool(self.period) and self.period.startswith("Q")

    @property
    def is_month(self) -> bool:
        return bool(self.period) and self.period.startswith("M")


@dataclass(frozen=True)
class EntityContext:
    identifier: str
    display_name: str
    country: Optional[str]
    country_code: str
    company_type: Optional[str]
    registration_date: Optional[datetime.date]
    ca_code: Optional[str] = None
    cs_code: Optional[str] = None

    @property
    def can_generate(self) -> bool:
        return bool(self.country_code) and bool((self.company_type or "").strip())


def normalize_frequency(raw: Optional[str]) -> schemas.Frequency:
    """Map loosely spelled frequencies onto the canonical values; unknown ones become annual."""
    if isinstance(raw, schemas.Frequency):
        return raw
    key = (raw or "").strip().lower().replace("_", "-").replace(" ", "-")
    return _FREQUENCY_ALIASES.get(key, schemas.Frequency.annual)


def applicable_periods(
    frequency: str,
    registration_date: datetime.date,
    today: datetime.date,
) -> List[Period]:
    start_year = registration_date.year
    current_year = today.year

    if frequency == schemas.Frequency.first_year:
        return [Period(start_year)]

    if frequency in (schemas.Frequency.annual, schemas.Frequency.quarterly, schemas.Frequency.monthly):
        if start_year > current_year:
            return []
    else:
        return [Period(current_year)]

    if frequency == schemas.Frequency.annual:
        return [Period(year) for year in range(start_year, current_year + 1)]

    periods: List[Period] = []
    if frequency == schemas.Frequency.quarterly:
        for year in range(start_year, current_year + 1):
            periods.extend(Period(year, f"Q{quarter}") for quarter in range(1, 5))
        return periods

    for year in range(start_year, current_year + 1):
        periods.extend(Period(year, f"M{month}") for month in range(1, 13))
    return periods


def build_task_id(rule_id: int, startup_id: int, entity_identifier: str, period: Period) -> str:
    parts = ["rule", str(rule_id), str(startup_id)]
    if entity_identifier != PARENT_IDENTIFIER:
        parts.append(entity_identifier)
    parts.append(str(period.year))
    if period.period:
        parts.append(period.period)
    return "_".join(parts)


def format_task_name(compliance_name: str, period: Period) -> str:
    if period.is_quarter:
        return f"{compliance_name} ({period.period} {period.year})"
    if period.is_month:
        month = int(period.period[1:])
        return f"{compliance_name} ({MONTH_ABBREVIATIONS[month - 1]} {period.year})"
    return compliance_name


def _display_name(label: str, country_code: str) -> str:
    return f"{label} ({country_code})" if country_code else label


def enumerate_entities(startup, subsidiaries: Iterable = (), international_operations: Iterable = ()) -> List[EntityContext]:
    """Parent first, then subsidiaries and international operations by ascending id."""
    parent_code = to_country_code(startup.country_of_registration)
    entities = [
        EntityContext(
            identifier=PARENT_IDENTIFIER,
            display_name=_display_name("Parent Company", parent_code),
            country=startup.country_of_registration,
            country_code=parent_code,
            company_type=startup.company_type,
            registration_date=startup.registration_date,
            ca_code=startup.ca_service_code,
            cs_code=startup.cs_service_code,
        )
    ]

    for index, subsidiary in enumerate(sorted(subsidiaries, key=lambda item: item.id)):
        code = to_country_code(subsidiary.country)
        entities.append(
            EntityContext(
                identifier=f"sub-{index}",
                display_name=_display_name(f"Subsidiary {index}", code),
                country=subsidiary.country,
                country_code=code,
                company_type=subsidiary.company_type,
                registration_date=subsidiary.registration_date,
                ca_code=subsidiary.ca_code,
                cs_code=subsidiary.cs_code,
            )
        )

    for index, operation in enumerate(sorted(international_operations, key=lambda item: item.id)):
        code = to_country_code(operation.country)
        entities.append(
            EntityContext(
                identifier=f"intl-{index}",
                display_name=_display_name(f"International Operation {index}", code),
                country=operation.country,
                country_code=code,
                company_type=operation.company_type,
                registration_date=operation.start_date,
                ca_code=startup.ca_service_code,
                cs_code=startup.cs_service_code,
            )
        )

    return entities


def find_entity(entities: Sequence[EntityContext], identifier: str) -> Optional[EntityContext]:
    for entity in entities:
        if entity.identifier == identifier:
            return entity
    return None


def rule_applies(rule, entity: EntityContext) -> bool:
    if not entity.can_generate:
        return False
    rule_code = to_country_code(rule.country_code).upper()
    if rule_code != entity.country_code.upper():
        return False
    return (rule.company_type or "").strip().casefold() == entity.company_type.strip().casefold()


def rules_for_entity(rules: Iterable, entity: EntityContext) -> List:
    return [rule for rule in rules if rule_applies(rule, entity)]


def _verification_flags(verification_required: Optional[str]) -> tuple[bool, bool]:
    value = (verification_required or "").strip()
    ca_required = value in (schemas.VerificationRequired.ca.value, schemas.VerificationRequired.both.value)
    cs_required = value in (schemas.VerificationRequired.cs.value, schemas.VerificationRequired.both.value)
    return ca_required, cs_required


def generate_entity_tasks(
    startup_id: int,
    entity: EntityContext,
    rules: Iterable,
    today: datetime.date,
) -> List[schemas.ComplianceTask]:
    if not entity.can_generate:
        return []

    registration_date = entity.registration_date or today
    tasks: List[schemas.ComplianceTask] = []
    for rule in rules_for_entity(rules, entity):
        frequency = normalize_frequency(rule.frequency)
        ca_required, cs_required = _verification_flags(rule.verification_required)
        for period in applicable_periods(frequency, registration_date, today):
            tasks.append(
                schemas.ComplianceTask(
                    task_id=build_task_id(rule.id, startup_id, entity.identifier, period),
                    rule_id=rule.id,
                    entity_identifier=entity.identifier,
                    entity_display_name=entity.display_name,
                    year=period.year,
                    period=period.period,
                    task_name=format_task_name(rule.compliance_name, period),
                    frequency=frequency,
                    description=rule.compliance_description,
                    ca_required=ca_required,
                    cs_required=cs_required,
                    ca_type=rule.ca_type,
                    cs_type=rule.cs_type,
                )
            )
    return tasks


def generate_tasks(
    startup,
    subsidiaries: Iterable = (),
    international_operations: Iterable = (),
    rules: Iterable = (),
    today: Optional[datetime.date] = None,
) -> List[schemas.ComplianceTask]:
    """Generate every task for every entity of a startup, unmerged and unsorted."""
    today = today or datetime.date.today()
    rules = list(rules)
    tasks: List[schemas.ComplianceTask] = []
    for entity in enumerate_entities(startup, subsidiaries, international_operations):
        tasks.extend(generate_entity_tasks(startup.id, entity, rules, today))
    return tasks


def _task_from_check(check) -> schemas.ComplianceTask:
    frequency = normalize_frequency(check.frequency) if check.frequency else None
    return schemas.ComplianceTask(
        task_id=check.task_id,
        rule_id=check.rule_id,
        entity_identifier=check.entity_identifier or PARENT_IDENTIFIER,
        entity_display_name=check.entity_display_name,
        year=check.year,
        period=check.period,
        task_name=check.task_name,
        frequency=frequency,
        description=check.description,
        ca_required=bool(check.ca_required),
        cs_required=bool(check.cs_required),
        ca_status=check.ca_status,
        cs_status=check.cs_status,
        persisted=True,
    )


def merge_tasks(
    generated: Iterable[schemas.ComplianceTask],
    existing_checks: Iterable,
    uploads_by_task: Optional[Mapping[str, List]] = None,
) -> List[schemas.ComplianceTask]:
    """
    Overlay stored statuses on generated tasks and keep stored tasks that no
    longer have a generated counterpart. The result is sorted.
    """
    uploads_by_task = uploads_by_task or {}
    checks_by_id = {check.task_id: check for check in existing_checks}

    merged: List[schemas.ComplianceTask] = []
    seen: set[str] = set()
    for task in generated:
        if task.task_id in seen:
            continue
        seen.add(task.task_id)
        check = checks_by_id.get(task.task_id)
        update: Dict[str, object] = {"uploads": _uploads_for(uploads_by_task, task.task_id)}
        if check is not None:
            update.update(
                ca_status=schemas.ComplianceStatus(check.ca_status),
                cs_status=schemas.ComplianceStatus(check.cs_status),
                persisted=True,
            )
        merged.append(task.model_copy(update=update))

    for task_id, check in checks_by_id.items():
        if task_id in seen:
            continue
        orphan = _task_from_check(check)
        merged.append(orphan.model_copy(update={"uploads": _uploads_for(uploads_by_task, task_id)}))

    return sort_tasks(merged)


def _uploads_for(uploads_by_task: Mapping[str, List], task_id: str) -> List[schemas.ComplianceUpload]:
    return [schemas.ComplianceUpload.model_validate(upload) for upload in uploads_by_task.get(task_id, [])]


def sort_tasks(tasks: Iterable[schemas.ComplianceTask]) -> List[schemas.ComplianceTask]:
    return sorted(
        tasks,
        key=lambda task: (
            0 if task.frequency == schemas.Frequency.first_year else 1,
            -task.year,
            task.task_name.casefold(),
        ),
    )


def group_tasks_by_entity(
    tasks: Iterable[schemas.ComplianceTask],
    entities: Sequence[EntityContext],
) -> List[schemas.EntityTaskGroup]:
    """Group tasks in entity order; tasks of removed entities get a trailing group each."""
    buckets: Dict[str, List[schemas.ComplianceTask]] = {entity.identifier: [] for entity in entities}
    orphan_names: Dict[str, str] = {}
    for task in tasks:
        if task.entity_identifier not in buckets:
            buckets[task.entity_identifier] = []
            orphan_names[task.entity_identifier] = task.entity_display_name
        buckets[task.entity_identifier].append(task)

    groups: List[schemas.EntityTaskGroup] = []
    for entity in entities:
        titles = professional_titles(entity.country_code)
        groups.append(
            schemas.EntityTaskGroup(
                entity_identifier=entity.identifier,
                entity_display_name=entity.display_name,
                country_code=entity.country_code,
                country_name=country_display_name(entity.country_code),
                ca_title=titles.ca_title,
                cs_title=titles.cs_title,
                tasks=buckets[entity.identifier],
            )
        )

    for identifier, display_name in orphan_names.items():
        titles = professional_titles(None)
        groups.append(
            schemas.EntityTaskGroup(
                entity_identifier=identifier,
                entity_display_name=display_name,
                country_code="",
                country_name=country_display_name(None),
                ca_title=titles.ca_title,
                cs_title=titles.cs_title,
                tasks=buckets[identifier],
            )
        )
    return groups
