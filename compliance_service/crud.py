import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from pydantic import ValidationError
from sqlalchemy import delete, distinct, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from libs.shared_auth.jwt_fastapi import AuthenticatedUser

from . import models, schemas
from .core.logging import get_logger
from .task_generation import EntityContext, enumerate_entities, generate_tasks, merge_tasks, normalize_frequency

logger = get_logger(__name__)

SEED_RULES = [
    {
        "country_code": "IN",
        "country_name": "India",
        "company_type": "Private Limited Company",
        "compliance_name": "Certificate of Incorporation",
        "compliance_description": "Incorporation certificate issued by the Registrar of Companies.",
        "frequency": "first-year",
        "verification_required": "CS",
        "cs_type": "Company Secretary",
    },
    {
        "country_code": "IN",
        "country_name": "India",
        "company_type": "Private Limited Company",
        "compliance_name": "Annual Return Filing (MGT-7)",
        "compliance_description": "Annual return filed with the Registrar of Companies.",
        "frequency": "annual",
        "verification_required": "both",
        "ca_type": "Chartered Accountant",
        "cs_type": "Company Secretary",
    },
    {
        "country_code": "IN",
        "country_name": "India",
        "company_type": "Private Limited Company",
        "compliance_name": "GST Return",
        "compliance_description": "Monthly goods and services tax return.",
        "frequency": "monthly",
        "verification_required": "CA",
        "ca_type": "Chartered Accountant",
    },
    {
        "country_code": "US",
        "country_name": "United States",
        "company_type": "C-Corporation",
        "compliance_name": "Delaware Franchise Tax",
        "compliance_description": "Annual franchise tax and annual report.",
        "frequency": "annual",
        "verification_required": "CA",
        "ca_type": "CPA",
    },
    {
        "country_code": "US",
        "country_name": "United States",
        "company_type": "C-Corporation",
        "compliance_name": "Estimated Tax Payment",
        "compliance_description": "Quarterly federal estimated tax payment.",
        "frequency": "quarterly",
        "verification_required": "CA",
        "ca_type": "CPA",
    },
]


# --- Startups and entities ---

async def create_startup(db: AsyncSession, user_id: str, data: schemas.StartupCreate) -> models.Startup:
    startup = models.Startup(user_id=user_id, compliance_status=schemas.ComplianceStatus.pending.value, **data.model_dump())
    db.add(startup)
    await db.commit()
    await db.refresh(startup)
    return startup


async def get_startup(db: AsyncSession, startup_id: int) -> models.Startup | None:
    result = await db.execute(select(models.Startup).filter(models.Startup.id == startup_id))
    return result.scalars().first()


async def update_startup(db: AsyncSession, startup: models.Startup, data: schemas.StartupUpdate) -> models.Startup:
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(startup, field, value)
    await db.commit()
    await db.refresh(startup)
    return startup


async def set_compliance_status(db: AsyncSession, startup: models.Startup, status: schemas.ComplianceStatus) -> None:
    startup.compliance_status = status.value
    await db.commit()


async def list_subsidiaries(db: AsyncSession, startup_id: int) -> List[models.Subsidiary]:
    result = await db.execute(
        select(models.Subsidiary)
        .filter(models.Subsidiary.startup_id == startup_id)
        .order_by(models.Subsidiary.id.asc())
    )
    return result.scalars().all()


async def add_subsidiary(db: AsyncSession, startup_id: int, data: schemas.SubsidiaryCreate) -> models.Subsidiary:
    subsidiary = models.Subsidiary(startup_id=startup_id, **data.model_dump())
    db.add(subsidiary)
    await db.commit()
    await db.refresh(subsidiary)
    return subsidiary


async def delete_subsidiary(db: AsyncSession, startup_id: int, subsidiary_id: int) -> bool:
    result = await db.execute(
        delete(models.Subsidiary).where(
            models.Subsidiary.startup_id == startup_id,
            models.Subsidiary.id == subsidiary_id,
        )
    )
    await db.commit()
    return result.rowcount > 0


async def list_international_operations(db: AsyncSession, startup_id: int) -> List[models.InternationalOperation]:
    result = await db.execute(
        select(models.InternationalOperation)
        .filter(models.InternationalOperation.startup_id == startup_id)
        .order_by(models.InternationalOperation.id.asc())
    )
    return result.scalars().all()


async def add_international_operation(
    db: AsyncSession,
    startup_id: int,
    data: schemas.InternationalOperationCreate,
) -> models.InternationalOperation:
    operation = models.InternationalOperation(startup_id=startup_id, **data.model_dump())
    db.add(operation)
    await db.commit()
    await db.refresh(operation)
    return operation


async def delete_international_operation(db: AsyncSession, startup_id: int, operation_id: int) -> bool:
    result = await db.execute(
        delete(models.InternationalOperation).where(
            models.InternationalOperation.startup_id == startup_id,
            models.InternationalOperation.id == operation_id,
        )
    )
    await db.commit()
    return result.rowcount > 0


# --- Compliance rules ---

async def seed_rules_if_empty(db: AsyncSession) -> None:
    result = await db.execute(select(func.count()).select_from(models.ComplianceRule))
    if result.scalar_one() > 0:
        return

    db.add_all([models.ComplianceRule(**rule_data) for rule_data in SEED_RULES])
    await db.commit()
    logger.info("Seeded %d default compliance rules", len(SEED_RULES))


async def list_rules(
    db: AsyncSession,
    country_code: Optional[str] = None,
    company_type: Optional[str] = None,
) -> List[models.ComplianceRule]:
    query = select(models.ComplianceRule)
    if country_code:
        query = query.filter(func.upper(models.ComplianceRule.country_code) == country_code.strip().upper())
    if company_type:
        query = query.filter(func.lower(models.ComplianceRule.company_type) == company_type.strip().lower())
    query = query.order_by(
        models.ComplianceRule.country_name.asc(),
        models.ComplianceRule.company_type.asc(),
        models.ComplianceRule.compliance_name.asc(),
    )
    result = await db.execute(query)
    return result.scalars().all()


async def get_rule(db: AsyncSession, rule_id: int) -> models.ComplianceRule | None:
    result = await db.execute(select(models.ComplianceRule).filter(models.ComplianceRule.id == rule_id))
    return result.scalars().first()


def _rule_values(data: schemas.ComplianceRuleBase | schemas.ComplianceRuleUpdate, exclude_unset: bool = False) -> Dict[str, Any]:
    values = data.model_dump(exclude_unset=exclude_unset)
    for key in ("frequency", "verification_required"):
        if values.get(key) is not None:
            values[key] = values[key].value
    return values


async def create_rule(db: AsyncSession, data: schemas.ComplianceRuleCreate) -> models.ComplianceRule:
    rule = models.ComplianceRule(**_rule_values(data))
    db.add(rule)
    await db.commit()
    await db.refresh(rule)
    return rule


async def update_rule(db: AsyncSession, rule: models.ComplianceRule, data: schemas.ComplianceRuleUpdate) -> models.ComplianceRule:
    for field, value in _rule_values(data, exclude_unset=True).items():
        setattr(rule, field, value)
    await db.commit()
    await db.refresh(rule)
    return rule


async def delete_rule(db: AsyncSession, rule: models.ComplianceRule) -> None:
    await db.delete(rule)
    await db.commit()


async def bulk_create_rules(db: AsyncSession, rows: Sequence[Dict[str, Any]]) -> schemas.BulkUploadResult:
    """Insert rows one at a time; a bad row is reported and does not stop the rest."""
    success = 0
    errors: List[schemas.BulkUploadError] = []
    for index, row in enumerate(rows, start=1):
        payload = dict(row)
        frequency = payload.get("frequency")
        if frequency is None or isinstance(frequency, str):
            payload["frequency"] = normalize_frequency(frequency).value
        try:
            data = schemas.ComplianceRuleCreate.model_validate(payload)
        except ValidationError as exc:
            errors.append(schemas.BulkUploadError(row=index, error=str(exc.errors()[0]["msg"]), data=dict(row)))
            continue

        db.add(models.ComplianceRule(**_rule_values(data)))
        try:
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.warning("Bulk rule row %d failed: %s", index, exc)
            errors.append(schemas.BulkUploadError(row=index, error="Could not store rule", data=dict(row)))
            continue
        success += 1
    return schemas.BulkUploadResult(success=success, errors=errors)


async def add_country_setup(db: AsyncSession, data: schemas.CountrySetupRequest) -> List[models.ComplianceRule]:
    rules = []
    code = data.country_code.strip().upper()
    for ca_type in data.ca_types:
        rules.append(
            models.ComplianceRule(
                country_code=code,
                country_name=data.country_name,
                company_type="Default",
                compliance_name="Country Setup - CA Type",
                compliance_description=f"CA type for {data.country_name}: {ca_type}",
                frequency=schemas.Frequency.annual.value,
                verification_required=schemas.VerificationRequired.ca.value,
                ca_type=ca_type,
            )
        )
    for cs_type in data.cs_types:
        rules.append(
            models.ComplianceRule(
                country_code=code,
                country_name=data.country_name,
                company_type="Default",
                compliance_name="Country Setup - CS Type",
                compliance_description=f"CS type for {data.country_name}: {cs_type}",
                frequency=schemas.Frequency.annual.value,
                verification_required=schemas.VerificationRequired.cs.value,
                cs_type=cs_type,
            )
        )
    db.add_all(rules)
    await db.commit()
    for rule in rules:
        await db.refresh(rule)
    return rules


async def list_countries(db: AsyncSession) -> List[schemas.Country]:
    result = await db.execute(
        select(models.ComplianceRule.country_code, models.ComplianceRule.country_name)
        .distinct()
        .order_by(models.ComplianceRule.country_name.asc())
    )
    return [schemas.Country(country_code=code, country_name=name) for code, name in result.all()]


async def list_company_types(db: AsyncSession, country_code: Optional[str] = None) -> List[str]:
    query = select(distinct(models.ComplianceRule.company_type))
    if country_code:
        query = query.filter(func.upper(models.ComplianceRule.country_code) == country_code.strip().upper())
    result = await db.execute(query.order_by(models.ComplianceRule.company_type.asc()))
    return [value for value in result.scalars().all() if value]


async def _distinct_non_empty(db: AsyncSession, column) -> List[str]:
    result = await db.execute(select(distinct(column)).filter(column.is_not(None)).order_by(column.asc()))
    return [value for value in result.scalars().all() if value and value.strip()]


async def list_ca_types(db: AsyncSession) -> List[str]:
    return await _distinct_non_empty(db, models.ComplianceRule.ca_type)


async def list_cs_types(db: AsyncSession) -> List[str]:
    return await _distinct_non_empty(db, models.ComplianceRule.cs_type)


# --- Compliance tasks ---

async def list_checks(db: AsyncSession, startup_id: int) -> List[models.ComplianceCheck]:
    result = await db.execute(select(models.ComplianceCheck).filter(models.ComplianceCheck.startup_id == startup_id))
    return result.scalars().all()


async def get_check(db: AsyncSession, startup_id: int, task_id: str) -> models.ComplianceCheck | None:
    result = await db.execute(
        select(models.ComplianceCheck).filter(
            models.ComplianceCheck.startup_id == startup_id,
            models.ComplianceCheck.task_id == task_id,
        )
    )
    return result.scalars().first()


def _check_from_task(startup_id: int, task: schemas.ComplianceTask) -> models.ComplianceCheck:
    return models.ComplianceCheck(
        startup_id=startup_id,
        task_id=task.task_id,
        rule_id=task.rule_id,
        entity_identifier=task.entity_identifier,
        entity_display_name=task.entity_display_name,
        year=task.year,
        period=task.period,
        frequency=task.frequency.value if task.frequency else None,
        task_name=task.task_name,
        description=task.description,
        ca_required=task.ca_required,
        cs_required=task.cs_required,
        ca_status=schemas.ComplianceStatus.pending.value,
        cs_status=schemas.ComplianceStatus.pending.value,
    )


async def insert_missing_checks(
    db: AsyncSession,
    startup_id: int,
    tasks: Iterable[schemas.ComplianceTask],
    commit: bool = True,
) -> int:
    """Insert tasks not yet stored; stored rows are left untouched."""
    result = await db.execute(
        select(models.ComplianceCheck.task_id).filter(models.ComplianceCheck.startup_id == startup_id)
    )
    existing = set(result.scalars().all())
    new_checks = []
    for task in tasks:
        if task.task_id in existing:
            continue
        existing.add(task.task_id)
        new_checks.append(_check_from_task(startup_id, task))
    if new_checks:
        db.add_all(new_checks)
        if commit:
            await db.commit()
    return len(new_checks)


async def delete_checks(db: AsyncSession, startup_id: int, commit: bool = True) -> int:
    result = await db.execute(delete(models.ComplianceCheck).where(models.ComplianceCheck.startup_id == startup_id))
    if commit:
        await db.commit()
    return result.rowcount


async def set_check_status(
    db: AsyncSession,
    check: models.ComplianceCheck,
    column: str,
    status: schemas.ComplianceStatus,
) -> models.ComplianceCheck:
    setattr(check, f"{column}_status", status.value)
    await db.commit()
    await db.refresh(check)
    return check


async def load_entities_and_rules(db: AsyncSession, startup: models.Startup):
    subsidiaries = await list_subsidiaries(db, startup.id)
    operations = await list_international_operations(db, startup.id)
    rules = await list_rules(db)
    return subsidiaries, operations, rules


async def get_startup_tasks(
    db: AsyncSession,
    startup: models.Startup,
    today: Optional[datetime.date] = None,
) -> tuple[List[EntityContext], List[schemas.ComplianceTask]]:
    """Generated tasks merged with stored checks and uploads, in display order."""
    subsidiaries, operations, rules = await load_entities_and_rules(db, startup)
    entities = enumerate_entities(startup, subsidiaries, operations)
    generated = generate_tasks(startup, subsidiaries, operations, rules, today=today)
    checks = await list_checks(db, startup.id)
    uploads = await list_uploads_by_task(db, startup.id)
    return entities, merge_tasks(generated, checks, uploads)


async def sync_startup_tasks(
    db: AsyncSession,
    startup: models.Startup,
    today: Optional[datetime.date] = None,
) -> schemas.SyncResult:
    startup_id = startup.id
    subsidiaries, operations, rules = await load_entities_and_rules(db, startup)
    generated = generate_tasks(startup, subsidiaries, operations, rules, today=today)
    created = await insert_missing_checks(db, startup_id, generated)
    logger.info("Synced startup %s: %d generated, %d created", startup_id, len(generated), created)
    return schemas.SyncResult(generated=len(generated), created=created)


async def force_regenerate_tasks(
    db: AsyncSession,
    startup: models.Startup,
    today: Optional[datetime.date] = None,
) -> schemas.SyncResult:
    """Replace the stored tasks with freshly generated ones in a single transaction."""
    startup_id = startup.id
    subsidiaries, operations, rules = await load_entities_and_rules(db, startup)
    generated = generate_tasks(startup, subsidiaries, operations, rules, today=today)
    if not generated:
        logger.warning("Regeneration for startup %s produced no tasks; stored tasks kept", startup_id)
        return schemas.SyncResult(generated=0, created=0, deleted=0)

    try:
        deleted = await delete_checks(db, startup_id, commit=False)
        created = await insert_missing_checks(db, startup_id, generated, commit=False)
        await db.commit()
    except Exception:
        await db.rollback()
        logger.error("Regeneration for startup %s failed; stored tasks kept", startup_id)
        raise
    logger.info("Regenerated startup %s: %d deleted, %d created", startup_id, deleted, created)
    return schemas.SyncResult(generated=len(generated), created=created, deleted=deleted)


# --- Uploads ---

async def list_uploads(db: AsyncSession, startup_id: int, task_id: Optional[str] = None) -> List[models.ComplianceUpload]:
    query = select(models.ComplianceUpload).filter(models.ComplianceUpload.startup_id == startup_id)
    if task_id:
        query = query.filter(models.ComplianceUpload.task_id == task_id)
    result = await db.execute(query.order_by(models.ComplianceUpload.uploaded_at.asc()))
    return result.scalars().all()


async def list_uploads_by_task(db: AsyncSession, startup_id: int) -> Dict[str, List[models.ComplianceUpload]]:
    grouped: Dict[str, List[models.ComplianceUpload]] = {}
    for upload in await list_uploads(db, startup_id):
        grouped.setdefault(upload.task_id, []).append(upload)
    return grouped


async def create_upload(
    db: AsyncSession,
    startup_id: int,
    task_id: str,
    uploaded_by: str,
    data: schemas.ComplianceUploadCreate,
    verification: schemas.DocumentVerificationResult,
) -> models.ComplianceUpload:
    upload = models.ComplianceUpload(
        startup_id=startup_id,
        task_id=task_id,
        uploaded_by=uploaded_by,
        verification_status=verification.status.value,
        verification_confidence=verification.confidence,
        verification_reasons=verification.reasons,
        **data.model_dump(),
    )
    db.add(upload)
    await db.commit()
    await db.refresh(upload)
    return upload


async def get_upload(db: AsyncSession, startup_id: int, upload_id: str) -> models.ComplianceUpload | None:
    result = await db.execute(
        select(models.ComplianceUpload).filter(
            models.ComplianceUpload.startup_id == startup_id,
            models.ComplianceUpload.id == upload_id,
        )
    )
    return result.scalars().first()


async def delete_upload(db: AsyncSession, upload: models.ComplianceUpload) -> None:
    await db.delete(upload)
    await db.commit()


# --- Rule submissions ---

async def create_submission(
    db: AsyncSession,
    user: AuthenticatedUser,
    data: schemas.RuleSubmissionCreate,
) -> models.RuleSubmission:
    values = data.model_dump()
    for key in ("operation_type", "frequency", "verification_required"):
        values[key] = values[key].value
    submission = models.RuleSubmission(
        submitted_by_user_id=user.user_id,
        submitted_by_role=user.role,
        submitted_by_email=user.email,
        status=schemas.SubmissionStatus.pending.value,
        **values,
    )
    db.add(submission)
    await db.commit()
    await db.refresh(submission)
    return submission


async def list_submissions(
    db: AsyncSession,
    user_id: Optional[str] = None,
    status: Optional[schemas.SubmissionStatus] = None,
) -> List[models.RuleSubmission]:
    query = select(models.RuleSubmission)
    if user_id:
        query = query.filter(models.RuleSubmission.submitted_by_user_id == user_id)
    if status:
        query = query.filter(models.RuleSubmission.status == status.value)
    result = await db.execute(query.order_by(models.RuleSubmission.created_at.desc(), models.RuleSubmission.id.desc()))
    return result.scalars().all()


async def get_submission(db: AsyncSession, submission_id: int) -> models.RuleSubmission | None:
    result = await db.execute(select(models.RuleSubmission).filter(models.RuleSubmission.id == submission_id))
    return result.scalars().first()


async def review_submission(
    db: AsyncSession,
    submission: models.RuleSubmission,
    reviewer_id: str,
    status: schemas.SubmissionStatus,
    review_notes: Optional[str] = None,
) -> models.RuleSubmission:
    submission.status = status.value
    submission.review_notes = review_notes
    submission.reviewed_by_user_id = reviewer_id
    submission.reviewed_at = datetime.datetime.now(datetime.UTC)
    await db.commit()
    await db.refresh(submission)
    return submission


async def promote_submission(
    db: AsyncSession,
    submission: models.RuleSubmission,
    reviewer_id: str,
    review_notes: Optional[str] = None,
) -> models.ComplianceRule:
    rule = models.ComplianceRule(
        country_code=submission.country_code,
        country_name=submission.country_name,
        company_type=submission.company_type,
        compliance_name=submission.compliance_name,
        compliance_description=submission.compliance_description,
        frequency=normalize_frequency(submission.frequency).value,
        verification_required=submission.verification_required,
        ca_type=submission.ca_type,
        cs_type=submission.cs_type,
    )
    db.add(rule)
    submission.status = schemas.SubmissionStatus.approved.value
    submission.review_notes = review_notes
    submission.reviewed_by_user_id = reviewer_id
    submission.reviewed_at = datetime.datetime.now(datetime.UTC)
    await db.commit()
    await db.refresh(rule)
    return rule


async def delete_submission(db: AsyncSession, submission: models.RuleSubmission) -> None:
    await db.delete(submission)
    await db.commit()


async def submission_stats(db: AsyncSession) -> schemas.SubmissionStats:
    result = await db.execute(
        select(models.RuleSubmission.status, func.count(models.RuleSubmission.id)).group_by(models.RuleSubmission.status)
    )
    counts = {status: count for status, count in result.all()}
    return schemas.SubmissionStats(
        total=sum(counts.values()),
        pending=counts.get(schemas.SubmissionStatus.pending.value, 0),
        under_review=counts.get(schemas.SubmissionStatus.under_review.value, 0),
        approved=counts.get(schemas.SubmissionStatus.approved.value, 0),
        rejected=counts.get(schemas.SubmissionStatus.rejected.value, 0),
    )


# --- CA/CS assignments ---

async def get_assignment(db: AsyncSession, assignment_id: int) -> models.ServiceAssignment | None:
    result = await db.execute(select(models.ServiceAssignment).filter(models.ServiceAssignment.id == assignment_id))
    return result.scalars().first()


async def get_open_assignment(
    db: AsyncSession,
    startup_id: int,
    user_id: str,
    role: str,
) -> models.ServiceAssignment | None:
    result = await db.execute(
        select(models.ServiceAssignment).filter(
            models.ServiceAssignment.startup_id == startup_id,
            models.ServiceAssignment.user_id == user_id,
            models.ServiceAssignment.role == role,
            models.ServiceAssignment.status.in_(
                [schemas.AssignmentStatus.pending.value, schemas.AssignmentStatus.active.value]
            ),
        )
    )
    return result.scalars().first()


async def has_active_assignment(db: AsyncSession, startup_id: int, user: AuthenticatedUser) -> bool:
    assignment = await get_open_assignment(db, startup_id, user.user_id, user.role)
    return assignment is not None and assignment.status == schemas.AssignmentStatus.active.value


async def create_assignment_request(
    db: AsyncSession,
    startup_id: int,
    user: AuthenticatedUser,
    notes: Optional[str] = None,
) -> models.ServiceAssignment:
    assignment = models.ServiceAssignment(
        startup_id=startup_id,
        user_id=user.user_id,
        role=user.role,
        service_code=user.service_code,
        status=schemas.AssignmentStatus.pending.value,
        notes=notes,
    )
    db.add(assignment)
    await db.commit()
    await db.refresh(assignment)
    return assignment


async def decide_assignment(
    db: AsyncSession,
    assignment: models.ServiceAssignment,
    status: schemas.AssignmentStatus,
    notes: Optional[str] = None,
) -> models.ServiceAssignment:
    assignment.status = status.value
    if notes is not None:
        assignment.notes = notes
    assignment.decided_at = datetime.datetime.now(datetime.UTC)
    await db.commit()
    await db.refresh(assignment)
    return assignment


async def list_pending_assignments(db: AsyncSession, startup_id: int) -> List[models.ServiceAssignment]:
    result = await db.execute(
        select(models.ServiceAssignment)
        .filter(
            models.ServiceAssignment.startup_id == startup_id,
            models.ServiceAssignment.status == schemas.AssignmentStatus.pending.value,
        )
        .order_by(models.ServiceAssignment.requested_at.asc())
    )
    return result.scalars().all()


async def list_user_assignments(
    db: AsyncSession,
    user: AuthenticatedUser,
    status: Optional[schemas.AssignmentStatus] = None,
) -> List[models.ServiceAssignment]:
    query = select(models.ServiceAssignment).filter(
        models.ServiceAssignment.user_id == user.user_id,
        models.ServiceAssignment.role == user.role,
    )
    if status:
        query = query.filter(models.ServiceAssignment.status == status.value)
    result = await db.execute(query)
    return result.scalars().all()


async def list_assigned_startups(db: AsyncSession, user: AuthenticatedUser) -> List[schemas.AssignedStartup]:
    """Startups a CA/CS user serves: active assignments plus matching startup or subsidiary codes."""
    active = await list_user_assignments(db, user, schemas.AssignmentStatus.active)
    assigned_at = {assignment.startup_id: assignment.decided_at or assignment.requested_at for assignment in active}

    conditions = []
    if assigned_at:
        conditions.append(models.Startup.id.in_(list(assigned_at)))
    if user.service_code:
        is_ca = user.role == schemas.UserRole.ca.value
        code_column = models.Startup.ca_service_code if is_ca else models.Startup.cs_service_code
        subsidiary_code_column = models.Subsidiary.ca_code if is_ca else models.Subsidiary.cs_code
        conditions.append(code_column == user.service_code)
        conditions.append(
            models.Startup.id.in_(
                select(models.Subsidiary.startup_id).filter(subsidiary_code_column == user.service_code)
            )
        )
    if not conditions:
        return []

    result = await db.execute(select(models.Startup).filter(or_(*conditions)).order_by(models.Startup.name.asc()))
    return [
        schemas.AssignedStartup(
            id=startup.id,
            name=startup.name,
            compliance_status=startup.compliance_status,
            registration_date=startup.registration_date,
            country_of_registration=startup.country_of_registration,
            assignment_status=schemas.AssignmentStatus.active,
            assigned_at=assigned_at.get(startup.id),
        )
        for startup in result.scalars().all()
    ]


async def service_provider_stats(db: AsyncSession, user: AuthenticatedUser) -> schemas.ServiceProviderStats:
    startups = await list_assigned_startups(db, user)
    active = await list_user_assignments(db, user, schemas.AssignmentStatus.active)
    pending = await list_user_assignments(db, user, schemas.AssignmentStatus.pending)
    statuses = [startup.compliance_status for startup in startups]
    return schemas.ServiceProviderStats(
        total_startups=len(startups),
        pending_review=statuses.count(schemas.ComplianceStatus.pending),
        compliant=statuses.count(schemas.ComplianceStatus.compliant),
        non_compliant=statuses.count(schemas.ComplianceStatus.non_compliant),
        active_assignments=len(active),
        pending_requests=len(pending),
    )
