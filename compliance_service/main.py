from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import httpx
from fastapi import Body, Depends, FastAPI, HTTPException, Query, Response, status
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from libs.shared_auth.jwt_fastapi import AuthenticatedUser, build_jwt_auth_dependencies
from libs.shared_http.retry import post_json_with_retry

from . import crud, models, permissions, schemas
from .core.config import settings
from .core.logging import get_logger, setup_logging
from .database import AsyncSessionLocal, Base, engine, get_db
from .document_verification import verify_document
from .status import filter_tasks, overall_status_change, summarize_tasks
from .task_generation import find_entity, group_tasks_by_entity

setup_logging()
logger = get_logger(__name__)

get_bearer_token, get_current_user = build_jwt_auth_dependencies(
    algorithm=settings.AUTH_ALGORITHM,
    secret_key=settings.AUTH_SECRET_KEY,
)

TASKS_GENERATED_TOTAL = Counter(
    "compliance_tasks_generated_total",
    "Total compliance tasks inserted by sync or regeneration.",
    ["trigger"],
)
TASK_STATUS_UPDATES_TOTAL = Counter(
    "compliance_task_status_updates_total",
    "Total CA/CS status updates on compliance tasks.",
    ["column", "status"],
)
UPLOADS_TOTAL = Counter(
    "compliance_uploads_total",
    "Total compliance document uploads by verification verdict.",
    ["verification_status"],
)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    if settings.AUTO_CREATE_SCHEMA:
        async with engine.begin() as connection:
            await connection.run_sync(Base.metadata.create_all)
    async with AsyncSessionLocal() as db:
        if not settings.AUTO_CREATE_SCHEMA:
            try:
                await db.execute(text("SELECT 1 FROM compliance_rules LIMIT 1"))
            except Exception as exc:
                raise RuntimeError(
                    "Compliance schema is not initialized. "
                    "Run `alembic upgrade head` or set AUTO_CREATE_SCHEMA=true for local bootstrapping."
                ) from exc
        if settings.SEED_DEFAULT_RULES:
            await crud.seed_rules_if_empty(db)
    yield


app = FastAPI(
    title=settings.APP_NAME,
    description="Compliance task generation, CA/CS verification and rule management for startups.",
    version=settings.VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

if settings.ENABLE_TRACING:
    from .telemetry import setup_telemetry

    setup_telemetry(app)


async def log_audit_event(user_id: str, action: str, details: Dict[str, Any]) -> str | None:
    if not settings.AUDIT_SERVICE_URL:
        return None
    try:
        response_data = await post_json_with_retry(
            settings.AUDIT_SERVICE_URL,
            json_body={"user_id": user_id, "action": action, "details": details},
            timeout=settings.AUDIT_TIMEOUT_SECONDS,
        )
        return response_data.get("id") if isinstance(response_data, dict) else None
    except httpx.HTTPError as exc:
        logger.error("Could not log audit event %s: %s", action, exc)
        return None


# --- Access helpers ---

def require_admin(user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:
    if not permissions.is_admin(user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin role required")
    return user


def require_service_provider(user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:
    if not permissions.is_service_provider(user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="CA or CS role required")
    return user


async def _get_startup_or_404(db: AsyncSession, startup_id: int) -> models.Startup:
    startup = await crud.get_startup(db, startup_id)
    if not startup:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Startup not found")
    return startup


async def _get_viewable_startup(db: AsyncSession, startup_id: int, user: AuthenticatedUser) -> models.Startup:
    startup = await _get_startup_or_404(db, startup_id)
    has_assignment = False
    subsidiaries = []
    if permissions.is_service_provider(user):
        has_assignment = await crud.has_active_assignment(db, startup_id, user)
        subsidiaries = await crud.list_subsidiaries(db, startup_id)
    if not permissions.can_view_startup(
        user, startup, has_active_assignment=has_assignment, subsidiaries=subsidiaries
    ):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to access this startup")
    return startup


async def _get_managed_startup(db: AsyncSession, startup_id: int, user: AuthenticatedUser) -> models.Startup:
    startup = await _get_startup_or_404(db, startup_id)
    if not permissions.can_manage_startup(user, startup):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the startup owner or an admin can do this")
    return startup


async def _startup_response(db: AsyncSession, startup: models.Startup) -> schemas.Startup:
    subsidiaries = await crud.list_subsidiaries(db, startup.id)
    operations = await crud.list_international_operations(db, startup.id)
    return schemas.Startup.model_validate(startup).model_copy(
        update={
            "subsidiaries": [schemas.Subsidiary.model_validate(item) for item in subsidiaries],
            "international_operations": [schemas.InternationalOperation.model_validate(item) for item in operations],
        }
    )


async def _reconcile_overall_status(
    db: AsyncSession,
    startup: models.Startup,
    tasks: List[schemas.ComplianceTask],
    role: str,
) -> schemas.ComplianceStatus:
    new_status = overall_status_change(tasks, role, startup.compliance_status)
    if new_status is None:
        return schemas.ComplianceStatus(startup.compliance_status)
    previous = startup.compliance_status
    await crud.set_compliance_status(db, startup, new_status)
    logger.info("Startup %s overall status %s -> %s", startup.id, previous, new_status.value)
    return new_status


# --- Service endpoints ---

@app.get("/health")
async def health_check():
    return {"status": "ok"}


@app.get("/metrics")
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


# --- Startups and entities ---

@app.post("/startups", response_model=schemas.Startup, status_code=status.HTTP_201_CREATED)
async def create_startup(
    payload: schemas.StartupCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if user.role not in (schemas.UserRole.startup.value, schemas.UserRole.admin.value):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only startup users can create startups")
    startup = await crud.create_startup(db, user_id=user.user_id, data=payload)
    return await _startup_response(db, startup)


@app.get("/startups/{startup_id}", response_model=schemas.Startup)
async def get_startup(
    startup_id: int,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    startup = await _get_viewable_startup(db, startup_id, user)
    return await _startup_response(db, startup)


@app.patch("/startups/{startup_id}", response_model=schemas.Startup)
async def update_startup(
    startup_id: int,
    payload: schemas.StartupUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    startup = await _get_managed_startup(db, startup_id, user)
    startup = await crud.update_startup(db, startup, payload)
    return await _startup_response(db, startup)


@app.post(
    "/startups/{startup_id}/subsidiaries",
    response_model=schemas.Subsidiary,
    status_code=status.HTTP_201_CREATED,
)
async def add_subsidiary(
    startup_id: int,
    payload: schemas.SubsidiaryCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _get_managed_startup(db, startup_id, user)
    return await crud.add_subsidiary(db, startup_id, payload)


@app.delete("/startups/{startup_id}/subsidiaries/{subsidiary_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_subsidiary(
    startup_id: int,
    subsidiary_id: int,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _get_managed_startup(db, startup_id, user)
    if not await crud.delete_subsidiary(db, startup_id, subsidiary_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subsidiary not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.post(
    "/startups/{startup_id}/international-operations",
    response_model=schemas.InternationalOperation,
    status_code=status.HTTP_201_CREATED,
)
async def add_international_operation(
    startup_id: int,
    payload: schemas.InternationalOperationCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _get_managed_startup(db, startup_id, user)
    return await crud.add_international_operation(db, startup_id, payload)


@app.delete(
    "/startups/{startup_id}/international-operations/{operation_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_international_operation(
    startup_id: int,
    operation_id: int,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _get_managed_startup(db, startup_id, user)
    if not await crud.delete_international_operation(db, startup_id, operation_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="International operation not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Compliance tasks ---

@app.get("/startups/{startup_id}/compliance/tasks", response_model=List[schemas.ComplianceTask])
async def list_compliance_tasks(
    startup_id: int,
    entity: Optional[str] = Query(None, description="Entity identifier: parent, sub-<i> or intl-<i>."),
    year: Optional[int] = Query(None),
    task_status: Optional[schemas.ComplianceStatus] = Query(None, alias="status"),
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    startup = await _get_viewable_startup(db, startup_id, user)
    _, tasks = await crud.get_startup_tasks(db, startup)
    return filter_tasks(tasks, entity=entity, year=year, status=task_status)


@app.get("/startups/{startup_id}/compliance/tasks/grouped", response_model=List[schemas.EntityTaskGroup])
async def list_compliance_tasks_by_entity(
    startup_id: int,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    startup = await _get_viewable_startup(db, startup_id, user)
    entities, tasks = await crud.get_startup_tasks(db, startup)
    return group_tasks_by_entity(tasks, entities)


@app.post("/startups/{startup_id}/compliance/sync", response_model=schemas.SyncResult)
async def sync_compliance_tasks(
    startup_id: int,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    startup = await _get_viewable_startup(db, startup_id, user)
    result = await crud.sync_startup_tasks(db, startup)
    TASKS_GENERATED_TOTAL.labels(trigger="sync").inc(result.created)
    return result


@app.post("/startups/{startup_id}/compliance/regenerate", response_model=schemas.SyncResult)
async def regenerate_compliance_tasks(
    startup_id: int,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    startup = await _get_managed_startup(db, startup_id, user)
    result = await crud.force_regenerate_tasks(db, startup)
    TASKS_GENERATED_TOTAL.labels(trigger="regenerate").inc(result.created)
    await log_audit_event(
        user_id=user.user_id,
        action="compliance.tasks.regenerated",
        details={"startup_id": startup_id, **result.model_dump()},
    )
    return result


@app.patch(
    "/startups/{startup_id}/compliance/tasks/{task_id}/status",
    response_model=schemas.TaskStatusUpdateResponse,
)
async def update_task_status(
    startup_id: int,
    task_id: str,
    payload: schemas.TaskStatusUpdateRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    startup = await _get_viewable_startup(db, startup_id, user)

    column = permissions.verification_column(user.role)
    if column is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only CA or CS users can update verification status",
        )

    entities, tasks = await crud.get_startup_tasks(db, startup)
    task = next((item for item in tasks if item.task_id == task_id), None)
    if task is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Compliance task not found")

    entity = find_entity(entities, task.entity_identifier)
    if not permissions.entity_code_allows(user, entity, column):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Your {user.role} code is not assigned to this entity",
        )
    if not permissions.column_required(task, column):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{user.role} verification is not required for this task",
        )

    check = await crud.get_check(db, startup_id, task_id)
    if check is None:
        await crud.sync_startup_tasks(db, startup)
        check = await crud.get_check(db, startup_id, task_id)
    if check is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Compliance task not found")

    previous_status = getattr(check, f"{column}_status")
    await crud.set_check_status(db, check, column, payload.status)
    TASK_STATUS_UPDATES_TOTAL.labels(column=column, status=payload.status.value).inc()

    _, tasks = await crud.get_startup_tasks(db, startup)
    updated_task = next(item for item in tasks if item.task_id == task_id)
    overall_status = await _reconcile_overall_status(db, startup, tasks, user.role)

    await log_audit_event(
        user_id=user.user_id,
        action="compliance.task.status.updated",
        details={
            "startup_id": startup_id,
            "task_id": task_id,
            "column": column,
            "from_status": previous_status,
            "to_status": payload.status.value,
            "overall_status": overall_status.value,
        },
    )
    return schemas.TaskStatusUpdateResponse(task=updated_task, overall_status=overall_status)


@app.get("/startups/{startup_id}/compliance/summary", response_model=schemas.ComplianceSummary)
async def get_compliance_summary(
    startup_id: int,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    startup = await _get_viewable_startup(db, startup_id, user)
    _, tasks = await crud.get_startup_tasks(db, startup)
    return summarize_tasks(tasks, user.role, stored_status=startup.compliance_status)


# --- Uploads ---

@app.post("/compliance/verify-document", response_model=schemas.DocumentVerificationResult)
async def preview_document_verification(
    payload: schemas.ComplianceUploadCreate,
    _user: AuthenticatedUser = Depends(get_current_user),
):
    return verify_document(
        payload.file_name,
        payload.file_type,
        payload.file_size,
        payload.document_type,
        max_upload_bytes=settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024,
    )


@app.get(
    "/startups/{startup_id}/compliance/tasks/{task_id}/uploads",
    response_model=List[schemas.ComplianceUpload],
)
async def list_task_uploads(
    startup_id: int,
    task_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _get_viewable_startup(db, startup_id, user)
    return await crud.list_uploads(db, startup_id, task_id=task_id)


@app.post(
    "/startups/{startup_id}/compliance/tasks/{task_id}/uploads",
    response_model=schemas.ComplianceUpload,
    status_code=status.HTTP_201_CREATED,
)
async def upload_task_document(
    startup_id: int,
    task_id: str,
    payload: schemas.ComplianceUploadCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    startup = await _get_startup_or_404(db, startup_id)
    if not permissions.can_upload(user, startup):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the startup owner or an admin can upload")

    _, tasks = await crud.get_startup_tasks(db, startup)
    if not any(item.task_id == task_id for item in tasks):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Compliance task not found")

    verification = verify_document(
        payload.file_name,
        payload.file_type,
        payload.file_size,
        payload.document_type,
        max_upload_bytes=settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024,
    )
    if verification.status == schemas.DocumentVerificationStatus.rejected:
        UPLOADS_TOTAL.labels(verification_status=verification.status.value).inc()
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="; ".join(verification.reasons))

    upload = await crud.create_upload(db, startup_id, task_id, user.user_id, payload, verification)
    UPLOADS_TOTAL.labels(verification_status=verification.status.value).inc()
    await log_audit_event(
        user_id=user.user_id,
        action="compliance.upload.created",
        details={
            "startup_id": startup_id,
            "task_id": task_id,
            "upload_id": str(upload.id),
            "verification_status": verification.status.value,
        },
    )
    return upload


@app.delete("/startups/{startup_id}/compliance/uploads/{upload_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task_document(
    startup_id: int,
    upload_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    startup = await _get_startup_or_404(db, startup_id)
    if not permissions.can_upload(user, startup):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the startup owner or an admin can delete uploads")
    upload = await crud.get_upload(db, startup_id, upload_id)
    if not upload:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Upload not found")
    await crud.delete_upload(db, upload)
    await log_audit_event(
        user_id=user.user_id,
        action="compliance.upload.deleted",
        details={"startup_id": startup_id, "upload_id": upload_id},
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Compliance rules ---

@app.get("/compliance-rules", response_model=List[schemas.ComplianceRule])
async def list_compliance_rules(
    country_code: Optional[str] = Query(None),
    company_type: Optional[str] = Query(None),
    _user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await crud.list_rules(db, country_code=country_code, company_type=company_type)


@app.post("/compliance-rules", response_model=schemas.ComplianceRule, status_code=status.HTTP_201_CREATED)
async def create_compliance_rule(
    payload: schemas.ComplianceRuleCreate,
    user: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    rule = await crud.create_rule(db, payload)
    logger.info("Admin %s created compliance rule %s", user.user_id, rule.id)
    return rule


@app.post("/compliance-rules/bulk", response_model=schemas.BulkUploadResult)
async def bulk_upload_compliance_rules(
    rows: List[Dict[str, Any]] = Body(...),
    user: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if not rows:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No rules provided")
    result = await crud.bulk_create_rules(db, rows)
    logger.info("Admin %s bulk uploaded rules: %d ok, %d failed", user.user_id, result.success, len(result.errors))
    return result


@app.get("/compliance-rules/countries", response_model=List[schemas.Country])
async def list_rule_countries(
    _user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await crud.list_countries(db)


@app.post(
    "/compliance-rules/countries",
    response_model=List[schemas.ComplianceRule],
    status_code=status.HTTP_201_CREATED,
)
async def add_rule_country(
    payload: schemas.CountrySetupRequest,
    _user: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if not payload.ca_types and not payload.cs_types:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="At least one CA or CS type is required")
    return await crud.add_country_setup(db, payload)


@app.get("/compliance-rules/company-types", response_model=List[str])
async def list_rule_company_types(
    country_code: Optional[str] = Query(None),
    _user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await crud.list_company_types(db, country_code=country_code)


@app.get("/compliance-rules/ca-types", response_model=List[str])
async def list_rule_ca_types(
    _user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await crud.list_ca_types(db)


@app.get("/compliance-rules/cs-types", response_model=List[str])
async def list_rule_cs_types(
    _user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await crud.list_cs_types(db)


@app.get("/compliance-rules/{rule_id}", response_model=schemas.ComplianceRule)
async def get_compliance_rule(
    rule_id: int,
    _user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rule = await crud.get_rule(db, rule_id)
    if not rule:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Compliance rule not found")
    return rule


@app.patch("/compliance-rules/{rule_id}", response_model=schemas.ComplianceRule)
async def update_compliance_rule(
    rule_id: int,
    payload: schemas.ComplianceRuleUpdate,
    _user: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    rule = await crud.get_rule(db, rule_id)
    if not rule:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Compliance rule not found")
    return await crud.update_rule(db, rule, payload)


@app.delete("/compliance-rules/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_compliance_rule(
    rule_id: int,
    _user: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    rule = await crud.get_rule(db, rule_id)
    if not rule:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Compliance rule not found")
    await crud.delete_rule(db, rule)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Rule submissions ---

@app.post("/rule-submissions", response_model=schemas.RuleSubmission, status_code=status.HTTP_201_CREATED)
async def submit_rule(
    payload: schemas.RuleSubmissionCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await crud.create_submission(db, user, payload)


@app.get("/rule-submissions/mine", response_model=List[schemas.RuleSubmission])
async def list_my_submissions(
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await crud.list_submissions(db, user_id=user.user_id)


@app.get("/rule-submissions/stats", response_model=schemas.SubmissionStats)
async def get_submission_stats(
    _user: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await crud.submission_stats(db)


@app.get("/rule-submissions", response_model=List[schemas.RuleSubmission])
async def list_all_submissions(
    submission_status: Optional[schemas.SubmissionStatus] = Query(None, alias="status"),
    _user: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await crud.list_submissions(db, status=submission_status)


async def _get_submission_or_404(db: AsyncSession, submission_id: int) -> models.RuleSubmission:
    submission = await crud.get_submission(db, submission_id)
    if not submission:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Submission not found")
    return submission


@app.patch("/rule-submissions/{submission_id}/status", response_model=schemas.RuleSubmission)
async def review_rule_submission(
    submission_id: int,
    payload: schemas.RuleSubmissionReview,
    user: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    submission = await _get_submission_or_404(db, submission_id)
    return await crud.review_submission(db, submission, user.user_id, payload.status, payload.review_notes)


@app.post(
    "/rule-submissions/{submission_id}/approve",
    response_model=schemas.ComplianceRule,
    status_code=status.HTTP_201_CREATED,
)
async def approve_rule_submission(
    submission_id: int,
    payload: Optional[schemas.AssignmentDecision] = None,
    user: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    submission = await _get_submission_or_404(db, submission_id)
    if submission.status == schemas.SubmissionStatus.approved.value:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Submission already approved")
    notes = payload.notes if payload else None
    rule = await crud.promote_submission(db, submission, user.user_id, review_notes=notes)
    await log_audit_event(
        user_id=user.user_id,
        action="compliance.rule.promoted",
        details={"submission_id": submission_id, "rule_id": rule.id},
    )
    return rule


@app.delete("/rule-submissions/{submission_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_rule_submission(
    submission_id: int,
    _user: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    submission = await _get_submission_or_404(db, submission_id)
    await crud.delete_submission(db, submission)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- CA/CS assignments ---

@app.post(
    "/startups/{startup_id}/assignments",
    response_model=schemas.ServiceAssignment,
    status_code=status.HTTP_201_CREATED,
)
async def request_assignment(
    startup_id: int,
    payload: Optional[schemas.AssignmentRequestCreate] = None,
    user: AuthenticatedUser = Depends(require_service_provider),
    db: AsyncSession = Depends(get_db),
):
    await _get_startup_or_404(db, startup_id)
    if await crud.get_open_assignment(db, startup_id, user.user_id, user.role):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Assignment already requested")
    return await crud.create_assignment_request(db, startup_id, user, notes=payload.notes if payload else None)


@app.get("/startups/{startup_id}/assignments/pending", response_model=List[schemas.ServiceAssignment])
async def list_pending_assignments(
    startup_id: int,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _get_managed_startup(db, startup_id, user)
    return await crud.list_pending_assignments(db, startup_id)


async def _decide_assignment(
    db: AsyncSession,
    assignment_id: int,
    user: AuthenticatedUser,
    decision: schemas.AssignmentStatus,
    notes: Optional[str],
) -> models.ServiceAssignment:
    assignment = await crud.get_assignment(db, assignment_id)
    if not assignment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assignment not found")
    await _get_managed_startup(db, assignment.startup_id, user)
    if assignment.status != schemas.AssignmentStatus.pending.value:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Assignment is not pending")
    return await crud.decide_assignment(db, assignment, decision, notes)


@app.post("/assignments/{assignment_id}/approve", response_model=schemas.ServiceAssignment)
async def approve_assignment(
    assignment_id: int,
    payload: Optional[schemas.AssignmentDecision] = None,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await _decide_assignment(
        db, assignment_id, user, schemas.AssignmentStatus.active, payload.notes if payload else None
    )


@app.post("/assignments/{assignment_id}/reject", response_model=schemas.ServiceAssignment)
async def reject_assignment(
    assignment_id: int,
    payload: Optional[schemas.AssignmentDecision] = None,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await _decide_assignment(
        db, assignment_id, user, schemas.AssignmentStatus.rejected, payload.notes if payload else None
    )


@app.delete("/assignments/{assignment_id}", response_model=schemas.ServiceAssignment)
async def remove_assignment(
    assignment_id: int,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    assignment = await crud.get_assignment(db, assignment_id)
    if not assignment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assignment not found")
    if assignment.user_id != user.user_id and not permissions.is_admin(user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to remove this assignment")
    return await crud.decide_assignment(db, assignment, schemas.AssignmentStatus.removed)


@app.get("/dashboard/startups", response_model=List[schemas.AssignedStartup])
async def list_dashboard_startups(
    user: AuthenticatedUser = Depends(require_service_provider),
    db: AsyncSession = Depends(get_db),
):
    return await crud.list_assigned_startups(db, user)


@app.get("/dashboard/stats", response_model=schemas.ServiceProviderStats)
async def get_dashboard_stats(
    user: AuthenticatedUser = Depends(require_service_provider),
    db: AsyncSession = Depends(get_db),
):
    return await crud.service_provider_stats(db, user)
