import datetime
from enum import Enum
from typing import Annotated, Any, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator


class ComplianceStatus(str, Enum):
    compliant = "Compliant"
    pending = "Pending"
    non_compliant = "Non-Compliant"
    verified = "Verified"
    rejected = "Rejected"


VERIFICATION_STATUSES = (
    ComplianceStatus.pending,
    ComplianceStatus.verified,
    ComplianceStatus.rejected,
)


class Frequency(str, Enum):
    first_year = "first-year"
    monthly = "monthly"
    quarterly = "quarterly"
    annual = "annual"


class VerificationRequired(str, Enum):
    ca = "CA"
    cs = "CS"
    both = "both"


class UserRole(str, Enum):
    startup = "Startup"
    admin = "Admin"
    ca = "CA"
    cs = "CS"
    investor = "Investor"
    facilitator = "Startup Facilitation Center"
    investment_advisor = "Investment Advisor"


class DocumentVerificationStatus(str, Enum):
    pending = "pending"
    verified = "verified"
    rejected = "rejected"
    under_review = "under_review"


class SubmissionStatus(str, Enum):
    pending = "pending"
    under_review = "under_review"
    approved = "approved"
    rejected = "rejected"


class OperationType(str, Enum):
    parent = "parent"
    subsidiary = "subsidiary"
    international = "international"


class AssignmentStatus(str, Enum):
    pending = "pending"
    active = "active"
    rejected = "rejected"
    removed = "removed"


def _not_in_future(value: datetime.date) -> datetime.date:
    if value > datetime.date.today():
        raise ValueError("date cannot be in the future")
    return value


NotFutureDate = Annotated[datetime.date, AfterValidator(_not_in_future)]


# --- Startups and entities ---

class SubsidiaryCreate(BaseModel):
    country: str = Field(min_length=1)
    company_type: str = Field(min_length=1)
    registration_date: Optional[NotFutureDate] = None
    ca_code: Optional[str] = None
    cs_code: Optional[str] = None


class Subsidiary(SubsidiaryCreate):
    id: int
    startup_id: int

    model_config = ConfigDict(from_attributes=True)


class InternationalOperationCreate(BaseModel):
    country: str = Field(min_length=1)
    company_type: str = Field(min_length=1)
    start_date: Optional[NotFutureDate] = None


class InternationalOperation(InternationalOperationCreate):
    id: int
    startup_id: int

    model_config = ConfigDict(from_attributes=True)


class StartupBase(BaseModel):
    name: str = Field(min_length=1)
    country_of_registration: Optional[str] = None
    company_type: Optional[str] = None
    registration_date: Optional[NotFutureDate] = None
    ca_service_code: Optional[str] = None
    cs_service_code: Optional[str] = None


class StartupCreate(StartupBase):
    pass


class StartupUpdate(BaseModel):
    name: Optional[str] = None
    country_of_registration: Optional[str] = None
    company_type: Optional[str] = None
    registration_date: Optional[NotFutureDate] = None
    ca_service_code: Optional[str] = None
    cs_service_code: Optional[str] = None


class Startup(StartupBase):
    id: int
    user_id: str
    compliance_status: ComplianceStatus
    created_at: datetime.datetime
    updated_at: datetime.datetime
    subsidiaries: List[Subsidiary] = []
    international_operations: List[InternationalOperation] = []

    model_config = ConfigDict(from_attributes=True)


# --- Compliance rules ---

class ComplianceRuleBase(BaseModel):
    country_code: str = Field(min_length=1)
    country_name: str = Field(min_length=1)
    company_type: str = Field(min_length=1)
    compliance_name: str = Field(min_length=1)
    compliance_description: Optional[str] = None
    frequency: Frequency
    verification_required: VerificationRequired
    ca_type: Optional[str] = None
    cs_type: Optional[str] = None


class ComplianceRuleCreate(ComplianceRuleBase):
    pass


class ComplianceRuleUpdate(BaseModel):
    country_code: Optional[str] = None
    country_name: Optional[str] = None
    company_type: Optional[str] = None
    compliance_name: Optional[str] = None
    compliance_description: Optional[str] = None
    frequency: Optional[Frequency] = None
    verification_required: Optional[VerificationRequired] = None
    ca_type: Optional[str] = None
    cs_type: Optional[str] = None


class ComplianceRule(ComplianceRuleBase):
    id: int
    created_at: datetime.datetime
    updated_at: datetime.datetime

    model_config = ConfigDict(from_attributes=True)


class Country(BaseModel):
    country_code: str
    country_name: str


class CountrySetupRequest(BaseModel):
    country_code: str = Field(min_length=2)
    country_name: str = Field(min_length=1)
    ca_types: List[str] = []
    cs_types: List[str] = []


class BulkUploadError(BaseModel):
    row: int
    error: str
    data: dict[str, Any]


class BulkUploadResult(BaseModel):
    success: int
    errors: List[BulkUploadError]


# --- Compliance tasks ---

class DocumentVerificationResult(BaseModel):
    status: DocumentVerificationStatus
    confidence: float
    reasons: List[str]
    auto_verified: bool
    authenticity: Optional[float] = None
    quality: Optional[float] = None
    risk_score: Optional[float] = None


class ComplianceUploadCreate(BaseModel):
    file_name: str = Field(min_length=1)
    file_url: str = Field(min_length=1)
    file_size: Optional[int] = Field(default=None, ge=0)
    file_type: Optional[str] = None
    document_type: str = "compliance_document"


class ComplianceUpload(BaseModel):
    id: str
    startup_id: int
    task_id: str
    file_name: str
    file_url: str
    uploaded_by: str
    file_size: Optional[int] = None
    file_type: Optional[str] = None
    document_type: str
    verification_status: DocumentVerificationStatus
    verification_confidence: Optional[float] = None
    verification_reasons: List[str] = []
    uploaded_at: datetime.datetime

    model_config = ConfigDict(from_attributes=True)


class ComplianceTask(BaseModel):
    task_id: str
    rule_id: Optional[int] = None
    entity_identifier: str
    entity_display_name: str
    year: int
    period: Optional[str] = None
    task_name: str
    frequency: Optional[Frequency] = None
    description: Optional[str] = None
    ca_required: bool
    cs_required: bool
    ca_status: ComplianceStatus = ComplianceStatus.pending
    cs_status: ComplianceStatus = ComplianceStatus.pending
    ca_type: Optional[str] = None
    cs_type: Optional[str] = None
    persisted: bool = False
    uploads: List[ComplianceUpload] = []


class EntityTaskGroup(BaseModel):
    entity_identifier: str
    entity_display_name: str
    country_code: str
    country_name: str
    ca_title: str
    cs_title: str
    tasks: List[ComplianceTask]


class TaskStatusUpdateRequest(BaseModel):
    status: ComplianceStatus

    @field_validator("status")
    @classmethod
    def validate_verification_status(cls, v: ComplianceStatus) -> ComplianceStatus:
        if v not in VERIFICATION_STATUSES:
            allowed = ", ".join(item.value for item in VERIFICATION_STATUSES)
            raise ValueError(f"status must be one of: {allowed}")
        return v


class TaskStatusUpdateResponse(BaseModel):
    task: ComplianceTask
    overall_status: ComplianceStatus


class SyncResult(BaseModel):
    generated: int
    created: int
    deleted: int = 0


class ComplianceSummary(BaseModel):
    total_tasks: int
    verified_tasks: int
    pending_tasks: int
    rejected_tasks: int
    overdue_tasks: int
    compliance_rate: float
    first_year_completed: bool
    overall_status: ComplianceStatus
    stored_status: ComplianceStatus


# --- Rule submissions ---

class RuleSubmissionCreate(BaseModel):
    company_name: str = Field(min_length=1)
    company_type: str = Field(min_length=1)
    operation_type: OperationType
    country_code: str = Field(min_length=1)
    country_name: str = Field(min_length=1)
    ca_type: Optional[str] = None
    cs_type: Optional[str] = None
    compliance_name: str = Field(min_length=1)
    compliance_description: Optional[str] = None
    frequency: Frequency
    verification_required: VerificationRequired
    justification: Optional[str] = None
    regulatory_reference: Optional[str] = None
    supporting_documents: List[str] = []


class RuleSubmission(RuleSubmissionCreate):
    id: int
    submitted_by_user_id: str
    submitted_by_role: str
    submitted_by_email: Optional[str] = None
    status: SubmissionStatus
    reviewed_by_user_id: Optional[str] = None
    reviewed_at: Optional[datetime.datetime] = None
    review_notes: Optional[str] = None
    created_at: datetime.datetime
    updated_at: datetime.datetime

    model_config = ConfigDict(from_attributes=True)


class RuleSubmissionReview(BaseModel):
    status: SubmissionStatus
    review_notes: Optional[str] = None


class SubmissionStats(BaseModel):
    total: int
    pending: int
    under_review: int
    approved: int
    rejected: int


# --- CA/CS assignments ---

class AssignmentRequestCreate(BaseModel):
    notes: Optional[str] = None


class AssignmentDecision(BaseModel):
    notes: Optional[str] = None


class ServiceAssignment(BaseModel):
    id: int
    startup_id: int
    user_id: str
    role: str
    service_code: Optional[str] = None
    status: AssignmentStatus
    notes: Optional[str] = None
    requested_at: datetime.datetime
    decided_at: Optional[datetime.datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AssignedStartup(BaseModel):
    id: int
    name: str
    compliance_status: ComplianceStatus
    registration_date: Optional[datetime.date] = None
    country_of_registration: Optional[str] = None
    assignment_status: AssignmentStatus
    assigned_at: Optional[datetime.datetime] = None


class ServiceProviderStats(BaseModel):
    total_startups: int
    pending_review: int
    compliant: int
    non_compliant: int
    active_assignments: int
    pending_requests: int
