"""
Pydantic Schemas - Request/Response Validation

All API request and response schemas in one file for simplicity.
"""

import re
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from typing import Optional, List, Any, Dict
from datetime import datetime
from enum import Enum


OBJECT_ID_PATTERN = r"^[0-9a-fA-F]{24}$"
PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[^A-Za-z0-9]).{8,}$")


# ============================================================
# ENUMS
# ============================================================

class UserRole(str, Enum):
    student = "student"
    company = "company"
    admin = "admin"


class ApplicationStatus(str, Enum):
    pending = "Pending"
    read = "Read"
    accepted = "Accepted"
    rejected = "Rejected"


class WorkMode(str, Enum):
    on_site = "Présentiel"
    remote = "Télétravail"
    hybrid = "Hybride"


class StructureType(str, Enum):
    administration = "Administration"
    association = "Association"
    private_company = "Private company"
    public_company = "Public company / SEM"
    mutual_cooperative = "Mutual cooperative"
    ngo = "NGO"


class LegalStatus(str, Enum):
    eurl = "EURL"
    sarl = "SARL"
    sa = "SA"
    sas = "SAS"
    snc = "SNC"
    scp = "SCP"
    sasu = "SASU"
    other = "Other"


class ReportReason(str, Enum):
    spam = "Spam"
    inappropriate_content = "Contenu inapproprié"
    harassment = "Harcèlement"
    other = "Autre"


class ReportStatus(str, Enum):
    pending = "pending"
    reviewed = "reviewed"
    resolved = "resolved"
    rejected = "rejected"


class UploadFileType(str, Enum):
    logo = "logo"
    cv = "cv"


def _check_password_strength(value: str) -> str:
    if not PASSWORD_PATTERN.match(value):
        raise ValueError(
            "Password must be at least 8 characters and contain an uppercase letter, "
            "a lowercase letter, a number and a symbol"
        )
    return value


# ============================================================
# AUTH SCHEMAS
# ============================================================

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    role: UserRole
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    # company signups only
    company_name: Optional[str] = Field(None, min_length=2, max_length=200)

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        return _check_password_strength(value)

    @model_validator(mode="after")
    def check_role(self):
        if self.role == UserRole.admin:
            raise ValueError("Admin accounts cannot be self-registered")
        if self.role == UserRole.company and not self.company_name:
            raise ValueError("company_name is required for company accounts")
        return self

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    role: str

class UserResponse(BaseModel):
    user_id: str
    email: str
    role: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_verified: bool = False
    created_at: Optional[datetime] = None


# ============================================================
# PAGINATION SCHEMAS
# ============================================================

class PaginationQuery(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1)
    sort: Optional[str] = None

class PostQuery(PaginationQuery):
    search_query: Optional[str] = None
    sector: Optional[str] = None
    type: Optional[WorkMode] = None
    company: Optional[str] = Field(None, pattern=OBJECT_ID_PATTERN)
    min_salary: Optional[int] = Field(None, ge=0)
    max_salary: Optional[int] = Field(None, ge=0)

class ApplicationPaginationQuery(BaseModel):
    page: int = Field(1, ge=1)
    # capped to prevent API abuse
    limit: int = Field(10, ge=1, le=100)
    status: Optional[List[ApplicationStatus]] = None
    sort: Optional[str] = None

class ReportPaginationQuery(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(50, ge=1, le=100)
    status: Optional[ReportStatus] = None

class PaginatedResponse(BaseModel):
    data: List[Dict[str, Any]]
    total: int
    page: int
    limit: int
    total_pages: int
    has_next: bool
    has_prev: bool


# ============================================================
# COMPANY SCHEMAS
# ============================================================

class CompanyCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    name: str = Field(..., min_length=2, max_length=200)
    siret_number: Optional[str] = Field(None, pattern=r"^\d{14}$")
    naf_code: Optional[str] = Field(None, pattern=r"^\d{2}\.?\d{2}[A-Z]$")
    structure_type: Optional[StructureType] = None
    legal_status: Optional[LegalStatus] = None
    street_number: Optional[str] = None
    street_name: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    is_valid: bool = False

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        return _check_password_strength(value)

class CompanyUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=200)
    siret_number: Optional[str] = Field(None, pattern=r"^\d{14}$")
    naf_code: Optional[str] = Field(None, pattern=r"^\d{2}\.?\d{2}[A-Z]$")
    structure_type: Optional[StructureType] = None
    legal_status: Optional[LegalStatus] = None
    street_number: Optional[str] = None
    street_name: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    description: Optional[str] = Field(None, max_length=2000)
    logo: Optional[str] = None
    # only admins may toggle validation, enforced in the route
    is_valid: Optional[bool] = None


# ============================================================
# STUDENT SCHEMAS
# ============================================================

class StudentCreate(BaseModel):
    email: EmailStr
    student_number: str = Field(..., min_length=1, max_length=50)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)

    @field_validator("student_number", "first_name", "last_name")
    @classmethod
    def strip_not_empty(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

class StudentUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)

class ImportResult(BaseModel):
    added: int
    skipped: int


# ============================================================
# POST SCHEMAS
# ============================================================

class PostCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    duration: Optional[str] = None
    start_date: Optional[datetime] = None
    min_salary: Optional[float] = Field(None, ge=0)
    max_salary: Optional[float] = Field(None, ge=0)
    sector: Optional[str] = None
    key_skills: List[str] = Field(default_factory=list, max_length=5)
    address: Optional[str] = None
    type: WorkMode = WorkMode.on_site
    is_visible: bool = True

    @model_validator(mode="after")
    def check_salary_range(self):
        if self.min_salary is not None and self.max_salary is not None and self.min_salary > self.max_salary:
            raise ValueError("min_salary cannot be greater than max_salary")
        return self

class PostUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1)
    duration: Optional[str] = None
    start_date: Optional[datetime] = None
    min_salary: Optional[float] = Field(None, ge=0)
    max_salary: Optional[float] = Field(None, ge=0)
    sector: Optional[str] = None
    key_skills: Optional[List[str]] = Field(None, max_length=5)
    address: Optional[str] = None
    type: Optional[WorkMode] = None
    is_visible: Optional[bool] = None


# ============================================================
# APPLICATION SCHEMAS
# ============================================================

class ApplicationCreate(BaseModel):
    post_id: str = Field(..., pattern=OBJECT_ID_PATTERN)
    cv_extension: str = Field(..., pattern=r"^(pdf|doc|docx)$")
    lm_extension: Optional[str] = Field(None, pattern=r"^(pdf|doc|docx)$")

class ApplicationCreatedResponse(BaseModel):
    cv_url: str
    lm_url: Optional[str] = None

class ApplicationStatusUpdate(BaseModel):
    status: ApplicationStatus


# ============================================================
# FORUM SCHEMAS
# ============================================================

class TopicCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)

class MessageCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)
    parent_message_id: Optional[str] = Field(None, pattern=OBJECT_ID_PATTERN)


# ============================================================
# REPORT SCHEMAS
# ============================================================

class CreateReport(BaseModel):
    # format checked by the service so that a malformed id yields a 400
    message_id: str
    reason: ReportReason
    explanation: Optional[str] = Field(None, max_length=1000)

class UpdateReport(BaseModel):
    status: ReportStatus

class ReportCreatedResponse(BaseModel):
    message: str
    report: Dict[str, Any]
    reported_user_email: str


# ============================================================
# NOTIFICATION SCHEMAS
# ============================================================

class NotificationCreate(BaseModel):
    user_id: str = Field(..., pattern=OBJECT_ID_PATTERN)
    message: str = Field(..., min_length=1, max_length=1000)
    return_link: str = ""

class NotificationUpdate(BaseModel):
    message: Optional[str] = Field(None, min_length=1, max_length=1000)
    return_link: Optional[str] = None
    read: Optional[bool] = None

class UnreadCountResponse(BaseModel):
    count: int


# ============================================================
# FILE / STORAGE SCHEMAS
# ============================================================

class PresignedUploadRequest(BaseModel):
    original_filename: str = Field(..., min_length=1, max_length=255)
    file_type: UploadFileType = UploadFileType.cv

class PresignedUploadResponse(BaseModel):
    file_name: str
    upload_url: str

class PresignedDownloadResponse(BaseModel):
    download_url: str


# ============================================================
# MAILER SCHEMAS
# ============================================================

class EmailRequest(BaseModel):
    email: EmailStr

class VerifyOtpRequest(BaseModel):
    email: EmailStr
    otp: str = Field(..., pattern=r"^\d{6}$")

class ResetPasswordRequest(BaseModel):
    email: EmailStr
    new_password: str = Field(..., min_length=8)

    @field_validator("new_password")
    @classmethod
    def check_password(cls, value: str) -> str:
        return _check_password_strength(value)

class SendTemplateRequest(BaseModel):
    template_name: str = Field(..., pattern=r"^[a-zA-Z0-9_-]+$", max_length=100)


# ============================================================
# STATS SCHEMAS
# ============================================================

class ChartData(BaseModel):
    name: str
    value: Optional[int] = None
    count: Optional[int] = None

class TopCompany(BaseModel):
    name: Optional[str] = None
    offers_count: int
    response_rate: float

class StatsResponse(BaseModel):
    total_users: int
    total_companies: int
    total_students: int
    total_applications: int
    total_posts: int
    applications_by_status: List[ChartData] = []
    applications_over_time: List[ChartData] = []
    top_companies: List[TopCompany] = []
    orphan_offers_count: int = 0

class PublicStatsResponse(BaseModel):
    total_posts: int
    total_companies: int
    total_students: int


# ============================================================
# GENERIC SCHEMAS
# ============================================================

class MessageResponse(BaseModel):
    message: str
    success: bool = True

class ErrorResponse(BaseModel):
    detail: str
