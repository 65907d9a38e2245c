from pydantic import BaseModel, EmailStr, Field, ConfigDict
from typing import Optional, Dict, Any, List
from datetime import datetime, date, timezone
from decimal import Decimal
from enum import Enum
import uuid


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# ENUMS (System Constants)
# ============================================================================

class UserRole(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"

class WebsiteType(str, Enum):
    BUSINESS = "BUSINESS"
    ECOMMERCE = "ECOMMERCE"
    PORTFOLIO = "PORTFOLIO"
    BLOG = "BLOG"
    CUSTOM = "CUSTOM"

class ProjectStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    PARTIAL = "PARTIAL"  # Reserved; reconciliation never sets it

class PaymentOption(str, Enum):
    FULL = "full"
    DEPOSIT = "deposit"

class ProjectType(str, Enum):
    WEB_DEVELOPMENT = "WEB_DEVELOPMENT"
    MOBILE_APP = "MOBILE_APP"
    DESIGN = "DESIGN"
    CONSULTING = "CONSULTING"
    MARKETING = "MARKETING"
    OTHER = "OTHER"

class IntakePriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"

class PaymentEventStatus(str, Enum):
    PROCESSING = "PROCESSING"
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"

class AuditAction(str, Enum):
    # Users
    USER_CREATED = "USER_CREATED"

    # Projects
    PROJECT_SUBMITTED = "PROJECT_SUBMITTED"
    PROJECT_STATUS_UPDATED = "PROJECT_STATUS_UPDATED"
    PROJECT_DELETED = "PROJECT_DELETED"

    # Payments
    PAYMENT_INITIATED = "PAYMENT_INITIATED"
    PAYMENT_RECONCILED = "PAYMENT_RECONCILED"
    PAYMENT_EVENT_FAILED = "PAYMENT_EVENT_FAILED"


# ============================================================================
# DOCUMENTS
# ============================================================================

class User(BaseModel):
    model_config = ConfigDict(extra="ignore")

    user_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    external_id: Optional[str] = None
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: UserRole = UserRole.USER
    created_at: datetime = Field(default_factory=_utcnow)

class ProjectForm(BaseModel):
    model_config = ConfigDict(extra="ignore")

    project_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    business_name: str
    industry: Optional[str] = None
    website_type: WebsiteType
    features: List[str]
    number_of_pages: int
    deadline: date
    budget: int
    estimated_cost: int = Field(ge=0)
    status: ProjectStatus = ProjectStatus.SUBMITTED
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def to_document(self) -> Dict[str, Any]:
        """BSON-safe document (dates stored as ISO strings, enums as values)."""
        doc = self.model_dump(mode="json")
        doc["created_at"] = self.created_at
        doc["updated_at"] = self.updated_at
        return doc

class Payment(BaseModel):
    model_config = ConfigDict(extra="ignore")

    payment_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    project_form_id: str
    amount: Decimal  # Dollars
    currency: str = "usd"
    stripe_session_id: Optional[str] = None
    payment_intent_id: Optional[str] = None
    payment_option: PaymentOption = PaymentOption.FULL
    status: PaymentStatus = PaymentStatus.PENDING
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def to_document(self) -> Dict[str, Any]:
        # Amount stored as a decimal string
        doc = self.model_dump(mode="json")
        doc["amount"] = str(self.amount)
        doc["created_at"] = self.created_at
        doc["updated_at"] = self.updated_at
        return doc

class PaymentEvent(BaseModel):
    """Ledger of inbound payment-provider events (redelivery detection)."""
    model_config = ConfigDict(extra="ignore")

    event_id: str
    type: Optional[str] = None
    status: PaymentEventStatus = PaymentEventStatus.PROCESSING
    error: Optional[str] = None
    received_at: datetime = Field(default_factory=_utcnow)
    processed_at: Optional[datetime] = None

class AuditLog(BaseModel):
    model_config = ConfigDict(extra="ignore")

    audit_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    action: AuditAction
    actor_role: Optional[UserRole] = None
    actor_id: Optional[str] = None
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    before_state: Optional[Dict[str, Any]] = None
    after_state: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = None
    timestamp: datetime = Field(default_factory=_utcnow)
