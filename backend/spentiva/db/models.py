# spentiva/db/models.py: users, trackers, ledger, billing, support and usage tables
import enum
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .base import Base


class UserRole(enum.Enum):
    user = "user"
    admin = "admin"


class AccountType(enum.Enum):
    free = "free"
    pro = "pro"
    businesspro = "businesspro"


class OtpPurpose(enum.Enum):
    verification = "verification"
    reset = "reset"
    tracker_delete = "tracker-delete"


class TrackerType(enum.Enum):
    personal = "personal"
    business = "business"


class CurrencyCode(enum.Enum):
    INR = "INR"
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"


class ShareRole(enum.Enum):
    viewer = "viewer"
    editor = "editor"


class ShareStatus(enum.Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"


class ExpenseType(enum.Enum):
    expense = "expense"
    income = "income"
    transfer = "transfer"


class PaymentState(enum.Enum):
    initiated = "initiated"
    processing = "processing"
    success = "success"
    failed = "failed"
    expired = "expired"
    cancelled = "cancelled"


class RefundStatus(enum.Enum):
    initiated = "initiated"
    processing = "processing"
    success = "success"
    failed = "failed"
    cancelled = "cancelled"


class ReportFrequency(enum.Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"


class TicketType(enum.Enum):
    PaymentRelated = "PaymentRelated"
    BugInApp = "BugInApp"
    DataLoss = "DataLoss"
    FeatureRequest = "FeatureRequest"
    Other = "Other"


class TicketStatus(enum.Enum):
    Open = "Open"
    InProgress = "InProgress"
    Closed = "Closed"
    Escalated = "Escalated"


class MessageRole(enum.Enum):
    user = "user"
    assistant = "assistant"


def _values(enum_cls):
    return [m.value for m in enum_cls]


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(150), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    phone = Column(String(30), nullable=True)
    hashed_password = Column(String(255), nullable=False)
    email_verified = Column(Boolean, nullable=False, default=False)
    phone_verified = Column(Boolean, nullable=False, default=False)
    profile_photo = Column(String(1024), nullable=True)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.user)
    account_type = Column(Enum(AccountType), nullable=False, default=AccountType.free)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # relationships
    trackers = relationship("Tracker", back_populates="owner", cascade="all, delete-orphan")
    expenses = relationship("Expense", back_populates="user", cascade="all, delete-orphan")
    payments = relationship("Payment", back_populates="user", cascade="all, delete-orphan")
    tickets = relationship("SupportTicket", back_populates="user", cascade="all, delete-orphan")
    uploads = relationship("FileUpload", back_populates="user", cascade="all, delete-orphan")
    report_schedules = relationship("ReportSchedule", back_populates="user", cascade="all, delete-orphan")
    usage_logs = relationship("UsageLog", back_populates="user", cascade="all, delete-orphan")
    usage_days = relationship("Usage", back_populates="user", cascade="all, delete-orphan")


class Otp(Base):
    __tablename__ = "otps"
    id = Column(Integer, primary_key=True, index=True)
    identifier = Column(String(255), nullable=False, index=True)
    otp = Column(String(6), nullable=False)
    purpose = Column(Enum(OtpPurpose, values_callable=_values), nullable=False)
    tracker_id = Column(Integer, nullable=True, index=True)
    expires_at = Column(DateTime, nullable=False)
    verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Tracker(Base):
    __tablename__ = "trackers"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(150), nullable=False)
    type = Column(Enum(TrackerType), nullable=False)
    description = Column(String(500), nullable=True)
    currency = Column(Enum(CurrencyCode), nullable=False, default=CurrencyCode.INR)
    bot_image = Column(String(1024), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    owner = relationship("User", back_populates="trackers")
    shares = relationship(
        "TrackerShare", back_populates="tracker", cascade="all, delete-orphan", order_by="TrackerShare.id"
    )
    categories = relationship("Category", back_populates="tracker", cascade="all, delete-orphan")
    expenses = relationship("Expense", back_populates="tracker", cascade="all, delete-orphan")
    report_schedules = relationship("ReportSchedule", back_populates="tracker", cascade="all, delete-orphan")


class TrackerShare(Base):
    __tablename__ = "tracker_shares"
    __table_args__ = (UniqueConstraint("tracker_id", "email", name="uq_tracker_share_email"),)
    id = Column(Integer, primary_key=True, index=True)
    tracker_id = Column(Integer, ForeignKey("trackers.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    email = Column(String(255), nullable=False, index=True)
    name = Column(String(150), nullable=True)
    role = Column(Enum(ShareRole), nullable=False, default=ShareRole.editor)
    status = Column(Enum(ShareStatus), nullable=False, default=ShareStatus.pending)
    invited_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    tracker = relationship("Tracker", back_populates="shares")


class Category(Base):
    __tablename__ = "categories"
    id = Column(Integer, primary_key=True, index=True)
    tracker_id = Column(Integer, ForeignKey("trackers.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(150), nullable=False)
    # list of {"id": str, "name": str}
    subcategories = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    tracker = relationship("Tracker", back_populates="categories")


class Expense(Base):
    __tablename__ = "expenses"
    id = Column(Integer, primary_key=True, index=True)
    tracker_id = Column(Integer, ForeignKey("trackers.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    category = Column(String(150), nullable=False)
    subcategory = Column(String(150), nullable=False)
    # denormalized: the category row may be deleted later
    category_id = Column(Integer, nullable=False, index=True)
    type = Column(Enum(ExpenseType), nullable=False, default=ExpenseType.expense)
    payment_method = Column(String(100), nullable=False, default="User not provided payment method")
    credit_from = Column(String(150), nullable=True)
    currency = Column(String(10), nullable=True)
    description = Column(Text, nullable=True)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    created_by = Column(Integer, nullable=True)
    created_by_name = Column(String(150), nullable=True)
    last_updated_by = Column(Integer, nullable=True)
    last_updated_by_name = Column(String(150), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    tracker = relationship("Tracker", back_populates="expenses")
    user = relationship("User", back_populates="expenses")


class Payment(Base):
    __tablename__ = "payments"
    id = Column(Integer, primary_key=True, index=True)
    payment_id = Column(String(100), nullable=False, unique=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    payment_using = Column(String(50), nullable=False)
    card_token = Column(String(255), nullable=True)
    card_last4 = Column(String(4), nullable=True)
    card_brand = Column(String(50), nullable=True)
    card_expiry_month = Column(Integer, nullable=True)
    card_expiry_year = Column(Integer, nullable=True)
    user_selected_plan = Column(Enum(AccountType), nullable=False)
    plan_duration = Column(String(20), nullable=False)
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    coupon_code = Column(String(50), nullable=True)
    payment_country = Column(String(2), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(Enum(CurrencyCode), nullable=False)
    payment_state = Column(Enum(PaymentState), nullable=False, default=PaymentState.initiated, index=True)
    payment_state_reason = Column(String(500), nullable=False, default="Payment initiated")
    payment_type = Column(String(20), nullable=False)
    payment_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="payments")
    refunds = relationship("Refund", back_populates="payment", cascade="all, delete-orphan")


class Refund(Base):
    __tablename__ = "refunds"
    id = Column(Integer, primary_key=True, index=True)
    refund_id = Column(String(100), nullable=False, unique=True, index=True)
    payment_id = Column(String(100), ForeignKey("payments.payment_id"), nullable=False, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    refund_amount = Column(Numeric(12, 2), nullable=False)
    refund_reason = Column(String(1000), nullable=False)
    refund_status = Column(Enum(RefundStatus), nullable=False, default=RefundStatus.initiated, index=True)
    refund_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    payment = relationship("Payment", back_populates="refunds")


class ReportSchedule(Base):
    __tablename__ = "report_schedules"
    __table_args__ = (UniqueConstraint("user_id", "tracker_id", name="uq_report_schedule_user_tracker"),)
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    user_email = Column(String(255), nullable=False)
    tracker_id = Column(Integer, ForeignKey("trackers.id", ondelete="CASCADE"), nullable=False, index=True)
    tracker_name = Column(String(150), nullable=False)
    frequency = Column(Enum(ReportFrequency), nullable=False)
    day_of_week = Column(Integer, nullable=True)
    day_of_month = Column(Integer, nullable=True)
    hour = Column(Integer, nullable=False, default=9)
    timezone = Column(String(64), nullable=False, default="Asia/Kolkata")
    enabled = Column(Boolean, nullable=False, default=True)
    last_sent_at = Column(DateTime, nullable=True)
    next_run_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="report_schedules")
    tracker = relationship("Tracker", back_populates="report_schedules")


class TicketCounter(Base):
    __tablename__ = "ticket_counters"
    name = Column(String(50), primary_key=True)
    sequence = Column(Integer, nullable=False, default=0)


class SupportTicket(Base):
    __tablename__ = "support_tickets"
    id = Column(Integer, primary_key=True, index=True)
    ticket_id = Column(String(20), nullable=False, unique=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(Enum(TicketType), nullable=False)
    subject = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    status = Column(Enum(TicketStatus), nullable=False, default=TicketStatus.Open, index=True)
    # [{"fileId", "filePath", "fileName", "fileUrl"}]
    attachments = Column(JSON, nullable=False, default=list)
    # [{"message", "addedBy", "addedAt"}]
    updates = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="tickets")


class UsageLog(Base):
    __tablename__ = "usage_logs"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # tracker snapshot survives deletion of the tracker itself
    tracker_id = Column(Integer, nullable=False, index=True)
    tracker_name = Column(String(150), nullable=False)
    tracker_type = Column(String(20), nullable=False)
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime, nullable=True)
    modified_at = Column(DateTime, nullable=True)
    message_role = Column(Enum(MessageRole), nullable=False)
    message_content = Column(Text, nullable=False)
    token_count = Column(Integer, nullable=False, default=0)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    user = relationship("User", back_populates="usage_logs")


class Usage(Base):
    __tablename__ = "usage"
    __table_args__ = (UniqueConstraint("user_id", "date", "tracker_id", name="uq_usage_user_date_tracker"),)
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    tracker_id = Column(Integer, nullable=False, index=True)
    total_messages = Column(Integer, nullable=False, default=0)
    user_messages = Column(Integer, nullable=False, default=0)
    ai_messages = Column(Integer, nullable=False, default=0)
    total_tokens = Column(Integer, nullable=False, default=0)

    user = relationship("User", back_populates="usage_days")


class FileUpload(Base):
    __tablename__ = "file_uploads"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    original_name = Column(String(255), nullable=False)
    saved_name = Column(String(255), nullable=False)
    file_path = Column(String(1024), nullable=False)
    file_url = Column(String(1024), nullable=False)
    size = Column(Integer, nullable=False)
    mime_type = Column(String(100), nullable=True)
    uploaded_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="uploads")
