"""
SQLAlchemy models for FamConomy

Features:
- UUID primary keys for users, integer keys for family-scoped rows
- Every domain row scoped by family_id
- Mixins for common patterns (timestamps, soft delete)
- Portable column types (PostgreSQL in production, SQLite in tests)
"""

import enum
from datetime import date, datetime, timezone
from typing import Optional, List
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean, Integer, Float, Numeric, Text, String, Date, DateTime, JSON, Uuid,
    ForeignKey, UniqueConstraint, Index, Enum as SQLEnum,
)
from sqlalchemy.orm import (
    DeclarativeBase, Mapped, mapped_column, relationship, validates
)
from sqlalchemy.ext.hybrid import hybrid_property


def utcnow() -> datetime:
    """Naive UTC timestamp; all DateTime columns store UTC without tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def enum_type(enum_cls: type[enum.Enum], name: str) -> SQLEnum:
    """Store enum values (not member names) as portable VARCHAR."""
    return SQLEnum(
        enum_cls,
        name=name,
        native_enum=False,
        length=32,
        values_callable=lambda members: [m.value for m in members],
    )


# ============================================================================
# BASE & MIXINS
# ============================================================================

class Base(DeclarativeBase):
    """Base class for all models"""
    type_annotation_map = {
        dict: JSON,
        list: JSON,
    }


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps"""
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )


class SoftDeleteMixin:
    """Mixin for soft delete functionality"""
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    @hybrid_property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def soft_delete(self) -> None:
        """Mark record as deleted"""
        self.deleted_at = utcnow()

    def restore(self) -> None:
        """Restore soft-deleted record"""
        self.deleted_at = None


# ============================================================================
# ENUMS
# ============================================================================

class FamilyRole(str, enum.Enum):
    """Relationship of a member to the family"""
    PARENT = "parent"
    GUARDIAN = "guardian"
    RELATIVE = "relative"
    CHILD = "child"


ROLE_HIERARCHY = {
    FamilyRole.CHILD: 1,
    FamilyRole.RELATIVE: 2,
    FamilyRole.GUARDIAN: 3,
    FamilyRole.PARENT: 4,
}


class TaskStatus(str, enum.Enum):
    """Task progress"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ApprovalStatus(str, enum.Enum):
    """Parent approval of a task or event, independent of progress"""
    REJECTED = "rejected"
    PENDING = "pending"
    APPROVED = "approved"
    NOT_REQUIRED = "not_required"


class RewardType(str, enum.Enum):
    """What completing a task earns"""
    POINTS = "points"
    CURRENCY = "currency"
    SCREENTIME = "screentime"


class NotificationType(str, enum.Enum):
    """Notification categories"""
    INVITATION = "invitation"
    TASK = "task"
    MESSAGE = "message"
    EVENT = "event"
    WALLET = "wallet"
    SYSTEM = "system"


class WishlistVisibility(str, enum.Enum):
    FAMILY = "FAMILY"
    PARENTS = "PARENTS"
    LINK = "LINK"


class WishlistItemStatus(str, enum.Enum):
    IDEA = "IDEA"
    RESERVED = "RESERVED"
    PURCHASED = "PURCHASED"


class GigCadence(str, enum.Enum):
    ONCE = "once"
    DAILY = "daily"
    WEEKLY = "weekly"


class GigClaimStatus(str, enum.Enum):
    CLAIMED = "claimed"
    COMPLETED = "completed"


class WalletLedgerType(str, enum.Enum):
    FUNDING = "FUNDING"
    TRANSFER = "TRANSFER"
    TASK_REWARD = "TASK_REWARD"
    GIG_REWARD = "GIG_REWARD"
    WITHDRAWAL = "WITHDRAWAL"


# ============================================================================
# USER MANAGEMENT
# ============================================================================

class User(Base, TimestampMixin, SoftDeleteMixin):
    """User account model"""
    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    password_hash: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    profile_photo_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Google Calendar integration
    google_access_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    google_refresh_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    onboarding_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    memberships: Mapped[List["FamilyMember"]] = relationship(
        "FamilyMember",
        back_populates="user",
        cascade="all, delete-orphan"
    )
    sessions: Mapped[List["UserSession"]] = relationship(
        "UserSession",
        back_populates="user",
        cascade="all, delete-orphan"
    )

    @validates("email")
    def normalize_email(self, key: str, value: str) -> str:
        return value.strip().lower()

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"


class UserSession(Base):
    """Issued refresh tokens"""
    __tablename__ = "user_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    refresh_token: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    revoked_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    user: Mapped["User"] = relationship("User", back_populates="sessions")


# ============================================================================
# FAMILY & MEMBERSHIP
# ============================================================================

class Family(Base, TimestampMixin, SoftDeleteMixin):
    """Tenant: all domain data belongs to one family"""
    __tablename__ = "families"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    mantra: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    values: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    reward_mode: Mapped[str] = mapped_column(String(20), default="points", nullable=False)
    created_by_user_id: Mapped[Optional[UUID]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    members: Mapped[List["FamilyMember"]] = relationship(
        "FamilyMember",
        back_populates="family",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Family(id={self.id}, name={self.name})>"


class FamilyMember(Base):
    """User <-> Family membership with a role"""
    __tablename__ = "family_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role: Mapped[FamilyRole] = mapped_column(enum_type(FamilyRole, "family_role"), default=FamilyRole.PARENT, nullable=False)
    joined_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    family: Mapped["Family"] = relationship("Family", back_populates="members")
    user: Mapped["User"] = relationship("User", back_populates="memberships")

    __table_args__ = (
        UniqueConstraint("user_id", "family_id", name="family_users_unique_member"),
        Index("idx_family_users_family", "family_id"),
    )


class Invitation(Base):
    """Pending invitation; deleted when accepted or declined"""
    __tablename__ = "invitations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id", ondelete="CASCADE"), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    role: Mapped[FamilyRole] = mapped_column(enum_type(FamilyRole, "family_role"), default=FamilyRole.PARENT, nullable=False)
    invited_by_user_id: Mapped[Optional[UUID]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    family: Mapped["Family"] = relationship("Family")
    invited_by: Mapped[Optional["User"]] = relationship("User")

    @validates("email")
    def normalize_email(self, key: str, value: str) -> str:
        return value.strip().lower()

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.expires_at < (now or utcnow())


# ============================================================================
# TASKS
# ============================================================================

class Task(Base, TimestampMixin):
    """Family task or chore"""
    __tablename__ = "tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id", ondelete="CASCADE"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    assigned_to_user_id: Mapped[Optional[UUID]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_by_user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)

    status: Mapped[TaskStatus] = mapped_column(enum_type(TaskStatus, "task_status"), default=TaskStatus.PENDING, nullable=False)
    approval_status: Mapped[ApprovalStatus] = mapped_column(
        enum_type(ApprovalStatus, "approval_status"),
        default=ApprovalStatus.NOT_REQUIRED,
        nullable=False
    )
    reward_type: Mapped[Optional[RewardType]] = mapped_column(enum_type(RewardType, "reward_type"), nullable=True)
    reward_value: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    reward_ledger_id: Mapped[Optional[int]] = mapped_column(ForeignKey("wallet_ledger.id", ondelete="SET NULL"), nullable=True)

    category: Mapped[Optional[str]] = mapped_column(String(60), nullable=True)
    recurrence_rule: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    attachments: Mapped[List["TaskAttachment"]] = relationship(
        "TaskAttachment",
        back_populates="task",
        cascade="all, delete-orphan"
    )


class TaskAttachment(Base):
    """File metadata attached to a task; the file itself lives in object storage"""
    __tablename__ = "task_attachments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    task_id: Mapped[int] = mapped_column(ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    file_size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    uploaded_by_user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    task: Mapped["Task"] = relationship("Task", back_populates="attachments")


# ============================================================================
# CALENDAR
# ============================================================================

class CalendarEvent(Base, TimestampMixin):
    __tablename__ = "calendar_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id", ondelete="CASCADE"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_by_user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    recurrence_rule: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    recurrence_exception_dates: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    approval_status: Mapped[ApprovalStatus] = mapped_column(
        enum_type(ApprovalStatus, "approval_status"),
        default=ApprovalStatus.NOT_REQUIRED,
        nullable=False
    )


# ============================================================================
# MESSAGING & NOTIFICATIONS
# ============================================================================

class MessageSource(Base):
    __tablename__ = "message_sources"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)


class Message(Base):
    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id", ondelete="CASCADE"), nullable=False)
    sender_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    source_id: Mapped[int] = mapped_column(ForeignKey("message_sources.id"), nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    sender: Mapped["User"] = relationship("User")

    __table_args__ = (
        Index("idx_messages_family_time", "family_id", "timestamp"),
    )


class Notification(Base):
    """In-app notification for a single user"""
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[NotificationType] = mapped_column(enum_type(NotificationType, "notification_type"), nullable=False)
    link: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_notifications_user_unread", "user_id", "is_read"),
    )


class PushSubscription(Base):
    """Web-push endpoint registered by a browser"""
    __tablename__ = "push_subscriptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    endpoint: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    p256dh: Mapped[str] = mapped_column(Text, nullable=False)
    auth: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


# ============================================================================
# MONEY
# ============================================================================

class Budget(Base, TimestampMixin):
    __tablename__ = "budgets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    amount: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(60), nullable=True)
    start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    created_by_user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id", ondelete="CASCADE"), nullable=False, index=True)
    budget_id: Mapped[Optional[int]] = mapped_column(ForeignKey("budgets.id", ondelete="SET NULL"), nullable=True)
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    amount: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(60), nullable=True)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)


class SavingsGoal(Base, TimestampMixin):
    __tablename__ = "savings_goals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    target_amount: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False)
    current_amount: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), default=0, nullable=False)
    deadline: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    created_by_user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)


class WalletLedger(Base):
    """Signed cent movements; user_id NULL is the family wallet"""
    __tablename__ = "wallet_ledger"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[Optional[UUID]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[WalletLedgerType] = mapped_column(enum_type(WalletLedgerType, "wallet_ledger_type"), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reference_type: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    reference_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    initiated_by_user_id: Mapped[Optional[UUID]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_wallet_ledger_family_user", "family_id", "user_id"),
    )


class JournalEntry(Base, TimestampMixin):
    __tablename__ = "journal_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    mood: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    is_private: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


# ============================================================================
# SHOPPING
# ============================================================================

class ShoppingList(Base, TimestampMixin):
    __tablename__ = "shopping_lists"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    created_by_user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)

    items: Mapped[List["ShoppingItem"]] = relationship(
        "ShoppingItem",
        back_populates="shopping_list",
        cascade="all, delete-orphan",
        order_by="ShoppingItem.id",
    )


class ShoppingItem(Base, TimestampMixin):
    __tablename__ = "shopping_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    shopping_list_id: Mapped[int] = mapped_column(ForeignKey("shopping_lists.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    unit: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(60), nullable=True)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    added_by_user_id: Mapped[Optional[UUID]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    shopping_list: Mapped["ShoppingList"] = relationship("ShoppingList", back_populates="items")


# ============================================================================
# RECIPES & MEALS
# ============================================================================

class Recipe(Base, TimestampMixin):
    __tablename__ = "recipes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id", ondelete="CASCADE"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    servings: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    prep_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    cook_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    cover_image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    share_token: Mapped[Optional[str]] = mapped_column(String(64), unique=True, nullable=True)
    created_by_user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)

    ingredients: Mapped[List["RecipeIngredient"]] = relationship(
        "RecipeIngredient",
        back_populates="recipe",
        cascade="all, delete-orphan",
        order_by="RecipeIngredient.id",
    )
    memories: Mapped[List["RecipeMemory"]] = relationship(
        "RecipeMemory",
        back_populates="recipe",
        cascade="all, delete-orphan",
        order_by="RecipeMemory.created_at",
    )
    favorites: Mapped[List["RecipeFavorite"]] = relationship(
        "RecipeFavorite",
        cascade="all, delete-orphan",
    )


class RecipeIngredient(Base):
    __tablename__ = "recipe_ingredients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    recipe_id: Mapped[int] = mapped_column(ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    unit: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    recipe: Mapped["Recipe"] = relationship("Recipe", back_populates="ingredients")


class RecipeMemory(Base):
    """A family story attached to a recipe"""
    __tablename__ = "recipe_memories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    recipe_id: Mapped[int] = mapped_column(ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    recipe: Mapped["Recipe"] = relationship("Recipe", back_populates="memories")


class RecipeFavorite(Base):
    __tablename__ = "recipe_favorites"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    recipe_id: Mapped[int] = mapped_column(ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    __table_args__ = (
        UniqueConstraint("recipe_id", "user_id", name="recipe_favorites_unique"),
    )


class Meal(Base, TimestampMixin):
    __tablename__ = "meals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id", ondelete="CASCADE"), nullable=False, index=True)
    recipe_id: Mapped[Optional[int]] = mapped_column(ForeignKey("recipes.id", ondelete="SET NULL"), nullable=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)
    is_favorite: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    default_servings: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_by_user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)

    ingredients: Mapped[List["MealIngredient"]] = relationship(
        "MealIngredient",
        back_populates="meal",
        cascade="all, delete-orphan",
        order_by="MealIngredient.id",
    )
    tags: Mapped[List["MealTag"]] = relationship(
        "MealTag",
        cascade="all, delete-orphan",
        order_by="MealTag.id",
    )


class MealIngredient(Base):
    __tablename__ = "meal_ingredients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    meal_id: Mapped[int] = mapped_column(ForeignKey("meals.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    unit: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_pantry_item: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    meal: Mapped["Meal"] = relationship("Meal", back_populates="ingredients")


class MealTag(Base):
    __tablename__ = "meal_tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    meal_id: Mapped[int] = mapped_column(ForeignKey("meals.id", ondelete="CASCADE"), nullable=False, index=True)
    tag: Mapped[str] = mapped_column(String(60), nullable=False)


class MealPlanWeek(Base):
    __tablename__ = "meal_plan_weeks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id", ondelete="CASCADE"), nullable=False)
    week_start: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    entries: Mapped[List["MealPlanEntry"]] = relationship(
        "MealPlanEntry",
        back_populates="week",
        cascade="all, delete-orphan",
        order_by="MealPlanEntry.id",
    )

    __table_args__ = (
        UniqueConstraint("family_id", "week_start", name="meal_plan_weeks_family_week"),
    )


class MealPlanEntry(Base):
    __tablename__ = "meal_plan_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    week_id: Mapped[int] = mapped_column(ForeignKey("meal_plan_weeks.id", ondelete="CASCADE"), nullable=False)
    meal_id: Mapped[int] = mapped_column(ForeignKey("meals.id", ondelete="CASCADE"), nullable=False)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    meal_slot: Mapped[str] = mapped_column(String(20), nullable=False)
    servings: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    added_by_user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)

    week: Mapped["MealPlanWeek"] = relationship("MealPlanWeek", back_populates="entries")
    meal: Mapped["Meal"] = relationship("Meal")

    __table_args__ = (
        UniqueConstraint("week_id", "day_of_week", "meal_slot", name="meal_plan_entries_slot"),
    )


# ============================================================================
# WISHLISTS
# ============================================================================

class Wishlist(Base, TimestampMixin):
    __tablename__ = "wishlists"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id", ondelete="CASCADE"), nullable=False, index=True)
    owner_user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    visibility: Mapped[WishlistVisibility] = mapped_column(
        enum_type(WishlistVisibility, "wishlist_visibility"),
        default=WishlistVisibility.FAMILY,
        nullable=False
    )
    share_token: Mapped[Optional[str]] = mapped_column(String(64), unique=True, nullable=True)

    items: Mapped[List["WishlistItem"]] = relationship(
        "WishlistItem",
        back_populates="wishlist",
        cascade="all, delete-orphan",
        order_by="WishlistItem.id",
    )


class WishlistItem(Base, TimestampMixin):
    __tablename__ = "wishlist_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    wishlist_id: Mapped[int] = mapped_column(ForeignKey("wishlists.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price: Mapped[Optional[float]] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[WishlistItemStatus] = mapped_column(
        enum_type(WishlistItemStatus, "wishlist_item_status"),
        default=WishlistItemStatus.IDEA,
        nullable=False
    )
    claimed_by_user_id: Mapped[Optional[UUID]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    wishlist: Mapped["Wishlist"] = relationship("Wishlist", back_populates="items")


# ============================================================================
# ROOMS & GIGS
# ============================================================================

class Room(Base, TimestampMixin):
    __tablename__ = "rooms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    tags: Mapped[list] = mapped_column(JSON, default=list, nullable=False)


class GigTemplate(Base):
    """Catalogue chore that can be added to any family"""
    __tablename__ = "gig_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    applicable_tags: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    default_points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class FamilyGig(Base, TimestampMixin):
    __tablename__ = "family_gigs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id", ondelete="CASCADE"), nullable=False, index=True)
    gig_template_id: Mapped[int] = mapped_column(ForeignKey("gig_templates.id"), nullable=False)
    room_id: Mapped[Optional[int]] = mapped_column(ForeignKey("rooms.id", ondelete="SET NULL"), nullable=True)
    cadence_type: Mapped[GigCadence] = mapped_column(enum_type(GigCadence, "gig_cadence"), default=GigCadence.WEEKLY, nullable=False)
    max_per_day: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    visible: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    override_points: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    override_currency_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    override_screen_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    gig_template: Mapped["GigTemplate"] = relationship("GigTemplate")
    room: Mapped[Optional["Room"]] = relationship("Room")
    claims: Mapped[List["GigClaim"]] = relationship(
        "GigClaim",
        back_populates="family_gig",
        cascade="all, delete-orphan",
        order_by="GigClaim.id",
    )


class GigClaim(Base):
    __tablename__ = "gig_claims"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_gig_id: Mapped[int] = mapped_column(ForeignKey("family_gigs.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    period_key: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[GigClaimStatus] = mapped_column(enum_type(GigClaimStatus, "gig_claim_status"), default=GigClaimStatus.CLAIMED, nullable=False)
    reward_ledger_id: Mapped[Optional[int]] = mapped_column(ForeignKey("wallet_ledger.id", ondelete="SET NULL"), nullable=True)
    claimed_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    family_gig: Mapped["FamilyGig"] = relationship("FamilyGig", back_populates="claims")

    __table_args__ = (
        UniqueConstraint("family_gig_id", "user_id", "period_key", name="gig_claims_once_per_period"),
    )


# ============================================================================
# FAMILY CONTROLS (SCREEN TIME)
# ============================================================================

class FamilyControlsAccount(Base, TimestampMixin):
    """Screen-time account per (user, family)"""
    __tablename__ = "family_controls_accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id", ondelete="CASCADE"), nullable=False)
    is_authorized: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    daily_screen_time_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    screen_time_limit_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    last_sync_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    meta_data: Mapped[dict] = mapped_column("metadata", JSON, default=dict, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "family_id", name="family_controls_accounts_user_family"),
    )


class AuthorizationToken(Base):
    """Scoped, time-boxed grant of one user's rights over another's device"""
    __tablename__ = "authorization_tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    target_user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id", ondelete="CASCADE"), nullable=False, index=True)
    account_id: Mapped[Optional[int]] = mapped_column(ForeignKey("family_controls_accounts.id", ondelete="SET NULL"), nullable=True)
    granted_scopes: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    is_revoked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    revoked_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    revoked_by_user_id: Mapped[Optional[UUID]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    revocation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    last_used_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    usage_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class ScreenTimeRecord(Base):
    """Per-day usage summary"""
    __tablename__ = "screen_time_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id", ondelete="CASCADE"), nullable=False)
    record_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    total_minutes_used: Mapped[int] = mapped_column(Integer, nullable=False)
    daily_limit_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    category_breakdown: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    app_breakdown: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    warnings: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "family_id", "date", name="screen_time_records_user_family_date"),
    )


class DeviceControlPolicy(Base, TimestampMixin):
    """Restrictions applied to one device, keyed by (family, device)"""
    __tablename__ = "device_control_policies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id", ondelete="CASCADE"), nullable=False)
    device_id: Mapped[str] = mapped_column(String(128), nullable=False)
    applied_by_user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    blocked_app_bundle_ids: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    content_restrictions: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    siri_restricted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    purchases_restricted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        UniqueConstraint("family_id", "device_id", name="device_control_policies_family_device"),
    )


class FamilyControlsEvent(Base):
    """Append-only log of Family Controls mutations"""
    __tablename__ = "family_controls_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[Optional[UUID]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    event_type: Mapped[str] = mapped_column(String(60), nullable=False)
    details: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


# ============================================================================
# FEEDBACK & ASSISTANT
# ============================================================================

class Feedback(Base):
    __tablename__ = "feedback"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    category: Mapped[str] = mapped_column(String(40), default="general", nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    rating: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    page: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class AssistantMessage(Base):
    """One turn of a conversation with the family assistant"""
    __tablename__ = "assistant_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role: Mapped[str] = mapped_column(String(20), default="user", nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_assistant_messages_user_time", "user_id", "family_id", "created_at"),
    )


class ConversationSummary(Base):
    """Consolidated memory of a window of assistant messages"""
    __tablename__ = "conversation_summaries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    message_count: Mapped[int] = mapped_column(Integer, nullable=False)
    window_start: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    window_end: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "Base",
    "utcnow",
    # Enums
    "FamilyRole",
    "ROLE_HIERARCHY",
    "TaskStatus",
    "ApprovalStatus",
    "RewardType",
    "NotificationType",
    "WishlistVisibility",
    "WishlistItemStatus",
    "GigCadence",
    "GigClaimStatus",
    "WalletLedgerType",
    # Users & families
    "User",
    "UserSession",
    "Family",
    "FamilyMember",
    "Invitation",
    # Domain
    "Task",
    "TaskAttachment",
    "CalendarEvent",
    "MessageSource",
    "Message",
    "Notification",
    "PushSubscription",
    "Budget",
    "Transaction",
    "SavingsGoal",
    "WalletLedger",
    "JournalEntry",
    "ShoppingList",
    "ShoppingItem",
    "Recipe",
    "RecipeIngredient",
    "RecipeMemory",
    "RecipeFavorite",
    "Meal",
    "MealIngredient",
    "MealTag",
    "MealPlanWeek",
    "MealPlanEntry",
    "Wishlist",
    "WishlistItem",
    "Room",
    "GigTemplate",
    "FamilyGig",
    "GigClaim",
    # Family Controls
    "FamilyControlsAccount",
    "AuthorizationToken",
    "ScreenTimeRecord",
    "DeviceControlPolicy",
    "FamilyControlsEvent",
    # Misc
    "Feedback",
    "AssistantMessage",
    "ConversationSummary",
]
