"""
Pydantic Schemas for API Request/Response Models
Type-safe data validation and serialization.

JSON bodies use camelCase keys; snake_case keys are accepted on input too.
"""

from datetime import date, datetime, timezone
from typing import Annotated, Optional, List, Dict, Any, Generic, TypeVar
from uuid import UUID

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from famconomy.shared.models import (
    FamilyRole,
    TaskStatus,
    ApprovalStatus,
    RewardType,
    NotificationType,
    WishlistVisibility,
    WishlistItemStatus,
    GigCadence,
    GigClaimStatus,
    WalletLedgerType,
)


# ============================================================================
# Base Schemas
# ============================================================================

def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to naive UTC, the form every column stores."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# Request datetimes; "2026-01-01T09:00:00Z" and naive UTC values both land naive
UtcDateTime = Annotated[datetime, AfterValidator(naive_utc)]


class ApiModel(BaseModel):
    """Base for every request/response body."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class TimestampMixin(ApiModel):
    """Mixin for timestamp fields."""
    created_at: datetime
    updated_at: datetime


class MessageResponse(ApiModel):
    """Generic message response."""
    message: str
    success: bool = True


DataT = TypeVar("DataT")


class SuccessResponse(ApiModel, Generic[DataT]):
    """``{"success": true, "data": ...}`` envelope."""
    success: bool = True
    data: DataT


# ============================================================================
# Authentication Schemas
# ============================================================================

class RegisterRequest(ApiModel):
    """User registration request."""
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        """Validate password strength."""
        if not any(c.isalpha() for c in v):
            raise ValueError("Password must contain at least one letter")
        if not any(c.isdigit() for c in v):
            raise ValueError("Password must contain at least one digit")
        return v


class LoginRequest(ApiModel):
    """User login request."""
    email: EmailStr
    password: str


class RefreshTokenRequest(ApiModel):
    """Token refresh request."""
    refresh_token: str


class TokenResponse(ApiModel):
    """JWT token response."""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


class UserResponse(ApiModel):
    """User profile response."""
    id: UUID
    email: EmailStr
    first_name: str
    last_name: Optional[str] = None
    full_name: str
    profile_photo_url: Optional[str] = None
    onboarding_completed: bool
    created_at: datetime


class UserUpdate(ApiModel):
    """Profile update request."""
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    profile_photo_url: Optional[str] = None


# ============================================================================
# Family Schemas
# ============================================================================

class FamilyCreate(ApiModel):
    """Create family request."""
    name: str = Field(..., min_length=1, max_length=120)
    mantra: Optional[str] = None
    values: List[str] = Field(default_factory=list)
    reward_mode: str = Field(default="points", max_length=20)


class FamilyUpdate(ApiModel):
    """Update family request."""
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    mantra: Optional[str] = None
    values: Optional[List[str]] = None
    reward_mode: Optional[str] = Field(None, max_length=20)


class FamilyMemberResponse(ApiModel):
    """Member of a family with their role."""
    user_id: UUID
    email: str
    full_name: str
    role: FamilyRole
    joined_at: datetime


class FamilyResponse(TimestampMixin):
    """Family response."""
    id: int
    name: str
    mantra: Optional[str] = None
    values: List[str] = Field(default_factory=list)
    reward_mode: str


class FamilyDetailResponse(FamilyResponse):
    """Family with its members."""
    members: List[FamilyMemberResponse] = Field(default_factory=list)


class MyFamiliesResponse(ApiModel):
    """Families of the current user."""
    families: List[FamilyDetailResponse]
    active_family_id: Optional[int] = None


class MemberRoleUpdate(ApiModel):
    role: FamilyRole


# ============================================================================
# Invitation Schemas
# ============================================================================

class InvitationCreate(ApiModel):
    """Invite someone to a family by email."""
    family_id: int
    email: EmailStr
    role: FamilyRole = FamilyRole.PARENT
    invited_by: Optional[str] = None  # ignored; the caller is the inviter


class InvitationResponse(ApiModel):
    """Invitation response."""
    id: int
    family_id: int
    email: str
    token: str
    role: FamilyRole
    invited_by_user_id: Optional[UUID] = None
    expires_at: datetime
    created_at: datetime


class InvitationTokenRequest(ApiModel):
    """Body for accept/decline."""
    token: Optional[str] = None


class InvitationDetailsResponse(ApiModel):
    email: str
    family_id: int
    family_name: str
    inviter_name: Optional[str] = None
    expires_at: datetime


class InvitationAcceptResponse(ApiModel):
    message: str
    family_id: Optional[int] = None
    email: Optional[str] = None
    requires_signup: bool = False


# ============================================================================
# Task Schemas
# ============================================================================

class TaskCreate(ApiModel):
    """Create task request."""
    family_id: int
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    due_date: Optional[UtcDateTime] = None
    assigned_to_user_id: Optional[UUID] = None
    reward_type: Optional[RewardType] = None
    reward_value: Optional[int] = Field(None, ge=0)
    category: Optional[str] = Field(None, max_length=60)
    recurrence_rule: Optional[str] = None
    approval_status: ApprovalStatus = ApprovalStatus.NOT_REQUIRED


class TaskUpdate(ApiModel):
    """Partial task update; only provided fields change."""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    due_date: Optional[UtcDateTime] = None
    assigned_to_user_id: Optional[UUID] = None
    status: Optional[TaskStatus] = None
    reward_type: Optional[RewardType] = None
    reward_value: Optional[int] = Field(None, ge=0)
    category: Optional[str] = Field(None, max_length=60)
    recurrence_rule: Optional[str] = None


class TaskApprovalUpdate(ApiModel):
    approval_status: ApprovalStatus


class TaskAttachmentCreate(ApiModel):
    url: str = Field(..., min_length=1)
    file_name: str = Field(..., min_length=1, max_length=255)
    file_type: Optional[str] = Field(None, max_length=100)
    file_size: Optional[int] = Field(None, ge=0)


class TaskAttachmentResponse(TaskAttachmentCreate):
    id: int
    task_id: int
    uploaded_by_user_id: UUID
    created_at: datetime


class TaskResponse(TimestampMixin):
    """Task response."""
    id: int
    family_id: int
    title: str
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    assigned_to_user_id: Optional[UUID] = None
    created_by_user_id: UUID
    status: TaskStatus
    approval_status: ApprovalStatus
    reward_type: Optional[RewardType] = None
    reward_value: Optional[int] = None
    category: Optional[str] = None
    recurrence_rule: Optional[str] = None
    completed_at: Optional[datetime] = None


class LookupOption(ApiModel):
    """Entry of a lookup table (statuses, relationships)."""
    value: str
    label: str


# ============================================================================
# Calendar Schemas
# ============================================================================

class CalendarEventCreate(ApiModel):
    family_id: int
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    start_time: UtcDateTime
    end_time: Optional[UtcDateTime] = None
    recurrence_rule: Optional[str] = None
    recurrence_exception_dates: List[str] = Field(default_factory=list)


class CalendarEventUpdate(ApiModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    start_time: Optional[UtcDateTime] = None
    end_time: Optional[UtcDateTime] = None
    recurrence_rule: Optional[str] = None
    recurrence_exception_dates: Optional[List[str]] = None


class CalendarEventResponse(TimestampMixin):
    id: int
    family_id: int
    title: str
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    created_by_user_id: UUID
    is_recurring: bool
    recurrence_rule: Optional[str] = None
    recurrence_exception_dates: List[str] = Field(default_factory=list)
    approval_status: ApprovalStatus


# ============================================================================
# Message & Notification Schemas
# ============================================================================

class ChatMessageCreate(ApiModel):
    """Post to the family chat."""
    family_id: Optional[int] = None
    text: Optional[str] = Field(None, max_length=4000)


class ChatMessageResponse(ApiModel):
    id: int
    family_id: int
    sender_id: UUID
    sender_name: str
    source: str
    text: str
    timestamp: datetime


class NotificationResponse(ApiModel):
    """Notification response."""
    id: int
    user_id: UUID
    message: str
    type: NotificationType
    link: Optional[str] = None
    is_read: bool
    created_at: datetime


class PushKeys(ApiModel):
    p256dh: str
    auth: str


class PushSubscriptionCreate(ApiModel):
    endpoint: str = Field(..., min_length=1)
    keys: PushKeys


class PushSubscriptionDelete(ApiModel):
    endpoint: str


class PushSubscriptionResponse(ApiModel):
    id: int
    endpoint: str
    created_at: datetime


# ============================================================================
# Budget, Transaction & Savings Schemas
# ============================================================================

class BudgetCreate(ApiModel):
    family_id: int
    name: str = Field(..., min_length=1, max_length=120)
    amount: float = Field(..., ge=0)
    category: Optional[str] = Field(None, max_length=60)
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class BudgetUpdate(ApiModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    amount: Optional[float] = Field(None, ge=0)
    category: Optional[str] = Field(None, max_length=60)
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class BudgetResponse(TimestampMixin):
    id: int
    family_id: int
    name: str
    amount: float
    category: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    created_by_user_id: UUID
    spent: float = 0.0


class TransactionCreate(ApiModel):
    family_id: int
    budget_id: Optional[int] = None
    amount: float
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=60)
    transaction_date: date


class TransactionUpdate(ApiModel):
    budget_id: Optional[int] = None
    amount: Optional[float] = None
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=60)
    transaction_date: Optional[date] = None


class TransactionResponse(TimestampMixin):
    id: int
    family_id: int
    budget_id: Optional[int] = None
    user_id: UUID
    amount: float
    description: Optional[str] = None
    category: Optional[str] = None
    transaction_date: date


class SavingsGoalCreate(ApiModel):
    family_id: int
    name: str = Field(..., min_length=1, max_length=120)
    target_amount: float = Field(..., gt=0)
    current_amount: float = Field(default=0, ge=0)
    deadline: Optional[date] = None


class SavingsGoalUpdate(ApiModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    target_amount: Optional[float] = Field(None, gt=0)
    current_amount: Optional[float] = Field(None, ge=0)
    deadline: Optional[date] = None


class SavingsContribution(ApiModel):
    amount: float = Field(..., gt=0)


class SavingsGoalResponse(TimestampMixin):
    id: int
    family_id: int
    name: str
    target_amount: float
    current_amount: float
    deadline: Optional[date] = None
    created_by_user_id: UUID


# ============================================================================
# Journal Schemas
# ============================================================================

class JournalEntryCreate(ApiModel):
    family_id: int
    title: str = Field(..., min_length=1, max_length=200)
    body: str = Field(..., min_length=1)
    mood: Optional[str] = Field(None, max_length=40)
    is_private: bool = False


class JournalEntryUpdate(ApiModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    body: Optional[str] = Field(None, min_length=1)
    mood: Optional[str] = Field(None, max_length=40)
    is_private: Optional[bool] = None


class JournalEntryResponse(TimestampMixin):
    id: int
    family_id: int
    user_id: UUID
    title: str
    body: str
    mood: Optional[str] = None
    is_private: bool


# ============================================================================
# Shopping Schemas
# ============================================================================

class ShoppingListCreate(ApiModel):
    family_id: int
    name: Optional[str] = Field(None, max_length=120)


class ShoppingListUpdate(ApiModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)


class ShoppingItemCreate(ApiModel):
    shopping_list_id: int
    name: str = Field(..., min_length=1, max_length=200)
    quantity: Optional[float] = Field(None, ge=0)
    unit: Optional[str] = Field(None, max_length=40)
    category: Optional[str] = Field(None, max_length=60)


class ShoppingItemUpdate(ApiModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    quantity: Optional[float] = Field(None, ge=0)
    unit: Optional[str] = Field(None, max_length=40)
    category: Optional[str] = Field(None, max_length=60)
    is_completed: Optional[bool] = None


class ShoppingItemResponse(TimestampMixin):
    id: int
    shopping_list_id: int
    name: str
    quantity: Optional[float] = None
    unit: Optional[str] = None
    category: Optional[str] = None
    is_completed: bool
    added_by_user_id: Optional[UUID] = None


class ShoppingListResponse(TimestampMixin):
    id: int
    family_id: int
    name: str
    created_by_user_id: UUID
    items: List[ShoppingItemResponse] = Field(default_factory=list)


class AddMealPlanRequest(ApiModel):
    """Merge a week's meal plan into a shopping list."""
    family_id: Optional[int] = None
    week_start: Optional[date] = None
    shopping_list_id: Optional[int] = None


# ============================================================================
# Recipe Schemas
# ============================================================================

class IngredientIn(ApiModel):
    name: str = Field(..., min_length=1, max_length=200)
    quantity: Optional[float] = Field(None, ge=0)
    unit: Optional[str] = Field(None, max_length=40)
    notes: Optional[str] = None


class IngredientResponse(IngredientIn):
    id: int


class RecipeCreate(ApiModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    instructions: Optional[str] = None
    servings: Optional[int] = Field(None, ge=1)
    prep_minutes: Optional[int] = Field(None, ge=0)
    cook_minutes: Optional[int] = Field(None, ge=0)
    cover_image_url: Optional[str] = None
    ingredients: List[IngredientIn] = Field(default_factory=list)


class RecipeUpdate(ApiModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    instructions: Optional[str] = None
    servings: Optional[int] = Field(None, ge=1)
    prep_minutes: Optional[int] = Field(None, ge=0)
    cook_minutes: Optional[int] = Field(None, ge=0)
    cover_image_url: Optional[str] = None
    ingredients: Optional[List[IngredientIn]] = None


class RecipeMemoryCreate(ApiModel):
    body: str = Field(..., min_length=1)


class RecipeMemoryResponse(ApiModel):
    id: int
    recipe_id: int
    user_id: UUID
    body: str
    created_at: datetime


class RecipeResponse(TimestampMixin):
    id: int
    family_id: int
    title: str
    description: Optional[str] = None
    instructions: Optional[str] = None
    servings: Optional[int] = None
    prep_minutes: Optional[int] = None
    cook_minutes: Optional[int] = None
    cover_image_url: Optional[str] = None
    share_token: Optional[str] = None
    created_by_user_id: UUID
    ingredients: List[IngredientResponse] = Field(default_factory=list)
    memories: List[RecipeMemoryResponse] = Field(default_factory=list)
    is_favorite: bool = False


class FavoriteToggleResponse(ApiModel):
    recipe_id: int
    is_favorite: bool


class ShareTokenResponse(ApiModel):
    share_token: Optional[str] = None


# ============================================================================
# Meal Planning Schemas
# ============================================================================

class MealIngredientIn(IngredientIn):
    is_pantry_item: bool = False


class MealIngredientResponse(MealIngredientIn):
    id: int


class MealCreate(ApiModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    instructions: Optional[str] = None
    status: str = Field(default="active", max_length=20)
    is_favorite: bool = False
    default_servings: Optional[int] = Field(None, ge=1)
    recipe_id: Optional[int] = None
    ingredients: List[MealIngredientIn] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)


class MealUpdate(ApiModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    instructions: Optional[str] = None
    status: Optional[str] = Field(None, max_length=20)
    is_favorite: Optional[bool] = None
    default_servings: Optional[int] = Field(None, ge=1)
    ingredients: Optional[List[MealIngredientIn]] = None
    tags: Optional[List[str]] = None


class MealResponse(TimestampMixin):
    id: int
    family_id: int
    recipe_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    instructions: Optional[str] = None
    status: str
    is_favorite: bool
    default_servings: Optional[int] = None
    created_by_user_id: UUID
    ingredients: List[MealIngredientResponse] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def flatten_tags(cls, v: Any) -> List[str]:
        return [getattr(tag, "tag", tag) for tag in (v or [])]


class MealPlanEntryUpsert(ApiModel):
    week_start: date
    day_of_week: int = Field(..., ge=0, le=6)
    meal_slot: str = Field(..., min_length=1, max_length=20)
    meal_id: int
    servings: Optional[int] = Field(None, ge=1)
    notes: Optional[str] = None


class MealPlanEntryResponse(ApiModel):
    id: int
    week_id: int
    meal_id: int
    day_of_week: int
    meal_slot: str
    servings: Optional[int] = None
    notes: Optional[str] = None
    added_by_user_id: UUID
    meal: MealResponse


class MealPlanWeekResponse(ApiModel):
    id: int
    family_id: int
    week_start: date
    entries: List[MealPlanEntryResponse] = Field(default_factory=list)


# ============================================================================
# Wishlist Schemas
# ============================================================================

class WishlistCreate(ApiModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    visibility: WishlistVisibility = WishlistVisibility.FAMILY


class WishlistUpdate(ApiModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    visibility: Optional[WishlistVisibility] = None


class WishlistItemCreate(ApiModel):
    name: str = Field(..., min_length=1, max_length=200)
    url: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None
    priority: int = 0


class WishlistItemUpdate(ApiModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    url: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None
    priority: Optional[int] = None


class WishlistItemClaim(ApiModel):
    status: WishlistItemStatus = WishlistItemStatus.RESERVED


class WishlistItemResponse(TimestampMixin):
    id: int
    wishlist_id: int
    name: str
    url: Optional[str] = None
    price: Optional[float] = None
    notes: Optional[str] = None
    priority: int
    status: WishlistItemStatus
    claimed_by_user_id: Optional[UUID] = None


class WishlistResponse(TimestampMixin):
    id: int
    family_id: int
    owner_user_id: UUID
    title: str
    description: Optional[str] = None
    visibility: WishlistVisibility
    share_token: Optional[str] = None
    items: List[WishlistItemResponse] = Field(default_factory=list)


class WishlistShareResponse(ApiModel):
    share_token: str
    share_url: str


# ============================================================================
# Room, Gig & Wallet Schemas
# ============================================================================

class RoomCreate(ApiModel):
    name: str = Field(..., min_length=1, max_length=120)
    tags: List[str] = Field(default_factory=list)


class RoomUpdate(ApiModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    tags: Optional[List[str]] = None


class RoomResponse(TimestampMixin):
    id: int
    family_id: int
    name: str
    tags: List[str] = Field(default_factory=list)


class GigTemplateResponse(ApiModel):
    id: int
    name: str
    description: Optional[str] = None
    applicable_tags: List[str] = Field(default_factory=list)
    default_points: int


class FamilyGigCreate(ApiModel):
    family_id: int
    gig_template_id: int
    room_id: Optional[int] = None
    cadence_type: GigCadence = GigCadence.WEEKLY
    max_per_day: Optional[int] = Field(None, ge=1)
    override_points: Optional[int] = Field(None, ge=0)
    override_currency_cents: Optional[int] = Field(None, ge=0)
    override_screen_minutes: Optional[int] = Field(None, ge=0)


class FamilyGigUpdate(ApiModel):
    cadence_type: Optional[GigCadence] = None
    max_per_day: Optional[int] = Field(None, ge=1)
    visible: Optional[bool] = None
    override_points: Optional[int] = Field(None, ge=0)
    override_currency_cents: Optional[int] = Field(None, ge=0)
    override_screen_minutes: Optional[int] = Field(None, ge=0)


class GigClaimResponse(ApiModel):
    id: int
    family_gig_id: int
    user_id: UUID
    period_key: str
    status: GigClaimStatus
    reward_ledger_id: Optional[int] = None
    claimed_at: datetime
    completed_at: Optional[datetime] = None


class FamilyGigResponse(TimestampMixin):
    id: int
    family_id: int
    gig_template_id: int
    room_id: Optional[int] = None
    cadence_type: GigCadence
    max_per_day: Optional[int] = None
    visible: bool
    override_points: Optional[int] = None
    override_currency_cents: Optional[int] = None
    override_screen_minutes: Optional[int] = None
    gig_template: GigTemplateResponse
    room: Optional[RoomResponse] = None
    claims: List[GigClaimResponse] = Field(default_factory=list)


class GigsFromTemplatesRequest(ApiModel):
    family_id: int
    room_ids: List[int] = Field(..., min_length=1)


class WalletLedgerResponse(ApiModel):
    id: int
    family_id: int
    user_id: Optional[UUID] = None
    amount_cents: int
    type: WalletLedgerType
    description: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    initiated_by_user_id: Optional[UUID] = None
    created_at: datetime


class MemberBalance(ApiModel):
    user_id: UUID
    balance_cents: int


class WalletOverviewResponse(ApiModel):
    family_id: int
    family_balance_cents: int
    members: List[MemberBalance] = Field(default_factory=list)


class WalletFundRequest(ApiModel):
    amount_cents: int = Field(..., gt=0)
    description: Optional[str] = None


class WalletTransferRequest(ApiModel):
    user_id: UUID
    amount_cents: int = Field(..., gt=0)
    description: Optional[str] = None


# ============================================================================
# Family Controls Schemas
# ============================================================================

class AuthorizeRequest(ApiModel):
    """Grant one user authority over another's screen time."""
    user_id: Optional[UUID] = None
    target_user_id: Optional[UUID] = None
    family_id: Optional[int] = None
    scopes: Optional[List[str]] = None
    expires_in_days: Optional[int] = Field(None, ge=1, le=3650)


class AuthorizeResponse(ApiModel):
    authorization_token: str
    expires_at: datetime
    granted_scopes: List[str]
    timestamp: datetime


class TokenStatusResponse(ApiModel):
    authorized: bool
    granted_scopes: List[str]
    expires_at: datetime
    is_expired: bool
    is_revoked: bool
    requires_renewal: bool
    days_until_expiration: int
    last_used_at: Optional[datetime] = None
    usage_count: int
    target_user_id: UUID
    granted_by_user_id: UUID
    granted_at: datetime


class AuthorizationTokenResponse(ApiModel):
    id: int
    token: str
    user_id: UUID
    target_user_id: UUID
    family_id: int
    granted_scopes: List[str]
    expires_at: datetime
    is_revoked: bool
    last_used_at: Optional[datetime] = None
    usage_count: int
    created_at: datetime


class TokenListResponse(ApiModel):
    tokens: List[AuthorizationTokenResponse]
    total: int
    has_more: bool


class RevokeRequest(ApiModel):
    revoked_by_user_id: Optional[UUID] = None
    reason: Optional[str] = None


class RenewRequest(ApiModel):
    expires_in_days: Optional[int] = Field(None, ge=1, le=3650)


class AccountRequest(ApiModel):
    user_id: Optional[UUID] = None
    family_id: Optional[int] = None


class AccountUpdateRequest(ApiModel):
    is_authorized: Optional[bool] = None
    daily_screen_time_minutes: Optional[int] = Field(None, ge=0)
    screen_time_limit_minutes: Optional[int] = Field(None, ge=0)
    metadata: Optional[Dict[str, Any]] = None


class FamilyControlsAccountResponse(TimestampMixin):
    id: int
    user_id: UUID
    family_id: int
    is_authorized: bool
    daily_screen_time_minutes: Optional[int] = None
    screen_time_limit_minutes: Optional[int] = None
    last_sync_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="meta_data")


class ScreenTimeRequest(ApiModel):
    user_id: Optional[UUID] = None
    family_id: Optional[int] = None
    date: Optional[UtcDateTime] = None
    total_minutes_used: Optional[int] = Field(None, ge=0)
    daily_limit_minutes: Optional[int] = Field(None, ge=0)
    category_breakdown: Dict[str, Any] = Field(default_factory=dict)
    app_breakdown: Dict[str, Any] = Field(default_factory=dict)
    warnings: List[Any] = Field(default_factory=list)


class ScreenTimeRecordResponse(ApiModel):
    id: int
    user_id: UUID
    family_id: int
    record_date: date = Field(serialization_alias="date")
    total_minutes_used: int
    daily_limit_minutes: Optional[int] = None
    category_breakdown: Dict[str, Any] = Field(default_factory=dict)
    app_breakdown: Dict[str, Any] = Field(default_factory=dict)
    warnings: List[Any] = Field(default_factory=list)


class DevicePolicyRequest(ApiModel):
    family_id: Optional[int] = None
    device_id: Optional[str] = Field(None, max_length=128)
    applied_by_user_id: Optional[UUID] = None
    blocked_app_bundle_ids: List[str] = Field(default_factory=list)
    content_restrictions: Dict[str, Any] = Field(default_factory=dict)
    siri_restricted: bool = False
    purchases_restricted: bool = False


class DevicePolicyResponse(TimestampMixin):
    id: int
    family_id: int
    device_id: str
    applied_by_user_id: UUID
    blocked_app_bundle_ids: List[str] = Field(default_factory=list)
    content_restrictions: Dict[str, Any] = Field(default_factory=dict)
    siri_restricted: bool
    purchases_restricted: bool


class FamilyControlsStatsResponse(ApiModel):
    active_tokens: int
    total_tokens: int
    active_accounts: int
    screen_time_records: int


class TokenValidationResponse(ApiModel):
    authorized: bool
    timestamp: datetime


class CleanupResponse(ApiModel):
    deleted_count: int


# ============================================================================
# Feedback, Integrations, Onboarding & Assistant Schemas
# ============================================================================

class FeedbackCreate(ApiModel):
    category: str = Field(default="general", max_length=40)
    message: str = Field(..., min_length=1, max_length=5000)
    rating: Optional[int] = Field(None, ge=1, le=5)
    page: Optional[str] = None


class FeedbackResponse(ApiModel):
    id: int
    user_id: UUID
    category: str
    message: str
    rating: Optional[int] = None
    page: Optional[str] = None
    created_at: datetime


class IntegrationStatusResponse(ApiModel):
    google_calendar: bool


class OnboardingStatusResponse(ApiModel):
    completed: bool
    family_id: Optional[int] = None


class OnboardingCompleteRequest(ApiModel):
    family_name: str = Field(..., min_length=1, max_length=120)
    mantra: Optional[str] = None
    values: List[str] = Field(default_factory=list)
    rooms: List[RoomCreate] = Field(default_factory=list)


class OnboardingCompleteResponse(ApiModel):
    family: FamilyResponse
    rooms: List[RoomResponse] = Field(default_factory=list)
    gigs_created: int


class AssistantMessageCreate(ApiModel):
    family_id: int
    content: str = Field(..., min_length=1, max_length=8000)
    role: str = Field(default="user", pattern="^(user|assistant)$")


class AssistantMessageResponse(ApiModel):
    id: int
    family_id: int
    user_id: UUID
    role: str
    content: str
    created_at: datetime


class ConversationSummaryResponse(ApiModel):
    id: int
    family_id: int
    user_id: UUID
    summary: str
    message_count: int
    window_start: datetime
    window_end: datetime
    created_at: datetime


class ConsolidationResponse(ApiModel):
    summaries_created: int


class DashboardResponse(ApiModel):
    family_id: int
    member_count: int
    open_tasks: int
    completed_tasks: int
    upcoming_events: int
    unread_notifications: int
    active_shopping_lists: int
    budget_total: float
    spent_total: float
    savings_target_total: float
    savings_current_total: float
