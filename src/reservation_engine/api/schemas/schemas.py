from datetime import datetime

from pydantic import BaseModel, Field

from reservation_engine.domain.pricing import DiscountKind


class TransactionCreateRequest(BaseModel):
    ticket_category_id: str
    quantity: int
    voucher_code: str | None = None
    coupon_code: str | None = None
    points_to_use: int = 0


class PaymentProofRequest(BaseModel):
    payment_proof: str


class RejectRequest(BaseModel):
    reason: str | None = None


class PartyResponse(BaseModel):
    user_id: str
    name: str
    email: str


class TicketResponse(BaseModel):
    id: str
    check_in_token: str
    checked_in: bool
    checked_in_at: datetime | None = None


class TransactionResponse(BaseModel):
    id: str
    status: str
    customer: PartyResponse
    organizer: PartyResponse
    event_id: str
    event_title: str
    ticket_category_id: str
    category_name: str
    quantity: int
    subtotal: int
    voucher_code: str | None = None
    voucher_discount: int
    coupon_code: str | None = None
    coupon_discount: int
    points_used: int
    final_price: int
    payment_proof: str | None = None
    rejection_reason: str | None = None
    expires_at: datetime
    waiting_confirmation_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    tickets: list[TicketResponse] = Field(default_factory=list)


class TransactionListResponse(BaseModel):
    items: list[TransactionResponse]
    page: int
    take: int
    total: int


class CheckInResponse(BaseModel):
    success: bool
    message: str
    attendee_name: str
    event_title: str
    category_name: str
    checked_in_at: datetime | None = None


class ReaperSweepResponse(BaseModel):
    expired: int
    auto_cancelled: int


class PointHistoryResponse(BaseModel):
    id: str
    amount: int
    kind: str
    description: str
    created_at: datetime
    expires_at: datetime | None = None
    is_expired: bool


class PointSummaryResponse(BaseModel):
    user_id: str
    balance: int
    expiring_amount: int
    nearest_expiry: datetime | None = None
    history: list[PointHistoryResponse]


class VoucherCreateRequest(BaseModel):
    code: str
    discount_kind: DiscountKind
    discount_amount: int
    valid_from: datetime
    valid_to: datetime
    usage_limit: int


class VoucherResponse(BaseModel):
    id: str
    event_id: str
    code: str
    discount_kind: DiscountKind
    discount_amount: int
    valid_from: datetime
    valid_to: datetime
    usage_limit: int
    used_count: int


class TicketCategoryResponse(BaseModel):
    id: str
    event_id: str
    name: str
    price: int
    total_seats: int
    available_seats: int
    sold: int
