from dataclasses import asdict
import logging

from fastapi import APIRouter, Depends, Query, status

from reservation_engine.api.dependencies import (
    get_checkin_service,
    get_current_organizer_id,
    get_current_user_id,
    get_inventory_service,
    get_reaper,
    get_reward_service,
    get_transaction_service,
    get_voucher_service,
)
from reservation_engine.api.schemas.schemas import (
    CheckInResponse,
    PartyResponse,
    PaymentProofRequest,
    PointHistoryResponse,
    PointSummaryResponse,
    ReaperSweepResponse,
    RejectRequest,
    TicketCategoryResponse,
    TicketResponse,
    TransactionCreateRequest,
    TransactionListResponse,
    TransactionResponse,
    VoucherCreateRequest,
    VoucherResponse,
)
from reservation_engine.application.checkin_service import CheckInService
from reservation_engine.application.inventory_service import InventoryService
from reservation_engine.application.projections import PartyView, TicketView, TransactionSnapshot
from reservation_engine.application.reaper import TimeoutReaper
from reservation_engine.application.reward_service import RewardService
from reservation_engine.application.transaction_service import TransactionService
from reservation_engine.application.voucher_service import VoucherService, VoucherView


router = APIRouter()
logger = logging.getLogger(__name__)


def _party_response(party: PartyView) -> PartyResponse:
    return PartyResponse(user_id=party.user_id, name=party.name, email=party.email)


def _ticket_response(ticket: TicketView) -> TicketResponse:
    return TicketResponse(
        id=ticket.id,
        check_in_token=ticket.check_in_token,
        checked_in=ticket.checked_in,
        checked_in_at=ticket.checked_in_at,
    )


def _transaction_response(snapshot: TransactionSnapshot) -> TransactionResponse:
    return TransactionResponse(
        id=snapshot.id,
        status=snapshot.status.value,
        customer=_party_response(snapshot.customer),
        organizer=_party_response(snapshot.organizer),
        event_id=snapshot.event_id,
        event_title=snapshot.event_title,
        ticket_category_id=snapshot.ticket_category_id,
        category_name=snapshot.category_name,
        quantity=snapshot.quantity,
        subtotal=snapshot.subtotal,
        voucher_code=snapshot.voucher_code,
        voucher_discount=snapshot.voucher_discount,
        coupon_code=snapshot.coupon_code,
        coupon_discount=snapshot.coupon_discount,
        points_used=snapshot.points_used,
        final_price=snapshot.final_price,
        payment_proof=snapshot.payment_proof,
        rejection_reason=snapshot.rejection_reason,
        expires_at=snapshot.expires_at,
        waiting_confirmation_at=snapshot.waiting_confirmation_at,
        created_at=snapshot.created_at,
        updated_at=snapshot.updated_at,
        tickets=[_ticket_response(ticket) for ticket in snapshot.tickets],
    )


def _voucher_response(voucher: VoucherView) -> VoucherResponse:
    return VoucherResponse(
        id=voucher.id,
        event_id=voucher.event_id,
        code=voucher.code,
        discount_kind=voucher.discount_kind,
        discount_amount=voucher.discount_amount,
        valid_from=voucher.valid_from,
        valid_to=voucher.valid_to,
        usage_limit=voucher.usage_limit,
        used_count=voucher.used_count,
    )


@router.get("/health")
def health():
    return {"message": "Reservation & Settlement Engine is running"}


# -----------------------------
# Transactions
# -----------------------------
@router.post(
    "/events/{event_id}/transactions",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_transaction(
    event_id: str,
    request: TransactionCreateRequest,
    user_id: str = Depends(get_current_user_id),
    service: TransactionService = Depends(get_transaction_service),
):
    snapshot = service.create_transaction(
        user_id=user_id,
        event_id=event_id,
        ticket_category_id=request.ticket_category_id,
        quantity=request.quantity,
        voucher_code=request.voucher_code,
        coupon_code=request.coupon_code,
        points_requested=request.points_to_use,
    )
    return _transaction_response(snapshot)


@router.post("/transactions/{transaction_id}/payment-proof", response_model=TransactionResponse)
def submit_payment_proof(
    transaction_id: str,
    request: PaymentProofRequest,
    user_id: str = Depends(get_current_user_id),
    service: TransactionService = Depends(get_transaction_service),
):
    snapshot = service.submit_payment_proof(
        transaction_id=transaction_id,
        user_id=user_id,
        proof_ref=request.payment_proof,
    )
    return _transaction_response(snapshot)


@router.post("/transactions/{transaction_id}/confirm", response_model=TransactionResponse)
def confirm_transaction(
    transaction_id: str,
    user_id: str = Depends(get_current_user_id),
    service: TransactionService = Depends(get_transaction_service),
):
    snapshot = service.confirm(transaction_id=transaction_id, organizer_user_id=user_id)
    return _transaction_response(snapshot)


@router.post("/transactions/{transaction_id}/reject", response_model=TransactionResponse)
def reject_transaction(
    transaction_id: str,
    request: RejectRequest | None = None,
    user_id: str = Depends(get_current_user_id),
    service: TransactionService = Depends(get_transaction_service),
):
    snapshot = service.reject(
        transaction_id=transaction_id,
        organizer_user_id=user_id,
        reason=request.reason if request else None,
    )
    return _transaction_response(snapshot)


@router.post("/transactions/{transaction_id}/cancel", response_model=TransactionResponse)
def cancel_transaction(
    transaction_id: str,
    user_id: str = Depends(get_current_user_id),
    service: TransactionService = Depends(get_transaction_service),
):
    snapshot = service.cancel(transaction_id=transaction_id, user_id=user_id)
    return _transaction_response(snapshot)


@router.get("/transactions/{transaction_id}", response_model=TransactionResponse)
def get_transaction(
    transaction_id: str,
    user_id: str = Depends(get_current_user_id),
    service: TransactionService = Depends(get_transaction_service),
):
    return _transaction_response(service.get_transaction(transaction_id, user_id))


@router.get("/transactions", response_model=TransactionListResponse)
def list_my_transactions(
    page: int = Query(default=1),
    take: int = Query(default=10),
    user_id: str = Depends(get_current_user_id),
    service: TransactionService = Depends(get_transaction_service),
):
    result = service.list_my_transactions(user_id, page=page, take=take)
    return TransactionListResponse(
        items=[_transaction_response(item) for item in result.items],
        page=result.page,
        take=result.take,
        total=result.total,
    )


@router.get("/organizer/transactions", response_model=list[TransactionResponse])
def list_organizer_transactions(
    user_id: str = Depends(get_current_user_id),
    service: TransactionService = Depends(get_transaction_service),
):
    return [
        _transaction_response(item)
        for item in service.list_organizer_transactions(user_id)
    ]


@router.get("/transactions/{transaction_id}/tickets", response_model=list[TicketResponse])
def get_tickets(
    transaction_id: str,
    user_id: str = Depends(get_current_user_id),
    service: TransactionService = Depends(get_transaction_service),
):
    snapshot = service.get_tickets(transaction_id, user_id)
    return [_ticket_response(ticket) for ticket in snapshot.tickets]


# -----------------------------
# Check-in
# -----------------------------
@router.post("/check-in/{token}", response_model=CheckInResponse)
def check_in(
    token: str,
    service: CheckInService = Depends(get_checkin_service),
):
    result = service.check_in(token)
    return CheckInResponse(
        success=result.success,
        message=result.message,
        attendee_name=result.attendee_name,
        event_title=result.event_title,
        category_name=result.category_name,
        checked_in_at=result.checked_in_at,
    )


# -----------------------------
# Reaper
# -----------------------------
@router.post("/reaper/sweep", response_model=ReaperSweepResponse)
def sweep_timeouts(
    organizer_user_id: str = Depends(get_current_organizer_id),
    reaper: TimeoutReaper = Depends(get_reaper),
):
    expired = reaper.sweep_expired()
    auto_cancelled = reaper.sweep_auto_cancelled()
    logger.info(
        "Manual reaper sweep. organizer_user_id=%s expired=%s auto_cancelled=%s",
        organizer_user_id,
        expired,
        auto_cancelled,
    )
    return ReaperSweepResponse(expired=expired, auto_cancelled=auto_cancelled)


# -----------------------------
# Loyalty points
# -----------------------------
@router.get("/users/me/points", response_model=PointSummaryResponse)
def get_my_points(
    user_id: str = Depends(get_current_user_id),
    service: RewardService = Depends(get_reward_service),
):
    summary = service.point_summary(user_id)
    return PointSummaryResponse(
        user_id=summary.user_id,
        balance=summary.balance,
        expiring_amount=summary.expiring_amount,
        nearest_expiry=summary.nearest_expiry,
        history=[
            PointHistoryResponse(
                id=item.id,
                amount=item.amount,
                kind=item.kind,
                description=item.description,
                created_at=item.created_at,
                expires_at=item.expires_at,
                is_expired=item.is_expired,
            )
            for item in summary.history
        ],
    )


# -----------------------------
# Vouchers & inventory
# -----------------------------
@router.post(
    "/events/{event_id}/vouchers",
    response_model=VoucherResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_voucher(
    event_id: str,
    request: VoucherCreateRequest,
    user_id: str = Depends(get_current_user_id),
    service: VoucherService = Depends(get_voucher_service),
):
    voucher = service.create_voucher(
        organizer_user_id=user_id,
        event_id=event_id,
        code=request.code,
        discount_kind=request.discount_kind,
        discount_amount=request.discount_amount,
        valid_from=request.valid_from,
        valid_to=request.valid_to,
        usage_limit=request.usage_limit,
    )
    return _voucher_response(voucher)


@router.get("/events/{event_id}/vouchers", response_model=list[VoucherResponse])
def list_vouchers(
    event_id: str,
    service: VoucherService = Depends(get_voucher_service),
):
    return [_voucher_response(voucher) for voucher in service.list_vouchers(event_id)]


@router.get("/events/{event_id}/ticket-categories", response_model=list[TicketCategoryResponse])
def list_ticket_categories(
    event_id: str,
    service: InventoryService = Depends(get_inventory_service),
):
    return [
        TicketCategoryResponse(**asdict(category))
        for category in service.list_categories(event_id)
    ]


@router.get("/ticket-categories/{category_id}", response_model=TicketCategoryResponse)
def get_ticket_category(
    category_id: str,
    service: InventoryService = Depends(get_inventory_service),
):
    category = service.get_category(category_id)
    return TicketCategoryResponse(**asdict(category))
