# app/api/endpoints/payment_links.py
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Request, status

from app.api.deps import get_client_ip, get_link_store, parse_json_body
from app.api.models.payment_link import (
    PaymentLink,
    PaymentLinkCreateRequest,
    PaymentLinkCreateResponse,
    PaymentLinkDeactivatedResponse,
    PaymentLinkDetailResponse,
    PaymentLinkListResponse,
    PaymentRecordedResponse,
    PaymentSubmission,
)
from app.core.config import settings
from app.services.link_store import MAX_INTEGER_DIGITS, PaymentLinkStore
from app.x402 import audit

logger = logging.getLogger(__name__)
router = APIRouter()

ETH_ADDRESS_PATTERN = re.compile(r"0x[a-fA-F0-9]{40}")


def _parse_decimal(value: Any) -> Optional[Decimal]:
    """Decimal from a JSON string or number, None when not numeric or too large to pay."""
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    if not parsed.is_finite() or parsed.adjusted() >= MAX_INTEGER_DIGITS:
        return None
    return parsed


def _get_active_link(store: PaymentLinkStore, slug: str) -> PaymentLink:
    """
    Resolve a link that can still be viewed and paid.

    Raises:
        HTTPException: 404 if unknown, 410 if deactivated
    """
    payment_link = store.get_link(slug)
    if payment_link is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment link not found")
    if not payment_link.isActive:
        raise HTTPException(status_code=status.HTTP_410_GONE, detail="Payment link is no longer active")
    return payment_link


@router.get("", response_model=PaymentLinkListResponse, summary="List Payment Links")
async def list_payment_links(store: PaymentLinkStore = Depends(get_link_store)) -> Any:
    """Return every payment link in creation order."""
    try:
        return PaymentLinkListResponse(paymentLinks=store.list_links())
    except Exception as e:
        logger.error(f"Failed to get payment links: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get payment links"
        )


@router.post("", response_model=PaymentLinkCreateResponse, summary="Create Payment Link")
async def create_payment_link(
    body: PaymentLinkCreateRequest,
    request: Request,
    store: PaymentLinkStore = Depends(get_link_store),
) -> Any:
    """
    Create a shareable payment link.

    The amount is stored with two decimals ("5" becomes "5.00") and the slug
    is derived from the title with a timestamp suffix.

    Raises:
        HTTPException: 400 on missing fields, non-positive amount or a
        malformed recipient address
    """
    if not body.title or not body.amount or not body.recipientAddress:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required fields: title, amount, recipientAddress"
        )

    amount = _parse_decimal(body.amount)
    if amount is None or amount <= 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Amount must be a positive number"
        )

    if not ETH_ADDRESS_PATTERN.fullmatch(body.recipientAddress):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid Ethereum address format"
        )

    try:
        payment_link = store.create_link(
            title=body.title,
            description=body.description,
            amount=amount,
            recipient_address=body.recipientAddress,
            created_by=body.createdBy,
        )
    except Exception as e:
        logger.error(f"Failed to create payment link: {e}", exc_info=True)
        audit.log_error(get_client_ip(request), type(e).__name__, str(e), {"title": body.title})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create payment link"
        )

    audit.log_link_created(
        slug=payment_link.slug,
        amount=payment_link.amount,
        recipient_address=payment_link.recipientAddress,
        client_ip=get_client_ip(request),
        created_by=payment_link.createdBy,
    )

    return PaymentLinkCreateResponse(
        paymentLink=payment_link,
        url=f"{settings.public_base_url}/project/{payment_link.slug}",
    )


@router.get("/{slug}", response_model=PaymentLinkDetailResponse, summary="Get Payment Link")
async def get_payment_link(
    slug: str = Path(..., description="Slug of the payment link", example="coffee-fund"),
    store: PaymentLinkStore = Depends(get_link_store),
) -> Any:
    """Return a payment link with the count and total of its confirmed payments."""
    payment_link = _get_active_link(store, slug)
    return PaymentLinkDetailResponse(paymentLink=payment_link, stats=store.get_totals(slug))


@router.post("/{slug}", response_model=PaymentRecordedResponse, summary="Record Payment")
async def record_payment(
    request: Request,
    slug: str = Path(..., description="Slug of the payment link"),
    store: PaymentLinkStore = Depends(get_link_store),
) -> Any:
    """
    Record a payment the client reports for a link.

    The transaction identifier is taken on trust: nothing checks that it
    exists on chain or paid the stated amount. The reported amount must be
    within PAYMENT_AMOUNT_TOLERANCE of the link amount; the payment is
    stored with the link amount.

    Raises:
        HTTPException: 404 unknown link, 410 deactivated link (checked before
        the body), 400 missing fields or amount mismatch
    """
    payment_link = _get_active_link(store, slug)
    client_ip = get_client_ip(request)
    body = await parse_json_body(request, PaymentSubmission)

    if not body.payerAddress or not (body.transactionHash or body.userOpHash):
        reason = "Missing required fields: payerAddress and transaction ID"
        audit.log_payment_rejected(client_ip, f"link:{slug}", reason, payer=body.payerAddress)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=reason)

    expected_amount = Decimal(payment_link.amount)
    paid_amount = _parse_decimal(body.amount)
    if paid_amount is None or abs(expected_amount - paid_amount) > settings.PAYMENT_AMOUNT_TOLERANCE:
        reason = f"Amount mismatch. Expected: {payment_link.amount} USDC, Received: {body.amount} USDC"
        audit.log_payment_rejected(client_ip, f"link:{slug}", reason, payer=body.payerAddress)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=reason)

    try:
        payment = store.add_payment(
            slug,
            payer_address=body.payerAddress,
            amount=payment_link.amount,
            transaction_hash=body.transactionHash,
            user_op_hash=body.userOpHash,
            gasless_transaction=bool(body.gaslessTransaction),
        )
    except Exception as e:
        logger.error(f"Failed to record payment: {e}", exc_info=True)
        audit.log_error(client_ip, type(e).__name__, str(e), {"slug": slug})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to record payment"
        )

    logger.info(
        f"Payment received for '{payment_link.title}': {payment.amount} USDC from {body.payerAddress} "
        f"(tx={body.transactionHash or 'N/A'}, userOp={body.userOpHash or 'N/A'}, "
        f"recipient={payment_link.recipientAddress}, gasless={'yes' if payment.gaslessTransaction else 'no'})"
    )
    audit.log_payment_confirmed(
        client_ip,
        resource=f"link:{slug}",
        transaction_id=body.transactionHash or body.userOpHash,
        gasless=payment.gaslessTransaction,
        amount=payment.amount,
        payer=body.payerAddress,
    )

    return PaymentRecordedResponse(payment=payment)


@router.delete("/{slug}", response_model=PaymentLinkDeactivatedResponse, summary="Deactivate Payment Link")
async def deactivate_payment_link(
    request: Request,
    slug: str = Path(..., description="Slug of the payment link"),
    store: PaymentLinkStore = Depends(get_link_store),
) -> Any:
    """Deactivate a link. It stays in the store but no longer accepts payments."""
    if not store.deactivate(slug):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment link not found")

    audit.log_link_deactivated(slug, client_ip=get_client_ip(request))
    return PaymentLinkDeactivatedResponse(slug=slug)
