# app/api/endpoints/downloads.py
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Path, Request, status
from fastapi.responses import Response

from app.api.deps import (
    get_client_ip,
    get_content_catalog,
    get_download_registry,
    parse_json_body,
)
from app.api.models.download import (
    DownloadPaymentAccepted,
    DownloadPaymentConfirmation,
    FileAccessResponse,
    FileReference,
)
from app.services.content_catalog import ContentCatalog, ContentItem
from app.services.download_registry import DownloadRegistry
from app.x402 import audit
from app.x402.challenge import build_challenge, create_402_response

logger = logging.getLogger(__name__)
router = APIRouter()


def _file_reference(request: Request, item: ContentItem) -> FileReference:
    return FileReference(
        id=item.id,
        name=item.name,
        downloadUrl=str(request.app.url_path_for("download_file_content", file_id=item.id)),
    )


def _get_item(catalog: ContentCatalog, file_id: str) -> ContentItem:
    item = catalog.get(file_id)
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    return item


@router.get(
    "/{file_id}",
    response_model=FileAccessResponse,
    responses={402: {"description": "Payment required, see X-402-* headers"}},
    summary="Request File Access"
)
async def request_file(
    request: Request,
    file_id: str = Path(..., description="Identifier of the file", example="bitcoin-whitepaper"),
    catalog: ContentCatalog = Depends(get_content_catalog),
    registry: DownloadRegistry = Depends(get_download_registry),
) -> Any:
    """
    Ask for a file.

    Paywalled files that have not been paid answer 402 Payment Required with
    the X-402-Amount, X-402-Currency, X-402-Address and X-402-Description
    headers. Free or paid files answer with their download URL.
    """
    item = _get_item(catalog, file_id)

    if item.is_paywalled and not registry.is_paid(file_id):
        audit.log_payment_required_sent(
            get_client_ip(request),
            amount=item.price,
            currency=item.currency,
            pay_to=item.address,
            resource=f"file:{file_id}",
        )
        challenge = build_challenge(item.price, item.currency, item.address, item.description)
        return create_402_response(challenge)

    return FileAccessResponse(file=_file_reference(request, item))


@router.post("/{file_id}", response_model=DownloadPaymentAccepted, summary="Confirm File Payment")
async def confirm_file_payment(
    request: Request,
    file_id: str = Path(..., description="Identifier of the file"),
    catalog: ContentCatalog = Depends(get_content_catalog),
    registry: DownloadRegistry = Depends(get_download_registry),
) -> Any:
    """
    Mark a file as paid.

    Either transactionHash (regular transaction) or userOpHash (paymaster
    transaction) is accepted. The identifier is not checked on chain.

    Raises:
        HTTPException: 404 unknown file, 400 when paymentConfirmed or the
        transaction id is missing
    """
    item = _get_item(catalog, file_id)
    client_ip = get_client_ip(request)
    body = await parse_json_body(request, DownloadPaymentConfirmation)

    tx_id = body.transactionHash or body.userOpHash
    if not (body.paymentConfirmed and tx_id):
        reason = "Invalid payment confirmation - missing paymentConfirmed or transaction ID"
        logger.warning(f"{reason}: {body.model_dump()}")
        audit.log_payment_rejected(client_ip, f"file:{file_id}", reason)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=reason)

    payment_type = "gasless" if body.gaslessTransaction else "regular"
    logger.info(f"Payment confirmed for file {file_id}: {tx_id} ({payment_type} transaction)")

    registry.mark_paid(file_id)
    audit.log_payment_confirmed(
        client_ip,
        resource=f"file:{file_id}",
        transaction_id=tx_id,
        gasless=bool(body.gaslessTransaction),
        amount=item.price,
    )

    return DownloadPaymentAccepted(
        paymentType=payment_type,
        transactionId=tx_id,
        file=_file_reference(request, item),
    )


@router.get("/{file_id}/content", summary="Download File Content")
async def download_file_content(
    request: Request,
    file_id: str = Path(..., description="Identifier of the file"),
    catalog: ContentCatalog = Depends(get_content_catalog),
) -> Response:
    """
    Serve the file bytes as an attachment.

    Payment state is not checked here; gating happens on the file access
    endpoint only.
    """
    item = _get_item(catalog, file_id)
    audit.log_download_served(get_client_ip(request), file_id, len(item.content))

    return Response(
        content=item.content,
        media_type=item.content_type,
        headers={
            "Content-Disposition": f'attachment; filename="{item.name}"',
        }
    )
