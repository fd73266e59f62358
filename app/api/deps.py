# app/api/deps.py
"""Request dependencies resolving the state owned by the running app."""
from typing import Type, TypeVar

from fastapi import HTTPException, Request, status
from pydantic import BaseModel, ValidationError

from app.core.errors import describe_validation_error
from app.services.content_catalog import ContentCatalog
from app.services.download_registry import DownloadRegistry
from app.services.link_store import PaymentLinkStore

ModelT = TypeVar("ModelT", bound=BaseModel)


def get_link_store(request: Request) -> PaymentLinkStore:
    return request.app.state.link_store


def get_download_registry(request: Request) -> DownloadRegistry:
    return request.app.state.download_registry


def get_content_catalog(request: Request) -> ContentCatalog:
    return request.app.state.content_catalog


def get_client_ip(request: Request) -> str:
    """Extract client IP from request, handling proxies."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # Take the first IP in the chain
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    if request.client:
        return request.client.host

    return "unknown"


async def parse_json_body(request: Request, model: Type[ModelT]) -> ModelT:
    """
    Read and validate a JSON body inside the endpoint.

    Used where resource checks (404/410) have to run before the payload is
    looked at.

    Raises:
        HTTPException: 400 if the body is not JSON or does not fit the model
    """
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid request: body must be a JSON object"
        )

    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=describe_validation_error(e)
        )
