# app/x402/challenge.py
"""
x402 payment challenge encoding.

A challenge is the 402 Payment Required response describing what has to be
paid before a resource is released:

    X-402-Amount:      "0.05"
    X-402-Currency:    "USDC"
    X-402-Address:     "0xde0B..."
    X-402-Description: "Bitcoin whitepaper"

The description header is percent-encoded UTF-8 outside printable ASCII.
The JSON body repeats the same fields under an "x402" key. Challenges carry
no signature, nonce or expiry; they are built fresh for every response and
never stored.
"""
import logging
import string
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote, unquote

from fastapi import status
from pydantic import BaseModel
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)

# x402 header names
X_402_AMOUNT_HEADER = "X-402-Amount"
X_402_CURRENCY_HEADER = "X-402-Currency"
X_402_ADDRESS_HEADER = "X-402-Address"
X_402_DESCRIPTION_HEADER = "X-402-Description"

DEFAULT_DESCRIPTION = "Payment Required"

# Description header stays printable ASCII, everything else ("%" included) is percent-encoded
HEADER_SAFE_CHARACTERS = "".join(c for c in string.printable if c not in "%\t\n\r\x0b\x0c")


def encode_header_text(text: str) -> str:
    """Percent-encode text so it fits in an ASCII header value (UTF-8 for non-ASCII)."""
    return quote(text, safe=HEADER_SAFE_CHARACTERS)


class PaymentChallenge(BaseModel):
    """Amount, currency and destination a client must pay for a resource."""
    amount: str
    currency: str
    address: str
    description: Optional[str] = None

    def headers(self) -> Dict[str, str]:
        """Challenge fields as X-402-* response headers."""
        return {
            X_402_AMOUNT_HEADER: self.amount,
            X_402_CURRENCY_HEADER: self.currency,
            X_402_ADDRESS_HEADER: self.address,
            X_402_DESCRIPTION_HEADER: encode_header_text(self.description or DEFAULT_DESCRIPTION),
            "Content-Type": "application/json",
        }

    def body(self) -> Dict[str, Any]:
        return {
            "error": "Payment Required",
            "x402": self.model_dump(exclude_none=True),
        }


def build_challenge(
    amount: str,
    currency: str,
    address: str,
    description: Optional[str] = None
) -> PaymentChallenge:
    """
    Build the challenge for a protected resource.

    Args:
        amount: Decimal string, e.g. "0.05"
        currency: "USDC" or "ETH"
        address: Destination address for the payment
        description: Human-readable description of the resource

    Returns:
        PaymentChallenge ready to be rendered with create_402_response()
    """
    return PaymentChallenge(
        amount=str(amount),
        currency=currency,
        address=address,
        description=description,
    )


def create_402_response(challenge: PaymentChallenge) -> JSONResponse:
    """
    Create an HTTP 402 Payment Required response for a challenge.

    Args:
        challenge: The payment challenge to advertise

    Returns:
        JSONResponse with 402 status, X-402-* headers and the challenge body
    """
    logger.info(
        f"x402: Payment required {challenge.amount} {challenge.currency} "
        f"to {challenge.address}"
    )
    return JSONResponse(
        status_code=status.HTTP_402_PAYMENT_REQUIRED,
        content=challenge.body(),
        headers=challenge.headers(),
    )


def parse_challenge_headers(headers: Mapping[str, str]) -> Optional[PaymentChallenge]:
    """
    Read a challenge back from 402 response headers.

    Args:
        headers: Response headers (case-insensitive mapping)

    Returns:
        PaymentChallenge, or None if amount, currency or address is missing
    """
    amount = headers.get(X_402_AMOUNT_HEADER)
    currency = headers.get(X_402_CURRENCY_HEADER)
    address = headers.get(X_402_ADDRESS_HEADER)

    if not (amount and currency and address):
        logger.warning("x402: 402 response without a complete challenge")
        return None

    return PaymentChallenge(
        amount=amount,
        currency=currency,
        address=address,
        description=unquote(headers.get(X_402_DESCRIPTION_HEADER) or "") or DEFAULT_DESCRIPTION,
    )
