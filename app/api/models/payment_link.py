# app/api/models/payment_link.py
from enum import Enum
from pydantic import BaseModel, Field
from typing import List, Optional, Union


class PaymentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class Payment(BaseModel):
    """A payment recorded against a payment link."""
    id: str = Field(..., description="Opaque payment identifier")
    transactionHash: str = Field(default="", description="Transaction hash, empty for user operations")
    userOpHash: Optional[str] = Field(default=None, description="User operation hash for gasless payments")
    payerAddress: str = Field(..., description="Address of the payer")
    amount: str = Field(..., description="Amount paid in USDC", example="5.00")
    timestamp: str = Field(..., description="ISO-8601 time the payment was recorded")
    status: PaymentStatus = Field(default=PaymentStatus.CONFIRMED)
    gaslessTransaction: bool = Field(default=False, description="Whether the payment went through the paymaster")


class PaymentLink(BaseModel):
    """A shareable, slug-addressed request for a fixed USDC amount."""
    id: str
    slug: str = Field(..., description="URL-unique identifier", example="coffee-fund")
    title: str
    description: Optional[str] = None
    amount: str = Field(..., description="USDC amount with two decimals", example="5.00")
    recipientAddress: str = Field(..., description="Address receiving the payments")
    createdAt: str
    createdBy: Optional[str] = Field(default=None, description="Creator wallet address")
    isActive: bool = True
    payments: List[Payment] = Field(default_factory=list)


class PaymentTotals(BaseModel):
    count: int = 0
    total: str = "0.00"


class PaymentLinkCreateRequest(BaseModel):
    """
    Request body for creating a payment link.

    Required fields are checked in the endpoint so that the error message
    names all of them at once.
    """
    title: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[Union[str, float, int]] = Field(default=None, example="5")
    recipientAddress: Optional[str] = Field(default=None, example="0x" + "a" * 40)
    createdBy: Optional[str] = None


class PaymentSubmission(BaseModel):
    """Client-asserted payment for a link. One of transactionHash / userOpHash is required."""
    transactionHash: Optional[str] = None
    userOpHash: Optional[str] = None
    payerAddress: Optional[str] = None
    amount: Optional[Union[str, float, int]] = None
    gaslessTransaction: Optional[bool] = False


class PaymentLinkListResponse(BaseModel):
    success: bool = True
    paymentLinks: List[PaymentLink]


class PaymentLinkCreateResponse(BaseModel):
    success: bool = True
    paymentLink: PaymentLink
    url: str = Field(..., description="Shareable URL of the payment page")


class PaymentLinkDetailResponse(BaseModel):
    success: bool = True
    paymentLink: PaymentLink
    stats: PaymentTotals


class PaymentRecordedResponse(BaseModel):
    success: bool = True
    payment: Payment
    message: str = "Payment recorded successfully"


class PaymentLinkDeactivatedResponse(BaseModel):
    success: bool = True
    slug: str
