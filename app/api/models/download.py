# app/api/models/download.py
from pydantic import BaseModel, Field
from typing import Literal, Optional


class FileReference(BaseModel):
    """Where an unlocked file can be fetched from."""
    id: str
    name: str
    downloadUrl: str = Field(..., description="Relative URL serving the file bytes")


class FileAccessResponse(BaseModel):
    success: bool = True
    file: FileReference


class DownloadPaymentConfirmation(BaseModel):
    """
    Client report that a download was paid.

    transactionHash is sent for regular transactions, userOpHash for
    paymaster (gasless) sends.
    """
    paymentConfirmed: Optional[bool] = False
    transactionHash: Optional[str] = None
    userOpHash: Optional[str] = None
    gaslessTransaction: Optional[bool] = False


class DownloadPaymentAccepted(BaseModel):
    success: bool = True
    paymentType: Literal["gasless", "regular"]
    transactionId: str
    file: FileReference
