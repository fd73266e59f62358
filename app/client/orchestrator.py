# app/client/orchestrator.py
"""
Client side of the x402 payment flow.

download(file_id):
1. GET /api/download/{file_id}
2. On 402, read the challenge from the X-402-* headers
3. Have the broadcaster pay it (wallet prompt, broadcast)
4. POST the transaction id back to /api/download/{file_id}
5. GET the file again and hand back its download URL

Every failure, from the network, the wallet or the server, ends the flow
and comes back as PaymentResult(success=False, error=...). Nothing is
retried and nothing is raised to the caller, a malformed server response
included.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from app.client.broadcaster import PaymentBroadcaster
from app.core.config import settings
from app.x402.challenge import PaymentChallenge, parse_challenge_headers

logger = logging.getLogger(__name__)

WALLET_NOT_CONNECTED = "Please connect your wallet first"
INVALID_RESPONSE = "Invalid response from server"

# Raised while picking fields out of a JSON body that is not what the server should send
MALFORMED_RESPONSE_ERRORS = (ValueError, KeyError, TypeError, AttributeError)


@dataclass
class PaymentResult:
    """Outcome of a payment flow, ready to show to a user."""
    success: bool
    transaction_id: Optional[str] = None
    gasless: bool = False
    download_url: Optional[str] = None
    challenge: Optional[PaymentChallenge] = None
    payment: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def status_message(self) -> str:
        if not self.success:
            return self.error or "Payment failed"
        if self.transaction_id:
            return f"Payment successful! Transaction: {self.transaction_id}"
        return "Download ready"


def _is_ok(response) -> bool:
    return 200 <= response.status_code < 300


def _error_message(response) -> str:
    """Server error message from an error body, else 'HTTP <code>: <reason>'."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    reason = getattr(response, "reason", None) or getattr(response, "reason_phrase", "")
    return f"HTTP {response.status_code}: {reason}"


class X402Client:
    """
    Pays for protected downloads and payment links against this server.

    Args:
        base_url: Server origin, e.g. "http://localhost:8000"
        broadcaster: Wallet-backed payment broadcaster; None means no wallet
            is connected
        session: requests.Session (or compatible client, e.g. a TestClient)
        timeout: Per-request HTTP timeout in seconds; None waits forever
    """

    def __init__(
        self,
        base_url: str = "",
        broadcaster: Optional[PaymentBroadcaster] = None,
        session=None,
        api_prefix: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.broadcaster = broadcaster
        self.session = session if session is not None else requests.Session()
        self.api_prefix = settings.API_PREFIX if api_prefix is None else api_prefix
        self.timeout = timeout

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _get(self, path: str):
        return self.session.get(self.url(path), timeout=self.timeout)

    def _post(self, path: str, payload: Dict[str, Any]):
        return self.session.post(self.url(path), json=payload, timeout=self.timeout)

    def _broadcast(self, amount: str, currency: str, destination: str) -> str:
        return self.broadcaster.initiate(amount, currency, destination)

    def _transaction_fields(self, tx_id: str) -> Dict[str, Any]:
        gasless = self.broadcaster.is_gasless
        key = "userOpHash" if gasless else "transactionHash"
        return {key: tx_id, "gaslessTransaction": gasless}

    def _invalid_response(self, error: Exception, tx_id=None, challenge=None) -> PaymentResult:
        logger.error(f"Unexpected response body from {self.base_url or 'server'}: {error!r}")
        return PaymentResult(success=False, transaction_id=tx_id, challenge=challenge, error=INVALID_RESPONSE)

    def download(self, file_id: str) -> PaymentResult:
        """Run the challenge, pay, confirm, re-request cycle for a file."""
        path = f"{self.api_prefix}/download/{file_id}"
        challenge = None
        tx_id = None

        try:
            response = self._get(path)

            if response.status_code == 402:
                challenge = parse_challenge_headers(response.headers)
                if challenge is None:
                    return PaymentResult(success=False, error="Invalid payment request")

                if self.broadcaster is None:
                    return PaymentResult(success=False, challenge=challenge, error=WALLET_NOT_CONNECTED)

                try:
                    tx_id = self._broadcast(challenge.amount, challenge.currency, challenge.address)
                except Exception as e:
                    logger.error(f"Payment failed: {e}")
                    return PaymentResult(success=False, challenge=challenge, error=str(e) or "Payment failed")

                confirmation = self._post(path, {"paymentConfirmed": True, **self._transaction_fields(tx_id)})
                if not _is_ok(confirmation):
                    return PaymentResult(
                        success=False,
                        transaction_id=tx_id,
                        challenge=challenge,
                        error=f"Payment confirmation failed: {_error_message(confirmation)}",
                    )

                response = self._get(path)

            if not _is_ok(response):
                return PaymentResult(success=False, transaction_id=tx_id, challenge=challenge, error=_error_message(response))

            file_info = response.json().get("file") or {}
            return PaymentResult(
                success=True,
                transaction_id=tx_id,
                gasless=bool(tx_id and self.broadcaster.is_gasless),
                download_url=file_info.get("downloadUrl"),
                challenge=challenge,
            )

        except requests.JSONDecodeError as e:
            return self._invalid_response(e, tx_id, challenge)
        except requests.RequestException as e:
            logger.error(f"Network error during download of {file_id}: {e}")
            return PaymentResult(success=False, transaction_id=tx_id, challenge=challenge, error=str(e) or "Network error")
        except MALFORMED_RESPONSE_ERRORS as e:
            return self._invalid_response(e, tx_id, challenge)

    def fetch_content(self, download_url: str) -> bytes:
        """
        Fetch the bytes behind a download URL returned by download().

        Raises:
            HTTP errors from the session (raise_for_status)
        """
        response = self.session.get(self.url(download_url), timeout=self.timeout)
        response.raise_for_status()
        return response.content

    def pay_link(self, slug: str) -> PaymentResult:
        """Pay a payment link its amount in USDC and record the payment."""
        if self.broadcaster is None:
            return PaymentResult(success=False, error=WALLET_NOT_CONNECTED)

        path = f"{self.api_prefix}/payment-links/{slug}"
        tx_id = None

        try:
            response = self._get(path)
            if not _is_ok(response):
                return PaymentResult(success=False, error=_error_message(response))

            link = response.json()["paymentLink"]
            amount = link["amount"]

            try:
                tx_id = self._broadcast(amount, "USDC", link["recipientAddress"])
            except Exception as e:
                logger.error(f"Payment failed: {e}")
                return PaymentResult(success=False, error=str(e) or "Payment failed")

            recorded = self._post(path, {
                "payerAddress": self.broadcaster.payer_address,
                "amount": amount,
                **self._transaction_fields(tx_id),
            })
            if not _is_ok(recorded):
                return PaymentResult(success=False, transaction_id=tx_id, error=_error_message(recorded))

            logger.info(f"Payment successful! {amount} USDC sent to {link['title']}")
            return PaymentResult(
                success=True,
                transaction_id=tx_id,
                gasless=self.broadcaster.is_gasless,
                payment=recorded.json().get("payment"),
            )

        except requests.JSONDecodeError as e:
            return self._invalid_response(e, tx_id)
        except requests.RequestException as e:
            logger.error(f"Network error paying link {slug}: {e}")
            return PaymentResult(success=False, transaction_id=tx_id, error=str(e) or "Network error")
        except MALFORMED_RESPONSE_ERRORS as e:
            return self._invalid_response(e, tx_id)
