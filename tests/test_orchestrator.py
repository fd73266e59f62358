# tests/test_orchestrator.py
"""
Tests for the client payment flow, run against the app through TestClient.
"""
from unittest.mock import MagicMock

import pytest
import requests

from app.client.broadcaster import DirectWalletBroadcaster, PaymasterBroadcaster, PaymentBroadcaster
from app.client.orchestrator import INVALID_RESPONSE, WALLET_NOT_CONNECTED, PaymentResult, X402Client

PAYER = "0x1234567890123456789012345678901234567890"


class FakeWallet:
    def __init__(self):
        self.address = PAYER
        self.sent = []

    def send_transaction(self, to, value=0, data=None):
        self.sent.append({"to": to, "value": value, "data": data})
        return f"0x{len(self.sent):064x}"


class StaticBroadcaster(PaymentBroadcaster):
    """Returns a fixed transaction id, or raises."""

    def __init__(self, tx_id="0xfeed", error=None):
        super().__init__(FakeWallet())
        self.tx_id = tx_id
        self.error = error
        self.calls = []

    def initiate(self, amount, currency, destination):
        self.calls.append((amount, currency, destination))
        if self.error:
            raise self.error
        return self.tx_id


@pytest.fixture
def wallet():
    return FakeWallet()


def make_client(client, broadcaster=None):
    return X402Client(base_url="http://testserver", broadcaster=broadcaster, session=client)


class TestPaymentResult:
    """Test user-facing status messages."""

    def test_messages(self):
        assert PaymentResult(success=True, transaction_id="0xabc").status_message == (
            "Payment successful! Transaction: 0xabc"
        )
        assert PaymentResult(success=True).status_message == "Download ready"
        assert PaymentResult(success=False, error="nope").status_message == "nope"
        assert PaymentResult(success=False).status_message == "Payment failed"


class TestDownload:
    """Test the request, pay, confirm, re-request cycle."""

    def test_paid_download(self, client, app, wallet):
        x402 = make_client(client, DirectWalletBroadcaster(wallet))

        result = x402.download("bitcoin-whitepaper")

        assert result.success is True
        assert result.transaction_id == f"0x{1:064x}"
        assert result.gasless is False
        assert result.download_url == "/api/download/bitcoin-whitepaper/content"
        assert result.challenge.amount == "0.05"
        assert result.challenge.currency == "USDC"
        assert len(wallet.sent) == 1
        assert app.state.download_registry.is_paid("bitcoin-whitepaper")

    def test_gasless_download(self, client, app, wallet):
        x402 = make_client(client, PaymasterBroadcaster(wallet, check_balance=False))

        result = x402.download("bitcoin-whitepaper")

        assert result.success is True
        assert result.gasless is True
        assert app.state.download_registry.is_paid("bitcoin-whitepaper")

    def test_second_download_needs_no_payment(self, client):
        broadcaster = StaticBroadcaster()
        x402 = make_client(client, broadcaster)

        x402.download("bitcoin-whitepaper")
        result = x402.download("bitcoin-whitepaper")

        assert result.success is True
        assert result.transaction_id is None
        assert len(broadcaster.calls) == 1

    def test_free_download(self, client):
        result = make_client(client).download("readme")

        assert result.success is True
        assert result.challenge is None
        assert result.status_message == "Download ready"

    def test_no_wallet(self, client, app):
        result = make_client(client).download("bitcoin-whitepaper")

        assert result.success is False
        assert result.error == WALLET_NOT_CONNECTED
        assert result.challenge.amount == "0.05"
        assert not app.state.download_registry.is_paid("bitcoin-whitepaper")

    def test_wallet_rejection(self, client, app):
        broadcaster = StaticBroadcaster(error=RuntimeError("User rejected the request"))

        result = make_client(client, broadcaster).download("bitcoin-whitepaper")

        assert result.success is False
        assert result.error == "User rejected the request"
        assert not app.state.download_registry.is_paid("bitcoin-whitepaper")

    def test_confirmation_rejected(self, client):
        """An empty transaction id is refused by the server."""
        result = make_client(client, StaticBroadcaster(tx_id="")).download("bitcoin-whitepaper")

        assert result.success is False
        assert result.error == (
            "Payment confirmation failed: "
            "Invalid payment confirmation - missing paymentConfirmed or transaction ID"
        )

    def test_unknown_file(self, client):
        result = make_client(client, StaticBroadcaster()).download("nope")

        assert result.success is False
        assert result.error == "File not found"

    def test_incomplete_challenge(self):
        session = MagicMock()
        session.get.return_value = MagicMock(status_code=402, headers={"X-402-Amount": "1"})

        result = X402Client(broadcaster=StaticBroadcaster(), session=session).download("x")

        assert result.success is False
        assert result.error == "Invalid payment request"

    def test_network_error(self):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("Connection refused")

        result = X402Client(base_url="http://localhost:1", session=session).download("x")

        assert result.success is False
        assert result.error == "Connection refused"

    def test_non_json_success_body(self):
        """A 200 with an HTML body ends the flow instead of raising."""
        response = MagicMock(status_code=200)
        response.json.side_effect = requests.JSONDecodeError("Expecting value", "<html>", 0)
        session = MagicMock()
        session.get.return_value = response

        result = X402Client(session=session).download("x")

        assert result.success is False
        assert result.error == INVALID_RESPONSE

    def test_unexpected_file_field(self):
        response = MagicMock(status_code=200)
        response.json.return_value = {"success": True, "file": "bitcoin.pdf"}
        session = MagicMock()
        session.get.return_value = response

        result = X402Client(session=session).download("x")

        assert result.success is False
        assert result.error == INVALID_RESPONSE

    def test_fetch_content(self, client, wallet):
        x402 = make_client(client, DirectWalletBroadcaster(wallet))
        result = x402.download("bitcoin-whitepaper")

        content = x402.fetch_content(result.download_url)

        assert content.startswith(b"Bitcoin: A Peer-to-Peer Electronic Cash System")


class TestPayLink:
    """Test paying a payment link."""

    def test_pay_link(self, client, app, wallet):
        x402 = make_client(client, DirectWalletBroadcaster(wallet))

        result = x402.pay_link("coffee-fund")

        assert result.success is True
        assert result.payment["amount"] == "5.00"
        assert result.payment["payerAddress"] == PAYER
        assert result.payment["transactionHash"] == result.transaction_id
        assert app.state.link_store.get_totals("coffee-fund").total == "5.00"

    def test_pay_link_gasless(self, client, wallet):
        x402 = make_client(client, PaymasterBroadcaster(wallet, check_balance=False))

        result = x402.pay_link("coffee-fund")

        assert result.success is True
        assert result.gasless is True
        assert result.payment["userOpHash"] == result.transaction_id
        assert result.payment["gaslessTransaction"] is True

    def test_pays_link_amount_in_usdc(self, client):
        broadcaster = StaticBroadcaster()
        make_client(client, broadcaster).pay_link("open-source-contribution")

        amount, currency, _ = broadcaster.calls[0]
        assert (amount, currency) == ("25.00", "USDC")

    def test_no_wallet(self, client):
        result = make_client(client).pay_link("coffee-fund")
        assert result.error == WALLET_NOT_CONNECTED

    def test_deactivated_link(self, client):
        client.delete("/api/payment-links/coffee-fund")
        broadcaster = StaticBroadcaster()

        result = make_client(client, broadcaster).pay_link("coffee-fund")

        assert result.success is False
        assert result.error == "Payment link is no longer active"
        assert broadcaster.calls == []

    def test_wallet_rejection(self, client, app):
        broadcaster = StaticBroadcaster(error=RuntimeError("User rejected the request"))

        result = make_client(client, broadcaster).pay_link("coffee-fund")

        assert result.success is False
        assert app.state.link_store.get_totals("coffee-fund").count == 0

    def test_link_missing_from_body(self):
        response = MagicMock(status_code=200)
        response.json.return_value = {"success": True}
        session = MagicMock()
        session.get.return_value = response
        broadcaster = StaticBroadcaster()

        result = X402Client(broadcaster=broadcaster, session=session).pay_link("coffee-fund")

        assert result.success is False
        assert result.error == INVALID_RESPONSE
        assert broadcaster.calls == []

    def test_unreadable_payment_record(self):
        """The transaction id survives a recorded-payment body that is not JSON."""
        link = MagicMock(status_code=200)
        link.json.return_value = {
            "success": True,
            "paymentLink": {"amount": "5.00", "recipientAddress": PAYER, "title": "Coffee"},
        }
        recorded = MagicMock(status_code=200)
        recorded.json.side_effect = ValueError("No JSON object could be decoded")
        session = MagicMock()
        session.get.return_value = link
        session.post.return_value = recorded

        result = X402Client(broadcaster=StaticBroadcaster(), session=session).pay_link("coffee-fund")

        assert result.success is False
        assert result.transaction_id == "0xfeed"
        assert result.error == INVALID_RESPONSE
