# tests/test_broadcaster.py
"""
Unit tests for wallet helpers and payment broadcasters.
"""
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from web3 import Web3

from app.client.broadcaster import (
    DirectWalletBroadcaster,
    InsufficientBalanceError,
    PaymasterBroadcaster,
    UnsupportedCurrencyError,
    create_usdc_transfer_user_op,
)
from app.client.wallet import (
    Web3WalletConnection,
    encode_erc20_transfer,
    eth_to_wei,
    usdc_to_units,
)
from app.x402.erc20 import erc20_contract

PAYER = "0x1234567890123456789012345678901234567890"
RECIPIENT = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"
USDC = "0x036CbD53842c5426634e7929541eC2318f3dCF7e"

# Well-known throwaway key (hardhat account #0)
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_KEY_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


class FakeWallet:
    """Records transactions instead of broadcasting them."""

    def __init__(self, address=PAYER, fail_with=None):
        self.address = address
        self.fail_with = fail_with
        self.sent = []

    def send_transaction(self, to, value=0, data=None):
        if self.fail_with:
            raise self.fail_with
        self.sent.append({"to": to, "value": value, "data": data})
        return f"0x{len(self.sent):064x}"


class TestWalletHelpers:
    """Test amount conversion and calldata encoding."""

    @pytest.mark.parametrize("amount,units", [
        ("0.05", 50_000),
        ("5", 5_000_000),
        ("5.00", 5_000_000),
        ("0.000001", 1),
        (Decimal("12.5"), 12_500_000),
    ])
    def test_usdc_to_units(self, amount, units):
        assert usdc_to_units(amount) == units

    @pytest.mark.parametrize("amount", ["abc", "0.0000001", "NaN"])
    def test_usdc_to_units_invalid(self, amount):
        with pytest.raises(ValueError):
            usdc_to_units(amount)

    def test_eth_to_wei(self):
        assert eth_to_wei("0.001") == 10 ** 15
        assert eth_to_wei("1") == 10 ** 18

    def test_encode_erc20_transfer(self):
        data = encode_erc20_transfer(RECIPIENT, 50_000)

        assert data.startswith("0xa9059cbb")
        assert len(data) == 2 + 8 + 64 + 64
        assert data[10:74] == "0" * 24 + RECIPIENT[2:].lower()
        assert int(data[74:], 16) == 50_000

    def test_encode_erc20_transfer_decodes_with_abi(self):
        token = erc20_contract(Web3())

        function, arguments = token.decode_function_input(encode_erc20_transfer(RECIPIENT, 1_234_567))

        assert function.fn_name == "transfer"
        assert arguments["to"].lower() == RECIPIENT.lower()
        assert arguments["value"] == 1_234_567


class TestWeb3WalletConnection:
    """Test transaction signing with a mocked provider."""

    def test_address_from_key(self):
        wallet = Web3WalletConnection(TEST_PRIVATE_KEY, web3=MagicMock())
        assert wallet.address == TEST_KEY_ADDRESS

    def test_send_transaction(self):
        web3 = MagicMock()
        web3.eth.get_transaction_count.return_value = 3
        web3.eth.chain_id = 84532
        web3.eth.gas_price = 1_000_000_000
        web3.eth.estimate_gas.return_value = 60_000
        web3.eth.send_raw_transaction.return_value = bytes.fromhex("ab" * 32)

        wallet = Web3WalletConnection(TEST_PRIVATE_KEY, web3=web3)
        data = encode_erc20_transfer(RECIPIENT, 50_000)
        tx_hash = wallet.send_transaction(USDC, value=0, data=data)

        assert tx_hash == "0x" + "ab" * 32
        tx = web3.eth.estimate_gas.call_args.args[0]
        assert tx["from"] == TEST_KEY_ADDRESS
        assert tx["to"].lower() == USDC.lower()
        assert tx["nonce"] == 3
        assert tx["chainId"] == 84532
        assert tx["data"] == data
        web3.eth.send_raw_transaction.assert_called_once()


class TestDirectWalletBroadcaster:
    """Test regular (wallet-paid gas) payments."""

    def test_usdc_transfer(self):
        wallet = FakeWallet()
        broadcaster = DirectWalletBroadcaster(wallet, usdc_contract_address=USDC)

        tx_hash = broadcaster.initiate("0.05", "USDC", RECIPIENT)

        assert tx_hash == wallet_tx(1)
        sent = wallet.sent[0]
        assert sent["to"] == USDC
        assert sent["value"] == 0
        assert sent["data"] == encode_erc20_transfer(RECIPIENT, 50_000)

    def test_eth_transfer(self):
        wallet = FakeWallet()
        DirectWalletBroadcaster(wallet).initiate("0.001", "ETH", RECIPIENT)

        assert wallet.sent == [{"to": RECIPIENT, "value": 10 ** 15, "data": None}]

    def test_unsupported_currency(self):
        wallet = FakeWallet()
        with pytest.raises(UnsupportedCurrencyError, match="Unsupported currency: DAI"):
            DirectWalletBroadcaster(wallet).initiate("1", "DAI", RECIPIENT)
        assert wallet.sent == []

    def test_wallet_error_propagates(self):
        wallet = FakeWallet(fail_with=RuntimeError("User rejected the request"))
        with pytest.raises(RuntimeError, match="User rejected"):
            DirectWalletBroadcaster(wallet).initiate("1", "USDC", RECIPIENT)

    def test_not_gasless(self):
        broadcaster = DirectWalletBroadcaster(FakeWallet())
        assert broadcaster.is_gasless is False
        assert broadcaster.payer_address == PAYER


class TestPaymasterBroadcaster:
    """Test simulated gasless payments."""

    def test_user_op(self):
        user_op = create_usdc_transfer_user_op(RECIPIENT, "5", usdc_contract_address=USDC)

        assert user_op.target == USDC
        assert user_op.value == 0
        assert user_op.data == encode_erc20_transfer(RECIPIENT, 5_000_000)

    @patch("app.client.broadcaster.check_usdc_balance")
    def test_usdc_payment(self, mock_check):
        mock_check.return_value = {"hasBalance": True, "balance": "10.000000", "required": "5.100000"}
        wallet = FakeWallet()
        broadcaster = PaymasterBroadcaster(wallet, usdc_contract_address=USDC)

        op_hash = broadcaster.initiate("5", "USDC", RECIPIENT)

        assert op_hash == wallet_tx(1)
        assert broadcaster.is_gasless is True
        mock_check.assert_called_once_with(PAYER, "5")
        assert wallet.sent[0]["to"] == USDC

    @patch("app.client.broadcaster.check_usdc_balance")
    def test_insufficient_balance(self, mock_check):
        mock_check.return_value = {"hasBalance": False, "balance": "1.000000", "required": "5.100000"}
        wallet = FakeWallet()

        with pytest.raises(InsufficientBalanceError, match="Insufficient USDC balance"):
            PaymasterBroadcaster(wallet).initiate("5", "USDC", RECIPIENT)
        assert wallet.sent == []

    @patch("app.client.broadcaster.check_usdc_balance")
    def test_balance_check_disabled(self, mock_check):
        wallet = FakeWallet()
        PaymasterBroadcaster(wallet, check_balance=False).initiate("5", "USDC", RECIPIENT)

        mock_check.assert_not_called()
        assert len(wallet.sent) == 1

    def test_eth_not_supported(self):
        with pytest.raises(UnsupportedCurrencyError, match="only support USDC"):
            PaymasterBroadcaster(FakeWallet(), check_balance=False).initiate("1", "ETH", RECIPIENT)


def wallet_tx(n):
    return f"0x{n:064x}"
