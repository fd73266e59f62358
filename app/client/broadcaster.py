# app/client/broadcaster.py
"""
Payment broadcasters: turn a payment challenge into a transaction id.

Two variants share the initiate(amount, currency, destination) contract:

- DirectWalletBroadcaster sends an ordinary transaction from the wallet
  (native transfer for ETH, ERC-20 transfer call for USDC).
- PaymasterBroadcaster is a stub of a gasless (ERC-4337 + paymaster) send.
  It builds a USDC transfer "user operation" but submits it as an ordinary
  wallet transaction; no bundler, EntryPoint or paymaster is involved. The
  id it returns is reported to the server as a userOpHash.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from app.client.wallet import (
    WalletConnection,
    encode_erc20_transfer,
    eth_to_wei,
    usdc_to_units,
)
from app.core.config import settings
from app.x402.usdc_balance import check_usdc_balance

logger = logging.getLogger(__name__)


class BroadcastError(Exception):
    """A payment could not be sent."""


class UnsupportedCurrencyError(BroadcastError):
    pass


class InsufficientBalanceError(BroadcastError):
    pass


class PaymentBroadcaster(ABC):
    """Sends a payment and returns the identifier of what was broadcast."""

    is_gasless = False

    def __init__(self, wallet: WalletConnection):
        self.wallet = wallet

    @property
    def payer_address(self) -> str:
        return self.wallet.address

    @abstractmethod
    def initiate(self, amount: str, currency: str, destination: str) -> str:
        """
        Send `amount` of `currency` to `destination`.

        Returns:
            Transaction hash (direct) or user operation hash (paymaster)

        Raises:
            BroadcastError: For payments this broadcaster cannot make. Wallet
            errors (e.g. the user rejecting the prompt) propagate unchanged.
        """


class DirectWalletBroadcaster(PaymentBroadcaster):

    def __init__(self, wallet: WalletConnection, usdc_contract_address: Optional[str] = None):
        super().__init__(wallet)
        self.usdc_contract_address = usdc_contract_address or settings.USDC_CONTRACT_ADDRESS

    def initiate(self, amount: str, currency: str, destination: str) -> str:
        logger.info(f"x402 payment: {amount} {currency} to {destination}")

        if currency == "ETH":
            return self.wallet.send_transaction(to=destination, value=eth_to_wei(amount))

        if currency == "USDC":
            data = encode_erc20_transfer(destination, usdc_to_units(amount))
            return self.wallet.send_transaction(to=self.usdc_contract_address, value=0, data=data)

        raise UnsupportedCurrencyError(f"Unsupported currency: {currency}")


@dataclass
class UserOperation:
    """Call the smart wallet would execute: target contract, calldata, value."""
    target: str
    data: str
    value: int = 0


def create_usdc_transfer_user_op(
    to: str,
    amount: str,
    usdc_contract_address: Optional[str] = None
) -> UserOperation:
    """User operation transferring `amount` USDC to `to`."""
    return UserOperation(
        target=usdc_contract_address or settings.USDC_CONTRACT_ADDRESS,
        data=encode_erc20_transfer(to, usdc_to_units(amount)),
        value=0,
    )


class PaymasterBroadcaster(PaymentBroadcaster):
    """
    Simulated gasless USDC payment.

    Only USDC is supported. With check_balance the payer must hold the
    payment plus PAYMASTER_GAS_ESTIMATE_USDC before anything is sent.
    """

    is_gasless = True

    def __init__(
        self,
        wallet: WalletConnection,
        usdc_contract_address: Optional[str] = None,
        paymaster_address: Optional[str] = None,
        check_balance: bool = True,
    ):
        super().__init__(wallet)
        self.usdc_contract_address = usdc_contract_address or settings.USDC_CONTRACT_ADDRESS
        self.paymaster_address = paymaster_address or settings.PAYMASTER_ADDRESS
        self.check_balance = check_balance

    def send_user_operation(self, user_op: UserOperation) -> str:
        # Stub: relayed as a plain transaction, not through a bundler
        logger.info(f"Sending user operation via paymaster {self.paymaster_address}: target={user_op.target}")
        return self.wallet.send_transaction(to=user_op.target, value=user_op.value, data=user_op.data)

    def initiate(self, amount: str, currency: str, destination: str) -> str:
        if currency != "USDC":
            raise UnsupportedCurrencyError(f"Paymaster payments only support USDC, got {currency}")

        if self.check_balance:
            balance = check_usdc_balance(self.payer_address, amount)
            if not balance["hasBalance"]:
                raise InsufficientBalanceError(
                    f"Insufficient USDC balance: {balance['balance']} available, "
                    f"{balance['required']} required (payment + gas)"
                )

        user_op = create_usdc_transfer_user_op(destination, amount, self.usdc_contract_address)
        return self.send_user_operation(user_op)
