# app/client/wallet.py
"""
Wallet connection used by the payment broadcasters.

A wallet only has to expose its address and a way to broadcast a
transaction and return its hash. Web3WalletConnection does that with a
local eth_account key and a web3 HTTP provider; tests and other front ends
can pass any object with the same shape.
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import Optional, Protocol

from eth_account import Account
from web3 import Web3

from app.x402.erc20 import USDC_DECIMALS, erc20_contract, get_web3

logger = logging.getLogger(__name__)


class WalletConnection(Protocol):
    address: str

    def send_transaction(self, to: str, value: int = 0, data: Optional[str] = None) -> str:
        ...


def usdc_to_units(amount) -> int:
    """
    Convert a USDC amount to its 6-decimal integer units.

    Raises:
        ValueError: If the amount is not numeric or has more than 6 decimals
    """
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        raise ValueError(f"Invalid USDC amount: {amount!r}")
    units = value.scaleb(USDC_DECIMALS)
    if not units.is_finite() or units != units.to_integral_value():
        raise ValueError(f"Invalid USDC amount: {amount!r}")
    return int(units)


def eth_to_wei(amount) -> int:
    """Convert an ETH amount (decimal string) to wei."""
    try:
        return Web3.to_wei(Decimal(str(amount)), "ether")
    except InvalidOperation:
        raise ValueError(f"Invalid ETH amount: {amount!r}")


def encode_erc20_transfer(to: str, units: int) -> str:
    """Calldata for ERC-20 transfer(to, units) as a 0x-prefixed hex string."""
    token = erc20_contract(Web3())
    return token.encode_abi("transfer", args=[Web3.to_checksum_address(to), units])


class Web3WalletConnection:
    """Signs with a local private key and broadcasts through a web3 provider."""

    def __init__(self, private_key: str, rpc_url: Optional[str] = None, web3: Optional[Web3] = None):
        self.web3 = web3 or get_web3(rpc_url)
        self._account = Account.from_key(private_key)

    @property
    def address(self) -> str:
        return self._account.address

    def send_transaction(self, to: str, value: int = 0, data: Optional[str] = None) -> str:
        """
        Sign and broadcast a transaction.

        Returns:
            The transaction hash, 0x-prefixed
        """
        tx = {
            "from": self.address,
            "to": Web3.to_checksum_address(to),
            "value": value,
            "nonce": self.web3.eth.get_transaction_count(self.address),
            "chainId": self.web3.eth.chain_id,
            "gasPrice": self.web3.eth.gas_price,
        }
        if data:
            tx["data"] = data
        tx["gas"] = self.web3.eth.estimate_gas(tx)

        signed = self._account.sign_transaction(tx)
        tx_hash = Web3.to_hex(self.web3.eth.send_raw_transaction(signed.raw_transaction))
        logger.info(f"Broadcast transaction {tx_hash} from {self.address} to {to}")
        return tx_hash
