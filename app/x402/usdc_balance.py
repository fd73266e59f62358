# app/x402/usdc_balance.py
"""
USDC balance lookups on Base Sepolia.

Before a paymaster send the payer's USDC balance has to cover the payment
plus the gas the paymaster charges in USDC. Balances are read with the
ERC-20 balanceOf call on the USDC contract and cached per address.
"""
import logging
import time
from decimal import Decimal
from typing import Any, Dict, Tuple

import requests
from web3 import Web3
from web3.exceptions import Web3Exception

from app.core.config import settings
from app.x402.erc20 import USDC_DECIMALS, erc20_contract, get_web3

logger = logging.getLogger(__name__)

UNITS_PER_USDC = 10 ** USDC_DECIMALS

# address -> (balance_units, fetched_at)
_balance_cache: Dict[str, Tuple[int, float]] = {}
CACHE_TTL_SECONDS = 60


def units_to_usdc(units: int) -> Decimal:
    """Convert USDC smallest units to USDC."""
    return Decimal(units) / UNITS_PER_USDC


def _get_usdc_balance_from_rpc(address: str) -> int:
    """
    Fetch a USDC balance from the configured RPC endpoint.

    Returns:
        Balance in USDC smallest units

    Raises:
        requests.RequestException: If the RPC endpoint is unreachable
        Web3Exception: If the call fails on chain
        ValueError: If the address is malformed
    """
    usdc = erc20_contract(get_web3(), settings.USDC_CONTRACT_ADDRESS)
    return usdc.functions.balanceOf(Web3.to_checksum_address(address)).call()


def clear_balance_cache() -> None:
    """Clear the balance cache (useful for testing)."""
    _balance_cache.clear()


def get_usdc_balance(address: str) -> int:
    """USDC balance in smallest units, served from cache for CACHE_TTL_SECONDS."""
    cached = _balance_cache.get(address.lower())
    if cached is not None and time.time() - cached[1] <= CACHE_TTL_SECONDS:
        return cached[0]

    balance_units = _get_usdc_balance_from_rpc(address)
    _balance_cache[address.lower()] = (balance_units, time.time())
    logger.debug(f"Fetched USDC balance for {address}: {units_to_usdc(balance_units)} USDC")
    return balance_units


def check_usdc_balance(address: str, payment_amount: str) -> Dict[str, Any]:
    """
    Check whether an address holds enough USDC for a paymaster payment.

    Args:
        address: Payer address
        payment_amount: Payment in USDC, e.g. "1.00"

    Returns:
        Dict containing:
        - hasBalance: bool - balance covers payment plus gas estimate
        - balance: str - balance in USDC, six decimals
        - required: str - payment plus gas estimate, six decimals
        RPC failures report hasBalance=False with balance "0".
    """
    try:
        balance = units_to_usdc(get_usdc_balance(address))
        required = Decimal(payment_amount) + settings.PAYMASTER_GAS_ESTIMATE_USDC

        return {
            "hasBalance": balance >= required,
            "balance": f"{balance:.6f}",
            "required": f"{required:.6f}",
        }

    except (requests.RequestException, Web3Exception, ValueError, ArithmeticError) as e:
        logger.error(f"Failed to check USDC balance: {e}")
        return {
            "hasBalance": False,
            "balance": "0",
            "required": payment_amount,
        }
