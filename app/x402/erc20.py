# app/x402/erc20.py
"""ERC-20 ABI subset used for USDC transfers and balance reads."""
from typing import Optional

from web3 import Web3

from app.core.config import settings

USDC_DECIMALS = 6

ERC20_ABI = [
    {
        "constant": False,
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "value", "type": "uint256"}
        ],
        "name": "transfer",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "constant": True,
        "inputs": [{"name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
]


def get_web3(rpc_url: Optional[str] = None) -> Web3:
    """Web3 client for the configured chain RPC."""
    return Web3(Web3.HTTPProvider(rpc_url or settings.RPC_URL, request_kwargs={"timeout": 10}))


def erc20_contract(web3: Web3, address: Optional[str] = None):
    """
    Contract handle for an ERC-20 token.

    Without an address the handle can only encode calls, which needs no RPC.
    """
    if address is None:
        return web3.eth.contract(abi=ERC20_ABI)
    return web3.eth.contract(address=Web3.to_checksum_address(address), abi=ERC20_ABI)
