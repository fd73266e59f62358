# app/api/endpoints/wallet.py
from fastapi import APIRouter
import logging

from app.api.models.wallet import WalletConfigResponse
from app.core.config import settings

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/wallet/config", response_model=WalletConfigResponse)
async def get_wallet_config() -> WalletConfigResponse:
    """
    Get the chain and contract settings wallets should use.

    Returns:
        WalletConfigResponse: Network, RPC endpoint, USDC and paymaster
        contract addresses and the WalletConnect project id (placeholder when
        not configured)
    """
    logger.info(f"Wallet config requested for network {settings.NETWORK}")
    return WalletConfigResponse(
        network=settings.NETWORK,
        rpcUrl=settings.RPC_URL,
        usdcContractAddress=settings.USDC_CONTRACT_ADDRESS,
        paymasterAddress=settings.PAYMASTER_ADDRESS,
        walletConnectProjectId=settings.walletconnect_project_id,
    )
