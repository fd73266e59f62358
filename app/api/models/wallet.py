# app/api/models/wallet.py
from pydantic import BaseModel


class WalletConfigResponse(BaseModel):
    """
    Settings a browser or CLI wallet needs to pay this server.
    """
    network: str
    rpcUrl: str
    usdcContractAddress: str
    paymasterAddress: str
    walletConnectProjectId: str
