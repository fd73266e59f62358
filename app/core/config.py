# app/core/config.py
import logging
from decimal import Decimal
from typing import Optional
from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()

logger = logging.getLogger(__name__)

PLACEHOLDER_BASE_URL = "http://localhost:3000"
PLACEHOLDER_WALLETCONNECT_PROJECT_ID = "c4f79cc821944d9680842e34466bfbd"


class Settings(BaseSettings):
    PROJECT_NAME: str = "x402 Payment Links"
    API_PREFIX: str = "/api"
    LOG_LEVEL: str = "INFO"

    # Public base URL used to build shareable payment link URLs
    BASE_URL: Optional[str] = None
    WALLETCONNECT_PROJECT_ID: Optional[str] = None

    # Chain settings (Base Sepolia by default)
    NETWORK: str = "base-sepolia"
    RPC_URL: str = "https://sepolia.base.org"
    USDC_CONTRACT_ADDRESS: str = "0x036CbD53842c5426634e7929541eC2318f3dCF7e"
    PAYMASTER_ADDRESS: str = "0x4Fd9098af9ddcB41DA48A1d78F91F1398965addc"
    PAYMASTER_GAS_ESTIMATE_USDC: Decimal = Decimal("0.1")

    # Payment links
    PAYMENT_AMOUNT_TOLERANCE: Decimal = Decimal("0.01")
    DEFAULT_PAYEE_ADDRESS: str = "0xde0B295669a9FD93d5F28D9Ec85E40f4cb697BAe"
    SEED_SAMPLE_DATA: bool = True

    # Audit trail (JSON lines)
    AUDIT_LOG_ENABLED: bool = True
    AUDIT_LOG_PATH: str = "logs/paylinks_audit.jsonl"

    # Command line client
    PAYLINKS_SERVER_URL: str = "http://localhost:8000"
    PAYER_PRIVATE_KEY: Optional[SecretStr] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields from .env
    )

    @property
    def public_base_url(self) -> str:
        """Base URL for shareable links, falling back to a local placeholder."""
        if not self.BASE_URL:
            logger.warning(f"BASE_URL not configured - using placeholder {PLACEHOLDER_BASE_URL}")
            return PLACEHOLDER_BASE_URL
        return self.BASE_URL.rstrip("/")

    @property
    def walletconnect_project_id(self) -> str:
        if not self.WALLETCONNECT_PROJECT_ID:
            logger.warning("WALLETCONNECT_PROJECT_ID not configured - using placeholder")
            return PLACEHOLDER_WALLETCONNECT_PROJECT_ID
        return self.WALLETCONNECT_PROJECT_ID


@lru_cache() # Cache the settings object for performance
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
