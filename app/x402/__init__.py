"""
x402 Payment Required support for payment links and file downloads.

Key components:
- challenge: building and parsing 402 responses with X-402-* headers
- audit: JSON lines audit trail of challenges and confirmations
- usdc_balance: USDC balance lookups used before paymaster sends

Configuration is loaded from environment variables via app.core.config.
"""

__version__ = "0.1.0"
