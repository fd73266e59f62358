"""
Client for paying x402 challenges and payment links.

- wallet: wallet connection protocol, web3-backed implementation, calldata helpers
- broadcaster: direct wallet and (stubbed) paymaster payment broadcasters
- orchestrator: X402Client driving the request, pay, confirm, re-request flow
"""
