"""
TrustLayer Credentials API - relayer between Aleo credentials and the EVM hook.

Provides REST endpoints for:
- Querying credential state on Aleo (issued / revoked / approved issuers)
- Verifying prove_tier transactions
- Registering and revoking traders on the TrustLayerHook contract
- Issuer/admin actions backed by the snarkos CLI
"""

__version__ = "0.1.0"
