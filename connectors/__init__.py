"""
connectors — OAuth connection lifecycle for external services.

Provides:
  • OAuth 1.0a handshakes (request token → consent → verifier exchange)
  • A short-lived, capacity-bounded handshake session cache
  • Per-principal credential storage with Fernet encryption at rest
  • Status reconciliation against the host's active settings
  • Revocation / disconnect

Each provider (Twitter/X, …) is a subclass of BaseConnector.
"""
