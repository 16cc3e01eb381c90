"""
Error types for the Eligibility Attestor

- InvalidInput: malformed address or unknown criterion (client error)
- ChainQueryError: a chain-data lookup failed for one address
- AggregationTimeout: per-address checks did not finish before the deadline
- AttestationUnavailable: generic server-side failure reported to callers
- SigningConfigurationError: signing key missing or invalid (fatal at startup)
"""

from typing import Optional


class AttestorError(Exception):
    """Base class for all attestor errors"""
    pass


class InvalidInput(AttestorError):
    """Raised when request input is rejected before any chain query"""
    pass


class UnknownCriterionError(InvalidInput):
    """Raised when a criterion id is not registered"""

    def __init__(self, criterion_id: str):
        super().__init__(f"Unknown criterion: {criterion_id}")
        self.criterion_id = criterion_id


class ChainQueryError(AttestorError):
    """Raised when a chain-data collaborator fails or returns unparseable data"""

    def __init__(self, message: str, address: Optional[str] = None, chain_id: Optional[int] = None):
        super().__init__(message)
        self.address = address
        self.chain_id = chain_id


class AggregationTimeout(AttestorError):
    """Raised when a multi-wallet check does not complete before its deadline"""
    pass


class AttestationUnavailable(AttestorError):
    """Raised by the service when a request cannot be attested (server error)"""
    pass


class SigningConfigurationError(AttestorError):
    """Raised when the signing key is absent or malformed"""
    pass


class NonCanonicalSignatureError(AttestorError):
    """Raised when a signature's s value is in the upper half of the curve order"""
    pass
