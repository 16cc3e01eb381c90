"""
Value types shared by the attestor components

Addresses compare case-insensitively; everything here is immutable once built.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Iterable, Optional, Tuple

from eth_utils import is_hex_address, to_checksum_address, decode_hex

from errors import InvalidInput

ETHEREUM_MAINNET = 1
BASE_MAINNET = 8453

DEFAULT_MAX_SECONDARY_ADDRESSES = 10


@dataclass(frozen=True)
class Address:
    """20-byte account identifier, stored as lowercase hex"""
    hex: str

    @classmethod
    def parse(cls, value: str) -> "Address":
        """Parse a 0x-prefixed hex address (checksum is not validated)"""
        if not isinstance(value, str):
            raise InvalidInput(f"Invalid address provided: {value!r}")
        candidate = value.strip()
        if not candidate.startswith(('0x', '0X')) or not is_hex_address(candidate):
            raise InvalidInput(f"Invalid address provided: {value!r}")
        return cls('0x' + candidate[2:].lower())

    @property
    def checksum(self) -> str:
        return to_checksum_address(self.hex)

    def to_bytes(self) -> bytes:
        return decode_hex(self.hex)

    def __str__(self) -> str:
        return self.checksum


@dataclass(frozen=True)
class EligibilityResult:
    eligible: bool
    auxiliary: Optional[str] = None


@dataclass(frozen=True)
class Attestation:
    """The exact tuple that gets ABI-encoded, hashed and signed"""
    subject: Address
    eligible: bool
    auxiliary_digest: bytes

    def __post_init__(self):
        if len(self.auxiliary_digest) != 32:
            raise ValueError(f"auxiliary_digest must be 32 bytes, got {len(self.auxiliary_digest)}")


@dataclass(frozen=True)
class EligibilityRequest:
    criterion_id: str
    primary: Address
    secondary: Tuple[Address, ...] = field(default_factory=tuple)

    @classmethod
    def build(cls, criterion_id: str, primary: str, secondary: Optional[Iterable[str]] = None,
              max_secondary: int = DEFAULT_MAX_SECONDARY_ADDRESSES) -> "EligibilityRequest":
        """
        Validate raw address strings and build a request.

        Secondary addresses are deduplicated case-insensitively in the order given,
        and the primary address is dropped from them.
        """
        primary_address = Address.parse(primary)

        seen = {primary_address}
        ordered = []
        for raw in secondary or []:
            if isinstance(raw, str) and not raw.strip():
                continue
            address = Address.parse(raw)
            if address in seen:
                continue
            seen.add(address)
            ordered.append(address)

        if len(ordered) > max_secondary:
            raise InvalidInput(f"Too many secondary addresses: {len(ordered)} (max {max_secondary})")

        return cls(criterion_id=criterion_id, primary=primary_address, secondary=tuple(ordered))

    @property
    def addresses(self) -> Tuple[Address, ...]:
        """Primary first, then secondary addresses in request order"""
        return (self.primary,) + self.secondary


@dataclass(frozen=True)
class AttestationResponse:
    criterion_id: str
    subject: Address
    result: EligibilityResult
    signature: bytes

    @property
    def eligible(self) -> bool:
        return self.result.eligible

    @property
    def auxiliary(self) -> Optional[str]:
        return self.result.auxiliary

    def to_dict(self) -> Dict[str, Any]:
        """Response body in the shape on-chain minting frontends expect"""
        body: Dict[str, Any] = {"mint_eligibility": self.result.eligible}
        if self.result.auxiliary is not None:
            body["data"] = self.result.auxiliary
        body["signature"] = '0x' + self.signature.hex()
        return body


def parse_address_list(raw: Optional[str]) -> list:
    """Split a comma-separated address parameter into trimmed strings"""
    if not raw:
        return []
    return [part.strip() for part in raw.split(',') if part.strip()]
