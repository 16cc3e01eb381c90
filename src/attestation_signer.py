#!/usr/bin/env python3
"""
Attestation Signer

Turns an eligibility decision into a compact signature a consuming contract
can check with ecrecover:

1. Derive a 32-byte auxiliary digest from the optional data value
2. ABI-encode (address subject, bool eligible, bytes32 auxiliaryDigest)
3. keccak256 the encoding and wrap it in the personal-message prefix
4. Sign, then fold the recovery id into the top bit of s (64-byte output)

The encoding layout and the 64-byte packing are the wire contract of the
verifying contract. Any change needs a new SIGNATURE_VERSION.
"""

import logging
import re
from typing import Optional, Union

from eth_abi import encode
from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError as KeyValidationError
from eth_utils import keccak, decode_hex

from attest_types import Address, Attestation
from errors import SigningConfigurationError, NonCanonicalSignatureError, InvalidInput

logger = logging.getLogger(__name__)

SIGNATURE_VERSION = 1
SIGNATURE_LENGTH = 64

ATTESTATION_ABI_TYPES = ['address', 'bool', 'bytes32']

# EIP-191 personal_sign prefix for a 32-byte payload
PERSONAL_MESSAGE_PREFIX = b"\x19Ethereum Signed Message:\n32"

SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
SECP256K1_HALF_N = SECP256K1_N // 2

S_FLAG_BIT = 1 << 255
S_MASK = S_FLAG_BIT - 1

_DECIMAL_NUMERAL = re.compile(r"[0-9]+")
_UINT256_MAX = (1 << 256) - 1


def auxiliary_digest(auxiliary: Optional[str]) -> bytes:
    """
    Map an optional auxiliary value onto exactly 32 bytes.

    Absent or empty values encode as zero, plain decimal numerals that fit in
    256 bits are right-aligned big-endian, anything else is keccak256-hashed.
    """
    if auxiliary is None or auxiliary == '':
        return b'\x00' * 32

    if _DECIMAL_NUMERAL.fullmatch(auxiliary):
        value = int(auxiliary)
        if value <= _UINT256_MAX:
            return value.to_bytes(32, byteorder='big')

    return keccak(text=auxiliary)


def build_attestation(subject: Address, eligible: bool, auxiliary: Optional[str] = None) -> Attestation:
    return Attestation(subject=subject, eligible=bool(eligible), auxiliary_digest=auxiliary_digest(auxiliary))


def encode_attestation(attestation: Attestation) -> bytes:
    """ABI-encode an attestation as (address, bool, bytes32)"""
    return encode(
        ATTESTATION_ABI_TYPES,
        [attestation.subject.checksum, attestation.eligible, attestation.auxiliary_digest]
    )


def attestation_hash(attestation: Attestation) -> bytes:
    return keccak(encode_attestation(attestation))


def signing_hash(attestation: Attestation) -> bytes:
    """Personal-message hash of the attestation hash (what actually gets signed)"""
    return keccak(PERSONAL_MESSAGE_PREFIX + attestation_hash(attestation))


def pack_signature(v: int, r: int, s: int) -> bytes:
    """
    Pack a recoverable signature into 64 bytes: r || s, with the top bit of s
    set when the recovery id is odd (v == 28).
    """
    if s > SECP256K1_HALF_N:
        # the flag bit would collide with a high s; needs protocol review, do not normalise here
        raise NonCanonicalSignatureError("Signature s value is not in canonical low-s form")

    if v not in (0, 1):
        raise ValueError(f"Recovery id must be 0 or 1, got {v}")

    packed_s = s | S_FLAG_BIT if v != 0 else s
    return r.to_bytes(32, byteorder='big') + packed_s.to_bytes(32, byteorder='big')


def unpack_signature(signature: bytes) -> keys.Signature:
    """Reverse pack_signature into an eth_keys Signature (v in {0, 1})"""
    if len(signature) != SIGNATURE_LENGTH:
        raise InvalidInput(f"Signature must be {SIGNATURE_LENGTH} bytes, got {len(signature)}")

    r = int.from_bytes(signature[:32], byteorder='big')
    packed_s = int.from_bytes(signature[32:], byteorder='big')
    v = 1 if packed_s & S_FLAG_BIT else 0
    try:
        return keys.Signature(vrs=(v, r, packed_s & S_MASK))
    except KeyValidationError as e:
        raise InvalidInput(f"Signature components out of range: {e}")


def recover_signer(subject: Address, eligible: bool, auxiliary: Optional[str], signature: bytes) -> str:
    """
    Recover the checksum address that produced a packed signature, the same way
    the verifying contract does with ecrecover
    """
    attestation = build_attestation(subject, eligible, auxiliary)
    sig = unpack_signature(signature)
    try:
        public_key = sig.recover_public_key_from_msg_hash(signing_hash(attestation))
    except (BadSignature, KeyValidationError, ValueError) as e:
        raise InvalidInput(f"Could not recover signer from signature: {e}")
    return public_key.to_checksum_address()


class AttestationSigner:
    """Signs attestations with a single key injected at construction"""

    def __init__(self, private_key: Union[str, bytes]):
        if not private_key:
            raise SigningConfigurationError("Signing private key is not configured")

        try:
            key_bytes = decode_hex(private_key) if isinstance(private_key, str) else bytes(private_key)
            if not 0 < int.from_bytes(key_bytes, byteorder='big') < SECP256K1_N:
                raise ValueError("private key out of range")
            self._private_key = keys.PrivateKey(key_bytes)
        except (KeyValidationError, ValueError, TypeError) as e:
            raise SigningConfigurationError(f"Signing private key is malformed: {type(e).__name__}")

        self.address = self._private_key.public_key.to_checksum_address()
        logger.info(f"Attestation signer ready: {self.address}")

    def __repr__(self) -> str:
        return f"AttestationSigner(address={self.address})"

    def sign_attestation(self, attestation: Attestation) -> bytes:
        msg_hash = signing_hash(attestation)
        signature = self._private_key.sign_msg_hash(msg_hash)
        packed = pack_signature(signature.v, signature.r, signature.s)
        logger.debug(f"Signed attestation for {attestation.subject} (eligible={attestation.eligible}, v={signature.v + 27})")
        return packed

    def sign(self, subject: Address, eligible: bool, auxiliary: Optional[str] = None) -> bytes:
        """Sign (subject, eligible, auxiliary) and return the 64-byte packed signature"""
        return self.sign_attestation(build_attestation(subject, eligible, auxiliary))
