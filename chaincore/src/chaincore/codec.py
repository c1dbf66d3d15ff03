"""
SS58 addresses, storage keys and extrinsic hashes.

Address checksums and network prefixes are handled by scalecodec; this
module only narrows them to 32-byte account ids.
"""

from __future__ import annotations

import hashlib

from scalecodec.utils import ss58

from chaincore.constants import ACCOUNT_ID_LENGTH, SYSTEM_ACCOUNT_PREFIX


class AddressError(ValueError):
    pass


def blake2_256(data: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=32).digest()


def blake2_128_concat(data: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=16).digest() + data


def ss58_decode(address: str) -> tuple[int, bytes]:
    """
    Decode an SS58 address into (network format, account id).

    Also accepts a 0x-prefixed hex account id, returned with format -1.

    Raises:
        AddressError: On bad encoding, length or checksum
    """
    if address.startswith("0x"):
        try:
            account_id = bytes.fromhex(address[2:])
        except ValueError as e:
            raise AddressError(f"Invalid hex account id: {address}") from e
        ss58_format = -1
    else:
        try:
            account_id = bytes.fromhex(ss58.ss58_decode(address))
            ss58_format = ss58.get_ss58_format(address)
        except (ValueError, IndexError) as e:
            raise AddressError(f"Invalid SS58 address {address!r}: {e}") from e

    if len(account_id) != ACCOUNT_ID_LENGTH:
        raise AddressError(f"Account id must be {ACCOUNT_ID_LENGTH} bytes, got {len(account_id)}")
    return ss58_format, account_id


def ss58_encode(account_id: bytes, ss58_format: int = 42) -> str:
    if len(account_id) != ACCOUNT_ID_LENGTH:
        raise AddressError(f"Account id must be {ACCOUNT_ID_LENGTH} bytes")
    try:
        return ss58.ss58_encode(account_id, ss58_format=ss58_format)
    except ValueError as e:
        raise AddressError(f"Invalid SS58 format {ss58_format}: {e}") from e


def system_account_key(address: str) -> str:
    """Storage key of System.Account for an address (hex, 0x-prefixed)."""
    _, account_id = ss58_decode(address)
    return "0x" + SYSTEM_ACCOUNT_PREFIX + blake2_128_concat(account_id).hex()


def extrinsic_hash(extrinsic_hex: str) -> str:
    return "0x" + blake2_256(bytes.fromhex(extrinsic_hex.removeprefix("0x"))).hex()
