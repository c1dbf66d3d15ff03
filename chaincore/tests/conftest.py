"""
Test configuration for chaincore tests.

The runtime metadata fixture is a V14 blob written byte by byte with a small
SCALE writer. It carries the slice of a CESS runtime the registration flow
reads: System.Account, System.Events, the Balances calls and errors, and
the events they emit.
"""

from __future__ import annotations

import pytest

ALICE_PUBKEY = "d43593c715fdd31c61141abd04a99fd6822c8558854ccde39a5684e7a56da27d"
ALICE_ADDRESS = "5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY"

SYSTEM_INDEX = 0
BALANCES_INDEX = 5
INSUFFICIENT_BALANCE = 2


@pytest.fixture
def alice_pubkey() -> bytes:
    return bytes.fromhex(ALICE_PUBKEY)


@pytest.fixture
def alice_address() -> str:
    return ALICE_ADDRESS


# SCALE primitives


def compact(n: int) -> bytes:
    if n < 1 << 6:
        return bytes([n << 2])
    if n < 1 << 14:
        return ((n << 2) | 0b01).to_bytes(2, "little")
    return ((n << 2) | 0b10).to_bytes(4, "little")


def u32(n: int) -> bytes:
    return n.to_bytes(4, "little")


def u128(n: int) -> bytes:
    return n.to_bytes(16, "little")


def text(s: str) -> bytes:
    data = s.encode()
    return compact(len(data)) + data


def vec(items: list[bytes]) -> bytes:
    return compact(len(items)) + b"".join(items)


def option(item: bytes | None) -> bytes:
    return b"\x00" if item is None else b"\x01" + item


# Portable registry

PRIMITIVES = ("bool", "char", "str", "u8", "u16", "u32", "u64", "u128")


def field(type_id: int, name: str | None = None) -> bytes:
    return option(text(name) if name else None) + compact(type_id) + option(None) + vec([])


def variant(name: str, index: int, fields: list[bytes] | None = None, docs=()) -> bytes:
    return text(name) + vec(fields or []) + bytes([index]) + vec([text(d) for d in docs])


def composite(*fields: bytes) -> bytes:
    return b"\x00" + vec(list(fields))


def variants(*items: bytes) -> bytes:
    return b"\x01" + vec(list(items))


def sequence(type_id: int) -> bytes:
    return b"\x02" + compact(type_id)


def array(length: int, type_id: int) -> bytes:
    return b"\x03" + u32(length) + compact(type_id)


def primitive(name: str) -> bytes:
    return b"\x05" + bytes([PRIMITIVES.index(name)])


def compact_of(type_id: int) -> bytes:
    return b"\x06" + compact(type_id)


def portable_type(type_id: int, definition: bytes, path=()) -> bytes:
    return compact(type_id) + vec([text(p) for p in path]) + vec([]) + definition + vec([])


REGISTRY = [
    (0, primitive("u8"), ()),
    (1, primitive("u32"), ()),
    (2, primitive("u128"), ()),
    (3, array(32, 0), ()),
    (4, composite(field(3)), ()),
    (5, compact_of(2), ()),
    (
        6,
        variants(
            variant("transfer_allow_death", 0, [field(4, "dest"), field(5, "value")]),
            variant("transfer_keep_alive", 3, [field(4, "dest"), field(5, "value")]),
        ),
        (),
    ),
    (7, array(4, 0), ()),
    (8, composite(field(0, "index"), field(7, "error")), ()),
    (
        9,
        variants(
            variant("Other", 0),
            variant("CannotLookup", 1),
            variant("BadOrigin", 2),
            variant("Module", 3, [field(8)]),
        ),
        (),
    ),
    (
        10,
        variants(
            variant("ExtrinsicSuccess", 0),
            variant("ExtrinsicFailed", 1, [field(9, "dispatch_error")]),
        ),
        (),
    ),
    (
        11,
        variants(
            variant("Transfer", 2, [field(4, "from"), field(4, "to"), field(2, "amount")]),
        ),
        (),
    ),
    (
        12,
        variants(
            variant("System", SYSTEM_INDEX, [field(10)]),
            variant("Balances", BALANCES_INDEX, [field(11)]),
        ),
        ("cess_node_runtime", "RuntimeEvent"),
    ),
    (
        13,
        variants(
            variant("ApplyExtrinsic", 0, [field(1)]),
            variant("Finalization", 1),
            variant("Initialization", 2),
        ),
        (),
    ),
    (14, sequence(3), ()),
    (
        15,
        composite(field(13, "phase"), field(12, "event"), field(14, "topics")),
        ("frame_system", "EventRecord"),
    ),
    (16, sequence(15), ()),
    (
        17,
        variants(
            variant("VestingBalance", 0, docs=["Vesting balance too high to send value."]),
            variant("LiquidityRestrictions", 1, docs=["Account liquidity restrictions."]),
            variant(
                "InsufficientBalance", INSUFFICIENT_BALANCE, docs=["Balance too low to send value."]
            ),
        ),
        (),
    ),
    (
        18,
        composite(
            field(2, "free"), field(2, "reserved"), field(2, "frozen"), field(2, "flags")
        ),
        (),
    ),
    (
        19,
        composite(
            field(1, "nonce"),
            field(1, "consumers"),
            field(1, "providers"),
            field(1, "sufficients"),
            field(18, "data"),
        ),
        (),
    ),
    (20, sequence(0), ()),
]

ACCOUNT_INFO_TYPE = 19
EVENT_RECORDS_TYPE = 16
EXTRINSIC_TYPE = 20
BLAKE2_128_CONCAT = 2
MODIFIER_DEFAULT = 1


def storage_entry(name: str, entry_type: bytes, default: bytes) -> bytes:
    modifier = bytes([MODIFIER_DEFAULT])
    return text(name) + modifier + entry_type + compact(len(default)) + default + vec([])


def pallet(name, index, storage=None, calls=None, event=None, error=None) -> bytes:
    def type_ref(type_id):
        return None if type_id is None else compact(type_id)

    return (
        text(name)
        + option(storage)
        + option(type_ref(calls))
        + option(type_ref(event))
        + vec([])
        + option(type_ref(error))
        + bytes([index])
    )


def build_metadata() -> str:
    account_entry = storage_entry(
        "Account",
        b"\x01" + vec([bytes([BLAKE2_128_CONCAT])]) + compact(4) + compact(ACCOUNT_INFO_TYPE),
        bytes(80),
    )
    events_entry = storage_entry("Events", b"\x00" + compact(EVENT_RECORDS_TYPE), b"\x00")
    pallets = [
        pallet(
            "System",
            SYSTEM_INDEX,
            storage=text("System") + vec([account_entry, events_entry]),
            event=10,
        ),
        pallet("Balances", BALANCES_INDEX, calls=6, event=11, error=17),
    ]
    extrinsic = compact(EXTRINSIC_TYPE) + bytes([4]) + vec([])
    types = vec([portable_type(*entry) for entry in REGISTRY])
    blob = b"meta" + bytes([14]) + types + vec(pallets) + extrinsic + compact(12)
    return "0x" + blob.hex()


@pytest.fixture(scope="session")
def metadata_hex() -> str:
    return build_metadata()


def encode_account_info(free: int, reserved: int = 0, nonce: int = 0) -> str:
    """SCALE-encode an AccountInfo with the given balances."""
    header = u32(nonce) + u32(0) + u32(1) + u32(0)
    data = u128(free) + u128(reserved) + u128(0) + u128(0)
    return "0x" + (header + data).hex()


@pytest.fixture
def account_info_hex():
    return encode_account_info


def event_record(phase: bytes, pallet_index: int, event_index: int, fields: bytes = b"") -> bytes:
    return phase + bytes([pallet_index, event_index]) + fields + vec([])


def apply_extrinsic(index: int) -> bytes:
    return b"\x00" + u32(index)


FINALIZATION = b"\x01"


@pytest.fixture
def events_hex() -> str:
    """System.Events for a block with one transfer and one failed extrinsic."""
    module_error = b"\x03" + bytes([BALANCES_INDEX]) + bytes([INSUFFICIENT_BALANCE, 0, 0, 0])
    records = [
        event_record(
            apply_extrinsic(1),
            BALANCES_INDEX,
            2,
            b"\x01" * 32 + b"\x02" * 32 + u128(3 * 10**18),
        ),
        event_record(apply_extrinsic(1), SYSTEM_INDEX, 0),
        event_record(apply_extrinsic(2), SYSTEM_INDEX, 1, module_error),
        event_record(FINALIZATION, SYSTEM_INDEX, 0),
    ]
    return "0x" + vec(records).hex()
