"""
ABI encoding utilities for the governance monitor.

Covers only the fixed return shapes used by the monitored contracts. All byte
offsets are measured from the start of the return payload with the ``0x``
prefix stripped; each slot is 32 bytes (64 hex characters).

Decoders are deliberately tolerant: a truncated, empty or non-hex slot decodes
to zero / False / None instead of raising, so a placeholder response from a
misconfigured address degrades to empty values rather than aborting a cycle.
"""

import logging
from decimal import Decimal

from web3 import Web3

# Get logger for this module
logger = logging.getLogger(__name__)

SLOT_SIZE = 32
SLOT_HEX_LENGTH = SLOT_SIZE * 2
SELECTOR_LENGTH = 10  # "0x" + 4 bytes
ADDRESS_HEX_LENGTH = 40
ZERO_ADDRESS = "0x" + "0" * ADDRESS_HEX_LENGTH

# Upper bound on a decoded dynamic string; return data can come from a wrong
# or hostile address and must never drive an unbounded allocation.
MAX_DYNAMIC_STRING_BYTES = 10_000


def strip_hex_prefix(value: str) -> str:
    """Remove a leading ``0x`` marker if present."""
    return value[2:] if value[:2] in ("0x", "0X") else value


def function_selector(signature: str) -> str:
    """
    Compute the 4-byte selector of a canonical function signature.

    Args:
        signature: Canonical signature, e.g. ``"getProposal(uint256)"``

    Returns:
        ``0x``-prefixed selector, 10 characters long
    """
    return Web3.to_hex(Web3.keccak(text=signature)[:4])


def encode_address(address: str) -> str:
    """
    Encode an address as a left-zero-padded 32-byte slot.

    Args:
        address: 20-byte address with or without ``0x`` prefix, any case

    Returns:
        64 lowercase hex characters

    Raises:
        ValueError: If the input is not exactly 20 bytes of hex
    """
    cleaned = strip_hex_prefix(address)
    if len(cleaned) != ADDRESS_HEX_LENGTH:
        raise ValueError(f"Invalid address length: {address!r}")
    try:
        int(cleaned, 16)
    except ValueError:
        raise ValueError(f"Invalid address characters: {address!r}") from None
    return cleaned.lower().rjust(SLOT_HEX_LENGTH, "0")


def encode_uint(value: int, width: int = SLOT_SIZE) -> str:
    """
    Encode an unsigned integer as a big-endian 32-byte slot.

    Args:
        value: Non-negative integer
        width: Width of the Solidity type in bytes (value must fit)

    Returns:
        64 lowercase hex characters

    Raises:
        ValueError: If the value is negative or does not fit in ``width`` bytes
    """
    if value < 0:
        raise ValueError(f"Cannot encode negative value {value} as uint")
    if value.bit_length() > width * 8:
        raise ValueError(f"Value {value} does not fit in uint{width * 8}")
    return format(value, "064x")


def encode_call(selector: str, *arg_slots: str) -> str:
    """Concatenate a selector and already-encoded argument slots."""
    return selector + "".join(arg_slots)


def _slot(hex_data: str, byte_offset: int) -> str | None:
    """Return the 64-char slot at ``byte_offset`` or None when out of range."""
    cleaned = strip_hex_prefix(hex_data or "")
    start = byte_offset * 2
    if byte_offset < 0:
        return None
    if byte_offset == 0 and 0 < len(cleaned) < SLOT_HEX_LENGTH:
        # Short scalar results such as "0x05"
        return cleaned.rjust(SLOT_HEX_LENGTH, "0")
    if len(cleaned) < start + SLOT_HEX_LENGTH:
        return None
    return cleaned[start:start + SLOT_HEX_LENGTH]


def _slot_int(hex_data: str, byte_offset: int) -> int | None:
    slot = _slot(hex_data, byte_offset)
    if slot is None:
        return None
    try:
        return int(slot, 16)
    except ValueError:
        logger.debug(f"Non-hex slot at offset {byte_offset}: {slot!r}")
        return None


def parse_uint(hex_data: str, byte_offset: int = 0, width: int = 8) -> int:
    """
    Read the low ``width`` bytes of the slot at ``byte_offset``.

    The default width of 8 bytes truncates to 64 bits, which is intentional for
    counters and block numbers known to fit. Use
    :func:`parse_uint256_as_fixed_point` for token amounts.

    Returns:
        The narrowed integer, or 0 for an out-of-range or malformed slot
    """
    value = _slot_int(hex_data, byte_offset)
    if value is None:
        return 0
    return value & ((1 << (width * 8)) - 1)


def parse_uint256_as_fixed_point(
    hex_data: str,
    byte_offset: int = 0,
    decimals: int = 18
) -> float:
    """
    Read a full 256-bit slot and scale it down by ``10 ** decimals``.

    The raw value is never truncated before the division, so token supplies
    well above 2**64 base units are preserved.

    Returns:
        Scaled value as float, 0.0 for an out-of-range or malformed slot
    """
    value = _slot_int(hex_data, byte_offset)
    if value is None:
        return 0.0
    return float(Decimal(value).scaleb(-decimals))


def parse_address(hex_data: str, byte_offset: int = 0) -> str:
    """
    Read the low 20 bytes of the slot at ``byte_offset`` as an address.

    Returns:
        Lowercase ``0x``-prefixed address; the zero address for a bad slot
    """
    slot = _slot(hex_data, byte_offset)
    if slot is None:
        return ZERO_ADDRESS
    address = slot[-ADDRESS_HEX_LENGTH:].lower()
    try:
        int(address, 16)
    except ValueError:
        return ZERO_ADDRESS
    return "0x" + address


def parse_optional_address(hex_data: str, byte_offset: int = 0) -> str | None:
    """Like :func:`parse_address` but maps the zero address to None."""
    address = parse_address(hex_data, byte_offset)
    return None if is_zero_address(address) else address


def parse_bool(hex_data: str, byte_offset: int = 0) -> bool:
    """Any non-zero byte in the slot is True."""
    value = _slot_int(hex_data, byte_offset)
    return bool(value)


def parse_dynamic_string(hex_data: str) -> str | None:
    """
    Decode a single ABI-encoded ``string`` return value.

    Layout: a head slot holding the byte offset of the tail, then a length slot
    followed by the UTF-8 bytes.

    Returns:
        The decoded string, or None when the length is zero, exceeds
        ``MAX_DYNAMIC_STRING_BYTES``, overruns the buffer, or is not UTF-8
    """
    cleaned = strip_hex_prefix(hex_data or "")
    pointer = _slot_int(cleaned, 0)
    if pointer is None or pointer * 2 >= len(cleaned):
        return None

    length = _slot_int(cleaned, pointer)
    if not length or length > MAX_DYNAMIC_STRING_BYTES:
        return None

    start = (pointer + SLOT_SIZE) * 2
    end = start + length * 2
    if end > len(cleaned):
        return None

    try:
        return bytes.fromhex(cleaned[start:end]).decode("utf-8")
    except ValueError:
        # Covers both bad hex and UnicodeDecodeError
        return None


def is_zero_address(address: str | None) -> bool:
    """True for None or the all-zero address, compared case-insensitively."""
    if not address:
        return True
    return strip_hex_prefix(address).lower() == "0" * ADDRESS_HEX_LENGTH


def normalize_address(address: str) -> str:
    """Lowercase ``0x``-prefixed form used for comparisons and dedup keys."""
    return "0x" + strip_hex_prefix(address).lower()


def short_address(address: str) -> str:
    """Render an address as ``first6...last4`` for notification bodies."""
    if len(address) < 10:
        return address
    return f"{address[:6]}...{address[-4:]}"
