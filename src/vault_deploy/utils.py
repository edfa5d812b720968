"""Utility functions for hex handling and log-friendly serialisation."""

import json
from collections.abc import Mapping, Sequence
from typing import Any

from hexbytes import HexBytes

from .exceptions import InvalidAddress, InvalidBytes32

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


def maybe_add_0x_prefix(value: str) -> str:
    """Return ``value`` with a single leading ``0x``."""
    if value.startswith("0x"):
        return value
    return "0x" + value


def maybe_remove_0x_prefix(value: str) -> str:
    """Return ``value`` without its leading ``0x``."""
    if value.startswith("0x"):
        return value[2:]
    return value


def _as_hex_text(value: str | bytes) -> str:
    if isinstance(value, bytes | bytearray):
        return HexBytes(value).hex().removeprefix("0x")
    return maybe_remove_0x_prefix(value)


def address_to_bytes32(address: str | bytes) -> str:
    """Left-pad a 20-byte address to a 0x-prefixed 32-byte word."""
    hex_text = _as_hex_text(address)
    if len(hex_text) != 40 or not _HEX_DIGITS.issuperset(hex_text):
        raise InvalidAddress(address)
    return "0x" + hex_text.rjust(64, "0")


def bytes32_to_address(word: str | bytes) -> str:
    """Take the low 20 bytes of a 32-byte word as a 0x-prefixed address."""
    hex_text = _as_hex_text(word)
    if len(hex_text) != 64 or not _HEX_DIGITS.issuperset(hex_text):
        raise InvalidBytes32(word)
    return "0x" + hex_text[24:]


def hex_equal(a: str | bytes | None, b: str | bytes | None) -> bool:
    """Compare two hex values case-insensitively, ignoring the 0x prefix."""
    if a is None or b is None:
        return a is b
    return _as_hex_text(a).lower() == _as_hex_text(b).lower()


def serialise_receipt(receipt: Any) -> Any:
    """Serialise web3 receipt objects into JSON-friendly structures."""
    if receipt is None:
        return None
    if isinstance(receipt, Mapping):
        return {key: serialise_receipt(value) for key, value in receipt.items()}
    if isinstance(receipt, Sequence) and not isinstance(
        receipt, str | bytes | bytearray | HexBytes
    ):
        return [serialise_receipt(item) for item in receipt]
    if isinstance(receipt, bytes | bytearray | HexBytes):
        return HexBytes(receipt).to_0x_hex()
    return receipt


def stringify(value: Any) -> str:
    """Render receipts, decoded structs and nested values as compact JSON."""
    return json.dumps(serialise_receipt(value), default=str)
