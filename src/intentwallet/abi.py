"""
Address normalization, ABI call encoding, and order identifiers.

Everything that crosses the wallet boundary as bytes goes through here:
function calldata, the ``(target, payload)`` origin data handed to
``executeIntent``, and the keccak-256 order identifier derived at creation.
"""

from __future__ import annotations

import re
from typing import Any, Sequence

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector, keccak, to_checksum_address

from .errors import InvalidCallDataError


NULL_ADDRESS = "0x0000000000000000000000000000000000000000"

_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
_SIGNATURE_RE = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)\((.*)\)$")

ORIGIN_DATA_TYPES = ("address", "bytes")
ORDER_ID_TYPES = ("uint256", "address", "uint256", "address", "bytes", "uint256")


def normalize_address(address: str) -> str:
    """Normalize an Ethereum address to EIP-55 checksum form."""
    candidate = str(address).strip()
    if candidate.startswith("0X"):
        candidate = "0x" + candidate[2:]
    if not _ADDRESS_RE.match(candidate):
        raise ValueError(f"Invalid Ethereum address: {address}")
    return to_checksum_address(candidate)


def is_null_address(address: str) -> bool:
    return normalize_address(address) == NULL_ADDRESS


def normalize_order_id(value: Any) -> str:
    """Normalize a bytes32 order identifier to ``0x`` + 64 lower-case hex."""
    if isinstance(value, (bytes, bytearray)):
        if len(value) != 32:
            raise ValueError("order_id must be 32 bytes")
        return "0x" + bytes(value).hex()
    if not isinstance(value, str):
        raise ValueError("order_id must be a hex string or 32 bytes")
    candidate = value.strip().lower()
    hex_part = candidate[2:] if candidate.startswith("0x") else candidate
    if len(hex_part) != 64 or any(ch not in "0123456789abcdef" for ch in hex_part):
        raise ValueError("order_id must be 32 bytes (0x + 64 hex chars)")
    return "0x" + hex_part


def parse_signature(signature: str) -> tuple[str, list[str]]:
    """Split ``name(type,...)`` into the function name and its argument types."""
    match = _SIGNATURE_RE.match(signature.replace(" ", ""))
    if match is None:
        raise ValueError(f"Invalid function signature: {signature}")
    name, args = match.groups()
    return name, [t for t in args.split(",") if t]


def selector(signature: str) -> bytes:
    return function_signature_to_4byte_selector(signature.replace(" ", ""))


def encode_call(signature: str, args: Sequence[Any] = ()) -> bytes:
    """Build calldata for ``signature`` with ``args``."""
    _, types = parse_signature(signature)
    return selector(signature) + encode(types, list(args))


def decode_call_args(signature: str, data: bytes) -> tuple[Any, ...]:
    """Decode the argument block of calldata (selector already stripped)."""
    _, types = parse_signature(signature)
    try:
        return tuple(decode(types, data))
    except (DecodingError, ValueError) as exc:
        raise InvalidCallDataError(f"Cannot decode arguments for {signature}: {exc}") from exc


def encode_origin_data(target: str, payload: bytes) -> bytes:
    """Encode the ``(address target, bytes payload)`` pair a settler submits."""
    return encode(list(ORIGIN_DATA_TYPES), [normalize_address(target), bytes(payload)])


def decode_origin_data(origin_data: bytes) -> tuple[str, bytes]:
    try:
        target, payload = decode(list(ORIGIN_DATA_TYPES), bytes(origin_data))
    except (DecodingError, ValueError) as exc:
        raise InvalidCallDataError(f"Cannot decode origin data: {exc}") from exc
    return normalize_address(target), bytes(payload)


def compute_order_id(
    *,
    destination_network_id: int,
    token: str,
    amount: int,
    target: str,
    call_data: bytes,
    created_at: int,
) -> str:
    """Derive the order identifier from the full intent parameter set."""
    encoded = encode(
        list(ORDER_ID_TYPES),
        [
            int(destination_network_id),
            normalize_address(token),
            int(amount),
            normalize_address(target),
            bytes(call_data),
            int(created_at),
        ],
    )
    return "0x" + keccak(encoded).hex()
