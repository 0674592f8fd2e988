"""
ABI helpers for the CCTP v1 contracts.

Only the handful of calls the bridge needs are encoded here:
ERC20 approve, TokenMessenger.depositForBurn and
MessageTransmitter.receiveMessage, plus decoding of the
MessageSent(bytes) event payload.
"""

import re
from typing import Union

from eth_utils import keccak

from ..recovery import ValidationError

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")

APPROVE_SIGNATURE = "approve(address,uint256)"
BALANCE_OF_SIGNATURE = "balanceOf(address)"
DEPOSIT_FOR_BURN_SIGNATURE = "depositForBurn(uint256,uint32,bytes32,address)"
RECEIVE_MESSAGE_SIGNATURE = "receiveMessage(bytes,bytes)"
MESSAGE_SENT_SIGNATURE = "MessageSent(bytes)"


def function_selector(signature: str) -> str:
    """4-byte selector for a function signature, hex without 0x."""
    return keccak(text=signature)[:4].hex()


MESSAGE_SENT_TOPIC = "0x" + keccak(text=MESSAGE_SENT_SIGNATURE).hex()


def is_valid_address(address: str) -> bool:
    return isinstance(address, str) and bool(_ADDRESS_RE.match(address))


def _strip_hex(value: str) -> str:
    return value[2:] if value.startswith(("0x", "0X")) else value


def _to_bytes(value: Union[str, bytes]) -> bytes:
    if isinstance(value, bytes):
        return value
    return bytes.fromhex(_strip_hex(value))


def _encode_uint256(value: int) -> str:
    """Encode a uint256 as a 32-byte hex string (without 0x prefix)."""
    if value < 0 or value >= 2**256:
        raise ValidationError(f"Value out of uint256 range: {value}")
    return format(value, "064x")


def _encode_address(address: str) -> str:
    """Encode an address as a 32-byte hex string (without 0x prefix)."""
    if not is_valid_address(address):
        raise ValidationError(f"Invalid address: {address}", field_name="address")
    return _strip_hex(address).lower().zfill(64)


def _encode_bytes(data: bytes) -> str:
    """Length-prefixed, right-padded tail for a dynamic ``bytes`` argument."""
    padded_len = (len(data) + 31) // 32 * 32
    return _encode_uint256(len(data)) + data.hex().ljust(padded_len * 2, "0")


def address_to_bytes32(address: str) -> str:
    """Left-pad a 20-byte address into a bytes32 (0x-prefixed)."""
    return "0x" + _encode_address(address)


def encode_approve(spender: str, amount: int) -> str:
    return "0x" + function_selector(APPROVE_SIGNATURE) + _encode_address(spender) + _encode_uint256(amount)


def encode_balance_of(owner: str) -> str:
    return "0x" + function_selector(BALANCE_OF_SIGNATURE) + _encode_address(owner)


def encode_deposit_for_burn(
    amount: int,
    destination_domain: int,
    mint_recipient: str,
    burn_token: str,
) -> str:
    """Calldata for ``depositForBurn`` with the recipient padded to bytes32."""
    if destination_domain < 0 or destination_domain >= 2**32:
        raise ValidationError(f"Invalid CCTP domain: {destination_domain}")
    return (
        "0x"
        + function_selector(DEPOSIT_FOR_BURN_SIGNATURE)
        + _encode_uint256(amount)
        + _encode_uint256(destination_domain)
        + _encode_address(mint_recipient)
        + _encode_address(burn_token)
    )


def encode_receive_message(message_bytes: Union[str, bytes], attestation: Union[str, bytes]) -> str:
    """Calldata for ``receiveMessage(bytes message, bytes attestation)``."""
    message = _to_bytes(message_bytes)
    signature = _to_bytes(attestation)

    message_tail = _encode_bytes(message)
    # Head: two offsets, each pointing past the 64-byte head
    message_offset = 64
    attestation_offset = message_offset + len(message_tail) // 2

    return (
        "0x"
        + function_selector(RECEIVE_MESSAGE_SIGNATURE)
        + _encode_uint256(message_offset)
        + _encode_uint256(attestation_offset)
        + message_tail
        + _encode_bytes(signature)
    )


def message_hash(message_bytes: Union[str, bytes]) -> str:
    """keccak256 of the burn message, as used by the attestation service."""
    return "0x" + keccak(_to_bytes(message_bytes)).hex()


def transaction_hash(signed_payload: Union[str, bytes]) -> str:
    """Hash of a signed raw transaction, as reported by the node on submit."""
    return "0x" + keccak(_to_bytes(signed_payload)).hex()


def decode_message_sent(log_data: Union[str, bytes]) -> bytes:
    """Decode the ABI ``bytes`` payload of a MessageSent event."""
    data = _to_bytes(log_data)
    if len(data) < 64:
        raise ValueError("MessageSent data too short")

    offset = int.from_bytes(data[0:32], "big")
    if offset + 32 > len(data):
        raise ValueError("MessageSent offset out of range")

    length = int.from_bytes(data[offset:offset + 32], "big")
    start = offset + 32
    if start + length > len(data):
        raise ValueError("MessageSent length out of range")

    return data[start:start + length]
