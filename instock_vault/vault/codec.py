"""
Vault Codec — Blob text layout and record serialization.

Blob layout (all lowercase hex, ``:`` delimited):
    hex(salt 16B) : hex(nonce 12B) : hex(ciphertext + tag 16B)

Records are serialized with orjson using sorted keys, so equal records give
equal bytes.
"""
import re
import math
import base64
import binascii
import logging
from typing import Any, NamedTuple

import orjson
from pydantic import BaseModel, ValidationError

from .config import NONCE_SIZE, SALT_SIZE, TAG_SIZE
from .exceptions import FormatError

logger = logging.getLogger("instock.vault")

DELIMITER = ":"

_BYTES_WRAPPER_KEY = "__vault_bytes_b64__"
_HEX_FIELD = re.compile(r"(?:[0-9a-fA-F]{2})+")


class SealedBlob(NamedTuple):
    salt: bytes
    nonce: bytes
    sealed: bytes


# ---------------------------------------------------------------------------
# Blob
# ---------------------------------------------------------------------------

def encode_blob(salt: bytes, nonce: bytes, sealed: bytes) -> str:
    """Join salt, nonce and sealed payload into the persisted text form.

    Raises:
        ValueError: If a field has the wrong size.
    """
    if len(salt) != SALT_SIZE:
        raise ValueError(f"salt must be {SALT_SIZE} bytes, got {len(salt)}")
    if len(nonce) != NONCE_SIZE:
        raise ValueError(f"nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")
    if len(sealed) < TAG_SIZE:
        raise ValueError(
            f"sealed payload must hold at least the {TAG_SIZE}-byte tag"
        )
    return DELIMITER.join((salt.hex(), nonce.hex(), sealed.hex()))


def _hex_field(name: str, text: str, size: int | None = None) -> bytes:
    if not _HEX_FIELD.fullmatch(text):
        raise FormatError()
    data = binascii.unhexlify(text)
    if size is not None and len(data) != size:
        logger.debug("Vault blob %s field has %d bytes, expected %d", name, len(data), size)
        raise FormatError()
    return data


def decode_blob(blob: str) -> SealedBlob:
    """Split a persisted blob into its salt, nonce and sealed payload.

    Never touches key material, so a structural problem is reported before
    any key derivation happens.

    Raises:
        FormatError: If the blob is not three well-formed hex fields.
    """
    if not isinstance(blob, str):
        raise FormatError()
    fields = blob.strip().split(DELIMITER)
    if len(fields) != 3:
        logger.debug("Vault blob has %d field(s), expected 3", len(fields))
        raise FormatError()
    salt_hex, nonce_hex, sealed_hex = fields
    return SealedBlob(
        salt=_hex_field("salt", salt_hex, SALT_SIZE),
        nonce=_hex_field("nonce", nonce_hex, NONCE_SIZE),
        sealed=_hex_field("ciphertext", sealed_hex),
    )


# ---------------------------------------------------------------------------
# Record serialization
# ---------------------------------------------------------------------------

def _default(obj: Any) -> Any:
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json", by_alias=True, exclude_none=True)
    raise TypeError(f"Type is not serializable: {type(obj).__name__}")


def _reject_non_finite(value: Any) -> None:
    # orjson writes NaN and Infinity as null
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"cannot serialize non-finite float: {value!r}")
    elif isinstance(value, dict):
        for item in value.values():
            _reject_non_finite(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            _reject_non_finite(item)
    elif isinstance(value, BaseModel):
        for _, item in value:
            _reject_non_finite(item)


def encode_record(record: Any) -> bytes:
    """Serialize a record to bytes for sealing.

    Supports: JSON-compatible values, pydantic models and top-level bytes.
    bytes values are wrapped as {"__vault_bytes_b64__": "<base64>"}.

    Args:
        record: Value to serialize.

    Returns:
        orjson-encoded bytes.

    Raises:
        ValueError: If the record holds NaN or an infinite float.
        TypeError: If the record holds a value orjson cannot encode, such
            as an integer outside the 64-bit range.
    """
    if isinstance(record, bytes):
        record = {_BYTES_WRAPPER_KEY: base64.b64encode(record).decode("ascii")}
    _reject_non_finite(record)
    return orjson.dumps(record, default=_default, option=orjson.OPT_SORT_KEYS)


def decode_record(data: bytes, model: type[BaseModel] | None = None) -> Any:
    """Deserialize bytes back to a record.

    Args:
        data: orjson-encoded bytes from encode_record.
        model: Optional pydantic model to validate the decoded value into.

    Returns:
        Original record (or a ``model`` instance).

    Raises:
        FormatError: If the bytes are not valid JSON or do not fit ``model``.
    """
    try:
        parsed = orjson.loads(data)
    except orjson.JSONDecodeError as err:
        raise FormatError() from err
    if isinstance(parsed, dict) and _BYTES_WRAPPER_KEY in parsed and len(parsed) == 1:
        try:
            return base64.b64decode(parsed[_BYTES_WRAPPER_KEY], validate=True)
        except (binascii.Error, TypeError) as err:
            raise FormatError() from err
    if model is not None:
        try:
            return model.model_validate(parsed)
        except ValidationError as err:
            raise FormatError() from err
    return parsed
