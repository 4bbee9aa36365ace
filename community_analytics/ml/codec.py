"""
Binary encoding of model parameters.

Layout: a 4-byte big-endian payload length followed by the canonical JSON
(sorted keys, no whitespace) of the parameters in UTF-8. The database keeps
the base64 text of that blob.
"""

import base64
import binascii
import json
import struct

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from community_analytics.ml.schemas import ModelParams


HEADER = struct.Struct(">I")

_params_adapter: TypeAdapter[ModelParams] = TypeAdapter(ModelParams)


class ModelDataError(ValueError):
    """Raised when stored model data cannot be decoded."""


def encode_params(params: ModelParams) -> bytes:
    payload = json.dumps(
        params.model_dump(mode="json"),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")
    return HEADER.pack(len(payload)) + payload


def decode_params(blob: bytes) -> ModelParams:
    if len(blob) < HEADER.size:
        raise ModelDataError("Model data is shorter than its header")

    (length,) = HEADER.unpack_from(blob)
    payload = blob[HEADER.size :]
    if len(payload) != length:
        raise ModelDataError(
            f"Model data length mismatch: header says {length}, "
            f"payload has {len(payload)}"
        )

    try:
        return _params_adapter.validate_json(payload)
    except PydanticValidationError as e:
        raise ModelDataError(f"Invalid model parameters: {e}") from e


def params_to_text(params: ModelParams) -> str:
    return base64.b64encode(encode_params(params)).decode("ascii")


def params_from_text(data: str) -> ModelParams:
    try:
        blob = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ModelDataError(f"Model data is not valid base64: {e}") from e
    return decode_params(blob)
