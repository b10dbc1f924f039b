"""
Size-adaptive compression for persisted context payloads.

The level is picked from the serialized size alone; the codec decides what
each level means. Compression that does not shrink the payload is discarded.
"""

from typing import Any, Dict, Protocol, Union
import base64
import binascii
import json
import zlib

import structlog

from contextcore.domain.models.context import Context, ContextData, ContextMetadata

logger = structlog.get_logger(__name__)


class CompressionCodec(Protocol):
    """Reversible string codec addressed by compression level (1..3)"""

    def encode(self, text: str, level: int) -> str:
        ...

    def decode(self, blob: str, level: int) -> str:
        ...


class ZlibCodec:
    """zlib deflate rendered as base64 text so blobs stay JSON-safe"""

    LEVELS = {1: 1, 2: 6, 3: 9}

    def encode(self, text: str, level: int) -> str:
        raw = zlib.compress(text.encode("utf-8"), self.LEVELS[level])
        return base64.b64encode(raw).decode("ascii")

    def decode(self, blob: str, level: int) -> str:
        raw = base64.b64decode(blob.encode("ascii"), validate=True)
        return zlib.decompress(raw).decode("utf-8")


def serialize_payload(data: Union[ContextData, Dict[str, Any]]) -> str:
    """Compact JSON rendering used for both sizing and encoding"""

    if isinstance(data, ContextData):
        data = data.model_dump(mode="json")
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False, default=str)


class CompressionEngine:
    """Decides whether and how to shrink a context before persistence"""

    def __init__(
        self,
        codec: CompressionCodec = None,
        min_size: int = 1000,
        medium_size: int = 10000,
        high_size: int = 50000
    ):
        self.codec = codec or ZlibCodec()
        self.min_size = min_size
        self.medium_size = medium_size
        self.high_size = high_size

    def select_level(self, size: int) -> int:
        """Map a serialized size to a compression level"""

        if size < self.min_size:
            return 0
        if size < self.medium_size:
            return 1
        if size < self.high_size:
            return 2
        return 3

    def compress(self, data: Union[ContextData, Dict[str, Any]], level: int) -> Union[Dict[str, Any], str]:
        """Encode a payload at ``level``; level 0 returns it unchanged"""

        if level == 0:
            return data
        return self.codec.encode(serialize_payload(data), level)

    def decompress(self, data: Any, level: int) -> Any:
        """Invert ``compress``; malformed input yields an empty object"""

        if level == 0:
            return data

        try:
            return json.loads(self.codec.decode(data, level))
        except (binascii.Error, zlib.error, UnicodeError, ValueError, TypeError, AttributeError, KeyError) as e:
            logger.warning("Failed to decompress context payload", level=level, error=str(e))
            return {}

    def compress_if_needed(self, context: Context) -> Context:
        """Return a copy of ``context`` encoded for persistence"""

        if context.is_compressed:
            return context

        payload = serialize_payload(context.data)
        original_size = len(payload)
        level = self.select_level(original_size)

        if level > 0:
            blob = self.codec.encode(payload, level)
            compressed_size = len(blob)
            if compressed_size < original_size:
                return self._with_encoding(context, blob, level, original_size, compressed_size)

            logger.debug(
                "Compression did not reduce payload",
                session_id=context.session_id,
                level=level,
                original_size=original_size,
                compressed_size=compressed_size
            )

        return self._with_encoding(context, context.data, 0, original_size, original_size)

    def decompress_context(self, context: Context) -> Context:
        """Return a copy of ``context`` with decoded data and level 0"""

        if not context.is_compressed:
            return context

        level = context.metadata.compression_level
        decoded = self.decompress(context.data, level)
        try:
            data = ContextData.model_validate(decoded)
        except ValueError as e:
            logger.warning("Decoded context payload is invalid", session_id=context.session_id, error=str(e))
            data = ContextData()

        return context.model_copy(update={"data": data, "metadata": self.decoded_metadata(context.metadata)})

    @staticmethod
    def decoded_metadata(metadata: ContextMetadata) -> ContextMetadata:
        """Metadata for the decoded form: level 0 and no size reduction"""

        return metadata.model_copy(update={
            "compression_level": 0,
            "compressed_size": metadata.original_size,
        })

    @staticmethod
    def _with_encoding(context: Context, data, level: int, original_size: int, compressed_size: int) -> Context:
        metadata = context.metadata.model_copy(update={
            "compression_level": level,
            "original_size": original_size,
            "compressed_size": compressed_size,
        })
        return context.model_copy(update={"data": data, "metadata": metadata})
