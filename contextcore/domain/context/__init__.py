# +-------------------------------+
# |        Durable store          |   (external, key -> JSON string)
# |-------------------------------|
# | context:<session_id>          |
# | rule_effectiveness            |
# +-------------------------------+
#              ^
#              | always written on update, read on cache miss
#              |
# +-------------------------------+
# |        Context store          |   (session lifecycle, per-session lock)
# |-------------------------------|
# | session index                 |
# | compression engine            |
# | extractors / summarizer       |
# +-------------------------------+
#              |
#              v
# +-------------------------------+
# |     Tiered memory manager     |   (in-process, LFU eviction)
# |-------------------------------|
# | short-term (20)               |
# | working    (50)  -> promote   |
# | long-term  (100) -> promote   |
# +-------------------------------+

from .compression import CompressionCodec, CompressionEngine, ZlibCodec
from .context_store import ContextStore, context_key
from .memory.tiered_memory import TieredMemoryManager

__all__ = [
    "CompressionCodec",
    "CompressionEngine",
    "ContextStore",
    "TieredMemoryManager",
    "ZlibCodec",
    "context_key",
]
