from typing import Dict, Any, List, Optional
from datetime import datetime
import structlog

from contextcore.domain.models.records import MetricsRecord
from contextcore.infrastructure.storage.durable_store import StoreGateway

logger = structlog.get_logger(__name__)


def metrics_key(category: str) -> str:
    return f"metrics:{category}"


class MetricsCollector:
    """Collect metrics in memory and persist categorized samples.

    Latency, counter and gauge metrics live only in this instance. Records
    passed to ``record_metrics`` are also appended to ``metrics:<category>``
    in the durable store, both lists capped at ``limit`` entries.
    """

    def __init__(self, gateway: Optional[StoreGateway] = None, limit: int = 100):
        self.gateway = gateway
        self.limit = limit
        self.latencies: Dict[str, List[float]] = {}
        self.counters: Dict[str, int] = {}
        self.gauges: Dict[str, float] = {}
        self.records: Dict[str, List[MetricsRecord]] = {}

    def record_latency(self, operation: str, duration_ms: float, tags: Optional[Dict[str, str]] = None):
        # [count, total, min, max]
        stats = self.latencies.setdefault(operation, [0, 0.0, duration_ms, duration_ms])
        stats[0] += 1
        stats[1] += duration_ms
        stats[2] = min(stats[2], duration_ms)
        stats[3] = max(stats[3], duration_ms)

        logger.debug("latency", operation=operation, duration_ms=duration_ms, tags=tags or {})

    def increment_counter(self, name: str, value: int = 1, tags: Optional[Dict[str, str]] = None):
        self.counters[name] = self.counters.get(name, 0) + value
        logger.debug("counter", name=name, value=value, tags=tags or {})

    def set_gauge(self, name: str, value: float, tags: Optional[Dict[str, str]] = None):
        self.gauges[name] = value
        logger.debug("gauge", name=name, value=value, tags=tags or {})

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Flatten latencies, counters and gauges into one mapping"""

        summary: Dict[str, Any] = {}
        for operation, (count, total, low, high) in self.latencies.items():
            summary[f"latency.{operation}"] = {
                "count": count,
                "avg": total / count,
                "min": low,
                "max": high,
            }

        summary.update(self.counters)
        summary.update(self.gauges)
        return summary

    async def record_metrics(
        self,
        category: str,
        data: Dict[str, Any],
        tags: Optional[List[str]] = None
    ) -> MetricsRecord:
        """Record a categorized sample and persist it"""

        record = MetricsRecord(
            timestamp=datetime.utcnow(),
            category=category,
            data=data,
            tags=tags or []
        )

        category_records = self.records.setdefault(category, [])
        category_records.append(record)
        if len(category_records) > self.limit:
            self.records[category] = category_records[-self.limit:]

        if self.gateway is not None:
            await self.gateway.append_capped(
                metrics_key(category),
                record.model_dump(mode="json"),
                self.limit
            )

        return record

    async def get_metrics(self, category: str, limit: int = 10) -> List[MetricsRecord]:
        """Get the most recent samples for a category"""

        if self.gateway is None:
            return list(self.records.get(category, []))[-limit:]

        stored = await self.gateway.get_json(metrics_key(category), default=[])
        if not isinstance(stored, list):
            return []

        records = []
        for item in stored[-limit:]:
            try:
                records.append(MetricsRecord.model_validate(item))
            except ValueError as e:
                logger.warning("Skipping malformed metrics record", category=category, error=str(e))
        return records
