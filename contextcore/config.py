from typing import Any, Dict, Optional
import os

from pydantic import BaseModel, Field, ValidationError, model_validator

from .exceptions import ConfigError


ENV_PREFIX = "CONTEXTCORE_"


class CoreConfig(BaseModel):
    """Tunables for the context memory and rule prioritization core"""

    # Tiered memory
    short_term_capacity: int = Field(default=20, ge=1)
    working_capacity: int = Field(default=50, ge=1)
    long_term_capacity: int = Field(default=100, ge=1)
    working_promotion_threshold: int = Field(default=5, ge=0)
    long_term_promotion_threshold: int = Field(default=3, ge=0)

    # Context store
    max_interactions: int = Field(default=20, ge=1)
    retained_head_interactions: int = Field(default=5, ge=0)
    session_index_capacity: int = Field(default=100, ge=1)
    recent_window_seconds: int = Field(default=3600, ge=0)
    important_request_length: int = Field(default=200, ge=0)
    important_response_length: int = Field(default=500, ge=0)
    require_durable_create: bool = False

    # Compression
    compression_min_size: int = Field(default=1000, ge=0)
    compression_medium_size: int = Field(default=10000, ge=0)
    compression_high_size: int = Field(default=50000, ge=0)

    # Rule prioritization
    effectiveness_alpha: float = Field(default=0.1, gt=0.0, le=1.0)
    default_effectiveness: float = 1.0
    adjustment_trigger_delta: float = Field(default=0.2, ge=0.0)
    max_priority_adjustment: int = Field(default=2, ge=0)
    rule_timeout_seconds: Optional[float] = Field(default=None, gt=0)

    # Durable store
    store_timeout_seconds: Optional[float] = Field(default=None, gt=0)
    feedback_limit: int = Field(default=100, ge=1)
    metrics_limit: int = Field(default=100, ge=1)

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"
    service_name: str = "contextcore"

    @model_validator(mode="after")
    def _check_ordering(self) -> "CoreConfig":
        if not (self.compression_min_size <= self.compression_medium_size <= self.compression_high_size):
            raise ValueError("compression thresholds must be non-decreasing")
        if self.retained_head_interactions >= self.max_interactions:
            raise ValueError("retained_head_interactions must be smaller than max_interactions")
        return self

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None, **overrides: Any) -> "CoreConfig":
        """Build a config from CONTEXTCORE_* environment variables"""

        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}

        for name in cls.model_fields:
            raw = environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is None or raw == "":
                continue
            values[name] = raw

        values.update(overrides)

        try:
            return cls.model_validate(values)
        except ValidationError as e:
            raise ConfigError(f"Invalid context core configuration: {e}") from e
