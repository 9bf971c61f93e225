"""Configuration schema using Pydantic.

Persisted to ~/.icreactor/config.json; every field can also be set through
``ICREACTOR_`` environment variables (``ICREACTOR_POLLING__DEADLINE_MS``).
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings

from icreactor.agent.polling import PollingPolicy, TieredPollingPolicy


class PollingConfig(BaseModel):
    """How update calls answered with "accepted" are polled."""
    strategy: Literal["backoff", "tiered"] = "backoff"
    interval_ms: float = 100.0
    backoff_multiplier: float = 1.5
    max_interval_ms: float = 5_000.0
    jitter_ratio: float = 0.0
    max_attempts: int | None = None
    deadline_ms: float | None = 300_000.0  # 5 minutes
    # Tiered strategy only
    fast_attempts: int = 10
    fast_delay_ms: float = 100.0
    ramp_until_ms: float = 20_000.0
    plateau_delay_ms: float = 5_000.0
    max_log_interval_ms: float = 15_000.0

    def to_policy(self) -> PollingPolicy | TieredPollingPolicy:
        if self.strategy == "tiered":
            return TieredPollingPolicy(
                fast_attempts=self.fast_attempts,
                fast_delay_ms=self.fast_delay_ms,
                ramp_until_ms=self.ramp_until_ms,
                plateau_delay_ms=self.plateau_delay_ms,
                jitter_ratio=self.jitter_ratio,
                max_log_interval_ms=self.max_log_interval_ms,
                max_attempts=self.max_attempts,
                deadline_ms=self.deadline_ms,
            )
        return PollingPolicy(
            interval_ms=self.interval_ms,
            backoff_multiplier=self.backoff_multiplier,
            max_interval_ms=self.max_interval_ms,
            jitter_ratio=self.jitter_ratio,
            max_attempts=self.max_attempts,
            deadline_ms=self.deadline_ms,
        )


class ReactorConfig(BaseSettings):
    """Root configuration for icreactor."""
    polling: PollingConfig = Field(default_factory=PollingConfig)
    canisters: dict[str, str] = Field(default_factory=dict)  # name -> canister id text
    # Pass display args through unchanged when their transform fails.
    lenient_arg_transform: bool = True
    log_level: str = "INFO"

    model_config = ConfigDict(
        env_prefix="ICREACTOR_",
        env_nested_delimiter="__"
    )
