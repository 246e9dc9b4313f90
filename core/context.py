"""
Data-Source Context

Bundles the per-process mutable state of the data-source layer: clock, rate
throttle, health tracker and result cache. One Aggregator owns one context, so two
aggregators (e.g. in tests) never share throttle timestamps or cache entries.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

from core.cache import ResultCache
from core.config import Settings
from core.health import HealthTracker
from core.throttle import RateThrottle
from core.utils.time import Clock, system_clock


@dataclass
class DataSourceContext:
    clock: Clock
    throttle: RateThrottle
    health: HealthTracker
    cache: ResultCache
    ttls: Dict[str, float] = field(default_factory=dict)
    history_max_age_seconds: float = 3600.0

    @classmethod
    def from_settings(cls, settings: Settings, clock: Optional[Clock] = None) -> "DataSourceContext":
        clock = clock or system_clock
        return cls(
            clock=clock,
            throttle=RateThrottle(settings.min_intervals_ms, clock=clock),
            health=HealthTracker(
                clock=clock,
                error_threshold=settings.max_consecutive_errors,
                cooldown_seconds=settings.provider_cooldown_seconds,
            ),
            cache=ResultCache(clock=clock),
            ttls=dict(settings.cache_ttls),
            history_max_age_seconds=settings.history_max_age_seconds,
        )

    def ttl_for(self, kind: str) -> float:
        """TTL for an operation kind; trending shares the list TTL."""
        if kind == "trending":
            kind = "list"
        return self.ttls.get(kind, 60)
