"""
Core Package

Contains the provider-agnostic data-source layer:
- ProviderInterface: Base class and capability interfaces every provider adapter implements
- ProviderManager: Ordered registry of adapters (failover priority)
- RateThrottle / HealthTracker / ResultCache: per-process state bundled in DataSourceContext
- Aggregator: failover, caching and durable write-through for every market data operation
- Schemas: Pydantic models for normalized data (Asset, PricePoint, SearchHit, ...)

Route handlers and background services only ever talk to the Aggregator.
"""
