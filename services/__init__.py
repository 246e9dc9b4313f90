"""
Services Package

Long-running background services that sit on top of the aggregator.

Current services:
- PriceStreamService: periodic top-coin snapshots for the /ws/prices WebSocket
"""
