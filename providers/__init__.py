"""
Provider Adapters Package

Each upstream market-data provider has its own subfolder with:
- api_client.py: REST calls and normalization into core.schemas
- __init__.py: Provider class implementing the capability interfaces it supports

Providers, in failover priority order:
- coingecko (primary): list, detail, history, search, trending
- coincap (secondary): list, detail, history, search
- coinpaprika (tertiary): list only
"""
