"""
FastAPI Application Package

This package contains the main FastAPI application and routing logic.
It serves as the entry point for the backend API, providing REST and WebSocket endpoints
for aggregated cryptocurrency market data.
"""
