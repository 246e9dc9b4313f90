"""
Test Suite

Contains unit and end-to-end tests for the backend system.

Structure:
- tests/unit/: Tests for individual components and aggregator scenarios
- tests/fakes.py: In-process provider doubles
- tests/conftest.py: Virtual clock fixture

Uses pytest with pytest-asyncio for testing async functionality.
"""
