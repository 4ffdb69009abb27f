"""
Testing package for the helpdesk sequence API.

This package contains:
- Unit tests for step content parsing, the channel sender and wake-ups
- Integration tests for the sequence engine, scheduler and API endpoints
"""
