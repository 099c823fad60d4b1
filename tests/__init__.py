"""
ShelfSpace Test Suite

Tests are organized into:
- unit/: Unit tests for individual components
- integration/: Integration tests for the HTTP API
"""
