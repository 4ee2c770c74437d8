"""
Test suite for Market Intelligence.

Provides comprehensive tests for all modules:
- Unit tests for individual components
- Integration tests for module interactions
- Fixtures for common test data
"""
