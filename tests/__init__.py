"""
Tests package - Test suite for the Conditional Access provider.

Contains:
- unit/: Unit tests for individual components, with Graph mocked at the
  entity-client level (unittest.mock) or the HTTP level (respx)
"""
