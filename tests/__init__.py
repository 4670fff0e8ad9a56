"""Test package for Doc Search Stream.

Provides test coverage for all components with unit tests for isolated
logic and integration tests for workflows.

Structure:
    - unit/: Individual function and class tests
    - integration/: End-to-end workflow tests

No mocks in integration tests; the completion endpoint runs in-process.
Leverages pytest with pytest-check for soft assertions.
"""
