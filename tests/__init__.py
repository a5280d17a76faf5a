"""
Tests package - Test suite for the CA injector.

Contains:
- unit/: Unit tests for individual components, Kubernetes API calls mocked
"""
