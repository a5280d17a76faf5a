"""Unit tests for individual injector components."""
