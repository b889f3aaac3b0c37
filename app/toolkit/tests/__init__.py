"""Tests for toolkit helpers and services."""
