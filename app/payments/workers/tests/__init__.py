"""Tests for payments.workers."""
