"""Tests for the gateway REST adapter and its credential cache."""
