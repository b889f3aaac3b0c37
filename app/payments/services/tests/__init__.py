"""Tests for payments.services: refund, payment, subscription and reporting services."""
