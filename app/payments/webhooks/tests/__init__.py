"""Tests for the gateway webhook path: signature check, ingestion and the HTTP view."""
