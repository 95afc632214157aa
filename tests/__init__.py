"""Tests for the statement converter."""
