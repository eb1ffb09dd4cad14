"""Tests for the Flask voting UI and its API client."""
