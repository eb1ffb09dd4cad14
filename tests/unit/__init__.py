"""Unit tests for the shared models, election service and admin auth."""
