"""Voter and admin web interface for the election API."""
