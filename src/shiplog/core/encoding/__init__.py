"""Encoders for archived log data."""
