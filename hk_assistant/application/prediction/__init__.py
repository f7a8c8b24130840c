"""Prediction bounded context: application layer."""
