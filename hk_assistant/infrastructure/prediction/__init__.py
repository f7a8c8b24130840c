"""Prediction bounded context: infrastructure adapters."""
