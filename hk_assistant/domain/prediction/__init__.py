"""
Prediction bounded context: domain layer.

This module contains all domain logic for the prediction context:
- Trading-window classification (HKEX sessions)
- Prompt construction from quote snapshots
- Stream event model and domain errors
"""
