"""
HK Stock Assistant: LLM-backed prediction service for HKEX-listed stocks.

Application package root. This is a modular monolith using
hexagonal architecture (ports & adapters).

Bounded contexts:
    - prediction: Trading-window classification, prompt assembly,
      LLM completion and streamed relay of the generated analysis.

Layers:
    - domain: Pure business logic, entities, ports (ABCs), errors.
    - application: Use cases, DTOs, orchestration.
    - infrastructure: Adapters (LLM provider, quote API) implementing domain ports.
    - interfaces: FastAPI routers, Pydantic schemas.
    - shared: Cross-cutting concerns (errors, security, logging).

Two ASGI applications are exposed:
    - ``hk_assistant.main:app``: internal prediction service.
    - ``hk_assistant.gateway:app``: edge gateway facing end clients.
"""
