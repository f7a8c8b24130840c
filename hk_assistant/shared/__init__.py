"""Cross-cutting concerns shared by both applications."""
