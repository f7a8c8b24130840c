"""
Application layer package.

Use cases orchestrate domain services and ports. No framework imports.
"""
