"""
Infrastructure layer package.

Adapters implementing domain ports: the OpenAI-compatible completion
client and the HK quote provider.
"""
