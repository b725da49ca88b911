"""Autoconfiguration for media catalog providers.

Turns a crawled site profile into a validated, persistable provider
configuration.
"""

__version__ = "1.0.0"
