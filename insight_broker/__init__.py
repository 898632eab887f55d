"""
Insight Broker.

Brokers access to a text generation service, normalizes its output and
meters usage against per-account token quotas.
"""

__version__ = "0.1.0"
