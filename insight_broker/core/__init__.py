"""
Core modules for Insight Broker.

This package contains prompt compilation, response normalization,
structured extraction, entitlement metering and the pipeline that ties
them together.
"""
