"""Aggregation package."""

from retreat_finance.queries.aggregation import AggregationEngine

__all__ = ["AggregationEngine"]
