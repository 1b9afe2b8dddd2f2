"""
Retreat Finance - Core Package

Data-integrity and aggregation layer for tracking the finances of
time-boxed events ("retreats").

DESIGN PRINCIPLES:
1. Every write is all-or-nothing
2. Fail early, fail visibly (classified errors, never swallowed)
3. Referential rules live in the storage schema, not only in code
4. Every read recomputes from durable state (no cache)
5. Collaborators (CLI, desktop, HTTP) only talk to the gateway
"""

__version__ = "0.1.0"
__author__ = "Retreat Finance Team"
