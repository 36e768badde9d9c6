"""
LeadPulse Analytics Core

Cached lead-count analytics across dynamically named product tables:
1. In-memory namespaced TTL cache with statistics and memoization helpers
2. Circuit breaker guarding the read-replica connection pool
3. Batched, rate-limited fan-out COUNT queries across mapped tables
4. Aggregation service returning success/error envelopes to the UI layer
"""

__version__ = "0.1.0"
