"""
Configuration package for the edge cache policy service.

Category and environment configuration are pydantic models validated at
every boundary. The ConfigStore layers a short-lived in-process cache over a
durable key-value store and serves stale or compiled-in defaults when the
durable store is unavailable.
"""
