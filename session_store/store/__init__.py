"""Expiration and lifecycle engine: TTL policy, filters, upsert, cleanup and the store facade."""
