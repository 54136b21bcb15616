"""
Utility functions and helpers.

- auth: current-user and cron-secret dependencies (JWT)
- infrastructure: Redis client, atomic counter store, rate limits, store retries
- logging: redacted prompt logging
"""
