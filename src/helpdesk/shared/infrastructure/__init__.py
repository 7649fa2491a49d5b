"""
Shared Infrastructure
=====================

- Logging setup
- Audit trail persistence
"""
