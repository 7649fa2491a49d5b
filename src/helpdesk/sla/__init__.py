"""
SLA Tracking Module
===================

Bounded Context for ticket service level agreements.

Responsibilities:
- Store one active SLA policy per ticket priority
- Derive response/resolution deadlines when a ticket is created
- Record the first agent response and whether it was late
- Evaluate and persist breach flags on demand or from a sweep
- Report breach statistics, at-risk tickets and compliance per group
"""
