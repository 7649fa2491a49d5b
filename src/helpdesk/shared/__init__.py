"""
Shared Kernel Module
====================

This module contains shared infrastructure used across all bounded contexts
(SLA tracking and Tickets).

Architecture Pattern: Modular Monolith
- Each module (sla, tickets) is a bounded context
- Shared kernel contains only generic infrastructure

DO NOT add SLA or ticket business logic to the shared kernel.
"""
