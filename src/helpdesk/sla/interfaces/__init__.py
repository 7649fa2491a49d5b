"""
SLA Interfaces Layer
====================

FastAPI route handlers for SLA policies, ticket metrics and reports.
"""

from helpdesk.sla.interfaces.controllers import sla_router

__all__ = ["sla_router"]
