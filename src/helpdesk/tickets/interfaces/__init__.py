"""
Tickets Interfaces Layer
=========================

HTTP routes for tickets.
"""

from helpdesk.tickets.interfaces.controllers import tickets_router

__all__ = ["tickets_router"]
