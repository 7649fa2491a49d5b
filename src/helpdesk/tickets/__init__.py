"""
Tickets Module
==============

Thin ticket collaborator hosting the SLA lifecycle hooks.

- Create ticket: initializes SLA deadlines
- Add message: records the first agent response
- Change status: re-evaluates breach flags

Hook failures are logged by the SLA module and never abort the ticket
operation.
"""
