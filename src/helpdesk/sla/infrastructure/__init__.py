"""
SLA Infrastructure Layer
=========================

Infrastructure implementations for SLA tracking:
- Models: SQLAlchemy ORM model for policies
- Repositories: Data access layer
- External: Default policy file, background sweep scheduler
"""

from helpdesk.sla.infrastructure.models import SLAPolicyModel
from helpdesk.sla.infrastructure.repositories import (
    SQLAlchemyPolicyRepository,
    SQLAlchemyTicketSLARepository,
    SQLAlchemyReportRepository,
)
from helpdesk.sla.infrastructure.external import (
    SLAScheduler,
    load_policy_file,
    seed_default_policies,
)

__all__ = [
    "SLAPolicyModel",
    "SQLAlchemyPolicyRepository",
    "SQLAlchemyTicketSLARepository",
    "SQLAlchemyReportRepository",
    "SLAScheduler",
    "load_policy_file",
    "seed_default_policies",
]
