"""
SLA External Service Integrations
==================================

- YAML file with the default policy per priority (seeded at startup)
- APScheduler job for the optional background breach sweep
"""

from pathlib import Path
from typing import Awaitable, Callable, List, Optional

import yaml
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from pydantic import ValidationError

from helpdesk.config import Priority
from helpdesk.core import ConfigurationException
from helpdesk.sla.application import PolicyCreateRequest, SLAPolicyService
from helpdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


DEFAULT_POLICIES = [
    {"name": "Critical Priority SLA", "priority": Priority.CRITICAL,
     "response_time_hours": 1, "resolution_time_hours": 4},
    {"name": "High Priority SLA", "priority": Priority.HIGH,
     "response_time_hours": 4, "resolution_time_hours": 24},
    {"name": "Medium Priority SLA", "priority": Priority.MEDIUM,
     "response_time_hours": 8, "resolution_time_hours": 48},
    {"name": "Low Priority SLA", "priority": Priority.LOW,
     "response_time_hours": 24, "resolution_time_hours": 72},
]


def load_policy_file(path: Path) -> List[PolicyCreateRequest]:
    """
    Parse the default policy file.

    Expected layout:
        policies:
          - name: Critical Priority SLA
            priority: Critical
            response_time_hours: 1
            resolution_time_hours: 4

    Falls back to built-in defaults when the file does not exist.

    Raises:
        ConfigurationException: the file exists but is malformed
    """
    if not path.exists():
        logger.warning(f"SLA policy file not found: {path}, using defaults")
        entries = DEFAULT_POLICIES
    else:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        entries = data.get("policies", [])

    try:
        return [PolicyCreateRequest.model_validate(entry) for entry in entries]
    except ValidationError as e:
        raise ConfigurationException(
            f"Invalid SLA policy file: {path}",
            {"errors": e.errors(include_url=False, include_context=False)}
        ) from e


async def seed_default_policies(service: SLAPolicyService, path: Path) -> int:
    """
    Create a policy for every priority that has no active one.

    Existing active policies are left alone, so this is safe on every start.

    Returns:
        Number of policies created
    """
    created = 0
    for request in load_policy_file(path):
        existing = {p.priority for p in await service.list_policies() if p.is_active}
        if request.priority in existing:
            continue
        await service.create_policy(request)
        created += 1

    if created:
        logger.info("Seeded default SLA policies", extra={"created": created})
    return created


class SLAScheduler:
    """
    Wrapper for APScheduler running the background breach sweep.

    The sweep is idempotent and only ever persists breach flags, so a
    missed or overlapping run converges on the next one.
    """

    def __init__(self, interval_seconds: int = 300):
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    async def start(self, job_func: Callable[[], Awaitable[None]]) -> None:
        """Start the scheduler with the given job function."""
        if self._running:
            logger.warning("SLA scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            job_func,
            "interval",
            seconds=self.interval_seconds,
            id="sla_breach_sweep",
            name="SLA Breach Sweep",
            misfire_grace_time=60,
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        self._scheduler.start()
        self._running = True

        logger.info(
            "SLA scheduler started",
            extra={"interval_seconds": self.interval_seconds}
        )

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)

        self._running = False
        logger.info("SLA scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running
