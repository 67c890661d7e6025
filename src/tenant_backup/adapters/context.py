"""Config-driven tenant context switcher.

``ConfigTenantContext`` activates a tenant by building its connection
info from the ``[central]`` connection settings plus the tenant's own
``[tenants.<id>]`` entry.  The connection info only lives for the
duration of the callback; nothing is cached between calls.

Usage:
    from tenant_backup.adapters.context import ConfigTenantContext

    context = ConfigTenantContext(config)
    record = await context.run(tenant, backup_callback)
"""

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from tenant_backup.config.models import AppConfig
from tenant_backup.models import DatabaseConnectionInfo, Tenant

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConfigTenantContext:
    """``TenantContextSwitcher`` backed by the loaded ``AppConfig``."""

    def __init__(self, config: AppConfig) -> None:
        self._config = config

    async def run(
        self,
        tenant: Tenant,
        callback: Callable[[DatabaseConnectionInfo], Awaitable[T]],
    ) -> T:
        info = self._config.connection_for(tenant)
        logger.debug("Entering tenant context %s (database %s)", tenant.id, info.database)
        try:
            return await callback(info)
        finally:
            logger.debug("Leaving tenant context %s", tenant.id)
