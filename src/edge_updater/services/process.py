"""Process management for systemd service control."""

import asyncio
from enum import Enum
import logging

from edge_updater.exceptions import ServiceControlError


class ServiceAction(str, Enum):
    """systemctl verbs the updater issues."""

    START = "start"
    STOP = "stop"


class ProcessManager:
    """Starts and stops the managed systemd unit.

    Each call runs synchronously to completion; retry policy belongs to the
    caller.
    """

    def __init__(self, systemctl: str = "systemctl"):
        """Initialize process manager.

        Args:
            systemctl: Service manager executable
        """
        self.logger = logging.getLogger("edge_updater.process")
        self.systemctl = systemctl

    async def control(self, action: ServiceAction, service_name: str) -> None:
        """Run ``systemctl <action> <service_name>``.

        Args:
            action: START or STOP
            service_name: Systemd service name (e.g., "druid_garden_os")

        Raises:
            ServiceControlError: If the command cannot be launched or exits
                non-zero
        """
        action = ServiceAction(action)
        self.logger.info(f"Running {self.systemctl} {action.value} {service_name}")

        try:
            process = await asyncio.create_subprocess_exec(
                self.systemctl,
                action.value,
                service_name,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            _, stderr = await process.communicate()
        except OSError as e:
            self.logger.error(f"Failed to invoke {self.systemctl}: {e}")
            raise ServiceControlError(
                action.value,
                f"SERVICE_{action.name}_FAILED: cannot run {self.systemctl}: {e}",
            ) from e

        if process.returncode != 0:
            message = (
                f"SERVICE_{action.name}_FAILED: {service_name} "
                f"exit code {process.returncode}, "
                f"stderr: {stderr.decode(errors='replace').strip()}"
            )
            self.logger.error(message)
            raise ServiceControlError(action.value, message)

        self.logger.info(f"Service {service_name} {action.value} succeeded")

    async def start_service(self, service_name: str) -> None:
        await self.control(ServiceAction.START, service_name)

    async def stop_service(self, service_name: str) -> None:
        await self.control(ServiceAction.STOP, service_name)
