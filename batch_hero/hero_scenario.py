"""
Azure Batch Hero Scenario

Creates a pool with a single node, runs one task on it, verifies the task
succeeded and deletes everything it created, on success and on failure alike.

Run with ``batch-hero`` or ``python -m batch_hero.hero_scenario``.
"""

import os
import sys
import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Optional

from azure.batch import BatchServiceClient
from prefect import flow, get_run_logger

from . import azure_batch_utils
from .batch_monitoring import (
    AllocationState,
    AzureBatchMonitor,
    MonitoringConfig,
    MonitoringResult,
)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")


@dataclass
class ScenarioConfig:
    """Resource names and polling settings for one scenario run"""
    account_url: str = azure_batch_utils.DEFAULT_BATCH_ACCOUNT_URL
    pool_id: str = "TestPool"
    job_id: str = "TestJob"
    task_id: str = "TestTask"
    command_line: str = "cmd /c echo Hello World"
    vm_size: str = azure_batch_utils.DEFAULT_VM_SIZE
    target_dedicated_nodes: int = 1
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    @classmethod
    def from_env(cls) -> "ScenarioConfig":
        defaults = cls()
        return cls(
            account_url=azure_batch_utils.resolve_account_url(),
            pool_id=os.getenv("BATCH_POOL_ID", defaults.pool_id),
            job_id=os.getenv("BATCH_JOB_ID", defaults.job_id),
            task_id=os.getenv("BATCH_TASK_ID", defaults.task_id),
            command_line=os.getenv("BATCH_TASK_COMMAND", defaults.command_line),
            vm_size=os.getenv("BATCH_VM_SIZE", defaults.vm_size),
            monitoring=MonitoringConfig(
                polling_interval=_env_float("BATCH_POLL_INTERVAL_SECONDS", defaults.monitoring.polling_interval),
                timeout_minutes=_env_float("BATCH_POLL_TIMEOUT_MINUTES", defaults.monitoring.timeout_minutes),
            ),
        )


@asynccontextmanager
async def provisioned_pool(batch_client: BatchServiceClient, config: ScenarioConfig):
    """Create the pool and delete it when the block exits, however it exits"""
    await azure_batch_utils.create_pool(
        batch_client,
        config.pool_id,
        vm_size=config.vm_size,
        target_dedicated_nodes=config.target_dedicated_nodes,
    )
    try:
        yield config.pool_id
    except BaseException:
        await azure_batch_utils.cleanup_batch_pool(batch_client, config.pool_id)
        raise
    await azure_batch_utils.delete_pool(batch_client, config.pool_id)


@asynccontextmanager
async def submitted_job(batch_client: BatchServiceClient, config: ScenarioConfig):
    """Create the job and delete it when the block exits, however it exits"""
    await azure_batch_utils.create_job(batch_client, config.job_id, config.pool_id)
    try:
        yield config.job_id
    except BaseException:
        await azure_batch_utils.cleanup_batch_job(batch_client, config.job_id)
        raise
    await azure_batch_utils.delete_job(batch_client, config.job_id)


async def run_hero_scenario(
    batch_client: BatchServiceClient,
    config: Optional[ScenarioConfig] = None,
    monitor: Optional[AzureBatchMonitor] = None,
) -> MonitoringResult:
    """
    Run the scenario end to end.

    Returns the task verification result. A poll timeout or a service error
    propagates after the pool and job have been cleaned up.
    """
    config = config or ScenarioConfig()
    monitor = monitor or AzureBatchMonitor(batch_client, config.monitoring)

    async with provisioned_pool(batch_client, config) as pool_id:
        await monitor.wait_for_pool_state(pool_id, AllocationState.STEADY)

        async with submitted_job(batch_client, config) as job_id:
            await azure_batch_utils.create_task(batch_client, job_id, config.task_id, config.command_line)
            await monitor.wait_for_task_completion(job_id, config.task_id)
            result = await monitor.verify_task(job_id, config.task_id)

    return result


@flow(name="batch-hero-scenario")
async def hero_scenario_flow(config: Optional[ScenarioConfig] = None) -> bool:
    logger = get_run_logger()
    config = config or ScenarioConfig.from_env()

    logger.info(f"🚀 Running hero scenario against {config.account_url}")
    batch_client = azure_batch_utils.get_batch_client(config.account_url)
    result = await run_hero_scenario(batch_client, config)

    if result.success:
        logger.info(f"✅ Task {config.task_id} succeeded in {result.monitoring_duration}")
    else:
        logger.error(f"💥 Verification failed: {result.error_message}")
    return result.success


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    succeeded = asyncio.run(hero_scenario_flow())
    return 0 if succeeded else 1


if __name__ == "__main__":
    sys.exit(main())
