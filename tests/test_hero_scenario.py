from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from azure.batch import models

from batch_hero import hero_scenario
from batch_hero.batch_monitoring import AzureBatchMonitor, MonitoringConfig, MonitoringResult, PollTimeoutError
from batch_hero.hero_scenario import ScenarioConfig, run_hero_scenario
from conftest import cloud_pool, cloud_task


@pytest.fixture
def config():
    return ScenarioConfig(monitoring=MonitoringConfig(polling_interval=10, timeout_minutes=1))


@pytest.fixture
def monitor(batch_client, config, clock):
    return AzureBatchMonitor(batch_client, config.monitoring, sleep=clock.sleep, clock=clock)


def call_names(client):
    return [name for name, _, _ in client.method_calls]


@pytest.mark.asyncio
async def test_scenario_runs_steps_in_order(batch_client, config, monitor, clock):
    result = await run_hero_scenario(batch_client, config, monitor)

    assert result.success
    assert call_names(batch_client) == [
        "pool.add",
        "pool.get",
        "pool.get",
        "job.add",
        "task.add",
        "task.get",
        "task.get",
        "task.get",
        "job.delete",
        "pool.delete",
    ]
    batch_client.job.delete.assert_called_once_with("TestJob")
    batch_client.pool.delete.assert_called_once_with("TestPool")
    assert clock.sleeps == [10, 10]


@pytest.mark.asyncio
async def test_failed_task_is_reported_and_cleaned_up(batch_client, config, monitor):
    batch_client.task.get.side_effect = lambda job_id, task_id: cloud_task(
        task_id, models.TaskState.completed, models.TaskExecutionResult.failure, 1
    )

    result = await run_hero_scenario(batch_client, config, monitor)

    assert not result.success
    assert "expected success" in result.error_message
    batch_client.job.delete.assert_called_once_with("TestJob")
    batch_client.pool.delete.assert_called_once_with("TestPool")


@pytest.mark.asyncio
async def test_pool_timeout_deletes_pool_without_creating_job(batch_client, config, monitor):
    batch_client.pool.get.side_effect = lambda pool_id: cloud_pool(pool_id, models.AllocationState.resizing)

    with pytest.raises(PollTimeoutError):
        await run_hero_scenario(batch_client, config, monitor)

    batch_client.job.add.assert_not_called()
    batch_client.job.delete.assert_not_called()
    batch_client.pool.delete.assert_called_once_with("TestPool")


@pytest.mark.asyncio
async def test_task_timeout_deletes_job_then_pool(batch_client, config, monitor):
    batch_client.task.get.side_effect = lambda job_id, task_id: cloud_task(task_id, models.TaskState.running)

    with pytest.raises(PollTimeoutError):
        await run_hero_scenario(batch_client, config, monitor)

    assert call_names(batch_client)[-2:] == ["job.delete", "pool.delete"]


@pytest.mark.asyncio
async def test_cleanup_failure_does_not_mask_original_error(batch_client, config, monitor):
    batch_client.task.add.side_effect = ValueError("InvalidCommandLine")
    batch_client.job.delete.side_effect = ValueError("JobBeingDeleted")

    with pytest.raises(RuntimeError, match="InvalidCommandLine"):
        await run_hero_scenario(batch_client, config, monitor)

    batch_client.pool.delete.assert_called_once_with("TestPool")


@pytest.mark.asyncio
async def test_pool_creation_failure_deletes_nothing(batch_client, config, monitor):
    batch_client.pool.add.side_effect = ValueError("PoolExists")

    with pytest.raises(RuntimeError, match="Failed to create batch pool"):
        await run_hero_scenario(batch_client, config, monitor)

    batch_client.pool.delete.assert_not_called()


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("AZURE_BATCH_ACCOUNT_URL", "https://acct.eastus.batch.azure.com")
    monkeypatch.setenv("BATCH_POOL_ID", "HeroPool")
    monkeypatch.setenv("BATCH_POLL_INTERVAL_SECONDS", "5")
    monkeypatch.delenv("BATCH_POLL_TIMEOUT_MINUTES", raising=False)

    config = ScenarioConfig.from_env()

    assert config.account_url == "https://acct.eastus.batch.azure.com"
    assert config.pool_id == "HeroPool"
    assert config.job_id == "TestJob"
    assert config.monitoring.polling_interval == 5
    assert config.monitoring.timeout_minutes == 10


def test_config_rejects_bad_numbers(monkeypatch):
    monkeypatch.setenv("BATCH_POLL_TIMEOUT_MINUTES", "ten")

    with pytest.raises(ValueError, match="BATCH_POLL_TIMEOUT_MINUTES"):
        ScenarioConfig.from_env()


@pytest.mark.parametrize("succeeded, exit_code", [(True, 0), (False, 1)])
def test_main_exit_code(succeeded, exit_code):
    with patch.object(hero_scenario, "hero_scenario_flow", AsyncMock(return_value=succeeded)):
        assert hero_scenario.main() == exit_code


@pytest.mark.asyncio
async def test_delete_failure_after_success_propagates(batch_client, config, monitor):
    batch_client.pool.delete.side_effect = ValueError("PoolBeingResized")

    with pytest.raises(RuntimeError, match="Failed to delete batch pool: PoolBeingResized"):
        await run_hero_scenario(batch_client, config, monitor)

    batch_client.job.delete.assert_called_once_with("TestJob")


@pytest.mark.asyncio
@pytest.mark.parametrize("succeeded", [True, False])
async def test_flow_returns_verification_outcome(config, succeeded):
    result = MonitoringResult(success=succeeded, task_info=None, monitoring_duration=timedelta(seconds=20),
                              error_message=None if succeeded else "Task TestTask result was failure, expected success")
    client = MagicMock()

    with patch.object(hero_scenario.azure_batch_utils, "get_batch_client", return_value=client) as get_client, \
            patch.object(hero_scenario, "run_hero_scenario", AsyncMock(return_value=result)) as run:
        assert await hero_scenario.hero_scenario_flow(config) is succeeded

    get_client.assert_called_once_with(config.account_url)
    assert run.call_args.args[0] is client


@pytest.mark.asyncio
async def test_flow_propagates_poll_timeout(config):
    timeout = PollTimeoutError("pool TestPool to reach steady", 60.0, 7, None)

    with patch.object(hero_scenario.azure_batch_utils, "get_batch_client", return_value=MagicMock()), \
            patch.object(hero_scenario, "run_hero_scenario", AsyncMock(side_effect=timeout)):
        with pytest.raises(PollTimeoutError, match="Timed out waiting for condition to be met"):
            await hero_scenario.hero_scenario_flow(config)
