from types import SimpleNamespace
from typing import List
from unittest.mock import MagicMock

import pytest
from azure.batch.models import AllocationState, TaskExecutionResult, TaskState


class FakeClock:
    """Monotonic clock that only moves when the poller sleeps."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def cloud_pool(pool_id: str, state: AllocationState) -> SimpleNamespace:
    return SimpleNamespace(id=pool_id, allocation_state=state, current_dedicated_nodes=1)


def cloud_task(task_id: str, state: TaskState, result=None, exit_code=None) -> SimpleNamespace:
    execution_info = SimpleNamespace(result=result, exit_code=exit_code, start_time=None, end_time=None)
    return SimpleNamespace(id=task_id, state=state, execution_info=execution_info)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def batch_client() -> MagicMock:
    """Batch client whose pool reaches steady and whose task succeeds on the second read."""
    client = MagicMock()
    client.pool.get.side_effect = [
        cloud_pool("TestPool", AllocationState.resizing),
        cloud_pool("TestPool", AllocationState.steady),
    ]
    client.task.get.side_effect = [
        cloud_task("TestTask", TaskState.running),
        cloud_task("TestTask", TaskState.completed, TaskExecutionResult.success, 0),
        cloud_task("TestTask", TaskState.completed, TaskExecutionResult.success, 0),
    ]
    return client
