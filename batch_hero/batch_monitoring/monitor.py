"""
Azure Batch Pool and Task Monitoring

Waits on pool allocation and task execution through the shared condition poller,
and reports task verification as an explicit result instead of asserting.
"""

import logging
import time
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Optional, Tuple, Type
from dataclasses import dataclass, replace
from enum import Enum
from azure.batch import BatchServiceClient

from .. import azure_batch_utils
from .poller import PollingConfig, PollTimeoutError, poll_until


class AllocationState(Enum):
    """Pool allocation states"""
    RESIZING = "resizing"
    STEADY = "steady"
    STOPPING = "stopping"
    UNKNOWN = "unknown"


class TaskState(Enum):
    """Task execution states"""
    ACTIVE = "active"
    PREPARING = "preparing"
    RUNNING = "running"
    COMPLETED = "completed"
    UNKNOWN = "unknown"


class TaskResult(Enum):
    SUCCESS = "success"
    FAILURE = "failure"


def _raw_value(raw: Any) -> str:
    # SDK enums are str-valued; plain strings come through unchanged
    return str(getattr(raw, "value", raw) or "").lower()


def normalize_allocation_state(raw_state: Any) -> AllocationState:
    try:
        return AllocationState(_raw_value(raw_state))
    except ValueError:
        return AllocationState.UNKNOWN


def normalize_task_state(raw_state: Any) -> TaskState:
    try:
        return TaskState(_raw_value(raw_state))
    except ValueError:
        return TaskState.UNKNOWN


def normalize_task_result(raw_result: Any) -> Optional[TaskResult]:
    if raw_result is None:
        return None
    try:
        return TaskResult(_raw_value(raw_result))
    except ValueError:
        return None


@dataclass
class PoolInfo:
    """Pool status snapshot"""
    pool_id: str
    allocation_state: AllocationState
    raw_state: str
    current_dedicated_nodes: Optional[int] = None

    @classmethod
    def from_cloud_pool(cls, pool: Any) -> "PoolInfo":
        return cls(
            pool_id=pool.id,
            allocation_state=normalize_allocation_state(pool.allocation_state),
            raw_state=_raw_value(pool.allocation_state),
            current_dedicated_nodes=getattr(pool, "current_dedicated_nodes", None),
        )


@dataclass
class TaskInfo:
    """Task status snapshot"""
    task_id: str
    state: TaskState
    raw_state: str
    result: Optional[TaskResult] = None
    exit_code: Optional[int] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    stdout: Optional[str] = None
    stderr: Optional[str] = None

    @classmethod
    def from_cloud_task(cls, task: Any) -> "TaskInfo":
        execution_info = getattr(task, "execution_info", None)
        return cls(
            task_id=task.id,
            state=normalize_task_state(task.state),
            raw_state=_raw_value(task.state),
            result=normalize_task_result(getattr(execution_info, "result", None)),
            exit_code=getattr(execution_info, "exit_code", None),
            start_time=getattr(execution_info, "start_time", None),
            end_time=getattr(execution_info, "end_time", None),
        )


@dataclass
class MonitoringConfig:
    """Monitoring configuration"""
    polling_interval: float = 10  # seconds
    timeout_minutes: float = 10
    retrieve_output: bool = False
    transient_errors: Tuple[Type[BaseException], ...] = ()

    def polling(self, timeout_minutes: Optional[float] = None) -> PollingConfig:
        return PollingConfig(
            polling_interval=self.polling_interval,
            timeout_minutes=self.timeout_minutes if timeout_minutes is None else timeout_minutes,
            transient_errors=self.transient_errors,
        )


@dataclass
class MonitoringResult:
    """Outcome of waiting on and verifying a task"""
    success: bool
    task_info: Optional[TaskInfo]
    monitoring_duration: timedelta
    error_message: Optional[str] = None
    timeout_occurred: bool = False


class AzureBatchMonitor:
    """Waits on Azure Batch pools and tasks"""

    def __init__(
        self,
        batch_client: BatchServiceClient,
        config: Optional[MonitoringConfig] = None,
        logger: Optional[logging.Logger] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.batch_client = batch_client
        self.config = config or MonitoringConfig()
        self.logger = logger or logging.getLogger(__name__)
        self._poll_kwargs = {"clock": clock, "logger": self.logger}
        if sleep is not None:
            self._poll_kwargs["sleep"] = sleep
        self._clock = clock

    async def get_pool_info(self, pool_id: str) -> PoolInfo:
        pool = await azure_batch_utils.get_pool(self.batch_client, pool_id)
        return PoolInfo.from_cloud_pool(pool)

    async def get_task_info(self, job_id: str, task_id: str) -> TaskInfo:
        task = await azure_batch_utils.get_task(self.batch_client, job_id, task_id)
        return TaskInfo.from_cloud_task(task)

    async def wait_for_pool_state(
        self,
        pool_id: str,
        target: AllocationState = AllocationState.STEADY,
        timeout_minutes: Optional[float] = None,
    ) -> PoolInfo:
        """Block until the pool reports the target allocation state"""
        self.logger.info(f"⏳ Waiting for pool {pool_id} to reach {target.value}")
        pool_info = await poll_until(
            lambda: self.get_pool_info(pool_id),
            lambda info: info.allocation_state == target,
            self.config.polling(timeout_minutes),
            description=f"pool {pool_id} to reach {target.value}",
            **self._poll_kwargs,
        )
        self.logger.info(f"✅ Pool {pool_id} is {pool_info.allocation_state.value}")
        return pool_info

    async def wait_for_task_completion(
        self,
        job_id: str,
        task_id: str,
        timeout_minutes: Optional[float] = None,
    ) -> TaskInfo:
        """Block until the task reports completed"""
        self.logger.info(f"⏳ Waiting for task {task_id} in job {job_id} to complete")
        task_info = await poll_until(
            lambda: self.get_task_info(job_id, task_id),
            lambda info: info.state == TaskState.COMPLETED,
            self.config.polling(timeout_minutes),
            description=f"task {task_id} to complete",
            **self._poll_kwargs,
        )
        self.logger.info(f"✅ Task {task_id} completed with exit code: {task_info.exit_code}")
        return task_info

    async def verify_task(
        self,
        job_id: str,
        task_id: str,
        expected: TaskResult = TaskResult.SUCCESS,
    ) -> MonitoringResult:
        """Compare a task's execution result to the expected one"""
        started = self._clock()
        task_info = await self.get_task_info(job_id, task_id)
        if self.config.retrieve_output:
            stdout, stderr = await azure_batch_utils.get_task_output(self.batch_client, job_id, task_id)
            task_info = replace(task_info, stdout=stdout, stderr=stderr)
        return self._verification_result(task_info, expected, started)

    async def monitor_task(
        self,
        job_id: str,
        task_id: str,
        timeout_minutes: Optional[float] = None,
        expected: TaskResult = TaskResult.SUCCESS,
    ) -> MonitoringResult:
        """Wait for a task to complete, then verify its result"""
        started = self._clock()
        try:
            task_info = await self.wait_for_task_completion(job_id, task_id, timeout_minutes)
        except PollTimeoutError as e:
            last = e.last_snapshot if isinstance(e.last_snapshot, TaskInfo) else None
            return MonitoringResult(
                success=False,
                task_info=last,
                monitoring_duration=timedelta(seconds=self._clock() - started),
                error_message=str(e),
                timeout_occurred=True,
            )

        if self.config.retrieve_output:
            stdout, stderr = await azure_batch_utils.get_task_output(self.batch_client, job_id, task_id)
            task_info = replace(task_info, stdout=stdout, stderr=stderr)
        return self._verification_result(task_info, expected, started)

    def _verification_result(self, task_info: TaskInfo, expected: TaskResult, started: float) -> MonitoringResult:
        duration = timedelta(seconds=self._clock() - started)
        if task_info.result == expected:
            return MonitoringResult(success=True, task_info=task_info, monitoring_duration=duration)

        actual = task_info.result.value if task_info.result else task_info.raw_state
        message = f"Task {task_info.task_id} result was {actual}, expected {expected.value}"
        if task_info.exit_code is not None:
            message += f" (exit code {task_info.exit_code})"
        self.logger.error(f"❌ {message}")
        return MonitoringResult(
            success=False,
            task_info=task_info,
            monitoring_duration=duration,
            error_message=message,
        )
