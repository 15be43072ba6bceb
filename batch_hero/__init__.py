"""
Azure Batch Hero Scenario

Provision a pool, run a single task on it, verify the result and clean up.
"""

from .azure_batch_utils import get_batch_client, cleanup_batch_job, cleanup_batch_pool
from .batch_monitoring import (
    AllocationState,
    AzureBatchMonitor,
    MonitoringConfig,
    MonitoringResult,
    PollingConfig,
    PollTimeoutError,
    PoolInfo,
    TaskInfo,
    TaskResult,
    TaskState,
    poll_until,
)

__all__ = [
    'get_batch_client',
    'cleanup_batch_job',
    'cleanup_batch_pool',
    'AllocationState',
    'AzureBatchMonitor',
    'MonitoringConfig',
    'MonitoringResult',
    'PollingConfig',
    'PollTimeoutError',
    'PoolInfo',
    'TaskInfo',
    'TaskResult',
    'TaskState',
    'poll_until'
]
