"""
Azure Batch Monitoring Module

Condition polling plus pool and task monitoring for Azure Batch.
"""

from .poller import PollingConfig, PollTimeoutError, poll_until
from .monitor import (
    AllocationState,
    AzureBatchMonitor,
    MonitoringConfig,
    MonitoringResult,
    PoolInfo,
    TaskInfo,
    TaskResult,
    TaskState,
)

__all__ = [
    'PollingConfig',
    'PollTimeoutError',
    'poll_until',
    'AllocationState',
    'AzureBatchMonitor',
    'MonitoringConfig',
    'MonitoringResult',
    'PoolInfo',
    'TaskInfo',
    'TaskResult',
    'TaskState'
]
