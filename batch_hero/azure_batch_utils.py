"""
Azure Batch Utilities

Thin wrappers around the Azure Batch service client used by the hero scenario:
client construction, pool/job/task creation, status reads and deletion.
"""

import os
import logging
from typing import Optional, Tuple

from azure.batch import BatchServiceClient
from azure.batch.models import (
    BatchErrorException,
    CloudPool,
    CloudTask,
    ImageReference,
    JobAddParameter,
    PoolAddParameter,
    PoolInformation,
    TaskAddParameter,
    VirtualMachineConfiguration,
)
from azure.core.exceptions import ResourceNotFoundError
from azure.identity import DefaultAzureCredential
from msrest.authentication import BasicTokenAuthentication

BATCH_RESOURCE_SCOPE = "https://batch.core.windows.net/.default"
DEFAULT_BATCH_ACCOUNT_URL = "https://dotnotsdkbatchaccount1.eastus.batch.azure.com"

# Windows Server 2019 image the scenario pool boots from
DEFAULT_IMAGE = ImageReference(
    publisher="MicrosoftWindowsServer",
    offer="WindowsServer",
    sku="2019-datacenter-smalldisk",
    version="latest",
)
DEFAULT_NODE_AGENT_SKU_ID = "batch.node.windows amd64"
DEFAULT_VM_SIZE = "STANDARD_D1_v2"


def resolve_account_url() -> str:
    """Batch account URL from the environment, falling back to the demo account"""
    account_url = os.getenv("AZURE_BATCH_ACCOUNT_URL")
    if account_url:
        return account_url

    account_name = os.getenv("AZURE_BATCH_ACCOUNT")
    if account_name:
        region = os.getenv("AZURE_BATCH_REGION", "eastus")
        return f"https://{account_name}.{region}.batch.azure.com"

    return DEFAULT_BATCH_ACCOUNT_URL


def get_batch_client(account_url: Optional[str] = None) -> BatchServiceClient:
    """Initialize Azure Batch client using DefaultAzureCredential with token wrapping"""
    account_url = account_url or resolve_account_url()
    try:
        credential = DefaultAzureCredential()
        token = credential.get_token(BATCH_RESOURCE_SCOPE)

        # azure-batch expects msrest credentials, not azure-identity ones
        token_auth = BasicTokenAuthentication({"access_token": token.token})

        return BatchServiceClient(credentials=token_auth, batch_url=account_url)
    except Exception as e:
        raise RuntimeError(f"Failed to initialize Batch client: {e}") from e


async def create_pool(
    batch_client: BatchServiceClient,
    pool_id: str,
    vm_size: str = DEFAULT_VM_SIZE,
    image: ImageReference = DEFAULT_IMAGE,
    node_agent_sku_id: str = DEFAULT_NODE_AGENT_SKU_ID,
    target_dedicated_nodes: int = 1,
) -> None:
    """Create a pool of dedicated nodes"""
    logger = logging.getLogger(__name__)

    try:
        pool = PoolAddParameter(
            id=pool_id,
            vm_size=vm_size,
            virtual_machine_configuration=VirtualMachineConfiguration(
                image_reference=image,
                node_agent_sku_id=node_agent_sku_id,
            ),
            target_dedicated_nodes=target_dedicated_nodes,
        )
        batch_client.pool.add(pool)
        logger.info(f"🏊 Created batch pool: {pool_id} ({target_dedicated_nodes} x {vm_size})")

    except Exception as e:
        raise RuntimeError(f"Failed to create batch pool: {e}") from e


async def get_pool(batch_client: BatchServiceClient, pool_id: str) -> CloudPool:
    return batch_client.pool.get(pool_id)


async def create_job(batch_client: BatchServiceClient, job_id: str, pool_id: str) -> None:
    """Create a job bound to an existing pool"""
    logger = logging.getLogger(__name__)

    try:
        job = JobAddParameter(id=job_id, pool_info=PoolInformation(pool_id=pool_id))
        batch_client.job.add(job)
        logger.info(f"📋 Created batch job: {job_id} on pool {pool_id}")

    except Exception as e:
        raise RuntimeError(f"Failed to create batch job: {e}") from e


async def create_task(
    batch_client: BatchServiceClient,
    job_id: str,
    task_id: str,
    command_line: str,
) -> None:
    """Add a single command-line task to a job"""
    logger = logging.getLogger(__name__)

    try:
        task = TaskAddParameter(id=task_id, command_line=command_line)
        batch_client.task.add(job_id=job_id, task=task)
        logger.info(f"📄 Created batch task: {task_id}")
        logger.info(f"Command: {command_line}")

    except Exception as e:
        raise RuntimeError(f"Failed to create batch task: {e}") from e


async def get_task(batch_client: BatchServiceClient, job_id: str, task_id: str) -> CloudTask:
    return batch_client.task.get(job_id, task_id)


async def get_task_output(batch_client: BatchServiceClient, job_id: str, task_id: str) -> Tuple[str, str]:
    """Get stdout and stderr from a finished task"""
    return (
        _read_task_file(batch_client, job_id, task_id, "stdout.txt"),
        _read_task_file(batch_client, job_id, task_id, "stderr.txt"),
    )


def _read_task_file(batch_client: BatchServiceClient, job_id: str, task_id: str, file_name: str) -> str:
    try:
        stream = batch_client.file.get_from_task(job_id, task_id, file_name)
        return b"".join(stream).decode("utf-8")
    except (BatchErrorException, ResourceNotFoundError):
        return f"No {file_name} available"


async def delete_job(batch_client: BatchServiceClient, job_id: str) -> None:
    """Delete a job (this also deletes its tasks)"""
    logger = logging.getLogger(__name__)

    try:
        batch_client.job.delete(job_id)
        logger.info(f"🧹 Deleted batch job: {job_id}")
    except Exception as e:
        raise RuntimeError(f"Failed to delete batch job: {e}") from e


async def delete_pool(batch_client: BatchServiceClient, pool_id: str) -> None:
    """Delete a pool and release its nodes"""
    logger = logging.getLogger(__name__)

    try:
        batch_client.pool.delete(pool_id)
        logger.info(f"🧹 Deleted batch pool: {pool_id}")
    except Exception as e:
        raise RuntimeError(f"Failed to delete batch pool: {e}") from e


async def cleanup_batch_job(batch_client: BatchServiceClient, job_id: str) -> bool:
    """Best-effort job deletion"""
    try:
        await delete_job(batch_client, job_id)
        return True
    except RuntimeError as e:
        logging.getLogger(__name__).warning(f"⚠️ Could not clean up job {job_id}: {e}")
        return False


async def cleanup_batch_pool(batch_client: BatchServiceClient, pool_id: str) -> bool:
    """Best-effort pool deletion"""
    try:
        await delete_pool(batch_client, pool_id)
        return True
    except RuntimeError as e:
        logging.getLogger(__name__).warning(f"⚠️ Could not clean up pool {pool_id}: {e}")
        return False
