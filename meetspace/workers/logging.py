"""
Logging helpers for worker tasks.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional


def log_task_start(task_name: str, task_id: Optional[str], **context: Any) -> None:
    logger = logging.getLogger(task_name.rsplit(".", 1)[0])
    log_data = {
        "task": task_name,
        "task_id": task_id,
        "status": "started",
        "timestamp": datetime.now().isoformat(),
        **context,
    }
    logger.info(f"Task started: {log_data}")


def log_task_success(task_name: str, task_id: Optional[str], result: Dict[str, Any]) -> None:
    logger = logging.getLogger(task_name.rsplit(".", 1)[0])
    log_data = {
        "task": task_name,
        "task_id": task_id,
        "status": "completed",
        "result": result,
        "timestamp": datetime.now().isoformat(),
    }
    logger.info(f"Task completed: {log_data}")


def log_task_error(task_name: str, task_id: Optional[str], error: str, retry_count: int = 0) -> None:
    """
    Log task failure with standard format.

    Args:
        task_name: Name of the task
        task_id: Celery task ID
        error: Error message
        retry_count: Number of retries attempted
    """
    logger = logging.getLogger(task_name.rsplit(".", 1)[0])
    log_data = {
        "task": task_name,
        "task_id": task_id,
        "status": "failed",
        "error": error,
        "retry_count": retry_count,
        "timestamp": datetime.now().isoformat(),
    }
    logger.error(f"Task failed: {log_data}")


def log_email_result(to_email: str, subject: str, task_name: str, sent: bool) -> None:
    logger = logging.getLogger("email")
    log_data = {
        "action": "email_sent" if sent else "email_failed",
        "to": to_email,
        "subject": subject,
        "task": task_name,
        "timestamp": datetime.now().isoformat(),
    }
    if sent:
        logger.info(f"Email sent: {log_data}")
    else:
        logger.error(f"Email failed: {log_data}")
