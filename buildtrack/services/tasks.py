# buildtrack/services/tasks.py
"""
Background execution of receipt parsing.

Uploads hand the parse job to ``ParseTaskRunner`` and return right away. The
runner keeps an in-memory record of each job by task id so callers can ask
how it went; the receipt row itself stays the source of truth.
"""
import logging
import threading
import uuid
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor, TimeoutError
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

logger = logging.getLogger(__name__)

MAX_TRACKED_TASKS = 1000

QUEUED = 'queued'
RUNNING = 'running'
SUCCEEDED = 'succeeded'
FAILED = 'failed'
FINISHED_STATES = (SUCCEEDED, FAILED)


@dataclass
class ParseTask:
    id: str
    receipt_id: str
    status: str = QUEUED
    submitted_at: datetime = field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None

    def to_dict(self):
        return {
            'taskId': self.id,
            'receiptId': self.receipt_id,
            'status': self.status,
            'submittedAt': self.submitted_at.isoformat(),
            'finishedAt': self.finished_at.isoformat() if self.finished_at else None,
        }


class ParseTaskRunner:
    """Runs ``ReceiptParser.parse`` on a thread pool inside an app context."""

    def __init__(self, app, parser, max_workers=4):
        self.app = app
        self.parser = parser
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='receipt-parser')
        self._tasks = OrderedDict()
        self._futures = {}
        self._lock = threading.Lock()

    def submit(self, receipt_id, file_path):
        """Queue a parse job and return its task id without waiting."""
        task = ParseTask(id=uuid.uuid4().hex, receipt_id=receipt_id)
        with self._lock:
            self._tasks[task.id] = task
            self._forget_old_tasks()

        future = self._executor.submit(self._run, task, file_path)
        with self._lock:
            self._futures[task.id] = future
        logger.info(f"Queued parse task {task.id} for receipt {receipt_id}")
        return task.id

    def _run(self, task, file_path):
        self._set_status(task, RUNNING)
        succeeded = False
        try:
            with self.app.app_context():
                succeeded = self.parser.parse(task.receipt_id, file_path)
        except Exception as e:
            logger.error(f"Parse task {task.id} for receipt {task.receipt_id} crashed: {e}")
        finally:
            self._set_status(task, SUCCEEDED if succeeded else FAILED)
        return succeeded

    def _set_status(self, task, status):
        with self._lock:
            task.status = status
            if status in FINISHED_STATES:
                task.finished_at = datetime.utcnow()

    def _forget_old_tasks(self):
        # Caller holds the lock
        while len(self._tasks) > MAX_TRACKED_TASKS:
            oldest_id = next(
                (task_id for task_id, task in self._tasks.items() if task.status in FINISHED_STATES),
                None,
            )
            if oldest_id is None:
                break
            del self._tasks[oldest_id]
            self._futures.pop(oldest_id, None)

    def get(self, task_id):
        with self._lock:
            return self._tasks.get(task_id)

    def status(self, task_id):
        task = self.get(task_id)
        return task.to_dict() if task else None

    def wait(self, task_id, timeout=None):
        """Block until a task finishes; used by tests and shutdown hooks."""
        future = self._futures.get(task_id)
        if future is not None:
            try:
                future.result(timeout=timeout)
            except TimeoutError:
                logger.warning(f"Timed out waiting for parse task {task_id}")
        return self.status(task_id)

    def shutdown(self, wait=True):
        self._executor.shutdown(wait=wait)
