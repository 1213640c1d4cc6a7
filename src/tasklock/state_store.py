"""
Durable storage of the active task lock.

The lock record lives in ``<state_dir>/current_context.json``. Every write
first rotates the current record into the backup chain and then replaces it
atomically, so the previous state always survives in generation 0. Records
are signed with an HMAC (see ``utils.integrity``) and a record that fails
verification reads as corrupt. Mutations are serialized between processes by
an advisory lock directory.
"""

import json
import logging
import os
import shutil
import socket
import time
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional, Union

from pydantic import ValidationError

from .config import Settings
from .exceptions import StateLockTimeoutError, StoreIOError
from .models import RestoreResult, StateResult, TaskLock
from .utils import backup_rotation
from .utils.integrity import (
    STATE_HASH_FIELD,
    compute_state_hash,
    get_state_hmac_key,
    load_state_hmac_key,
    verify_state_hash,
)
from .utils.jsonl_logger import log_event, setup_audit_logger

logger = logging.getLogger(__name__)

STATE_FILE_NAME = "current_context.json"
LOCK_DIR_NAME = ".lock"
LOCK_INFO_NAME = ".lock-info.json"


def atomic_write_json(file_path: Path, data: dict[str, Any]) -> None:
    """Write data to a JSON file atomically."""
    temp_file = file_path.with_name(f"{file_path.name}.{os.getpid()}.{uuid.uuid4().hex}.tmp")
    try:
        with open(temp_file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_file, file_path)
    finally:
        if temp_file.exists():
            temp_file.unlink()


class StateStore:
    """Owns the lock record, its backup chain and the state-dir lock."""

    def __init__(
        self,
        state_dir: Union[str, Path],
        generations: int = backup_rotation.DEFAULT_GENERATIONS,
        stale_seconds: float = 30.0,
        retries: int = 10,
        retry_wait: float = 0.5,
        hmac_key: Optional[str] = None,
    ):
        self.state_dir = Path(state_dir)
        self.generations = generations
        self.stale_seconds = stale_seconds
        self.retries = retries
        self.retry_wait = retry_wait
        self.hmac_key = hmac_key
        self._audit: Optional[logging.Logger] = None

    @classmethod
    def from_settings(cls, settings: Settings, base: Optional[Path] = None) -> "StateStore":
        return cls(
            settings.state_path(base),
            generations=settings.backup_generations,
            stale_seconds=settings.lock_stale_seconds,
            retries=settings.lock_retries,
            retry_wait=settings.lock_retry_wait_seconds,
            hmac_key=settings.state_hmac_key,
        )

    @property
    def state_path(self) -> Path:
        return self.state_dir / STATE_FILE_NAME

    @property
    def lock_path(self) -> Path:
        return self.state_dir / LOCK_DIR_NAME

    @property
    def lock_info_path(self) -> Path:
        return self.state_dir / LOCK_INFO_NAME

    def audit_event(self, event: str, message: str, level: int = logging.INFO, **fields: Any) -> None:
        """Append one entry to the state audit log."""
        # Created lazily so a read-only store never touches the state dir
        if self._audit is None:
            self._audit = setup_audit_logger(self.state_dir)
        log_event(self._audit, event, message, level=level, **fields)

    # Reading

    def read_state(self) -> StateResult:
        """Read the lock record without creating anything."""
        try:
            raw = self.state_path.read_bytes()
        except FileNotFoundError:
            return StateResult.not_found()
        except OSError as e:
            raise StoreIOError(f"cannot read {self.state_path}: {e}") from e

        try:
            data = json.loads(raw.decode("utf-8"))
        except UnicodeDecodeError as e:
            return self._corrupt(f"not valid UTF-8: {e}")
        except json.JSONDecodeError as e:
            return self._corrupt(f"invalid JSON: {e}")

        if not isinstance(data, dict):
            return self._corrupt("record is not a JSON object")

        state_hash = data.pop(STATE_HASH_FIELD, None)
        try:
            lock = TaskLock.model_validate(data)
        except ValidationError as e:
            return self._corrupt(f"schema mismatch: {e.error_count()} invalid field(s)")

        if not isinstance(state_hash, str) or not state_hash.strip():
            return self._corrupt("STATE_HASH_MISSING")
        try:
            key = load_state_hmac_key(self.state_dir, self.hmac_key)
        except OSError as e:
            raise StoreIOError(f"cannot read the state HMAC key: {e}") from e
        if key is None or not verify_state_hash(data, state_hash, key):
            return self._corrupt("STATE_HASH_MISMATCH")

        return StateResult.ok(lock)

    def _corrupt(self, reason: str) -> StateResult:
        logger.warning(f"Lock record {self.state_path} is corrupted: {reason}")
        try:
            self.audit_event("STATE_CORRUPTED", reason, level=logging.WARNING, file=self.state_path.name)
        except OSError as e:
            logger.debug(f"Could not audit corruption: {e}")
        return StateResult.corrupt(reason)

    # Writing

    def _signed_record(self, lock: TaskLock) -> dict[str, Any]:
        record = lock.to_record()
        record[STATE_HASH_FIELD] = compute_state_hash(
            record, get_state_hmac_key(self.state_dir, self.hmac_key)
        )
        return record

    def write_state(self, lock: TaskLock) -> None:
        """Rotate the current record into the backup chain, then replace it."""
        with self.lock(lock.active_task_id):
            try:
                self.state_dir.mkdir(parents=True, exist_ok=True)
                backup_rotation.rotate_backup(self.state_path, self.generations)
                atomic_write_json(self.state_path, self._signed_record(lock))
            except OSError as e:
                raise StoreIOError(f"cannot write {self.state_path}: {e}") from e

        self.audit_event(
            "STATE_WRITE",
            f"taskId={lock.active_task_id} by={lock.started_by}",
            task_id=lock.active_task_id,
            actor=lock.started_by,
            validation_attempts=lock.validation_attempts,
        )
        logger.debug(f"Wrote lock record for {lock.active_task_id}")

    def clear_state(self, actor: Optional[str] = None) -> bool:
        """Rotate the current record into the backup chain and remove it.

        Returns True when a record was removed.
        """
        if not self.state_path.exists():
            return False

        with self.lock():
            try:
                if not self.state_path.exists():
                    return False
                backup_rotation.rotate_backup(self.state_path, self.generations)
                self.state_path.unlink()
            except OSError as e:
                raise StoreIOError(f"cannot clear {self.state_path}: {e}") from e

        self.audit_event("STATE_CLEARED", f"by={actor or 'unknown'}", actor=actor)
        return True

    # Backups

    def backup_paths(self) -> list[Path]:
        return backup_rotation.get_backup_paths(self.state_path, self.generations)

    def restore_from_backup(self, actor: Optional[str] = None) -> RestoreResult:
        """Copy the newest backup generation over the lock record."""
        with self.lock():
            try:
                result = backup_rotation.restore_from_backup(self.state_path, self.generations)
            except OSError as e:
                raise StoreIOError(f"cannot restore {self.state_path}: {e}") from e

        if result.restored:
            self.audit_event(
                "STATE_RESTORED",
                f"from={result.from_backup.name}",
                level=logging.WARNING,
                actor=actor,
                source=result.from_backup.name,
            )
        return result

    # Advisory state-dir lock

    def read_lock_info(self) -> Optional[dict[str, Any]]:
        """Owner info of the current state-dir lock, if readable."""
        try:
            data = json.loads(self.lock_info_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return None
        return data if isinstance(data, dict) else None

    def is_locked(self) -> bool:
        return self.lock_path.is_dir()

    def _lock_is_stale(self) -> bool:
        try:
            age = time.time() - self.lock_path.stat().st_mtime
        except FileNotFoundError:
            return False
        return age > self.stale_seconds

    def break_lock(self) -> bool:
        """Remove the state-dir lock regardless of its owner."""
        removed = False
        try:
            if self.lock_info_path.exists():
                self.lock_info_path.unlink()
            if self.lock_path.is_dir():
                shutil.rmtree(self.lock_path)
                removed = True
            elif self.lock_path.exists():
                self.lock_path.unlink()
                removed = True
        except OSError as e:
            raise StoreIOError(f"cannot remove {self.lock_path}: {e}") from e
        return removed

    def _write_lock_info(self, task_id: Optional[str]) -> None:
        info = {
            "taskId": task_id,
            "pid": os.getpid(),
            "host": socket.gethostname(),
            "startedAt": datetime.now(timezone.utc).isoformat(),
        }
        self.lock_info_path.write_text(json.dumps(info, indent=2), encoding="utf-8")

    @contextmanager
    def lock(self, task_id: Optional[str] = None) -> Iterator[None]:
        """Hold the state-dir lock for the duration of the block.

        Raises:
            StateLockTimeoutError: When another holder keeps a fresh lock for
                all retry attempts.
        """
        try:
            self.state_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreIOError(f"cannot create {self.state_dir}: {e}") from e

        attempt = 0
        while True:
            try:
                self.lock_path.mkdir()
                break
            except FileExistsError:
                if self._lock_is_stale():
                    logger.warning(f"Breaking stale state lock {self.lock_path}")
                    self.break_lock()
                    continue
                if attempt >= self.retries:
                    owner = self.read_lock_info() or {}
                    raise StateLockTimeoutError(
                        f"could not acquire {self.lock_path} after {attempt + 1} attempt(s) "
                        f"(held by pid={owner.get('pid')} task={owner.get('taskId')}). "
                        "Another process may be active; run 'tasklock force-unlock --force' "
                        "if the lock is stale"
                    )
                attempt += 1
                time.sleep(self.retry_wait)
            except OSError as e:
                raise StoreIOError(f"cannot create {self.lock_path}: {e}") from e

        try:
            self._write_lock_info(task_id)
            yield
        finally:
            try:
                self.lock_info_path.unlink()
            except FileNotFoundError:
                pass
            try:
                self.lock_path.rmdir()
            except OSError as e:
                logger.debug(f"State lock {self.lock_path} already gone: {e}")
