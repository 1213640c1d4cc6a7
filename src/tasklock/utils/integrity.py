"""
HMAC signing of the lock record.

Each persisted record carries a ``stateHash``: an HMAC-SHA256 over its fields,
keyed by ``SDD_STATE_HMAC_KEY`` or by a random key kept in
``<state_dir>/state-hmac.key``. A record edited by hand no longer verifies.
"""

import hashlib
import hmac
import json
import logging
import os
import secrets
import time
from pathlib import Path
from typing import Any, Mapping, Optional, Union

logger = logging.getLogger(__name__)

STATE_HASH_FIELD = "stateHash"
STATE_HMAC_KEY_NAME = "state-hmac.key"
SIGNED_FIELDS = (
    "version",
    "activeTaskId",
    "activeTaskTitle",
    "allowedScopes",
    "startedAt",
    "startedBy",
    "validationAttempts",
)

_KEY_READ_ATTEMPTS = 5
_KEY_READ_WAIT_SECONDS = 0.01


def _env_key(env_key: Optional[str]) -> Optional[bytes]:
    if env_key is None or not env_key.strip():
        return None
    return env_key.strip().encode("utf-8")


def _read_key_file(key_path: Path) -> Optional[bytes]:
    try:
        content = key_path.read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        return None
    return content.encode("utf-8") if content else None


def load_state_hmac_key(state_dir: Union[str, Path], env_key: Optional[str] = None) -> Optional[bytes]:
    """Return the signing key without creating it, or None when there is none."""
    return _env_key(env_key) or _read_key_file(Path(state_dir) / STATE_HMAC_KEY_NAME)


def get_state_hmac_key(state_dir: Union[str, Path], env_key: Optional[str] = None) -> bytes:
    """Return the signing key, generating the key file on first use.

    The key file is created exclusively with mode 0600. When another process
    wins the creation race, its key is read back.

    Raises:
        OSError: If the key file cannot be created or read.
    """
    key = load_state_hmac_key(state_dir, env_key)
    if key is not None:
        return key

    key_path = Path(state_dir) / STATE_HMAC_KEY_NAME
    key_path.parent.mkdir(parents=True, exist_ok=True)
    generated = secrets.token_hex(32)
    try:
        fd = os.open(key_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    except FileExistsError:
        for _ in range(_KEY_READ_ATTEMPTS):
            key = _read_key_file(key_path)
            if key is not None:
                return key
            time.sleep(_KEY_READ_WAIT_SECONDS)
        raise OSError(f"HMAC key file {key_path} exists but stays empty")

    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(generated)
        f.flush()
        os.fsync(f.fileno())
    logger.info(f"Generated state HMAC key {key_path}")
    return generated.encode("utf-8")


def compute_state_hash(record: Mapping[str, Any], key: bytes) -> str:
    """HMAC-SHA256 over the signed fields of a lock record."""
    payload = {name: record.get(name) for name in SIGNED_FIELDS}
    message = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
    return hmac.new(key, message.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_state_hash(record: Mapping[str, Any], state_hash: str, key: bytes) -> bool:
    expected = compute_state_hash(record, key)
    return hmac.compare_digest(expected.encode("ascii"), state_hash.encode("utf-8"))
