"""
Generational backup rotation for persisted files.

Backups live next to the primary file: ``<file>.bak`` is generation 0 (the
most recent prior version), followed by ``<file>.bak.1``, ``<file>.bak.2`` and
so on up to the configured number of generations.
"""

import logging
import os
import shutil
from pathlib import Path
from typing import Union

from ..models.state_result import RestoreResult

logger = logging.getLogger(__name__)

DEFAULT_GENERATIONS = 3
BACKUP_SUFFIX = ".bak"

PathLike = Union[str, Path]


def backup_path(path: PathLike, generation: int) -> Path:
    """Return the path of backup ``generation`` for ``path``."""
    base = str(path)
    if generation == 0:
        return Path(f"{base}{BACKUP_SUFFIX}")
    return Path(f"{base}{BACKUP_SUFFIX}.{generation}")


def get_backup_paths(path: PathLike, generations: int = DEFAULT_GENERATIONS) -> list[Path]:
    """Return backup paths ordered from newest (generation 0) to oldest."""
    return [backup_path(path, i) for i in range(generations)]


def _discard_generations_from(path: Path, first_discarded: int) -> None:
    """Delete every existing backup whose generation is >= ``first_discarded``."""
    prefix = f"{path.name}{BACKUP_SUFFIX}."
    for candidate in path.parent.glob(f"{path.name}{BACKUP_SUFFIX}*"):
        if candidate.name == f"{path.name}{BACKUP_SUFFIX}":
            generation = 0
        elif candidate.name.startswith(prefix) and candidate.name[len(prefix):].isdigit():
            generation = int(candidate.name[len(prefix):])
        else:
            continue
        if generation >= first_discarded:
            candidate.unlink()


def rotate_backup(path: PathLike, max_generations: int = DEFAULT_GENERATIONS) -> None:
    """Shift existing backups one generation older and snapshot ``path``.

    No-op when ``path`` does not exist. Generation ``max_generations - 1`` and
    anything older is discarded first, then surviving generations move from
    the highest index down so no rename overwrites a live backup. Finally the
    primary content is copied byte-for-byte into generation 0.
    """
    if max_generations < 1:
        raise ValueError("max_generations must be at least 1")

    path = Path(path)
    if not path.exists():
        return

    _discard_generations_from(path, max_generations - 1)

    for generation in range(max_generations - 2, -1, -1):
        current = backup_path(path, generation)
        if current.exists():
            os.replace(current, backup_path(path, generation + 1))

    shutil.copy2(path, backup_path(path, 0))
    logger.debug(f"Rotated backups for {path} (max {max_generations})")


def restore_from_backup(
    path: PathLike, generations: int = DEFAULT_GENERATIONS
) -> RestoreResult:
    """Copy the newest existing backup generation over ``path``."""
    for candidate in get_backup_paths(path, generations):
        if candidate.exists():
            shutil.copy2(candidate, path)
            logger.warning(f"Restored {path} from {candidate}")
            return RestoreResult(restored=True, from_backup=candidate)

    return RestoreResult(restored=False, reason="no_backup")
