"""
Glob matching of repository-relative paths against task scopes.

Pattern semantics follow conventional globbing: ``**`` crosses directory
boundaries, ``*`` stays inside one segment, braces and extglobs expand, and
wildcards never match a leading dot unless the pattern spells it out.
"""

import logging
import os
import tempfile
from functools import lru_cache
from typing import Iterable, Optional, Sequence

from wcmatch import glob

logger = logging.getLogger(__name__)

BASE_FLAGS = glob.GLOBSTAR | glob.BRACE | glob.EXTGLOB | glob.FORCEUNIX


@lru_cache(maxsize=None)
def _probe_case_sensitivity(directory: str) -> bool:
    with tempfile.NamedTemporaryFile(prefix="tlCaseProbe", dir=directory) as handle:
        head, tail = os.path.split(handle.name)
        return not os.path.exists(os.path.join(head, tail.swapcase()))


def filesystem_is_case_sensitive(directory: Optional[str] = None) -> bool:
    """Detect whether the filesystem holding ``directory`` is case-sensitive.

    Creates a short-lived mixed-case file and checks whether its case-swapped
    name resolves. Results are cached per directory.
    """
    directory = str(directory or tempfile.gettempdir())
    try:
        return _probe_case_sensitivity(directory)
    except OSError as e:
        fallback = tempfile.gettempdir()
        if directory == fallback:
            logger.warning(f"Case sensitivity probe failed in {directory}: {e}")
            return True
        logger.debug(f"Case sensitivity probe failed in {directory}, retrying in {fallback}: {e}")
        return filesystem_is_case_sensitive(fallback)


def _to_posix(path: str) -> str:
    if os.sep != "/":
        path = path.replace(os.sep, "/")
    while path.startswith("./"):
        path = path[2:]
    return path


def matches_scope(
    path: str, scopes: Sequence[str], *, case_sensitive: Optional[bool] = None
) -> bool:
    """True iff at least one pattern in ``scopes`` matches ``path``.

    An empty ``scopes`` never matches.
    """
    patterns = [scope for scope in scopes if scope]
    if not patterns:
        return False

    if case_sensitive is None:
        case_sensitive = filesystem_is_case_sensitive()

    flags = BASE_FLAGS | (glob.CASE if case_sensitive else glob.IGNORECASE)
    return glob.globmatch(_to_posix(path), patterns, flags=flags)


def partition_paths(
    paths: Iterable[str], scopes: Sequence[str], *, case_sensitive: Optional[bool] = None
) -> tuple[list[str], list[str]]:
    """Split ``paths`` into ``(in_scope, out_of_scope)``, keeping their order."""
    if case_sensitive is None:
        case_sensitive = filesystem_is_case_sensitive()

    in_scope: list[str] = []
    out_of_scope: list[str] = []
    for path in paths:
        if matches_scope(path, scopes, case_sensitive=case_sensitive):
            in_scope.append(path)
        else:
            out_of_scope.append(path)
    return in_scope, out_of_scope
