"""Persistence of the previous sample between invocations.

Every invocation is a separate process, so the reading used as the base for
counter rates lives in a small JSON file keyed by plugin identity.  Loading
never fails the caller: anything other than a well-formed baseline reads as
"no baseline".  Saving replaces the file atomically.
"""

from __future__ import annotations

import hashlib
import json
import logging
import math
import os
import re
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..errors import PersistenceFailure

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


@dataclass(frozen=True)
class PersistedBaseline:
    """The last emitted raw sample and the time it was taken."""

    sample: dict[str, float] = field(default_factory=dict)
    observed_at: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {"observed_at": self.observed_at, "sample": dict(self.sample)}


def _is_number(value: Any) -> bool:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def _baseline_from_dict(data: Any) -> PersistedBaseline | None:
    if not isinstance(data, dict):
        return None
    observed_at = data.get("observed_at")
    sample = data.get("sample")
    if not _is_number(observed_at):
        return None
    if not isinstance(sample, dict):
        return None
    values: dict[str, float] = {}
    for name, value in sample.items():
        if not isinstance(name, str) or not _is_number(value):
            return None
        values[name] = float(value)
    return PersistedBaseline(sample=values, observed_at=float(observed_at))


def identity_slug(identity: str) -> str:
    """Turn an identity such as ``mongodb-::1-27017`` into a safe file name part.

    When characters had to be replaced, a short hash of the raw identity is
    appended so that distinct identities never share a file.
    """
    slug = _UNSAFE_CHARS.sub("_", identity)
    if slug == identity and slug:
        return slug
    digest = hashlib.sha1(identity.encode("utf-8")).hexdigest()[:8]
    return f"{slug}-{digest}"


class SnapshotStore:
    """Loads and saves :class:`PersistedBaseline` records.

    Records live under *directory* (the system temp dir by default) as
    ``metricsnap-<identity>.json``.  A store built with :meth:`for_file`
    uses one explicit file instead.
    """

    def __init__(
        self,
        directory: str | Path | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        self._directory = Path(directory) if directory else Path(tempfile.gettempdir())
        self._file: Path | None = None
        self._log = log or logger

    @classmethod
    def for_file(cls, path: str | Path, log: logging.Logger | None = None) -> "SnapshotStore":
        """Return a store bound to one explicit file, ignoring identities."""
        path = Path(path)
        store = cls(path.parent, log=log)
        store._file = path
        return store

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, identity: str) -> Path:
        if self._file is not None:
            return self._file
        return self._directory / f"metricsnap-{identity_slug(identity)}.json"

    def load(self, identity: str) -> PersistedBaseline | None:
        """Return the stored baseline for *identity*, or None."""
        path = self.path_for(identity)
        try:
            with open(path, encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError:
            self._log.debug("No baseline at %s", path)
            return None
        except (OSError, ValueError) as exc:
            self._log.debug("Ignoring unreadable baseline %s: %s", path, exc)
            return None

        baseline = _baseline_from_dict(data)
        if baseline is None:
            self._log.debug("Ignoring malformed baseline %s", path)
        return baseline

    def save(self, identity: str, baseline: PersistedBaseline) -> Path:
        """Atomically replace the stored baseline for *identity*.

        Raises :class:`PersistenceFailure` if the record cannot be written;
        the previous record, if any, is left untouched in that case.
        """
        path = self.path_for(identity)
        tmp_name: str | None = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=path.parent,
                prefix=f".{path.name}.",
                suffix=".tmp",
                delete=False,
            ) as fh:
                tmp_name = fh.name
                json.dump(baseline.to_dict(), fh)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, path)
        except (OSError, TypeError, ValueError) as exc:
            if tmp_name is not None and os.path.exists(tmp_name):
                try:
                    os.remove(tmp_name)
                except OSError:
                    self._log.debug("Could not remove temporary file %s", tmp_name)
            raise PersistenceFailure(str(path), str(exc)) from exc
        self._log.debug("Saved baseline for %s to %s", identity, path)
        return path
