"""
Durable, deduplicated schedule of passes kept as a JSON file.

Writes go to a temporary file next to the schedule which is then atomically renamed over it, so a reader only ever
sees the complete old or the complete new schedule.
"""

import json
import logging
import os
import shutil
from datetime import date
from pathlib import Path
from typing import Iterable, Optional

from groundpass.base.config import StoreConfig
from groundpass.base.errors import PersistFailure, StoreCorrupt, StoreUnavailable
from groundpass.base.passes import Pass, PassKey

logger = logging.getLogger(__name__)


class PassStore:
    def __init__(self, config: StoreConfig = None, path=None):
        if config is None:
            config = StoreConfig()
        self.config: StoreConfig = config
        self.path = Path(path if path is not None else config.passes_file).expanduser()
        self.tmp_path = self.path.with_name(self.path.name + ".tmp")
        self.backup_path = self.path.with_name(self.path.name + ".bak")
        self.keep_backup: bool = config.KEEP_BACKUP

    ## I/O ##

    def load(self) -> list[Pass]:
        """Read the persisted schedule. A missing, blank or corrupt file reads as an empty schedule.

        Raises:
            StoreUnavailable: the file exists but cannot be read
        """
        try:
            data = self.path.read_bytes()
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StoreUnavailable(self.path, str(e)) from e

        try:
            return self.decode(data)
        except StoreCorrupt as e:
            logger.error(f"Error parsing existing passes, treating schedule as empty: {e}")
            return []

    def decode(self, data: bytes) -> list[Pass]:
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise StoreCorrupt(self.path, f"not valid UTF-8: {e}") from e
        if text.strip() == "":
            return []
        try:
            records = json.loads(text)
        except json.JSONDecodeError as e:
            raise StoreCorrupt(self.path, f"invalid JSON: {e}") from e
        if not isinstance(records, list):
            raise StoreCorrupt(self.path, f"expected a list of passes, got {type(records).__name__}")
        passes = []
        for i, record in enumerate(records):
            try:
                passes.append(Pass.from_dict(record))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                raise StoreCorrupt(self.path, f"record {i} is malformed: {e!r}") from e
        return passes

    def save(self, passes: list[Pass]) -> None:
        """Sort passes by start time and atomically replace the schedule file.

        Raises:
            PersistFailure: the new schedule could not be written; the previous file is untouched
        """
        ordered = sorted(passes, key=lambda p: p.start_time)
        data = json.dumps([p.to_dict() for p in ordered], indent=2)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.tmp_path.open("w") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            if self.keep_backup and self.path.exists():
                shutil.copy2(self.path, self.backup_path)
            os.replace(self.tmp_path, self.path)
        except OSError as e:
            self._remove_tmp()
            raise PersistFailure(self.path, str(e)) from e
        logger.debug(f"Wrote {len(ordered)} passes to {self.path}")

    def _remove_tmp(self) -> None:
        try:
            self.tmp_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove {self.tmp_path}: {e}")

    ## Merging ##

    @staticmethod
    def merge(existing: Iterable[Pass], incoming: Iterable[Pass]) -> list[Pass]:
        """Append incoming passes whose identity key is not yet present. Existing entries are kept as they are."""
        merged = list(existing)
        keys = {p.key for p in merged}
        for new_pass in incoming:
            if new_pass.key in keys:
                continue
            merged.append(new_pass)
            keys.add(new_pass.key)
        return merged

    def update(self, incoming: Iterable[Pass]) -> int:
        """Load, merge and save. Returns the number of passes added."""
        existing = self.load()
        merged = self.merge(existing, incoming)
        self.save(merged)
        added = len(merged) - len(existing)
        logger.info(f"Satellite passes have been updated and saved: {added} new, {len(merged)} total")
        return added

    def mark_recorded(self, target: Pass) -> Pass:
        """Flip `recorded` on the stored pass sharing `target`'s key and save immediately.

        A pass missing from the file (e.g. after a corrupt schedule was discarded) is appended as recorded.
        Returns the stored pass.
        """
        passes = self.load()
        stored = self.find(passes, target.key)
        if stored is None:
            logger.warning(f"Pass {target.key} is not in {self.path}, adding it as recorded")
            stored = Pass.from_dict(target.to_dict())
            passes.append(stored)
        stored.recorded = True
        self.save(passes)
        target.recorded = True
        return stored

    ## Queries ##

    @staticmethod
    def find(passes: Iterable[Pass], key: PassKey) -> Optional[Pass]:
        for p in passes:
            if p.key == key:
                return p
        return None

    def passes_on(self, day: date) -> list[Pass]:
        return [p for p in self.load() if p.start_time.date() == day]
