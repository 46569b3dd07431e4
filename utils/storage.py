# -*- coding: utf-8 -*-
import os
import logging
import tempfile
from typing import List

from utils import file_helpers

log = logging.getLogger('GreetBot.Utils.Storage')


class Storage:
    """
    Minimal file capability used by the preference store and sound catalog.
    Names are flat (no sub-directories). Implementations raise OSError
    subclasses on failure; callers decide how to degrade.
    """

    def read_text(self, name: str) -> str:
        raise NotImplementedError

    def write_text(self, name: str, text: str) -> None:
        """Replaces the whole file. Readers see either the old or the new content."""
        raise NotImplementedError

    def write_new(self, name: str, data: bytes) -> None:
        """Creates name with data, raising FileExistsError if it is already there."""
        raise NotImplementedError

    def list_names(self, suffix: str) -> List[str]:
        raise NotImplementedError

    def exists(self, name: str) -> bool:
        raise NotImplementedError

    def path_for(self, name: str) -> str:
        raise NotImplementedError

    def ensure_root(self) -> None:
        pass


class LocalStorage(Storage):
    """Storage rooted at a directory on the local filesystem."""

    def __init__(self, root: str):
        self.root = root

    def __repr__(self) -> str:
        return f"LocalStorage({self.root!r})"

    def ensure_root(self) -> None:
        if not os.path.isdir(self.root):
            os.makedirs(self.root, exist_ok=True)
            log.info(f"Created directory: {self.root}")

    def path_for(self, name: str) -> str:
        if not file_helpers.is_flat_name(name):
            raise ValueError(f"Storage names must be plain file names, got {name!r}")
        return os.path.join(self.root, name)

    def exists(self, name: str) -> bool:
        if not file_helpers.is_flat_name(name):
            return False
        return os.path.isfile(self.path_for(name))

    def read_text(self, name: str) -> str:
        with open(self.path_for(name), 'r', encoding='utf-8') as f:
            return f.read()

    def write_text(self, name: str, text: str) -> None:
        target = self.path_for(name)
        directory = os.path.dirname(os.path.abspath(target))
        fd, temp_path = tempfile.mkstemp(prefix=f".{name}.", suffix=".tmp", dir=directory)
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            # Atomic on the same filesystem
            os.replace(temp_path, target)
        except BaseException:
            if os.path.exists(temp_path):
                try:
                    os.remove(temp_path)
                except OSError as cleanup_err:
                    log.warning(f"Failed to clean up temporary file '{temp_path}': {cleanup_err}")
            raise

    def write_new(self, name: str, data: bytes) -> None:
        target = self.path_for(name)
        # 'xb' fails if the file exists, so a concurrent add can never overwrite
        with open(target, 'xb') as f:
            try:
                f.write(data)
            except BaseException:
                f.close()
                os.remove(target)
                raise

    def list_names(self, suffix: str) -> List[str]:
        names = []
        with os.scandir(self.root) as entries:
            for entry in entries:
                if entry.is_file() and entry.name.lower().endswith(suffix.lower()):
                    names.append(entry.name)
        return names
