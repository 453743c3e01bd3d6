# Overview: Local blob cache for warm-starting application state; one file per key.

from __future__ import annotations

import os
import re
import tempfile

from flask import current_app

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def user_key(principal_id: str) -> str:
    return f"user:{principal_id}"


def state_key(principal_id: str) -> str:
    return f"app_state:{principal_id}"


class BlobCache:
    """
    Key -> bytes store under a directory.

    Reads of missing keys return None. Write and remove failures are logged
    and reported as False, never raised.
    """

    def __init__(self, root: str):
        self.root = root

    def _path(self, key: str) -> str:
        return os.path.join(self.root, _UNSAFE_KEY_CHARS.sub("_", key) + ".blob")

    def read_blob(self, key: str) -> bytes | None:
        path = self._path(key)
        try:
            with open(path, "rb") as fh:
                return fh.read()
        except FileNotFoundError:
            return None
        except OSError as exc:
            current_app.logger.warning("Blob cache read of %s failed: %s", key, exc)
            return None

    def write_blob(self, key: str, data: bytes) -> bool:
        """Write through a unique temp file in the cache dir, then rename over the key."""
        path = self._path(key)
        tmp_path = None
        try:
            os.makedirs(self.root, exist_ok=True)
            with tempfile.NamedTemporaryFile(dir=self.root, suffix=".tmp", delete=False) as fh:
                tmp_path = fh.name
                fh.write(data)
            os.replace(tmp_path, path)
        except OSError as exc:
            current_app.logger.warning("Blob cache write of %s failed: %s", key, exc)
            if tmp_path is not None:
                try:
                    os.remove(tmp_path)
                except OSError:
                    current_app.logger.debug("Temp file %s already gone", tmp_path)
            return False
        return True

    def remove_blob(self, key: str) -> bool:
        try:
            os.remove(self._path(key))
        except FileNotFoundError:
            return True
        except OSError as exc:
            current_app.logger.warning("Blob cache remove of %s failed: %s", key, exc)
            return False
        return True
