"""File output sink.

``FileSink`` writes the dump to a hidden ``.partial`` file next to its final
location and renames it into place on ``commit()``. A failed dump calls
``discard()``, which deletes the partial file, so a truncated script that
looks importable is never left behind.

Usage:
    from db_dumper.adapters.sink import FileSink

    sink = FileSink(Path("dumps") / "mydb-dump.sql")
    sink.write("SET client_encoding = 'UTF8';\\n")
    path = sink.commit()
"""

import logging
import os
from pathlib import Path
from typing import TextIO

logger = logging.getLogger(__name__)


class FileSink:
    """Append-only UTF-8 file sink with atomic commit.

    The parent directory is created on first write.

    Args:
        path: Final location of the dump file.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._partial = self.path.with_name(f".{self.path.name}.partial")
        self._file: TextIO | None = None
        self.bytes_written = 0

    @property
    def partial_path(self) -> Path:
        return self._partial

    def _open(self) -> TextIO:
        if self._file is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._file = open(self._partial, "w", encoding="utf-8", newline="\n")
        return self._file

    def write(self, text: str) -> None:
        f = self._open()
        f.write(text)
        self.bytes_written += len(text.encode("utf-8"))

    def commit(self) -> Path:
        """Flush, fsync and rename the partial file to ``path``."""
        f = self._open()
        f.flush()
        os.fsync(f.fileno())
        f.close()
        self._file = None
        os.replace(self._partial, self.path)
        logger.debug("Committed %d bytes to %s", self.bytes_written, self.path)
        return self.path

    def discard(self) -> None:
        """Close and delete the partial file, if any."""
        if self._file is not None:
            self._file.close()
            self._file = None
        if self._partial.exists():
            self._partial.unlink()
            logger.debug("Discarded partial output %s", self._partial)
        self.bytes_written = 0
