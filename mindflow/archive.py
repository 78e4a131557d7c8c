"""Archive codec: packs named files into a single zip container and back.

The engine only ever hands this layer a flat ``{path: bytes}`` mapping; it
knows nothing about manifests or maps.
"""

from __future__ import annotations

import io
import zipfile
from abc import ABC, abstractmethod

from mindflow.errors import ArchiveMalformedError


class ArchiveCodecInterface(ABC):
    """Abstract interface for raw archive I/O."""

    @abstractmethod
    def pack(self, files: dict[str, bytes]) -> bytes:
        """Bundle files (archive path -> content) into archive bytes."""

    @abstractmethod
    def unpack(self, data: bytes) -> dict[str, bytes]:
        """Return every file in the archive as archive path -> content.

        Raises:
            ArchiveMalformedError: If the bytes are not a readable archive.
        """


class ZipArchiveCodec(ArchiveCodecInterface):
    """Zip implementation using DEFLATE compression."""

    def __init__(self, compression_level: int = 6) -> None:
        self.compression_level = compression_level

    def pack(self, files: dict[str, bytes]) -> bytes:
        buffer = io.BytesIO()
        with zipfile.ZipFile(
            buffer,
            "w",
            compression=zipfile.ZIP_DEFLATED,
            compresslevel=self.compression_level,
        ) as zf:
            for path, content in files.items():
                zf.writestr(path, content)
        return buffer.getvalue()

    def unpack(self, data: bytes) -> dict[str, bytes]:
        try:
            with zipfile.ZipFile(io.BytesIO(data), "r") as zf:
                return {
                    info.filename.removeprefix("./"): zf.read(info)
                    for info in zf.infolist()
                    if not info.is_dir()
                }
        except (zipfile.BadZipFile, zipfile.LargeZipFile, EOFError, OSError) as e:
            raise ArchiveMalformedError(f"Unable to read archive. The file may be corrupted: {e}") from e
