"""
Archive Assembler.

Packages the staged content files, the manifest and the signature into a
single ZIP container. The archive is written to a temporary file next to
its destination and renamed into place only once it is complete, so a
reader never observes a half-written package and a failed write leaves
the previous archive untouched.
"""

import asyncio
import logging
import os
import shutil
import tempfile
import threading
import zipfile
from pathlib import Path
from typing import Dict, List, Union

from ..constants import BufferSizes, Defaults, Permissions, Reserved
from ..errors import ArchiveWriteFailure
from .enumerator import SourceFile

logger = logging.getLogger(__name__)


class ArchiveAssembler:
    """
    Collects content files for one request and writes the package.

    Usage:
        archive = ArchiveAssembler(output_dir)
        archive.stage(source)            # once per content file
        path = await archive.write("event", manifest_bytes, signature_bytes)
    """

    def __init__(
        self,
        output_dir: Union[str, Path],
        suffix: str = Defaults.ARCHIVE_SUFFIX,
        chunk_size: int = BufferSizes.FILE_CHUNK,
    ):
        self.output_dir = Path(output_dir)
        self.suffix = suffix
        self.chunk_size = chunk_size
        self._staged: Dict[str, SourceFile] = {}
        self._lock = threading.Lock()

    def stage(self, source: SourceFile) -> None:
        """Register a content file; its bytes are read again at write time."""
        if source.name in Reserved.generated():
            raise ValueError(f"'{source.name}' is reserved for the pipeline")
        with self._lock:
            if source.name in self._staged:
                raise ValueError(f"'{source.name}' is already staged")
            self._staged[source.name] = source

    @property
    def staged(self) -> List[SourceFile]:
        with self._lock:
            return [self._staged[name] for name in sorted(self._staged)]

    def output_path(self, package_type: str) -> Path:
        return self.output_dir / f"{package_type}{self.suffix}"

    @staticmethod
    def _entry(name: str) -> zipfile.ZipInfo:
        info = zipfile.ZipInfo(name, date_time=Defaults.ZIP_TIMESTAMP)
        info.compress_type = zipfile.ZIP_DEFLATED
        info.external_attr = Permissions.STANDARD_FILE << 16
        return info

    def write_sync(self, package_type: str, manifest: bytes, signature: bytes) -> Path:
        """Write and publish the archive. Blocking; see write()."""
        target = self.output_path(package_type)
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=str(self.output_dir),
                                            prefix=f".{target.name}.", suffix=".tmp")
        except OSError as e:
            raise ArchiveWriteFailure(str(target), e) from e

        published = False
        try:
            with os.fdopen(fd, 'wb') as raw:
                with zipfile.ZipFile(raw, 'w', compression=zipfile.ZIP_DEFLATED) as zf:
                    for source in self.staged:
                        with open(source.path, 'rb') as src, zf.open(self._entry(source.name), 'w') as dst:
                            shutil.copyfileobj(src, dst, self.chunk_size)
                    # Generated entries always follow the content entries
                    zf.writestr(self._entry(Reserved.MANIFEST), manifest)
                    zf.writestr(self._entry(Reserved.SIGNATURE), signature)
                raw.flush()
                os.fsync(raw.fileno())

            os.chmod(tmp_name, Permissions.STANDARD_FILE)
            os.replace(tmp_name, target)
            published = True
        except (OSError, ValueError, zipfile.LargeZipFile) as e:
            raise ArchiveWriteFailure(str(target), e) from e
        finally:
            if not published:
                try:
                    os.unlink(tmp_name)
                except FileNotFoundError:
                    pass

        logger.info(f"Published {target} ({len(self.staged)} content files)")
        return target

    async def write(self, package_type: str, manifest: bytes, signature: bytes) -> Path:
        """Write the archive on a worker thread; returns the published path."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.write_sync, package_type, manifest, signature)
