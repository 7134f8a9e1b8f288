"""
Hash-and-Collect stage.

Every content file is staged for the archive and hashed concurrently.
Reads run on a bounded thread pool driven from asyncio; the first read
failure aborts the batch, and the error is raised only after every
in-flight read has closed its file.
"""

import asyncio
import hashlib
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Optional, Sequence, Tuple

from ..constants import BufferSizes, Defaults
from ..errors import FileReadFailure, HashAborted
from .enumerator import SourceFile

logger = logging.getLogger(__name__)

MANIFEST_HASH = "sha1"


class HashCollector:
    """
    Computes the manifest digests for a set of source files.

    Usage:
        collector = HashCollector(max_workers=8)
        digests = await collector.collect(sources, staging=archive)
    """

    def __init__(
        self,
        max_workers: int = Defaults.MAX_CONCURRENT_READS,
        chunk_size: int = BufferSizes.FILE_CHUNK,
        algorithm: str = MANIFEST_HASH,
    ):
        self.max_workers = max(1, max_workers)
        self.chunk_size = chunk_size
        self.algorithm = algorithm

    def _digest_file(self, source: SourceFile, abort: threading.Event) -> Tuple[str, str]:
        """Stream one file through the hash. Runs on a worker thread."""
        if abort.is_set():
            raise HashAborted(f"Hashing of {source.name} skipped")

        digest = hashlib.new(self.algorithm)
        try:
            with open(source.path, 'rb') as f:
                for chunk in iter(lambda: f.read(self.chunk_size), b''):
                    if abort.is_set():
                        raise HashAborted(f"Hashing of {source.name} aborted")
                    digest.update(chunk)
        except OSError as e:
            raise FileReadFailure(source.name, e) from e

        return source.name, digest.hexdigest().strip()

    async def collect(self, sources: Sequence[SourceFile], staging=None) -> Dict[str, str]:
        """
        Hash all sources; all-or-nothing.

        Args:
            sources: Files to hash
            staging: Optional object with a ``stage(source)`` method, called
                for every file as its hash task is scheduled

        Returns:
            Mapping of file name to lowercase hex digest, in source order

        Raises:
            FileReadFailure: the first read that failed
        """
        if not sources:
            return {}

        loop = asyncio.get_running_loop()
        abort = threading.Event()
        executor = ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(sources)),
            thread_name_prefix="passkit-hash",
        )
        futures = []

        try:
            for source in sources:
                if staging is not None:
                    staging.stage(source)
                futures.append(loop.run_in_executor(executor, self._digest_file, source, abort))

            await asyncio.wait(futures, return_when=asyncio.FIRST_EXCEPTION)
            abort.set()
            # Every read has returned, and closed its file, once gathered
            outcomes = await asyncio.gather(*futures, return_exceptions=True)
        except BaseException:
            abort.set()
            for future in futures:
                future.cancel()
            raise
        finally:
            # Workers are idle or stopping on abort; never block the loop on them
            executor.shutdown(wait=False)

        failure = self._first_failure(outcomes)
        if failure is not None:
            logger.error(f"Hashing failed, discarding {len(sources)} partial digests: {failure}")
            raise failure

        results = dict(outcomes)
        logger.debug(f"Hashed {len(results)} files with {self.algorithm}")
        return results

    @staticmethod
    def _first_failure(outcomes) -> Optional[BaseException]:
        errors = [o for o in outcomes if isinstance(o, BaseException)]
        for error in errors:
            if not isinstance(error, HashAborted):
                return error
        return errors[0] if errors else None
