"""
Request-scoped scratch directory.

The external signer reads the manifest from disk, so each request gets
its own freshly created directory that is removed on every exit path.
"""

import logging
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

from ..constants import Defaults

logger = logging.getLogger(__name__)


@contextmanager
def scratch_directory(
    prefix: str = Defaults.SCRATCH_PREFIX,
    root: Optional[Union[str, Path]] = None,
) -> Iterator[Path]:
    """
    Create a uniquely named directory and remove it afterwards.

    Args:
        prefix: Directory name prefix
        root: Parent directory (system temp dir when None)
    """
    path = Path(tempfile.mkdtemp(prefix=prefix, dir=str(root) if root else None))
    logger.debug(f"Created scratch directory {path}")
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
        if path.exists():
            logger.warning(f"Scratch directory could not be removed: {path}")
        else:
            logger.debug(f"Removed scratch directory {path}")
