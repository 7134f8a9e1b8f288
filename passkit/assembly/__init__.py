"""
Assembly stages: enumeration, hashing, manifest, scratch space, archive.
"""

from .enumerator import ContentEnumerator, SourceFile, remove_dot_files
from .hashing import HashCollector, MANIFEST_HASH
from .manifest import ManifestBuilder, ManifestFile, serialize_manifest
from .scratch import scratch_directory
from .archive import ArchiveAssembler

__all__ = [
    'ContentEnumerator',
    'SourceFile',
    'remove_dot_files',
    'HashCollector',
    'MANIFEST_HASH',
    'ManifestBuilder',
    'ManifestFile',
    'serialize_manifest',
    'scratch_directory',
    'ArchiveAssembler',
]
