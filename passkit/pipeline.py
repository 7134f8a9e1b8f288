"""
Pass assembly pipeline.

    resolve type -> enumerate -> scratch dir -> hash (fan-out) -> manifest
        -> sign -> (scratch removed) -> archive -> PackageResult

Stages run strictly in sequence; only hashing is concurrent. Any failure
ends the request without publishing an archive.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from .assembly import (
    ArchiveAssembler,
    ContentEnumerator,
    HashCollector,
    ManifestBuilder,
    scratch_directory,
)
from .config import PasskitConfig
from .constants import MediaTypes
from .errors import PasskitError
from .logging_config import get_logger
from .models import ModelRepository
from .signing import ManifestSigner, create_signer

logger = get_logger(__name__)


@dataclass(frozen=True)
class PackageResult:
    """A finished package, ready for the transport."""
    package_type: str
    path: Path
    size: int
    media_type: str = MediaTypes.PKPASS
    manifest: Dict[str, str] = field(default_factory=dict)

    @property
    def filename(self) -> str:
        return self.path.name


class PassAssembler:
    """
    Builds signed pass packages.

    Usage:
        assembler = PassAssembler(load_config("config.yaml"))
        result = await assembler.assemble("event")
    """

    def __init__(
        self,
        config: PasskitConfig,
        signer: Optional[ManifestSigner] = None,
        repository: Optional[ModelRepository] = None,
    ):
        self.config = config
        self.repository = repository or ModelRepository(config)
        self.enumerator = ContentEnumerator(config.required_entry)
        self.collector = HashCollector(
            max_workers=config.assembly.max_concurrent_reads,
            chunk_size=config.assembly.chunk_size,
        )
        self.manifest_builder = ManifestBuilder()
        self.signer = signer or create_signer(config)

    async def assemble(self, package_type: str) -> PackageResult:
        """Run the whole pipeline for one package type."""
        logger.pipeline_start("assemble", package_type=package_type, signer=self.signer.name)
        try:
            result = await self._assemble(package_type)
        except PasskitError as e:
            logger.pipeline_end("assemble", success=False, package_type=package_type, error=e.code)
            raise
        logger.pipeline_end("assemble", success=True, package_type=result.package_type,
                            path=str(result.path), size=result.size)
        return result

    def assemble_sync(self, package_type: str) -> PackageResult:
        """Blocking entry point for threads without an event loop."""
        return asyncio.run(self.assemble(package_type))

    async def _assemble(self, package_type: str) -> PackageResult:
        loop = asyncio.get_running_loop()

        package_type = self.repository.normalize(package_type)
        model_dir = self.repository.resolve(package_type)
        sources = await loop.run_in_executor(None, self.enumerator.enumerate, model_dir)
        logger.pipeline_step("enumerate", files=len(sources), model=str(model_dir))

        archive = ArchiveAssembler(self.config.output_dir, chunk_size=self.config.assembly.chunk_size)

        with scratch_directory(self.config.assembly.scratch_prefix,
                               self.config.assembly.scratch_root) as scratch:
            digests = await self.collector.collect(sources, staging=archive)
            logger.pipeline_step("hash", files=len(digests))

            manifest = await loop.run_in_executor(None, self.manifest_builder.build, digests, scratch)
            logger.pipeline_step("manifest", bytes=len(manifest.data))

            signature = await self.signer.sign(manifest)
            logger.pipeline_step("sign", backend=self.signer.name, bytes=len(signature))

        path = await archive.write(package_type, manifest.data, signature)
        size = path.stat().st_size
        logger.pipeline_step("archive", path=str(path), size=size)

        return PackageResult(
            package_type=package_type,
            path=path,
            size=size,
            manifest=digests,
        )
