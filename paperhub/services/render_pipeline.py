"""Render pipeline: collaborative document -> local file -> PDF -> page image.

The stage of a document is never stored. It is read off the artifacts under
the workspace directory:

    <workspace>/<repository>/<path>              materialized text
    <workspace>/<repository>/<path>.pdf          converted document
    <workspace>/<repository>/<path>.<page>.png   page previews

Within one process, conversions of the same document are serialized so that
concurrent previews convert once. Separate processes may still convert the
same document twice; the outcome is identical.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from functools import partial
from pathlib import Path

from paperhub.core.config import settings
from paperhub.core.errors import FilesystemError, MissingArtifactError
from paperhub.schemas.repository import DocumentRef, RenderStage
from paperhub.services.etherpad import EtherpadService
from paperhub.services.toolchain import run_tool

logger = logging.getLogger(__name__)

# Thread pool for blocking file I/O in async context
_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="render_io_")


def _write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


class RenderPipeline:
    """Lazily materializes, converts and previews collaborative documents."""

    def __init__(
        self,
        etherpad: EtherpadService,
        workspace_dir: Path | str | None = None,
        render_command: list[str] | None = None,
        image_command: list[str] | None = None,
    ):
        """Initialize the pipeline.

        Args:
            etherpad: Source of the current document text.
            workspace_dir: Root of local artifacts (default from settings).
            render_command: Command converting "<input> -o <output.pdf>"
                (default from settings).
            image_command: Command extracting "<pdf>[page] <output.png>"
                (default from settings).
        """
        self._etherpad = etherpad
        self.workspace_dir = Path(workspace_dir or settings.workspace_dir).resolve()
        self.render_command = list(render_command or settings.render_command)
        self.image_command = list(image_command or settings.image_command)
        # Lock and number of holders or waiters, per local path.
        self._locks: dict[Path, tuple[asyncio.Lock, int]] = {}

    def _run_sync(self, func, *args, **kwargs):
        """Run a sync function in the thread pool."""
        loop = asyncio.get_running_loop()
        return loop.run_in_executor(_executor, partial(func, *args, **kwargs))

    @asynccontextmanager
    async def _conversion_lock(self, path: Path) -> AsyncIterator[None]:
        """Serialize conversions of one document; the lock is dropped once unused."""
        lock, users = self._locks.get(path) or (asyncio.Lock(), 0)
        self._locks[path] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._locks[path]
            if users == 1:
                del self._locks[path]
            else:
                self._locks[path] = (lock, users - 1)

    def local_path(self, doc: DocumentRef) -> Path:
        """Get the local path a document materializes to.

        Raises:
            FilesystemError: If the repository or path escapes the workspace.
        """
        relative = Path(doc.repository) / doc.path.lstrip("/")
        path = (self.workspace_dir / relative).resolve()
        if not path.is_relative_to(self.workspace_dir):
            raise FilesystemError(f"Path escapes workspace: {relative}")
        return path

    @staticmethod
    def pdf_path(local_path: Path) -> Path:
        return local_path.with_name(f"{local_path.name}.pdf")

    @staticmethod
    def preview_path(local_path: Path, page: int) -> Path:
        return local_path.with_name(f"{local_path.name}.{page}.png")

    def stage(self, doc: DocumentRef) -> RenderStage:
        """Get the pipeline stage of a document from its artifacts."""
        local = self.local_path(doc)
        if self._has_preview(local):
            return RenderStage.PREVIEW_EXTRACTED
        if self.pdf_path(local).exists():
            return RenderStage.CONVERTED
        if local.exists():
            return RenderStage.MATERIALIZED
        return RenderStage.NO_LOCAL_COPY

    @staticmethod
    def _has_preview(local_path: Path) -> bool:
        # Names are compared literally; tracked files may contain glob characters.
        if not local_path.parent.is_dir():
            return False
        prefix = f"{local_path.name}."
        return any(
            name.startswith(prefix) and name.endswith(".png") and name[len(prefix):-len(".png")].isdigit()
            for name in (child.name for child in local_path.parent.iterdir())
        )

    async def materialize(self, doc: DocumentRef) -> Path:
        """Write the current text of a document to its local path.

        Missing directories are created.

        Returns:
            The local path.

        Raises:
            EtherpadAPIError: If the text cannot be read.
            FilesystemError: If the file cannot be written.
        """
        local = self.local_path(doc)
        text = await self._etherpad.get_text(doc.document_id)
        try:
            await self._run_sync(_write_text, local, text)
        except OSError as e:
            logger.error(f"Failed to materialize {doc.document_id} to {local}: {e}")
            raise FilesystemError(f"Failed to write {local}: {e}") from e
        logger.debug(f"Materialized {doc.document_id} to {local}")
        return local

    async def _render(self, local: Path) -> Path:
        output = self.pdf_path(local)
        await run_tool([*self.render_command, str(local), "-o", str(output)])
        logger.info(f"Converted {local} to {output}")
        return output

    async def convert(self, doc: DocumentRef) -> Path:
        """Materialize a document and convert it to PDF.

        Returns:
            Path of the PDF.

        Raises:
            ToolchainError: If the render tool fails; carries its diagnostics.
        """
        local = await self.materialize(doc)
        return await self._render(local)

    async def preview(self, doc: DocumentRef, page: int) -> Path:
        """Make a preview image of a page, converting the document first if needed.

        The document is materialized once; a missing PDF is rendered from
        that copy.

        Args:
            doc: Document to preview.
            page: Zero-based page index.

        Returns:
            Path of the PNG image.

        Raises:
            ToolchainError: If conversion or image extraction fails.
            MissingArtifactError: If no PDF exists after conversion ran.
        """
        if page < 0:
            raise ValueError(f"Page index must be non-negative, got {page}")

        local = await self.materialize(doc)
        output = self.pdf_path(local)

        async with self._conversion_lock(local):
            if not output.exists():
                logger.debug(f"No PDF for {doc.path}, converting first")
                await self._render(local)
                if not output.exists():
                    raise MissingArtifactError(str(output))

        image = self.preview_path(local, page)
        await run_tool([*self.image_command, f"{output}[{page}]", str(image)])
        logger.info(f"Extracted page {page} of {doc.path} to {image}")
        return image
