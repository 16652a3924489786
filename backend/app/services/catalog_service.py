"""Catalog aggregation — turns the Drive folder tree into part records."""

from __future__ import annotations

import asyncio
import logging
import mimetypes
from dataclasses import dataclass
from typing import TYPE_CHECKING

from app.config import settings
from app.exceptions import (
    CatalogError,
    NotFoundError,
    UpstreamError,
    UpstreamListError,
    ValidationError,
)

if TYPE_CHECKING:
    from app.services.drive_client import DriveClient, DriveFile

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MIME_TYPE = "image/jpeg"
DETAILS_FILENAME = "details.txt"
IMAGE_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


@dataclass
class PartRecord:
    id: str
    name: str
    image_reference: str | None = None
    details: str = ""


@dataclass
class PartFolder:
    id: str
    name: str


@dataclass
class ImageUpload:
    data: bytes
    mime_type: str = DEFAULT_IMAGE_MIME_TYPE
    filename: str | None = None


def pick_image(children: list[DriveFile]) -> DriveFile | None:
    """First image child in listing order."""
    for child in children:
        if child.kind == "image":
            return child
    return None


def pick_details(children: list[DriveFile], exclude: DriveFile | None = None) -> DriveFile | None:
    """Prefer a child named like ``details``, else the first plain-text child.

    Google-native files with no text export (Forms, Drawings, ...) are never
    candidates.
    """
    candidates = [
        c for c in children
        if not c.is_folder and c is not exclude and c.readable_as_text
    ]
    for child in candidates:
        if child.kind != "image" and "details" in child.name.lower():
            return child
    for child in candidates:
        if child.kind == "text":
            return child
    return None


class CatalogService:
    """List, create and soft-delete parts under one Drive root folder."""

    def __init__(
        self,
        drive: DriveClient,
        root_folder_id: str,
        *,
        view_base_url: str | None = None,
        concurrency: int | None = None,
        failure_mode: str | None = None,
    ):
        self._drive = drive
        self._root_folder_id = root_folder_id
        self._view_base_url = view_base_url or settings.drive_view_base_url
        self._concurrency = concurrency or settings.catalog_concurrency
        self._failure_mode = failure_mode or settings.catalog_failure_mode

    @property
    def lenient(self) -> bool:
        return self._failure_mode == "lenient"

    def image_url(self, file_id: str) -> str:
        return f"{self._view_base_url}?id={file_id}"

    async def list_parts(self, root_folder_id: str | None = None) -> list[PartRecord]:
        """Aggregate one record per non-trashed folder under the root.

        Output order follows the Drive listing order. Per-folder work runs
        concurrently up to the configured limit.
        """
        root = root_folder_id or self._root_folder_id
        try:
            folders = await self._drive.list_children(root, folders_only=True)
        except UpstreamError as exc:
            raise UpstreamListError(
                f"Failed to list part folders: {exc.message}",
                upstream_status=exc.upstream_status,
            ) from exc

        semaphore = asyncio.Semaphore(self._concurrency)

        async def _bounded(folder: DriveFile) -> PartRecord:
            async with semaphore:
                return await self._build_record(folder)

        results = await asyncio.gather(
            *(_bounded(folder) for folder in folders),
            return_exceptions=True,
        )

        records: list[PartRecord] = []
        for folder, result in zip(folders, results):
            if isinstance(result, BaseException):
                # strict mode: first failing folder in listing order wins
                logger.error("Aggregation failed at folder %s (%s): %s", folder.id, folder.name, result)
                raise result
            records.append(result)

        logger.info("Listed %d parts under %s", len(records), root)
        return records

    async def _build_record(self, folder: DriveFile) -> PartRecord:
        record = PartRecord(id=folder.id, name=folder.name)

        try:
            children = await self._drive.list_children(folder.id, folders_only=None)
        except CatalogError as exc:
            if not self.lenient:
                raise
            logger.warning("Skipping children of %s (%s): %s", folder.id, folder.name, exc)
            return record

        image = pick_image(children)
        if image:
            record.image_reference = self.image_url(image.id)

        details_file = pick_details(children, exclude=image)
        if details_file:
            try:
                record.details = await self._drive.get_text(details_file)
            except CatalogError as exc:
                if not self.lenient:
                    raise
                logger.warning("Details of %s unavailable (%s): %s", folder.id, details_file.name, exc)

        return record

    async def create_part(
        self,
        name: str,
        image: ImageUpload | None = None,
        details: str | None = None,
    ) -> PartFolder:
        """Create a part folder with optional image and details.

        Each step is an independent write; a later failure leaves the folder
        partially populated.
        """
        if not name or not name.strip():
            raise ValidationError("Part name is required")
        name = name.strip()

        folder = await self._drive.create_folder(name, self._root_folder_id)
        logger.info("Created part folder %s (%s)", folder.id, name)

        try:
            if image is not None and image.data:
                mime_type = image.mime_type or DEFAULT_IMAGE_MIME_TYPE
                filename = image.filename or _default_image_name(mime_type)
                await self._drive.upload_file(filename, folder.id, image.data, mime_type)

            if details:
                await self._drive.upload_file(
                    DETAILS_FILENAME, folder.id, details.encode("utf-8"), "text/plain",
                )
        except CatalogError:
            logger.error("Part folder %s left partially populated", folder.id)
            raise

        return PartFolder(id=folder.id, name=folder.name)

    async def delete_part(self, folder_id: str) -> None:
        """Soft-delete a part folder by marking it trashed.

        Only folders directly under the root are parts; any other id is
        reported as not found and left untouched.
        """
        if not folder_id:
            raise ValidationError("folderId is required")
        target = await self._drive.get_file(folder_id)
        if not target.is_folder or self._root_folder_id not in target.parents:
            raise NotFoundError(f"Part folder not found: {folder_id}")
        await self._drive.update_metadata(folder_id, {"trashed": True})
        logger.info("Trashed part folder %s", folder_id)


def _default_image_name(mime_type: str) -> str:
    ext = IMAGE_EXTENSIONS.get(mime_type) or mimetypes.guess_extension(mime_type) or ""
    return f"image{ext}"
