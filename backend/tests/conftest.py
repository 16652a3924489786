"""Test fixtures — fake Drive, in-memory session stores and FastAPI test client."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.api.deps import encode_session_cookie, get_catalog_service
from app.config import settings
from app.exceptions import NotFoundError
from app.main import create_app
from app.models.base import Base
from app.services import get_credential_provider, get_oauth, get_session_store
from app.services.catalog_service import CatalogService
from app.services.credential_provider import CredentialProvider
from app.services.drive_client import FOLDER_MIME_TYPE, DriveFile
from app.services.session_store import MemorySessionStore

ROOT_ID = "root-folder"


@dataclass
class FakeEntry:
    id: str
    name: str
    mime_type: str
    parent: str
    content: bytes = b""
    trashed: bool = False


@dataclass
class FakeDrive:
    """In-memory stand-in for DriveClient with the same async surface.

    Children are returned in insertion order. ``fail_list`` / ``fail_text``
    map an id to an exception raised when that folder is listed or that file
    is read.
    """
    entries: list[FakeEntry] = field(default_factory=list)
    writes: list[tuple] = field(default_factory=list)
    fail_list: dict[str, Exception] = field(default_factory=dict)
    fail_text: dict[str, Exception] = field(default_factory=dict)
    fail_upload: Exception | None = None
    list_calls: list[str] = field(default_factory=list)
    text_calls: list[str] = field(default_factory=list)
    _ids: itertools.count = field(default_factory=lambda: itertools.count(1))

    def add(self, name: str, mime_type: str, parent: str = ROOT_ID, content: bytes = b"") -> str:
        entry = FakeEntry(f"id-{next(self._ids)}", name, mime_type, parent, content)
        self.entries.append(entry)
        return entry.id

    def add_folder(self, name: str, parent: str = ROOT_ID) -> str:
        return self.add(name, FOLDER_MIME_TYPE, parent)

    def find(self, file_id: str) -> FakeEntry | None:
        return next((e for e in self.entries if e.id == file_id), None)

    async def list_children(self, parent_id: str, folders_only: bool | None = None) -> list[DriveFile]:
        self.list_calls.append(parent_id)
        if parent_id in self.fail_list:
            raise self.fail_list[parent_id]
        result = []
        for e in self.entries:
            if e.parent != parent_id or e.trashed:
                continue
            is_folder = e.mime_type == FOLDER_MIME_TYPE
            if folders_only is True and not is_folder:
                continue
            if folders_only is False and is_folder:
                continue
            result.append(DriveFile(id=e.id, name=e.name, mime_type=e.mime_type))
        return result

    async def get_file(self, file_id: str) -> DriveFile:
        entry = self.find(file_id)
        if entry is None:
            raise NotFoundError(f"File not found: {file_id}.")
        return DriveFile(id=entry.id, name=entry.name, mime_type=entry.mime_type, parents=(entry.parent,))

    async def get_text(self, file: DriveFile) -> str:
        self.text_calls.append(file.id)
        if file.id in self.fail_text:
            raise self.fail_text[file.id]
        entry = self.find(file.id)
        if entry is None:
            raise NotFoundError(f"File not found: {file.id}.")
        return entry.content.decode("utf-8")

    async def create_folder(self, name: str, parent_id: str) -> DriveFile:
        self.writes.append(("create_folder", name, parent_id))
        file_id = self.add_folder(name, parent_id)
        return DriveFile(id=file_id, name=name, mime_type=FOLDER_MIME_TYPE)

    async def upload_file(self, name: str, parent_id: str, data: bytes, mime_type: str) -> DriveFile:
        self.writes.append(("upload_file", name, parent_id, mime_type))
        if self.fail_upload is not None:
            raise self.fail_upload
        file_id = self.add(name, mime_type, parent_id, data)
        return DriveFile(id=file_id, name=name, mime_type=mime_type)

    async def update_metadata(self, file_id: str, patch: dict) -> None:
        self.writes.append(("update_metadata", file_id, patch))
        entry = self.find(file_id)
        if entry is None:
            raise NotFoundError(f"File not found: {file_id}.")
        if "trashed" in patch:
            entry.trashed = bool(patch["trashed"])


@pytest.fixture
def fake_drive() -> FakeDrive:
    return FakeDrive()


@pytest.fixture
def catalog(fake_drive: FakeDrive) -> CatalogService:
    return CatalogService(
        fake_drive,
        ROOT_ID,
        view_base_url="https://drive.google.com/uc",
        concurrency=4,
        failure_mode="strict",
    )


@pytest.fixture
def session_store() -> MemorySessionStore:
    return MemorySessionStore(max_entries=100)


@pytest_asyncio.fixture
async def session_factory():
    """Async session factory bound to a fresh in-memory SQLite database."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def client(session_store: MemorySessionStore):
    """Unauthenticated test client with real dependency chain (OAuth mode)."""
    app = create_app()
    app.dependency_overrides[get_session_store] = lambda: session_store
    app.dependency_overrides[get_credential_provider] = lambda: CredentialProvider(
        session_store, auth_mode="oauth",
    )
    app.dependency_overrides[get_oauth] = lambda: None

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest_asyncio.fixture
async def authed_client(client: AsyncClient, catalog: CatalogService):
    """Test client whose catalog dependency is backed by the fake Drive."""
    client._transport.app.dependency_overrides[get_catalog_service] = lambda: catalog
    yield client


def use_session(client: AsyncClient, record) -> None:
    """Attach a stored session to the client via its signed cookie."""
    client.cookies.set(settings.session_cookie_name, encode_session_cookie(record))
