from __future__ import annotations

from typing import Callable, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from src.shared.media.models import MediaItem, MediaKind
from src.shared.validators.x_status_url import parse_status_url

from .session import MediaSession

SessionProvider = Callable[[], MediaSession]


class MediaItemIn(BaseModel):
    kind: MediaKind
    source_url: str = Field(min_length=1)
    display_name: str = Field(min_length=1)
    record_id: str = Field(min_length=1)
    referenced_by: Optional[str] = None
    position: Optional[int] = Field(default=None, ge=1)

    def to_item(self) -> MediaItem:
        return MediaItem(
            kind=self.kind,
            source_url=self.source_url,
            display_name=self.display_name,
            record_id=self.record_id,
            referenced_by=self.referenced_by,
            position=self.position,
        )


class MediaItemOut(BaseModel):
    kind: MediaKind
    source_url: str
    display_name: str
    record_id: str
    referenced_by: Optional[str] = None
    position: Optional[int] = None

    @classmethod
    def from_item(cls, item: MediaItem) -> "MediaItemOut":
        return cls(**item.to_dict())


class IngestOut(BaseModel):
    extracted: int
    added: int
    cached: int


class CacheOut(BaseModel):
    count: int
    items: list[MediaItemOut]


class RecordCacheOut(CacheOut):
    # Media attached to the record itself, quoted records excluded.
    own_count: int


class DownloadIn(BaseModel):
    """Exactly one of record_id / status_url / items."""
    record_id: Optional[str] = None
    status_url: Optional[str] = None
    items: Optional[list[MediaItemIn]] = None


class DownloadOut(BaseModel):
    record_id: Optional[str] = None
    source: Optional[str] = None
    items: list[MediaItemOut]
    report: dict


def _target_record_id(body: DownloadIn) -> Optional[str]:
    given = [v for v in (body.record_id, body.status_url, body.items) if v]
    if len(given) != 1:
        raise ValueError("provide exactly one of record_id, status_url or items")

    if body.items:
        return None

    parsed = parse_status_url(body.record_id or body.status_url or "")
    if not parsed.valid or parsed.record_id is None:
        raise ValueError(parsed.error or "invalid record id")
    return parsed.record_id


def create_media_router(*, session_provider: SessionProvider) -> APIRouter:
    router = APIRouter(prefix="/api/media", tags=["media"])

    @router.post("/responses", response_model=IngestOut)
    async def ingest_response(request: Request) -> IngestOut:
        session = session_provider()
        body = await request.body()
        result = session.ingest_response(body)
        return IngestOut(extracted=result.extracted, added=result.added, cached=len(session.cache))

    @router.get("/cache", response_model=CacheOut)
    def get_cache() -> CacheOut:
        items = session_provider().cache.snapshot()
        return CacheOut(count=len(items), items=[MediaItemOut.from_item(i) for i in items])

    @router.get("/cache/{record_id}", response_model=RecordCacheOut)
    def get_record_cache(record_id: str) -> RecordCacheOut:
        cache = session_provider().cache
        record_id = record_id.strip()
        items = cache.query_by_record(record_id)
        return RecordCacheOut(
            count=len(items),
            own_count=cache.count_for_record(record_id),
            items=[MediaItemOut.from_item(i) for i in items],
        )

    @router.delete("/cache", response_model=CacheOut)
    def reset_cache() -> CacheOut:
        session_provider().reset()
        return CacheOut(count=0, items=[])

    @router.post("/download", response_model=DownloadOut)
    async def download(body: DownloadIn) -> DownloadOut:
        try:
            record_id = _target_record_id(body)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        session = session_provider()

        if record_id is None:
            items = [i.to_item() for i in body.items or []]
            report = await session.download_items(items)
            return DownloadOut(
                items=[MediaItemOut.from_item(i) for i in items],
                report=report.to_dict(),
            )

        resolution, report = await session.download_record(record_id)
        if report is None:
            detail = f"no media found for record {record_id}"
            if resolution.failures:
                detail += " (" + "; ".join(f"{f.strategy}: {f.error}" for f in resolution.failures) + ")"
            raise HTTPException(status_code=404, detail=detail)

        return DownloadOut(
            record_id=record_id,
            source=resolution.source,
            items=[MediaItemOut.from_item(i) for i in resolution.items],
            report=report.to_dict(),
        )

    return router
