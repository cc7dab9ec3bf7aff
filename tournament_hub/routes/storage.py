"""
tournament_hub/routes/storage.py
Object downloads: signed URLs for private buckets, plain paths for public ones
"""
import mimetypes

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from tournament_hub.services.storage import ObjectStore, get_object_store

router = APIRouter(prefix="/api/storage", tags=["storage"])


def _object_response(path: str, data: bytes) -> Response:
    media_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
    return Response(content=data, media_type=media_type)


@router.get("/signed/{token}")
async def download_signed(token: str, store: ObjectStore = Depends(get_object_store)):
    bucket, path = store.verify_signed_token(token)
    return _object_response(path, await store.read(bucket, path))


@router.get("/public/{bucket}/{path:path}")
async def download_public(bucket: str, path: str, store: ObjectStore = Depends(get_object_store)):
    store.public_url(bucket, path)  # refuses private buckets
    return _object_response(path, await store.read(bucket, path))
