from fastapi import Depends, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from bgv_portal.core.auth import get_current_user
from bgv_portal.core.errors import TokenExpired
from bgv_portal.core.uploads import IncomingFile
from bgv_portal.db.session import get_session
from bgv_portal.models.submission import SubmissionRecord
from bgv_portal.request_context import RequestContext, get_request_context
from bgv_portal.schemas.user import UserContext
from bgv_portal.services import tokens
from bgv_portal.services.blob_store import BlobStore, get_blob_store


async def get_db_session() -> AsyncSession:
    async for session in get_session():
        yield session


async def get_user(user: UserContext = Depends(get_current_user)) -> UserContext:
    return user


def get_storage() -> BlobStore:
    return get_blob_store()


def get_context(request: Request) -> RequestContext:
    return get_request_context(request)


async def resolve_candidate_record(
    session: AsyncSession,
    kind: str,
    token: str,
    *,
    for_write: bool = False,
    context: RequestContext | None = None,
) -> SubmissionRecord:
    """Token lookup for candidate routes; the ``expired`` flag is kept even though the request fails."""
    try:
        return await tokens.resolve(session, kind, token, for_write=for_write, context=context)
    except TokenExpired:
        await session.commit()
        raise


async def read_upload(upload: UploadFile) -> IncomingFile:
    data = await upload.read()
    return IncomingFile(filename=upload.filename, content_type=upload.content_type, data=data)
