"""Shared API dependencies for authentication, media and decision handling."""

from typing import Annotated, TypeVar

from fastapi import Depends, HTTPException, UploadFile, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from bulk_stage.core.security import decode_access_token
from bulk_stage.core.settings import settings
from bulk_stage.db.session import get_db
from bulk_stage.models import Account
from bulk_stage.services.decisions import Conflict, Deny, DenyReason
from bulk_stage.services.media import MediaStore, get_media_store

# Missing credentials are reported as 401 by the dependencies below.
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]
CredentialsDep = Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)]

T = TypeVar("T")

_UNAUTHORIZED_HEADERS = {"WWW-Authenticate": "Bearer"}

_STATUS_FOR_REASON = {
    DenyReason.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    DenyReason.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    DenyReason.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
}


def _credentials_error(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers=_UNAUTHORIZED_HEADERS,
    )


def _account_from_token(token: str, db: Session) -> Account:
    account_id = decode_access_token(token)
    if account_id is None:
        raise _credentials_error()
    account = db.get(Account, account_id)
    if account is None:
        raise _credentials_error("Account not found")
    return account


def get_current_account(credentials: CredentialsDep, db: SessionDep) -> Account:
    """Get the authenticated account from the bearer token.

    Raises:
        HTTPException: 401 if the token is missing, invalid or the account is gone.
    """
    if credentials is None:
        raise _credentials_error("Not authenticated")
    return _account_from_token(credentials.credentials, db)


def get_optional_account(credentials: CredentialsDep, db: SessionDep) -> Account | None:
    """Like :func:`get_current_account` but anonymous requests yield ``None``.

    A token that is present but invalid is still rejected.
    """
    if credentials is None:
        return None
    return _account_from_token(credentials.credentials, db)


# Type aliases for account dependencies
CurrentAccountDep = Annotated[Account, Depends(get_current_account)]
OptionalAccountDep = Annotated[Account | None, Depends(get_optional_account)]
MediaStoreDep = Annotated[MediaStore, Depends(get_media_store)]


def viewer_id(account: Account | None) -> int | None:
    """Account id of an optional requester; ``None`` when anonymous."""
    return account.id if account is not None else None


def raise_for_decision(result: T | Deny | Conflict) -> T:
    """Return ``result`` unless it is a refusal, which becomes an HTTP error.

    Raises:
        HTTPException: 404/403/401 for ``Deny`` by reason, 409 for ``Conflict``.
    """
    if isinstance(result, Deny):
        headers = (
            _UNAUTHORIZED_HEADERS if result.reason is DenyReason.UNAUTHORIZED else None
        )
        raise HTTPException(
            status_code=_STATUS_FOR_REASON[result.reason],
            detail=result.detail or result.reason.value,
            headers=headers,
        )
    if isinstance(result, Conflict):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=result.detail or "conflict",
        )
    return result


async def read_image(upload: UploadFile) -> bytes:
    """Read an uploaded image, enforcing type and size limits.

    Raises:
        HTTPException: 422 for non-image or empty files, 413 when too large.
    """
    content_type = upload.content_type or ""
    if not content_type.startswith("image/"):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Only image uploads are accepted",
        )
    data = await upload.read(settings.media_max_upload_bytes + 1)
    if not data:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Uploaded file is empty",
        )
    if len(data) > settings.media_max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="Uploaded file is too large",
        )
    return data
