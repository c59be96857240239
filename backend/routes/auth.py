"""
Auth endpoints - admin token issuance.

Flow:
  1) POST /auth/admin/token  {apiKey}  -> {accessToken, tokenType, expiresInSeconds}
  2) Admin routes read  Authorization: Bearer <accessToken>
"""

import logging

from fastapi import APIRouter, Depends, Request

from config import settings
from domain.errors import UnauthorizedError
from middleware.auth import issue_access_token, verify_admin_key
from middleware.rate_limit import rate_limit
from models import AdminTokenRequest, AdminTokenResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/admin/token", response_model=AdminTokenResponse)
async def issue_admin_token(
    request: AdminTokenRequest,
    req: Request,
    _rate=Depends(rate_limit(max_requests=5, window_seconds=60)),
):
    if not verify_admin_key(request.api_key):
        client_ip = req.client.host if req.client else "unknown"
        logger.warning(f"Rejected admin token request from {client_ip}")
        raise UnauthorizedError("Invalid admin API key.")

    token = issue_access_token(subject="admin")
    logger.info("Admin access token issued")
    return AdminTokenResponse(
        accessToken=token,
        expiresInSeconds=settings.jwt_access_ttl_minutes * 60,
    )
