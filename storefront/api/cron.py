"""Cron-triggered job endpoints.

- GET /cron/abandoned-cart - run one abandoned-cart recovery pass

Guarded by the configured cron secret, passed as ``?secret=`` or the
``X-Cron-Secret`` header.
"""

import hmac
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Query, status

from storefront.api.schemas import ErrorResponse, RecoveryRunResponse, SuccessResponse
from storefront.application.abandoned_cart_service import AbandonedCartRecovery
from storefront.infrastructure.config import settings

logger = structlog.get_logger()

router = APIRouter(prefix="/cron", tags=["Cron"])


def verify_cron_secret(
    secret: str | None = Query(default=None),
    x_cron_secret: Annotated[str | None, Header()] = None,
) -> None:
    """Reject callers without the cron secret.

    Raises:
        HTTPException: 401 when the secret is missing or wrong.
    """
    supplied = secret or x_cron_secret or ""
    expected = settings.cron_secret
    if not expected or not hmac.compare_digest(supplied.encode(), expected.encode()):
        logger.warning("cron_secret_rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error_code": "UNAUTHORIZED", "message": "Unauthorized"},
        )


def get_recovery_job() -> AbandonedCartRecovery:
    """Build the recovery job over the global repositories and dispatcher."""
    return AbandonedCartRecovery()


@router.get(
    "/abandoned-cart",
    response_model=SuccessResponse[RecoveryRunResponse],
    responses={401: {"model": ErrorResponse}},
    dependencies=[Depends(verify_cron_secret)],
    summary="Run abandoned-cart recovery",
)
async def run_abandoned_cart_recovery(
    job: Annotated[AbandonedCartRecovery, Depends(get_recovery_job)],
) -> SuccessResponse[RecoveryRunResponse]:
    """Remind users about carts idle for a day; each cart at most once."""
    result = await job.run()
    return SuccessResponse(
        data=RecoveryRunResponse(sent=result.sent, skipped=result.skipped, errors=result.errors)
    )
