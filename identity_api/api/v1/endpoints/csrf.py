"""CSRF token endpoint."""

from fastapi import APIRouter, Request, Response, status

from identity_api.dependencies import Csrf
from identity_api.schemas.auth import CsrfTokenResponse
from identity_api.schemas.common import ApiResponse, create_api_response

router = APIRouter()


@router.get(
    "",
    response_model=ApiResponse[CsrfTokenResponse],
    status_code=status.HTTP_200_OK,
    summary="Issue a CSRF token",
)
async def get_csrf_token(
    request: Request,
    response: Response,
    csrf: Csrf,
) -> ApiResponse[CsrfTokenResponse]:
    """
    Set the ``csrf-token`` cookie and return the same token.

    Clients echo the token in the ``x-csrf-token`` header on every
    state-changing request.
    """
    token = csrf.generate_csrf_token(request, response)
    return create_api_response(
        request,
        status.HTTP_200_OK,
        "CSRF token generated",
        CsrfTokenResponse(csrf_token=token),
    )
