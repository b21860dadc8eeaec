"""
Public signup endpoints for the double opt-in flow.

Endpoints:
- POST /submit - Start a signup (sends the confirmation email)
- GET /confirm/{token} - Finish a signup
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Form, HTTPException, status
from pydantic import BaseModel, Field

from src.api.deps import (
    enforce_confirm_rate_limit,
    enforce_submit_rate_limit,
    get_newsletter_meta,
    get_signup_finisher,
    get_signup_starter,
    get_uow,
)
from src.components.signup import (
    FinishOutcome,
    FinishSignupInput,
    InvalidEmailError,
    SignupConflictError,
    SignupFailedError,
    SignupFinisher,
    SignupStarter,
    StartOutcome,
    StartSignupInput,
    StartSignupOutput,
)
from src.core.ports.db import StorageError, UnitOfWorkPort
from src.domain.newsletters import NewsletterMeta

logger = logging.getLogger(__name__)

router = APIRouter()

INTERNAL_ERROR_DETAIL = "Something went wrong. Please try again later."


# --- Request/Response Models ---


class SubmitResponse(BaseModel):
    """Response for a signup submission."""

    success: bool = Field(..., description="Whether the request was processed successfully")
    outcome: str = Field(..., description="Signup outcome code")
    message: str = Field(..., description="Human-readable message")


class ConfirmResponse(BaseModel):
    """Response for a confirmation request."""

    success: bool
    outcome: str
    email: str | None = None
    message: str


class ErrorResponse(BaseModel):
    """Error response."""

    detail: str


# --- Helper Functions ---


def submit_message(result: StartSignupOutput, meta: NewsletterMeta) -> str:
    if result.outcome == StartOutcome.CONFIRMATION_RATE_LIMITED:
        return (
            f"Thank you for signing up! I recently sent a confirmation email to {result.email} "
            "and don't want to send another one so soon after. Please try to find the message "
            f"and click the enclosed link to finish signing up for {meta.name}. "
            "If you can't find it, try checking your spam folder."
        )
    if result.outcome == StartOutcome.MAX_NUM_ATTEMPTS:
        return (
            "Thank you for signing up! I've hit the maximum number of confirmation tries for "
            "this email address. Please try to find the message and click the enclosed link "
            f"to finish signing up for {meta.name}. "
            "If you can't find it, try checking your spam folder."
        )
    return (
        f"Thank you for signing up! I've sent a confirmation email to {result.email}. "
        f"Please click the enclosed link to finish signing up for {meta.name}."
    )


def _run_start(uow: UnitOfWorkPort, starter: SignupStarter, inp: StartSignupInput) -> StartSignupOutput:
    with uow:
        return starter.run(inp, uow.signups)


# --- Submit Endpoint ---


@router.post(
    "/submit",
    response_model=SubmitResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid email address"},
        422: {"model": ErrorResponse, "description": "Missing email parameter"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
        500: {"model": ErrorResponse, "description": "Internal error"},
    },
    summary="Start a newsletter signup",
)
def submit(
    email: Annotated[str | None, Form()] = None,
    uow: UnitOfWorkPort = Depends(get_uow),
    starter: SignupStarter = Depends(get_signup_starter),
    meta: NewsletterMeta = Depends(get_newsletter_meta),
    _rate_limit: None = Depends(enforce_submit_rate_limit),
) -> SubmitResponse:
    """
    Start the double opt-in flow for an email address.

    Runs in its own transaction. A concurrent signup for the same address
    makes the insert conflict; that case is retried once in a fresh
    transaction, where the existing row is found instead.
    """
    if email is None or not email.strip():
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Expected input parameter email",
        )

    inp = StartSignupInput(email=email.strip())

    try:
        try:
            result = _run_start(uow, starter, inp)
        except SignupConflictError:
            logger.info("Signup conflict for %s, retrying once", inp.email)
            result = _run_start(uow, starter, inp)
    except InvalidEmailError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except (SignupFailedError, StorageError) as e:
        logger.exception("Error starting signup")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=INTERNAL_ERROR_DETAIL,
        ) from e

    return SubmitResponse(
        success=True,
        outcome=result.outcome.value,
        message=submit_message(result, meta),
    )


# --- Confirm Endpoint ---


@router.get(
    "/confirm/{token}",
    response_model=ConfirmResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Token not found"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
        500: {"model": ErrorResponse, "description": "Internal error"},
    },
    summary="Finish a newsletter signup",
)
def confirm(
    token: str,
    uow: UnitOfWorkPort = Depends(get_uow),
    finisher: SignupFinisher = Depends(get_signup_finisher),
    meta: NewsletterMeta = Depends(get_newsletter_meta),
    _rate_limit: None = Depends(enforce_confirm_rate_limit),
) -> ConfirmResponse:
    """Confirm the email address behind a token and add it to the list."""
    try:
        with uow:
            result = finisher.run(FinishSignupInput(token=token), uow.signups)
    except (SignupFailedError, StorageError) as e:
        logger.exception("Error finishing signup")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=INTERNAL_ERROR_DETAIL,
        ) from e

    if result.outcome == FinishOutcome.TOKEN_NOT_FOUND:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="We couldn't find that confirmation token.",
        )

    return ConfirmResponse(
        success=True,
        outcome=result.outcome.value,
        email=result.email,
        message=(
            "You've been signed up successfully. You'll receive your first edition of "
            f"{meta.name} at {result.email} the next time one is published."
        ),
    )
