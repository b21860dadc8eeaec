"""
Confirmation message previews for development.

Only mounted outside production (see src/api/main.py).
"""

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import HTMLResponse, PlainTextResponse

from src.adapters.render.jinja_renderer import JinjaRenderer
from src.api.deps import get_renderer, get_signup_config
from src.components.signup import ConfirmationMessage, SignupConfig, build_confirmation_message
from src.core.ports.render import TemplateRenderError

router = APIRouter()

PREVIEW_TOKEN = "bc492bd9-2aea-458a-aea1-cd7861c334d1"


def _preview(renderer: JinjaRenderer, config: SignupConfig) -> ConfirmationMessage:
    try:
        return build_confirmation_message(renderer, config, PREVIEW_TOKEN)
    except TemplateRenderError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)) from e


@router.get("/messages/confirm", response_class=HTMLResponse)
def preview_confirm(
    renderer: JinjaRenderer = Depends(get_renderer),
    config: SignupConfig = Depends(get_signup_config),
) -> HTMLResponse:
    return HTMLResponse(_preview(renderer, config).contents_html)


@router.get("/messages/confirm_plain", response_class=PlainTextResponse)
def preview_confirm_plain(
    renderer: JinjaRenderer = Depends(get_renderer),
    config: SignupConfig = Depends(get_signup_config),
) -> PlainTextResponse:
    return PlainTextResponse(_preview(renderer, config).contents_plain)
