"""
Jinja2 template renderer with CSS inlining for outgoing mail.

Templates live under src/templates/. Every render receives the default
locals (newsletter metadata and public URL) merged with the call's locals.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

from jinja2 import (
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateError,
    select_autoescape,
)
from premailer import Premailer

from src.core.ports.render import TemplateRenderError
from src.domain.newsletters import NewsletterMeta

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATES_DIR = Path(__file__).resolve().parents[2] / "templates"

_STRIP_HTML_RE = re.compile(r"<[^>]*>")


def strip_html(content: str) -> str:
    """Very basic tag removal. Not suitable for user input."""
    return _STRIP_HTML_RE.sub("", content).strip()


class JinjaRenderer:
    """RendererPort implementation using Jinja2 and premailer."""

    def __init__(
        self,
        newsletter: NewsletterMeta,
        public_url: str,
        templates_dir: Path = DEFAULT_TEMPLATES_DIR,
        auto_reload: bool = False,
    ) -> None:
        self.newsletter = newsletter
        self.public_url = public_url.rstrip("/")
        self.templates_dir = templates_dir
        self._env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(["html", "xml"]),
            undefined=StrictUndefined,
            auto_reload=auto_reload,
        )
        self._env.filters["strip_html"] = strip_html

    def render(self, template_name: str, locals: dict[str, Any] | None = None) -> str:
        if template_name.startswith("/"):
            raise TemplateRenderError(template_name, "template name should not start with '/'")

        context = self._get_locals(locals)
        logger.info("Rendering: %s", template_name)

        try:
            return self._env.get_template(template_name).render(**context)
        except TemplateError as e:
            raise TemplateRenderError(template_name, str(e)) from e

    def inline_css(self, html: str) -> str:
        if not html.strip():
            raise TemplateRenderError("(inline)", "cannot inline CSS into an empty document")
        try:
            return Premailer(
                html,
                keep_style_tags=False,
                remove_classes=False,
                cssutils_logging_level=logging.CRITICAL,
            ).transform()
        except Exception as e:
            raise TemplateRenderError("(inline)", f"error inlining CSS styling: {e}") from e

    def _get_locals(self, locals: dict[str, Any] | None) -> dict[str, Any]:
        """Defaults needed by every template, overridden by call locals."""
        defaults: dict[str, Any] = {
            "newsletter": self.newsletter,
            "public_url": self.public_url,
        }
        if locals:
            defaults.update(locals)
        return defaults
