"""
Template Renderer Interface.

Renders named templates to strings and prepares HTML for mail clients.
"""

from __future__ import annotations

from typing import Any, Protocol


class RendererPort(Protocol):
    def render(self, template_name: str, locals: dict[str, Any] | None = None) -> str:
        """
        Render a template with default locals merged with the given ones.

        Raises:
            TemplateRenderError: If the template is missing or fails to render
        """
        ...

    def inline_css(self, html: str) -> str:
        """
        Move <style> rules onto element style attributes.

        Raises:
            TemplateRenderError: If the document cannot be transformed
        """
        ...


class TemplateRenderError(Exception):
    """Template lookup, rendering or CSS inlining failed."""

    def __init__(self, template_name: str, reason: str) -> None:
        self.template_name = template_name
        self.reason = reason
        super().__init__(f"Error rendering template '{template_name}': {reason}")
