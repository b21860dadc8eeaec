"""
Newsletter metadata.

Two newsletters are served by this app; which one a deployment signs people
up for is chosen by NEWSLETTER_ID. The list address at the mailing provider
is always "<id>@<mail domain>".
"""

from pydantic import BaseModel, ConfigDict

NANOGLYPH_ID = "nanoglyph"
PASSAGES_ID = "passages"


class NewsletterMeta(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    list_address: str = ""  # filled by meta_for


class UnknownNewsletterError(ValueError):
    def __init__(self, newsletter_id: str) -> None:
        self.newsletter_id = newsletter_id
        super().__init__(f"unknown newsletter: {newsletter_id!r}")


_NANOGLYPH = NewsletterMeta(
    id=NANOGLYPH_ID,
    name="Nanoglyph",
    description=(
        "<em>Nanoglyph</em> is a weekly newsletter about software, with a focus on "
        "simplicity and sustainability. It usually consists of a few links with "
        'editorial. It\'s written by <a href="https://brandur.org">brandur</a>.'
    ),
)

_PASSAGES = NewsletterMeta(
    id=PASSAGES_ID,
    name="Passages & Glass",
    description=(
        "<em>Passages & Glass</em> is a personal newsletter about exploration, ideas, "
        'and software written by <a href="https://brandur.org">brandur</a>. '
        "It's sent rarely, just a few times a year."
    ),
)

NEWSLETTERS: dict[str, NewsletterMeta] = {
    _NANOGLYPH.id: _NANOGLYPH,
    _PASSAGES.id: _PASSAGES,
}


def meta_for(mail_domain: str, newsletter_id: str) -> NewsletterMeta:
    """Return metadata for a newsletter with its list address filled in."""
    meta = NEWSLETTERS.get(newsletter_id)
    if meta is None:
        raise UnknownNewsletterError(newsletter_id)
    return meta.model_copy(update={"list_address": f"{meta.id}@{mail_domain}"})
