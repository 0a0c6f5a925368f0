from fastapi import Request

from .crm_client import ContactTagger
from .wordpress_client import ReviewBackend


def get_review_backend(request: Request) -> ReviewBackend:
    """
    Returns the review backend built by create_app() from the app's own
    settings. The live/mock choice never changes afterwards.
    """
    return request.app.state.review_backend


def get_contact_tagger(request: Request) -> ContactTagger:
    """
    Returns the app's CRM tagger, mock when no API key is configured.
    """
    return request.app.state.contact_tagger
