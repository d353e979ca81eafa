"""
Google OAuth helpers for the Gmail gateway.

The service runs on a long-lived refresh token. The consent flow helpers
are only used once, to obtain that token.
"""

from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow

from reply_tracker.config import Settings, settings as default_settings

SCOPES = ["https://www.googleapis.com/auth/gmail.readonly"]
TOKEN_URI = "https://oauth2.googleapis.com/token"
AUTH_URI = "https://accounts.google.com/o/oauth2/auth"


def build_credentials(config: Settings | None = None) -> Credentials:
    """Credentials that refresh themselves from the configured refresh token."""
    config = config or default_settings
    return Credentials(
        token=None,
        refresh_token=config.gmail_refresh_token,
        token_uri=TOKEN_URI,
        client_id=config.gmail_client_id,
        client_secret=config.gmail_client_secret,
        scopes=SCOPES,
    )


def build_flow(config: Settings | None = None) -> Flow:
    """OAuth web flow for the refresh-token bootstrap endpoints."""
    config = config or default_settings
    client_config = {
        "web": {
            "client_id": config.gmail_client_id,
            "client_secret": config.gmail_client_secret,
            "auth_uri": AUTH_URI,
            "token_uri": TOKEN_URI,
            "redirect_uris": [config.gmail_redirect_uri],
        }
    }
    # Consent and callback are separate requests; no PKCE verifier survives between them
    return Flow.from_client_config(
        client_config,
        scopes=SCOPES,
        redirect_uri=config.gmail_redirect_uri,
        autogenerate_code_verifier=False,
    )


def authorization_url(config: Settings | None = None) -> str:
    """Consent URL that yields an offline (refresh-token) grant."""
    url, _state = build_flow(config).authorization_url(
        access_type="offline",
        prompt="consent",
    )
    return url


def exchange_code(code: str, config: Settings | None = None) -> str | None:
    """Exchange an authorization code for a refresh token."""
    flow = build_flow(config)
    flow.fetch_token(code=code)
    return flow.credentials.refresh_token
