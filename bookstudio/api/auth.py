"""API authentication utilities."""
import os
from typing import Dict, Optional


def resolve_api_token(api_token: Optional[str] = None) -> Optional[str]:
    """
    Resolve the bearer token used for backend requests.

    Args:
        api_token: Optional token. If None, reads BOOKSTUDIO_API_TOKEN from the environment.

    Returns:
        Stripped token, or None when no token is configured

    Raises:
        ValueError: If the token contains whitespace
    """
    token = api_token or os.getenv('BOOKSTUDIO_API_TOKEN', '')
    token = token.strip()

    if not token:
        return None

    if any(ch.isspace() for ch in token):
        raise ValueError(
            "Invalid API token format. Tokens must not contain whitespace."
        )

    return token


def auth_headers(api_token: Optional[str]) -> Dict[str, str]:
    """Build the Authorization header for a token (empty when no token)."""
    if not api_token:
        return {}
    return {"Authorization": f"Bearer {api_token}"}
