"""
Read access to stored Google OAuth tokens.

The OAuth flow and refresh job live outside this service; we only read the
current access token for a user.
"""

from realite.db.helpers import fetch_one
from realite.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class OAuthTokenRepository:
    @staticmethod
    async def get_access_token(user_id: str) -> str | None:
        query = """
            SELECT access_token
            FROM oauth_tokens
            WHERE user_id = %s
              AND provider = 'google'
              AND (expires_at IS NULL OR expires_at > NOW())
        """
        row = await fetch_one(query, (user_id,))
        if not row:
            logger.debug("No usable Google token", user_id=user_id)
            return None
        return row["access_token"]
