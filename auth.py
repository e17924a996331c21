import logging

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from config import get_settings

logger = logging.getLogger(__name__)


class InvalidToken(Exception):
    pass


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.token_secret, salt="access-token")


def issue_access_token(user_id: int) -> str:
    return _serializer().dumps({"u": user_id})


def read_access_token(token: str) -> int:
    """Return the owner id carried by a signed token issued by the auth service."""
    settings = get_settings()
    try:
        data = _serializer().loads(token, max_age=settings.token_max_age_hours * 3600)
    except SignatureExpired as exc:
        logger.warning("access token expired")
        raise InvalidToken("Token expired") from exc
    except BadSignature as exc:
        logger.warning("access token rejected: bad signature")
        raise InvalidToken("Invalid token") from exc

    user_id = data.get("u") if isinstance(data, dict) else None
    if not isinstance(user_id, int) or isinstance(user_id, bool) or user_id <= 0:
        logger.warning("access token rejected: missing user id")
        raise InvalidToken("Invalid token")
    return user_id
