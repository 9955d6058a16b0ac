"""Form tokens bound to the signed-in identity.

Public forms (signup, login, password recovery) use the ``anonymous``
owner. Tokens carry their signing time, so nothing is stored server side.
"""

from itsdangerous import BadData, URLSafeTimedSerializer

from config import get_settings

ANONYMOUS = "anonymous"
TOKEN_MAX_AGE_SECS = 2 * 3600


def _signer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(get_settings().secret_key, salt="taxmate-form")


def generate_csrf_token(user_id: str = ANONYMOUS) -> str:
    return _signer().dumps({"owner": user_id})


def validate_csrf_token(
    token: str, user_id: str = ANONYMOUS, max_age_secs: int = TOKEN_MAX_AGE_SECS
) -> bool:
    if not token:
        return False
    try:
        data = _signer().loads(token, max_age=max_age_secs)
    except BadData:
        return False
    return isinstance(data, dict) and data.get("owner") == user_id
