import time
from datetime import timedelta, datetime, timezone

from jose import jwt, JWTError, ExpiredSignatureError

from beat_server.exception.MessagingError import AuthFailed

# Claims that may carry the user identifier, in lookup order. REST tokens use
# userId, older realtime clients were issued tokens with id.
USER_ID_CLAIMS = ('userId', 'id')


class AuthSecurity:
    secret_key = None
    algorithm = 'HS256'
    access_token_expire_minutes = 7 * 24 * 60

    @classmethod
    def configure(cls, secret_key, algorithm='HS256', access_token_expire_minutes=7 * 24 * 60):
        cls.secret_key = secret_key
        cls.algorithm = algorithm
        cls.access_token_expire_minutes = access_token_expire_minutes

    @classmethod
    def encode_token(cls, data: dict, expires_delta: timedelta = None) -> str:
        to_encode = data.copy()
        expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=cls.access_token_expire_minutes))
        to_encode.update({"exp": expire})
        return jwt.encode(to_encode, cls.secret_key, algorithm=cls.algorithm)

    @classmethod
    def decode_token(cls, token: str) -> dict:
        # A JWT always has exactly two dots
        if not token or token.count('.') != 2:
            raise AuthFailed("Malformed or missing token.")
        if not cls.secret_key:
            raise AuthFailed("Token verification is not configured.")
        try:
            payload = jwt.decode(token, cls.secret_key, algorithms=[cls.algorithm])
        except ExpiredSignatureError:
            raise AuthFailed("Token expired. Please login again.")
        except JWTError as e:
            msg = str(e)
            if 'Signature verification failed' in msg:
                raise AuthFailed("Invalid token signature.")
            raise AuthFailed(f"Invalid token: {msg}")
        exp = payload.get('exp')
        if exp is not None and int(float(exp)) < int(time.time()):
            raise AuthFailed("Token expired. Please login again.")
        return payload

    @staticmethod
    def user_id_from_payload(payload: dict) -> str:
        """Return the user identifier claim of a decoded token."""
        for claim in USER_ID_CLAIMS:
            value = payload.get(claim)
            if value:
                return str(value)
        raise AuthFailed("Token does not carry a user identifier.")


def extract_bearer(header_value):
    """Return the token part of an 'Authorization: Bearer <token>' header, or None."""
    if not header_value:
        return None
    parts = header_value.strip().split(' ', 1)
    if len(parts) != 2 or parts[0].lower() != 'bearer' or not parts[1].strip():
        return None
    return parts[1].strip()


def get_auth_payload(request):
    """
    Extracts and decodes the Bearer token from the Authorization header in the request.
    Raises AuthFailed if missing or invalid.
    Returns the decoded payload.
    """
    token = extract_bearer(request.headers.get('Authorization'))
    if not token:
        raise AuthFailed('Missing or invalid token')
    return AuthSecurity.decode_token(token)
