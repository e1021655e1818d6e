from typing import Optional

import jwt

from legalai.errors import Unauthorized
from legalai.utils.logger import logger
from legalai.utils.rate_limit import Identity
from legalai.utils.security import decode_access_token


class IdentityResolver:
    """Maps a request's bearer token and source IP to the identity its quota is counted against."""

    def __init__(self, secret: str, algorithm: str = "HS256"):
        self.secret = secret
        self.algorithm = algorithm

    def resolve(self, authorization: Optional[str], client_ip: Optional[str]) -> Identity:
        """Anonymous callers are keyed by IP. A bearer token that fails verification
        rejects the request; it is never downgraded to anonymous."""
        if not authorization or not authorization.startswith("Bearer "):
            return Identity(key=client_ip or "unknown", authenticated=False)

        token = authorization[len("Bearer "):].strip()
        if not token:
            raise Unauthorized("Invalid token")

        try:
            payload = decode_access_token(token, self.secret, self.algorithm)
        except jwt.ExpiredSignatureError:
            logger.info("Rejected expired bearer token")
            raise Unauthorized("Token expired")
        except jwt.InvalidTokenError as e:
            logger.info(f"Rejected bearer token: {str(e)}")
            raise Unauthorized("Invalid token")

        return Identity(key=str(payload["sub"]), authenticated=True)
