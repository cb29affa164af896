"""JWT Middleware for dashboard authentication.

Provides:
    - Bearer token extraction from the Authorization header
    - Verification against an Auth0-style JWKS endpoint (RS256) or a shared
      secret (HS256, for local development and tests)
    - Issuer / audience / expiry checks
    - A VerifiedIdentity on ``request.state.identity``
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import jwt
from jwt import PyJWKClient
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from dashboard_api.auth.exceptions import ExpiredTokenError, InvalidTokenError
from dashboard_api.auth.models import VerifiedIdentity, email_claim_chain

logger = logging.getLogger(__name__)

# Supported algorithm sets
_SYMMETRIC_ALGORITHMS = {"HS256", "HS384", "HS512"}
_ASYMMETRIC_ALGORITHMS = {"RS256", "RS384", "RS512", "ES256", "ES384", "ES512"}


@dataclass
class JWTConfig:
    """JWT middleware configuration.

    Attributes:
        secret: Secret key for HS* algorithms
        algorithm: JWT algorithm (default: RS256)
        public_key: Public key for RS*/ES* algorithms
        issuer: Expected token issuer (optional)
        audience: Expected token audience (optional)
        token_header: Header name for Bearer token (default: Authorization)
        exempt_paths: Paths exempt from authentication
        jwks_url: URL for JWKS endpoint; derived from the issuer when unset
            and no public key is given
        jwks_cache_ttl: JWKS cache TTL in seconds (default: 3600)
        verify_exp: Verify token expiration (default: True)
        leeway: Leeway in seconds for exp/nbf claims (default: 0)
        email_claims: Claim names consulted for the caller email, in order
    """

    secret: Optional[str] = None
    algorithm: str = "RS256"
    public_key: Optional[str] = None
    issuer: Optional[str] = None
    audience: Optional[Union[str, List[str]]] = None
    token_header: str = "Authorization"
    exempt_paths: List[str] = field(
        default_factory=lambda: ["/api/health", "/api/health/*"]
    )
    jwks_url: Optional[str] = None
    jwks_cache_ttl: int = 3600
    verify_exp: bool = True
    leeway: int = 0
    email_claims: Tuple[str, ...] = field(default_factory=email_claim_chain)

    # Minimum secret length for symmetric algorithms (256 bits for HS256)
    MIN_SECRET_LENGTH: int = 32

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.algorithm in _SYMMETRIC_ALGORITHMS:
            if not self.secret:
                raise ValueError(f"{self.algorithm} requires secret key")
            if len(self.secret) < self.MIN_SECRET_LENGTH:
                raise ValueError(
                    f"JWT secret must be at least {self.MIN_SECRET_LENGTH} characters "
                    f"for {self.algorithm} (got {len(self.secret)})."
                )
        elif self.algorithm in _ASYMMETRIC_ALGORITHMS:
            if not self.public_key and not self.jwks_url and self.issuer:
                self.jwks_url = self.issuer.rstrip("/") + "/.well-known/jwks.json"
            if not self.public_key and not self.jwks_url:
                raise ValueError(
                    f"{self.algorithm} requires public_key, jwks_url or issuer"
                )
        else:
            raise ValueError(f"Unsupported JWT algorithm: {self.algorithm}")


class JWTMiddleware(BaseHTTPMiddleware):
    """JWT authentication middleware.

    Extracts the bearer token, verifies it, and populates
    ``request.state.identity`` with a VerifiedIdentity. Authorization
    (which tenant the caller may see) happens later, in the gate.

    Usage:
        config = JWTConfig(issuer="https://tenant.auth0.com/", audience="api")
        app.add_middleware(JWTMiddleware, config=config)
    """

    def __init__(self, app: Any, config: JWTConfig):
        """Initialize JWT middleware.

        Args:
            app: ASGI application
            config: JWTConfig instance
        """
        super().__init__(app)
        self.config = config

        self._jwks_client: Optional[PyJWKClient] = None
        if self.config.jwks_url and not self.config.public_key:
            self._jwks_client = PyJWKClient(
                self.config.jwks_url,
                cache_keys=True,
                lifespan=self.config.jwks_cache_ttl,
            )

        logger.info(f"JWTMiddleware initialized with algorithm={self.config.algorithm}")

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Any],
    ) -> Response:
        """Process request and verify JWT token."""
        # CORS preflight never carries a token
        if request.method == "OPTIONS" or self._is_path_exempt(request.url.path):
            return await call_next(request)

        token = self._extract_token(request)
        if not token:
            return JSONResponse(
                status_code=401,
                content={"detail": "Not authenticated", "error": "missing_token"},
                headers={"WWW-Authenticate": 'Bearer realm="api"'},
            )

        try:
            payload = self._verify_token(token)
            identity = self._create_identity_from_payload(payload)
        except ExpiredTokenError:
            return JSONResponse(
                status_code=401,
                content={"detail": "Token has expired", "error": "token_expired"},
                headers={
                    "WWW-Authenticate": 'Bearer realm="api", error="invalid_token"'
                },
            )
        except InvalidTokenError as e:
            return JSONResponse(
                status_code=401,
                content={"detail": str(e), "error": "invalid_token"},
                headers={
                    "WWW-Authenticate": 'Bearer realm="api", error="invalid_token"'
                },
            )
        except Exception as e:
            logger.error(f"JWT verification failed: {e}")
            return JSONResponse(
                status_code=401,
                content={"detail": "Authentication failed", "error": "auth_error"},
                headers={"WWW-Authenticate": 'Bearer realm="api"'},
            )

        request.state.identity = identity
        return await call_next(request)

    def _is_path_exempt(self, path: str) -> bool:
        """Check if path is exempt from authentication.

        Supports exact matching and wildcard patterns (e.g., /api/health/*).
        """
        for exempt_path in self.config.exempt_paths:
            if exempt_path.endswith("/*"):
                prefix = exempt_path[:-1]
                base = exempt_path[:-2]
                if path == base or path.startswith(prefix):
                    return True
            elif path == exempt_path:
                return True
        return False

    def _extract_token(self, request: Request) -> Optional[str]:
        """Extract the bearer token from the configured header."""
        auth_header = request.headers.get(self.config.token_header, "")
        scheme, _, token = auth_header.partition(" ")
        if scheme.lower() == "bearer" and token.strip():
            return token.strip()
        return None

    def _verify_token(self, token: str) -> Dict[str, Any]:
        """Verify and decode JWT token.

        Includes algorithm confusion attack prevention.

        Raises:
            ExpiredTokenError: Token has expired
            InvalidTokenError: Token is invalid
        """
        try:
            try:
                unverified_header = jwt.get_unverified_header(token)
            except jwt.exceptions.DecodeError as e:
                logger.debug("Malformed token header: %s", e)
                raise InvalidTokenError("Malformed token")

            token_alg = unverified_header.get("alg", "").lower()

            if token_alg == "none":
                raise InvalidTokenError(
                    "Algorithm 'none' is not permitted - possible attack attempt"
                )

            if token_alg != self.config.algorithm.lower():
                # SECURITY: Don't reveal configured algorithm to potential attacker
                logger.warning(
                    "Algorithm mismatch: token=%s, configured=%s",
                    unverified_header.get("alg"),
                    self.config.algorithm,
                )
                raise InvalidTokenError("Token algorithm mismatch")

            if self._jwks_client:
                key = self._jwks_client.get_signing_key_from_jwt(token).key
            elif self.config.algorithm in _SYMMETRIC_ALGORITHMS:
                key = self.config.secret
            else:
                key = self.config.public_key

            options = {
                "verify_exp": self.config.verify_exp,
                "verify_iss": self.config.issuer is not None,
                "verify_aud": self.config.audience is not None,
            }

            return jwt.decode(
                token,
                key,
                algorithms=[self.config.algorithm],
                issuer=self.config.issuer,
                audience=self.config.audience,
                leeway=self.config.leeway,
                options=options,
            )

        except (ExpiredTokenError, InvalidTokenError):
            raise
        except jwt.ExpiredSignatureError:
            raise ExpiredTokenError("Token has expired")
        except jwt.InvalidAudienceError:
            raise InvalidTokenError("Invalid token audience")
        except jwt.InvalidIssuerError:
            raise InvalidTokenError("Invalid token issuer")
        except jwt.PyJWKClientError as e:
            logger.warning("Signing key lookup failed: %s", e)
            raise InvalidTokenError("Invalid token")
        except jwt.InvalidTokenError as e:
            logger.debug("JWT decode error: %s", e)
            raise InvalidTokenError("Invalid token")

    def _create_identity_from_payload(self, payload: Dict[str, Any]) -> VerifiedIdentity:
        """Wrap a verified payload in a VerifiedIdentity.

        A missing email is not an authentication failure: the gate denies
        such identities per tenant.
        """
        subject = payload.get("sub")
        if not subject:
            raise InvalidTokenError("Token missing user identifier (sub)")

        return VerifiedIdentity(
            subject=subject,
            claims=dict(payload),
            email_claims=tuple(self.config.email_claims),
        )
