import logging
import os

from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

_INSECURE_DEFAULT = "change-me"
_MIN_SECRET_LENGTH = 32


def _read_pem(value: str) -> str:
    """Accept either PEM text or a path to a PEM file."""
    if value and not value.startswith("-----") and os.path.isfile(value):
        with open(value) as f:
            return f.read()
    return value


def _ephemeral_rsa_pair() -> tuple[str, str]:
    from cryptography.hazmat.primitives import serialization
    from cryptography.hazmat.primitives.asymmetric import rsa

    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()
    public_pem = key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_pem, public_pem


class Settings(BaseSettings):
    app_env: str = "production"
    app_debug: bool = False
    app_secret_key: str = _INSECURE_DEFAULT

    database_url: str = "postgresql+asyncpg://lms:lms@db:5432/lms"

    # Tokens are issued by the platform's identity service; we only verify them
    jwt_secret_key: str = _INSECURE_DEFAULT
    jwt_algorithm: str = "RS256"
    jwt_access_token_expire_minutes: int = 60
    jwt_private_key: str = ""  # PEM text or file path
    jwt_public_key: str = ""   # PEM text or file path

    # The certificate endpoint is called from any origin (SPA, previews, embeds)
    cors_origins: list[str] = ["*"]
    cors_allow_headers: list[str] = [
        "authorization",
        "x-client-info",
        "apikey",
        "content-type",
    ]

    redis_url: str = "redis://redis:6379/0"
    token_blacklist_enabled: bool = True

    upload_dir: str = "/data/uploads"

    # Certificates
    certificate_number_prefix: str = "CERT"
    certificate_number_attempts: int = 5
    certificate_store_documents: bool = False
    certificate_public_base_url: str = "/api/certificates/files"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    def jwt_signing_key(self) -> str:
        self._load_rsa_keys()
        return self.jwt_private_key if self.jwt_algorithm == "RS256" else self.jwt_secret_key

    def jwt_verification_key(self) -> str:
        self._load_rsa_keys()
        return self.jwt_public_key if self.jwt_algorithm == "RS256" else self.jwt_secret_key

    def _load_rsa_keys(self) -> None:
        if self.jwt_algorithm != "RS256":
            return
        private_pem = _read_pem(self.jwt_private_key)
        public_pem = _read_pem(self.jwt_public_key)
        if not private_pem:
            if self.app_env == "production":
                raise ValueError("RS256 requires JWT_PRIVATE_KEY and JWT_PUBLIC_KEY in production.")
            logger.warning(
                "SECURITY: no RSA keys configured, using an ephemeral pair for this process."
            )
            private_pem, public_pem = _ephemeral_rsa_pair()
        object.__setattr__(self, "jwt_private_key", private_pem)
        object.__setattr__(self, "jwt_public_key", public_pem)

    def validate_secrets(self) -> None:
        """Raise in production if a secret is left at its default or too short."""
        weak = []
        if self.app_secret_key == _INSECURE_DEFAULT:
            weak.append("APP_SECRET_KEY")
        if self.jwt_algorithm == "HS256" and self.jwt_secret_key == _INSECURE_DEFAULT:
            weak.append("JWT_SECRET_KEY")

        if self.app_env != "production":
            if weak:
                logger.warning("SECURITY: default secrets in use (%s)", ", ".join(weak))
            self._load_rsa_keys()
            return

        if weak:
            raise ValueError(f"Insecure secrets in production, configure: {', '.join(weak)}")
        too_short = [
            name
            for name, value, applies in (
                ("APP_SECRET_KEY", self.app_secret_key, True),
                ("JWT_SECRET_KEY", self.jwt_secret_key, self.jwt_algorithm == "HS256"),
            )
            if applies and len(value) < _MIN_SECRET_LENGTH
        ]
        if too_short:
            raise ValueError(
                f"{', '.join(too_short)} must be at least {_MIN_SECRET_LENGTH} characters."
            )
        self._load_rsa_keys()


settings = Settings()
