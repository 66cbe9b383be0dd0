# portal/core/config.py
import os

from dotenv import load_dotenv


PROFILE_LOOKUP_MODES = ("list", "direct")


def str_to_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def parse_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


def merge_unique(items: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for v in items:
        if v in seen:
            continue
        seen.add(v)
        out.append(v)
    return out


def normalize_prefix(value: str) -> str:
    value = "/" + value.strip().strip("/")
    return value


class Settings:
    def __init__(self) -> None:
        self.ENV = os.getenv("ENV", "dev").strip().lower()  # dev | prod
        if self.ENV != "prod":
            # Load .env only for non-prod so prod can't be accidentally influenced by local files.
            load_dotenv()

        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()

        # ----------------------------
        # Backend identity service
        # ----------------------------
        if self.ENV == "prod":
            self.API_BASE_URL = os.getenv("API_BASE_URL", "").strip().rstrip("/")
        else:
            self.API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8080").strip().rstrip("/")
        self.API_TIMEOUT_SECONDS = float(os.getenv("API_TIMEOUT_SECONDS", "5"))

        # "list" = GET /users then filter, "direct" = GET /users/{id}
        self.PROFILE_LOOKUP_MODE = os.getenv("PROFILE_LOOKUP_MODE", "list").strip().lower()
        if self.PROFILE_LOOKUP_MODE not in PROFILE_LOOKUP_MODES:
            raise RuntimeError("PROFILE_LOOKUP_MODE must be 'list' or 'direct'")

        # ----------------------------
        # Session cookie
        # ----------------------------
        self.SESSION_SECRET = os.getenv("SESSION_SECRET", "")
        self.SESSION_ALGORITHM = os.getenv("SESSION_ALGORITHM", "HS256")
        self.SESSION_MAX_AGE_MINUTES = int(os.getenv("SESSION_MAX_AGE_MINUTES", str(30 * 24 * 60)))
        self.SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "portal_session")
        self.SESSION_COOKIE_SAMESITE = os.getenv("SESSION_COOKIE_SAMESITE", "lax")
        self.SESSION_COOKIE_SECURE = str_to_bool(os.getenv("SESSION_COOKIE_SECURE"), default=self.ENV == "prod")
        self.SESSION_COOKIE_DOMAIN = os.getenv("SESSION_COOKIE_DOMAIN", "") or None

        self.OAUTH_STATE_COOKIE_NAME = os.getenv("OAUTH_STATE_COOKIE_NAME", "portal_oauth_state")
        self.OAUTH_STATE_MAX_AGE_SECONDS = int(os.getenv("OAUTH_STATE_MAX_AGE_SECONDS", "600"))

        # ----------------------------
        # Routing
        # ----------------------------
        prefixes = parse_csv(os.getenv("PROTECTED_PATH_PREFIXES")) or ["/me"]
        self.PROTECTED_PATH_PREFIXES = merge_unique([normalize_prefix(p) for p in prefixes])
        self.LOGIN_PATH = os.getenv("LOGIN_PATH", "/login")
        self.POST_LOGIN_PATH = os.getenv("POST_LOGIN_PATH", "/me")

        if self.ENV == "prod":
            self.PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "").strip().rstrip("/")
        else:
            self.PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:3000").strip().rstrip("/")

        dev_defaults = [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]
        cors_from_env = parse_csv(os.getenv("CORS_ORIGINS"))
        if self.ENV == "prod":
            self.CORS_ORIGINS = merge_unique(cors_from_env)
        else:
            self.CORS_ORIGINS = merge_unique(cors_from_env + dev_defaults)

        # ----------------------------
        # OAuth provider (GitHub)
        # ----------------------------
        self.GITHUB_CLIENT_ID = os.getenv("GITHUB_CLIENT_ID", "")
        self.GITHUB_CLIENT_SECRET = os.getenv("GITHUB_CLIENT_SECRET", "")
        self.GITHUB_SCOPE = os.getenv("GITHUB_SCOPE", "read:user user:email")

        self._validate_prod()

    def _validate_prod(self) -> None:
        if self.ENV != "prod":
            return

        missing: list[str] = []

        if not self.SESSION_SECRET:
            missing.append("SESSION_SECRET")
        if not self.API_BASE_URL:
            missing.append("API_BASE_URL")
        if not self.PUBLIC_BASE_URL:
            missing.append("PUBLIC_BASE_URL")
        if not self.GITHUB_CLIENT_ID:
            missing.append("GITHUB_CLIENT_ID")
        if not self.GITHUB_CLIENT_SECRET:
            missing.append("GITHUB_CLIENT_SECRET")

        if not self.SESSION_COOKIE_SECURE:
            raise RuntimeError("SESSION_COOKIE_SECURE must be enabled in prod")

        if self.PUBLIC_BASE_URL and not self.PUBLIC_BASE_URL.startswith("https://"):
            raise RuntimeError("PUBLIC_BASE_URL should be https://... in prod")

        if missing:
            raise RuntimeError(f"Missing required prod env vars: {', '.join(missing)}")

    @property
    def is_prod(self) -> bool:
        return self.ENV == "prod"

    def oauth_redirect_uri(self, provider: str) -> str:
        return f"{self.PUBLIC_BASE_URL}/auth/callback/{provider}"


settings = Settings()


def require_session_secret() -> None:
    if not settings.SESSION_SECRET:
        raise RuntimeError("SESSION_SECRET must be set")
