"""
Configuration management for Meetspace.
Values come from the environment first, then from Zero secrets when a
ZERO_TOKEN is available, then from built-in defaults.
"""

import os
import asyncio
import concurrent.futures
from urllib.parse import quote_plus
from typing import Dict, Any, Optional, List
import logging
from zero_python_sdk import zero

logger = logging.getLogger(__name__)


class ZeroSecretsManager:
    """
    Reads the "meetspace" secret bundle from Zero.
    Secrets are fetched once per process and cached.
    """

    def __init__(self, zero_token: str, caller_name: str = "meetspace"):
        self.zero_token = zero_token
        self.caller_name = caller_name
        self._cache: Dict[str, Any] = {}
        self._secrets = None

    async def _fetch_secrets(self):
        """Pull the meetspace secret bundle once per process."""
        if self._secrets is None:
            try:
                loop = asyncio.get_running_loop()
                with concurrent.futures.ThreadPoolExecutor() as executor:
                    self._secrets = await loop.run_in_executor(
                        executor,
                        lambda: zero(
                            token=self.zero_token,
                            pick=["meetspace"],
                            caller_name=self.caller_name
                        ).fetch()
                    )
                logger.info("Fetched secrets from Zero")
            except Exception as e:
                logger.error(f"Zero secret bundle unavailable, using environment and defaults: {e}")
                self._secrets = {}

    def _normalize_key(self, key: str) -> str:
        """Zero keys are lower-kebab case."""
        return key.lower().replace("_", "-")

    async def get_secret(self, key: str) -> Optional[str]:
        """
        Look up one secret.

        Args:
            key: Secret key in environment-variable form (e.g. CHAPA_SECRET_KEY)

        Returns:
            The value, or None when Zero has no such key
        """
        try:
            key = self._normalize_key(key)
            if key in self._cache:
                return self._cache[key]

            await self._fetch_secrets()
            secret_value = self._secrets.get("meetspace", {}).get(key)

            if secret_value:
                self._cache[key] = secret_value

            return secret_value

        except Exception as e:
            logger.error(f"Zero lookup for {key} failed: {e}")
            return None


class MeetspaceConfig:
    """
    Service configuration with async getters.
    Every getter resolves environment, then Zero, then default.
    """

    def __init__(self):
        self.zero_token = os.getenv("ZERO_TOKEN")
        self.secrets_manager: Optional[ZeroSecretsManager] = None
        if self.zero_token:
            self.secrets_manager = ZeroSecretsManager(self.zero_token)
        else:
            logger.info("ZERO_TOKEN not set, configuration is read from the environment only")

    async def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Resolve a single configuration value."""
        value = os.getenv(key)
        if value:
            return value
        if self.secrets_manager is not None:
            value = await self.secrets_manager.get_secret(key)
            if value:
                return value
        return default

    async def get_bool(self, key: str, default: bool = False) -> bool:
        value = await self.get(key)
        if value is None:
            return default
        return value.strip().lower() in ("1", "true", "yes", "on")

    async def get_environment(self) -> str:
        return await self.get("ENVIRONMENT", "development")

    async def is_production(self) -> bool:
        return (await self.get_environment()).lower() == "production"

    async def get_database_url(self) -> str:
        """DATABASE_URL, or a PostgreSQL URL assembled from DB_* parts."""
        url = await self.get("DATABASE_URL")
        if url:
            return url

        host = await self.get("DB_HOST", "localhost")
        port = await self.get("DB_PORT", "5432")
        name = await self.get("DB_NAME", "meetspace")
        user = await self.get("DB_USER", "meetspace")
        password = await self.get("DB_PASSWORD", "meetspace")

        return f"postgresql://{user}:{quote_plus(password)}@{host}:{port}/{name}"

    async def get_database_config(self) -> Dict[str, int]:
        """Connection pool settings."""
        return {
            "pool_size": int(await self.get("DB_POOL_SIZE", "10")),
            "max_overflow": int(await self.get("DB_MAX_OVERFLOW", "20")),
            "pool_timeout": int(await self.get("DB_POOL_TIMEOUT", "30")),
            "pool_recycle": int(await self.get("DB_POOL_RECYCLE", "1800")),
        }

    async def get_redis_url(self) -> str:
        """Redis URL for the event cache and the Celery broker."""
        url = await self.get("REDIS_URL")
        if url:
            return url

        host = await self.get("REDIS_HOST", "localhost")
        port = await self.get("REDIS_PORT", "6379")
        password = await self.get("REDIS_PASSWORD")
        use_tls = await self.get_bool("REDIS_USE_TLS")

        protocol = "rediss://" if use_tls else "redis://"

        if password:
            return f"{protocol}:{password}@{host}:{port}"
        return f"{protocol}{host}:{port}"

    async def get_jwt_secret(self) -> str:
        return await self.get("JWT_SECRET", "your-secret-key-change-in-production")

    async def get_jwt_algorithm(self) -> str:
        return await self.get("JWT_ALGORITHM", "HS256")

    async def get_cors_origins(self) -> List[str]:
        """Front-end origins allowed by CORS (comma-separated CORS_ORIGINS)."""
        origins = await self.get("CORS_ORIGINS")
        if origins:
            return [origin.strip() for origin in origins.split(",") if origin.strip()]
        return ["http://localhost:3000"]

    async def get_cache_config(self) -> Dict[str, int]:
        """TTLs in seconds for event list pages and related-event blocks."""
        return {
            "events_ttl": int(await self.get("CACHE_TTL_EVENTS", "300")),
            "event_details_ttl": int(await self.get("CACHE_TTL_EVENT_DETAILS", "600")),
        }

    async def get_base_url(self) -> str:
        """Public base URL of the web front end, used in redirects."""
        return (await self.get("BASE_URL", "http://localhost:3000")).rstrip("/")

    async def get_payment_config(self) -> Dict[str, Any]:
        """Payment provider settings."""
        return {
            "chapa_secret_key": await self.get("CHAPA_SECRET_KEY"),
            "chapa_base_url": (await self.get("CHAPA_BASE_URL", "https://api.chapa.co/v1")).rstrip("/"),
            "direct_ticket_redirect": await self.get_bool("DIRECT_TICKET_REDIRECT"),
            "supported_currencies": ["ETB", "USD"],
        }

    async def get_jaas_config(self) -> Dict[str, Optional[str]]:
        """Jitsi as a Service credentials."""
        private_key = await self.get("JAAS_PRIVATE_KEY")
        if private_key:
            # Keys stored in a single env line keep escaped newlines
            private_key = private_key.replace("\\n", "\n")
        return {
            "app_id": await self.get("JAAS_APP_ID"),
            "api_key_id": await self.get("JAAS_API_KEY_ID"),
            "private_key": private_key,
        }

    async def get_cloudinary_config(self) -> Dict[str, Optional[str]]:
        return {
            "cloud_name": await self.get("CLOUDINARY_CLOUD_NAME"),
            "api_key": await self.get("CLOUDINARY_API_KEY"),
            "api_secret": await self.get("CLOUDINARY_API_SECRET"),
        }

    async def get_openai_config(self) -> Dict[str, Any]:
        return {
            "api_key": await self.get("OPENAI_API_KEY"),
            "model": await self.get("OPENAI_MODEL", "gpt-3.5-turbo"),
            "temperature": float(await self.get("OPENAI_TEMPERATURE", "0.7")),
        }

    async def get_email_config(self) -> Dict[str, Any]:
        """SMTP settings and sender identity for ticket emails."""
        return {
            "smtp_host": await self.get("SMTP_HOST", "smtp.gmail.com"),
            "smtp_port": int(await self.get("SMTP_PORT", "587")),
            "smtp_username": await self.get("SMTP_USERNAME"),
            "smtp_password": await self.get("SMTP_PASSWORD"),
            "smtp_use_tls": await self.get_bool("SMTP_USE_TLS", True),
            "from_email": await self.get("FROM_ADDRESS", "noreply@meetspace.app"),
            "from_name": await self.get("FROM_NAME", "Meetspace"),
        }


# Global config instance
config = MeetspaceConfig()
