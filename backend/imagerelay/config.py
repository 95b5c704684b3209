"""
Application configuration using Pydantic Settings.
All environment variables are loaded here with sensible defaults.
"""
import socket
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional


def local_ip_address() -> str:
    """
    Detect the machine's LAN IPv4 address.

    Opens a UDP socket towards a public address (no packet is sent) and reads
    the local end of it. Falls back to localhost when there is no route.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.connect(("10.255.255.255", 1))
        address = sock.getsockname()[0]
    except OSError:
        address = "127.0.0.1"
    finally:
        sock.close()
    return address


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Upload server
    port: int = 3000
    upload_dir: str = "uploads"
    host: Optional[str] = None  # Externally advertised URL, e.g. https://images.example.com
    max_upload_bytes: int = 5 * 1024 * 1024  # 5 MiB ceiling per image

    # Environment
    environment: str = "dev"
    log_level: str = "INFO"

    # Mobile client side: where the self-hosted server lives
    image_server_url: str = "http://localhost:3000"
    health_timeout: float = 5.0  # Hard cancellation for the availability probe
    request_timeout: float = 30.0

    # Third-party object store (Appwrite-compatible REST API)
    object_store_endpoint: str = "https://cloud.appwrite.io/v1"
    object_store_project_id: Optional[str] = None
    object_store_api_key: Optional[str] = None  # Server-side only, leave empty on devices
    object_store_bucket_id: str = "avatars"
    # Previously used buckets, still readable, in probe order (JSON list in env)
    object_store_legacy_bucket_ids: List[str] = []

    # Document database (same provider as the object store)
    document_store_database_id: Optional[str] = None

    # Generated avatars used when no stored image can be resolved
    placeholder_avatar_base: str = "https://ui-avatars.com/api/"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def public_host(self) -> str:
        """URL prefix returned to clients; auto-detected when HOST is unset."""
        if self.host:
            return self.host.rstrip("/")
        return f"http://{local_ip_address()}:{self.port}"


# Global settings instance
settings = Settings()
