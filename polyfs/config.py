"""
Configuration management using Pydantic Settings.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
    LOG_LEVEL: str = "INFO"
    # Per-user data directory for provider credential files
    APP_NAME: str = "Files"
    APP_AUTHOR: str = "Orbital"
    DATA_DIR: Optional[str] = None  # overrides the platformdirs location
    # OneDrive (public client, PKCE) - only the client id is needed
    ONEDRIVE_CLIENT_ID: Optional[str] = None
    # Google Drive installed-app client secret, as the JSON downloaded from the console
    GOOGLE_CLIENT_SECRET: Optional[str] = None
    # Microsoft Graph / OneDrive endpoints
    MS_GRAPH_BASE_URL: str = "https://graph.microsoft.com/v1.0"
    MS_AUTHORITY_URL: str = "https://login.microsoftonline.com/common/oauth2/v2.0"
    # Google Drive endpoints
    GOOGLE_DRIVE_BASE_URL: str = "https://www.googleapis.com/drive/v3"
    GOOGLE_UPLOAD_BASE_URL: str = "https://www.googleapis.com/upload/drive/v3"
    # Loopback listener for the interactive authorization redirect
    OAUTH_REDIRECT_HOST: str = "127.0.0.1"
    OAUTH_REDIRECT_PORT: int = 3003
    # Upload sizes; Graph wants multiples of 320 KiB, Drive multiples of 256 KiB
    ONEDRIVE_UPLOAD_CHUNK_SIZE: int = 327_680
    GOOGLE_UPLOAD_CHUNK_SIZE: int = 8 * 262_144
    GOOGLE_SIMPLE_UPLOAD_LIMIT: int = 5 * 1024 * 1024

settings = Settings()
