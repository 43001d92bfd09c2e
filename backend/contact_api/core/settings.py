# contact_api/core/settings.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    api_title: str = Field(default="Contact Relay API", alias="API_TITLE")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Where inquiries go, and the mailbox the relay authenticates as
    contact_recipient: str = Field(default="owner@example.com", alias="CONTACT_RECIPIENT")
    contact_sender: str = Field(default="relay@example.com", alias="CONTACT_SENDER")

    # Mail credential; unset means submissions are only logged
    mail_password: Optional[str] = Field(default=None, alias="GMAIL_APP_PASSWORD")
    smtp_host: str = Field(default="smtp.gmail.com", alias="SMTP_HOST")
    smtp_port: int = Field(default=465, alias="SMTP_PORT")
    smtp_timeout_seconds: float = Field(default=10.0, alias="SMTP_TIMEOUT_SECONDS")

    # reCAPTCHA secret; unset means verification is skipped
    recaptcha_secret: Optional[str] = Field(default=None, alias="RECAPTCHA_SECRET_KEY")
    recaptcha_verify_url: str = Field(
        default="https://www.google.com/recaptcha/api/siteverify",
        alias="RECAPTCHA_VERIFY_URL",
    )
    recaptcha_timeout_seconds: float = Field(default=10.0, alias="RECAPTCHA_TIMEOUT_SECONDS")

    # Optional budget across verification + delivery
    contact_deadline_seconds: Optional[float] = Field(default=None, alias="CONTACT_DEADLINE_SECONDS")

    # Static site; if unset we use <project-root>/site
    site_root: Optional[str] = Field(default=None, alias="SITE_ROOT")

settings = Settings()
