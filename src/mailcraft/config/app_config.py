"""Configuration models for accounts, external commands and storage."""

import shlex
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from mailcraft.utils.path_utils import expand_path


class GeneralConfig(BaseModel):
    """General settings."""

    database: str = "~/mail"
    synchronize_flags: bool = True
    delivery_timeout: Optional[float] = 60.0

    @field_validator("delivery_timeout")
    def validate_timeout(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("delivery_timeout must be positive")
        return v

    def get_database_path(self) -> Path:
        """Get expanded notmuch database path."""
        return expand_path(self.database)


class CommandsConfig(BaseModel):
    """External programs used to open attachments and edit mail."""

    attachments: str = "xdg-open"
    editor: str = "vim"


class AccountConfig(BaseModel):
    """A mail account set up for sending."""

    addr: str
    sendmail_command: Union[str, List[str]] = ""
    sent_tag: List[str] = Field(default_factory=lambda: ["sent"])
    sent_dir: str = ""
    draft_dir: str = ""

    @field_validator("addr")
    def validate_addr(cls, v: str) -> str:
        if "@" not in v:
            raise ValueError(f"Invalid account address: {v}")
        return v.strip()

    @field_validator("sent_tag", mode="before")
    def split_sent_tag(cls, v):
        # A single tag may be given as a plain string
        if isinstance(v, str):
            return v.split()
        return v

    def delivery_args(self) -> List[str]:
        """Delivery command as an argument list."""
        if isinstance(self.sendmail_command, str):
            return shlex.split(self.sendmail_command)
        return list(self.sendmail_command)

    def get_sent_dir(self) -> Optional[Path]:
        return expand_path(self.sent_dir) if self.sent_dir else None

    def get_draft_dir(self) -> Optional[Path]:
        return expand_path(self.draft_dir) if self.draft_dir else None


class StorageConfig(BaseModel):
    """Storage configuration."""

    audit_log_path: str = "~/.local/share/mailcraft/audit.log"

    def get_audit_log_path(self) -> Path:
        """Get expanded audit log path."""
        return expand_path(self.audit_log_path)


class AppConfig(BaseModel):
    """Main application configuration."""

    schema_version: str = "1.0"
    general: GeneralConfig = Field(default_factory=GeneralConfig)
    commands: CommandsConfig = Field(default_factory=CommandsConfig)
    accounts: Dict[str, AccountConfig] = Field(default_factory=dict)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    @field_validator("schema_version")
    def validate_schema_version(cls, v: str) -> str:
        if not v:
            raise ValueError("schema_version is required")
        return v

    def get_account(self, addr: str) -> Optional[AccountConfig]:
        """
        Find the account sending from an address.

        Args:
            addr: Bare mail address

        Returns:
            Matching account (compared case-insensitively), or None
        """
        wanted = addr.strip().lower()
        for account in self.accounts.values():
            if account.addr.lower() == wanted:
                return account
        return None
