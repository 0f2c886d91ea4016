"""Git sync configuration for a workspace.

Mirrors the git columns of the workspace metadata row; the metadata layer
builds a ``GitConfig`` and hands it to ``GitCoordinator.setup_git_repo``.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, SecretStr, model_validator

DEFAULT_COMMIT_MESSAGE_TEMPLATE = "${action} ${filename}"


class GitConfig(BaseModel):
    """Remote, credentials and commit identity for one workspace."""

    enabled: bool = True
    remote_url: str = ""
    username: str = ""
    token: SecretStr = SecretStr("")
    commit_name: str = ""
    commit_email: str = ""
    auto_commit: bool = False
    commit_message_template: str = Field(
        default=DEFAULT_COMMIT_MESSAGE_TEMPLATE,
        description="Placeholders: ${action}, ${filename}",
    )

    @model_validator(mode="after")
    def _check_required(self) -> GitConfig:
        if not self.enabled:
            # Auto-commit only makes sense with git on.
            self.auto_commit = False
            return self

        missing = [
            name
            for name in ("remote_url", "username", "commit_name", "commit_email")
            if not getattr(self, name).strip()
        ]
        if not self.token.get_secret_value():
            missing.append("token")
        if missing:
            msg = f"Git is enabled but these settings are empty: {', '.join(missing)}"
            raise ValueError(msg)
        if "@" not in self.commit_email:
            msg = f"Invalid commit email: {self.commit_email!r}"
            raise ValueError(msg)
        if not self.commit_message_template.strip():
            self.commit_message_template = DEFAULT_COMMIT_MESSAGE_TEMPLATE
        return self

    def render_commit_message(self, action: str, filename: str) -> str:
        """Fill the template and upper-case the first character."""
        message = self.commit_message_template.replace("${filename}", filename).replace("${action}", str(action))
        return message[:1].upper() + message[1:]
