"""Per-action parameter models validated at the handler boundary."""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _ToolParams(BaseModel):
    # Unknown keys (clientId, base URL overrides, ...) stay on the wire payload.
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    session_token: str | None = Field(default=None, alias="sessionToken")


class LoginParams(_ToolParams):
    username: str | None = None
    password: str | None = None
    companyname: str | None = None


class CreateAppParams(_ToolParams):
    app_name: str | None = Field(default=None, alias="appName")
    appear_on_mobile: bool | None = Field(default=None, alias="AppearOnMobile")
    app_identifier: str | None = Field(default=None, alias="appIdentifier")
    short_notes: str | None = Field(default=None, alias="shortNotes")
    icon: str | None = None


class ImportAppParams(_ToolParams):
    app_name: str | None = Field(default=None, alias="appName")
    new_app_identifier: str | None = Field(default=None, alias="newAppIdentifier")
    new_app_name: str | None = Field(default=None, alias="newAppName")
    debug: bool = False

    @field_validator("debug", mode="before")
    @classmethod
    def only_literal_true(cls, value: object) -> bool:
        # Anything but JSON true ("yes", 1, "maybe") leaves debug output off.
        return value is True


def is_blank(value: object) -> bool:
    return not isinstance(value, str) or not value.strip()
