from pydantic import BaseModel, Field, field_validator, model_validator

from redirector.core.entities import DEFAULT_STATUS_CODE, STATUS_CODE_LABELS


class ProjectRules(BaseModel):
    slug: str
    rules_version: str


class RedirectRules(BaseModel):
    site_url: str = "http://localhost:8000"
    default_status_code: int = DEFAULT_STATUS_CODE
    allowed_status_codes: list[int] = Field(default_factory=lambda: list(STATUS_CODE_LABELS))
    allowed_hosts: list[str] = Field(default_factory=list)
    marker_header: str = "X-Redirect-By"
    marker_value: str = "redirector"
    fallback_to_path_match: bool = True

    @field_validator("site_url")
    @classmethod
    def site_url_has_scheme(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("site_url must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("allowed_status_codes")
    @classmethod
    def known_status_codes(cls, v: list[int]) -> list[int]:
        unknown = [code for code in v if code not in STATUS_CODE_LABELS]
        if unknown:
            raise ValueError(f"Unsupported status codes: {unknown}")
        return v

    @model_validator(mode="after")
    def default_is_allowed(self) -> "RedirectRules":
        # An unusable default silently falls back to 302.
        if self.default_status_code not in self.allowed_status_codes:
            self.default_status_code = DEFAULT_STATUS_CODE
        return self


class Rules(BaseModel):
    project: ProjectRules
    redirects: RedirectRules = Field(default_factory=RedirectRules)
