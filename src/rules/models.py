from pydantic import BaseModel, ConfigDict, Field


class ProjectRules(BaseModel):
    slug: str
    rules_version: str


class SignupRules(BaseModel):
    max_num_attempts: int = Field(default=3, ge=1)
    no_resend_hours: int = Field(default=24, ge=0)


class MailRules(BaseModel):
    mail_domain: str
    reply_to_address: str


class RateLimitWindow(BaseModel):
    window_seconds: int = Field(gt=0)
    max_requests: int = Field(gt=0)


class RateLimitRules(BaseModel):
    submit: RateLimitWindow
    confirm: RateLimitWindow


class OpsRules(BaseModel):
    required_env: list[str] = Field(default_factory=list)


class Rules(BaseModel):
    model_config = ConfigDict(extra="forbid")

    project: ProjectRules
    signup: SignupRules
    mail: MailRules
    rate_limit: RateLimitRules
    ops: OpsRules = Field(default_factory=OpsRules)
