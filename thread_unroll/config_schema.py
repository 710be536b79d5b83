from __future__ import annotations

import re
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

_HOST_RE = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9.-]*[A-Za-z0-9])?$")
_LANG_RE = re.compile(r"^[A-Za-z]{2,8}(?:-[A-Za-z0-9]{1,8})*$")


def _validate_http_base(value: str) -> str:
    url = (value or "").strip().rstrip("/")
    if not (url.startswith("https://") or url.startswith("http://")):
        raise ValueError("must be an http(s) URL")
    if url.split("://", 1)[1] == "":
        raise ValueError("must include a host")
    return url


PositiveInt = Annotated[int, Field(ge=1)]


class UpstreamConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    base_url: str = "https://public.api.bsky.app"
    timeout_seconds: float = Field(10.0, gt=0.0, le=300.0)
    max_connections: PositiveInt = 20
    user_agent: str = "thread-unroll/0.1"

    @field_validator("base_url")
    @classmethod
    def _base_url_must_be_http(cls, v: str) -> str:
        return _validate_http_base(v)


class WalkerConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    # Upper bound on upstream fetches for one walk (root-finding + descent).
    max_hops: PositiveInt = 1000


class SiteConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    web_host: str = "bsky.app"
    site_name: str = "thread-unroll"
    public_url: str = "https://thread-unroll.app"
    default_lang: str = "en"

    @field_validator("web_host")
    @classmethod
    def _web_host_must_be_bare(cls, v: str) -> str:
        host = (v or "").strip().lower()
        if not _HOST_RE.fullmatch(host):
            raise ValueError("must be a bare host name")
        return host

    @field_validator("public_url")
    @classmethod
    def _public_url_must_be_http(cls, v: str) -> str:
        return _validate_http_base(v)

    @field_validator("default_lang")
    @classmethod
    def _default_lang_must_be_tag(cls, v: str) -> str:
        tag = (v or "").strip()
        if not _LANG_RE.fullmatch(tag):
            raise ValueError("must be a BCP 47 language tag")
        return tag


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    upstream: UpstreamConfig = Field(default_factory=UpstreamConfig)
    walker: WalkerConfig = Field(default_factory=WalkerConfig)
    site: SiteConfig = Field(default_factory=SiteConfig)
