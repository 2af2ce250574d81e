"""Pool listing output schemas."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from scratchorg_pool.repos.models import PoolStatus, ScratchOrg


class ScratchOrgDetail(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tag: Optional[str] = None
    org_id: Optional[str] = Field(default=None, alias="orgId")
    username: Optional[str] = None
    password: Optional[str] = None
    expiry_date: Optional[str] = Field(default=None, alias="expiryDate")
    status: Optional[PoolStatus] = None
    login_url: Optional[str] = Field(default=None, alias="loginURL")

    @classmethod
    def from_scratch_org(cls, scratch_org: ScratchOrg) -> "ScratchOrgDetail":
        return cls(
            tag=scratch_org.tag,
            org_id=scratch_org.org_id,
            username=scratch_org.username,
            password=scratch_org.password,
            expiry_date=scratch_org.expiry_date,
            status=scratch_org.status,
            login_url=scratch_org.login_url,
        )


class TagCount(BaseModel):
    tag: str
    count: int


class PoolListResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total: int
    inuse: int
    unused: int
    inprovision: int
    scratch_org_details: List[ScratchOrgDetail] = Field(default_factory=list, alias="scratchOrgDetails")

    def to_json_dict(self) -> dict:
        payload = self.model_dump(mode="json", by_alias=True)
        for detail in payload["scratchOrgDetails"]:
            if detail.get("password") is None:
                detail.pop("password", None)
        return payload
