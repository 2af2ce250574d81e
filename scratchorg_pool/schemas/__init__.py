"""Pydantic schema exports."""

from .pool import PoolListResponse, ScratchOrgDetail, TagCount

__all__ = ["PoolListResponse", "ScratchOrgDetail", "TagCount"]
