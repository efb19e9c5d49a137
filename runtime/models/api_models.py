"""
HTTP request/response models for the content record API.
"""

from pydantic import BaseModel
from typing import List


class InitRequest(BaseModel):
    referrer: str


class InitResponse(BaseModel):
    domain: str
    index_paths: List[str]


class SubmitResponse(BaseModel):
    """
    Acknowledgment of a detached append.

    submitted only means the append was started; the write itself may
    still fail later (failures are reported to the error observer).
    """
    submitted: bool


class LoginResponse(BaseModel):
    scheduled: List[str]
