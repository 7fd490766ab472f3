from pydantic import BaseModel, Field
from typing import Dict, List, Optional

class ExpectationModel(BaseModel):
    controller: str
    file: str
    want: str
    optional: bool = False
    arg: str = ""

class AttributesRequest(BaseModel):
    cgroup_id: str
    parent: Optional[str] = None   # None -> runtime default ("docker")
    expectations: List[ExpectationModel]

class AttributeResultModel(BaseModel):
    controller: str
    file: str
    path: str
    want: str
    got: Optional[str] = None
    status: str

class AttributesResponse(BaseModel):
    ok: bool
    results: List[AttributeResultModel]

class MembershipRequest(BaseModel):
    pid: int
    cgroup_id: str
    parent: Optional[str] = None
    controllers: Optional[List[str]] = None  # None -> all membership controllers

class MembershipResultModel(BaseModel):
    path: str
    present: bool
    observed: List[int] = []

class MembershipResponse(BaseModel):
    ok: bool
    pid: int
    results: Dict[str, MembershipResultModel]

class ProcessCgroupsResponse(BaseModel):
    pid: int
    ppid: int
    cgroups: Dict[str, str]

class PollRequest(BaseModel):
    cgroup_id: str
    controller: str
    file: str
    minimum: int
    parent: Optional[str] = None
    interval: float = Field(0.1, gt=0, description="seconds between reads")
    deadline: float = Field(30.0, ge=0, description="give up after this many seconds")

class PollResponse(BaseModel):
    converged: bool
    elapsed: float
    value: Optional[int] = None
    attempts: int
