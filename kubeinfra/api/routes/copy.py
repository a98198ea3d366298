from dataclasses import asdict
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from kubeinfra.exceptions import KubeInfraError, TransferError
from kubeinfra.modules.scp import Distributor
from kubeinfra.modules.ssh import SSHConfig, open_session

router = APIRouter()


class CopyRequest(BaseModel):
    location: str
    hosts: List[str]
    dst: str = "/root"
    before: Optional[str] = None
    after: Optional[str] = None
    ssh: SSHConfig = Field(default_factory=SSHConfig)
    max_workers: Optional[int] = Field(default=None, ge=0)
    strict: Optional[bool] = None


def get_session_factory():
    return open_session


@router.post("/copy")
def copy_files(req: CopyRequest, session_factory=Depends(get_session_factory)):
    try:
        distributor = Distributor(req.ssh, session_factory=session_factory,
                                  max_workers=req.max_workers, strict=req.strict)
        report = distributor.distribute(req.location, req.hosts, req.dst, before=req.before, after=req.after)
    except TransferError as e:
        raise HTTPException(status_code=502, detail={
            "message": str(e),
            "results": [asdict(r) for r in e.results],
        })
    except KubeInfraError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "location": report.location,
        "ok": report.ok,
        "results": [asdict(r) for r in report.results],
    }
