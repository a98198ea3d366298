from typing import Any, Dict

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from kubeinfra import registry
from kubeinfra.exceptions import InfraValidationError, KubeInfraError
from kubeinfra.modules.cluster import DEFAULT_BACKEND, apply_infra, delete_infra
from kubeinfra.modules.infra import parse_infra

router = APIRouter(prefix="/infra")


class InfraRequest(BaseModel):
    infra: Dict[str, Any]
    backend: str = DEFAULT_BACKEND


def _result_body(result) -> Dict[str, Any]:
    return {
        "status": result.status.to_dict(),
        "errors": [{"action": e.action, "message": e.message} for e in result.errors],
    }


def _parse(req: InfraRequest):
    try:
        return parse_infra(req.infra)
    except InfraValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.post("/apply")
def apply(req: InfraRequest):
    infra = _parse(req)
    try:
        return _result_body(apply_infra(infra, backend=req.backend))
    except KubeInfraError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/delete")
def delete(req: InfraRequest):
    infra = _parse(req)
    try:
        return _result_body(delete_infra(infra, backend=req.backend))
    except KubeInfraError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{name}")
def status(name: str):
    status = registry.load_status(name)
    if status is None:
        raise HTTPException(status_code=404, detail=f"No status recorded for {name}")
    return status.to_dict()
