import logging
import os

from fastapi import FastAPI, HTTPException
from shared.config.settings import VerifierSettings
from shared.contracts.verifier_contracts import (
    AttributesRequest, AttributesResponse, AttributeResultModel,
    MembershipRequest, MembershipResponse, MembershipResultModel,
    PollRequest, PollResponse, ProcessCgroupsResponse,
)
from shared.schemas.cgroup_schema import MEMBERSHIP_CONTROLLERS, AttributeExpectation, ControllerName

from src.cgroups.kernel_files import check_file_name
from src.cgroups.path_resolver import CgroupPathResolver
from src.cgroups.proc_loader import ProcessCgroupLoader
from src.verifier.attribute_verifier import AttributeVerifier, read_int_attribute
from src.verifier.errors import CgroupNotFoundError, MalformedDataError, VerificationError
from src.verifier.membership_verifier import MembershipVerifier
from src.verifier.poller import poll_until

logger = logging.getLogger(__name__)

app = FastAPI(title="Cgroup Verifier Service", version="0.1")


def _resolver(settings: VerifierSettings) -> CgroupPathResolver:
    return CgroupPathResolver(mount=settings.cgroup_mount, default_parent=settings.docker_parent)

def _controller(name: str) -> ControllerName:
    try:
        return ControllerName(name)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"unknown controller: {name!r}")

def _http_error(e: VerificationError) -> HTTPException:
    logger.warning("verification failed: %s", e)
    if isinstance(e, CgroupNotFoundError):
        return HTTPException(status_code=404, detail=e.message)
    if isinstance(e, MalformedDataError):
        return HTTPException(status_code=422, detail=e.message)
    return HTTPException(status_code=500, detail=e.message)


@app.get("/verifier/status")
def status():
    settings = VerifierSettings.from_env()
    resolver = _resolver(settings)
    mounted = [str(c) for c in MEMBERSHIP_CONTROLLERS if os.path.isdir(resolver.controller_root(c))]
    return {
        "ok": True,
        "mount": settings.cgroup_mount,
        "proc_root": settings.proc_root,
        "default_parent": settings.docker_parent,
        "controllers": mounted,
    }


@app.get("/verifier/processes/{pid}/cgroups", response_model=ProcessCgroupsResponse)
def process_cgroups(pid: int):
    loader = ProcessCgroupLoader(VerifierSettings.from_env().proc_root)
    try:
        cgroups = loader.load_controller_paths(pid)
        ppid = loader.load_parent_pid(pid)
    except VerificationError as e:
        raise _http_error(e)
    return ProcessCgroupsResponse(pid=pid, ppid=ppid, cgroups=cgroups)


@app.post("/verifier/attributes", response_model=AttributesResponse)
def attributes(req: AttributesRequest):
    verifier = AttributeVerifier(_resolver(VerifierSettings.from_env()))
    results = []
    for exp in req.expectations:
        attr = AttributeExpectation(arg=exp.arg, controller=_controller(exp.controller),
                                    file=exp.file, want=exp.want, optional=exp.optional)
        try:
            r = verifier.verify_expectation(req.cgroup_id, attr, req.parent)
        except VerificationError as e:
            raise _http_error(e)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        results.append(AttributeResultModel(controller=exp.controller, file=r.file, path=r.path,
                                            want=r.want, got=r.got, status=r.status.value))
    ok = all(r.status in ("match", "missing_optional") for r in results)
    return AttributesResponse(ok=ok, results=results)


@app.post("/verifier/membership", response_model=MembershipResponse)
def membership(req: MembershipRequest):
    controllers = MEMBERSHIP_CONTROLLERS
    if req.controllers is not None:
        controllers = [_controller(c) for c in req.controllers]

    verifier = MembershipVerifier(_resolver(VerifierSettings.from_env()))
    try:
        found = verifier.verify_controllers(req.pid, req.cgroup_id, controllers, req.parent)
    except VerificationError as e:
        raise _http_error(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    results = {
        ctrl: MembershipResultModel(path=r.path, present=r.present, observed=r.observed)
        for ctrl, r in found.items()
    }
    return MembershipResponse(ok=all(r.present for r in found.values()), pid=req.pid, results=results)


@app.post("/verifier/poll", response_model=PollResponse)
def poll(req: PollRequest):
    ctrl = _controller(req.controller)
    try:
        check_file_name(req.file)
        path = _resolver(VerifierSettings.from_env()).resolve(ctrl, req.cgroup_id, req.parent)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    def predicate():
        value = read_int_attribute(path, req.file)
        return value >= req.minimum, value

    try:
        result = poll_until(predicate, req.interval, req.deadline)
    except VerificationError as e:
        raise _http_error(e)
    return PollResponse(converged=result.converged, elapsed=result.elapsed,
                        value=result.value, attempts=result.attempts)
