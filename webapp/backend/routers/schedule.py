from fastapi import APIRouter, HTTPException

from schemas import CheckResponse, ScheduleRequest, ScheduleRow, SolveRequest, SolveResponse
from scene_scheduler.cpsat_model import solve_cpsat
from scene_scheduler.models import ConfigurationError, PROSECUTION, OBSERVER, PUBLIC
from scene_scheduler.parse_inputs import config_from_mapping
from scene_scheduler.search import solve
from scene_scheduler.validate import check_configuration

router = APIRouter()


def _config(data: ScheduleRequest):
    try:
        return config_from_mapping({
            "n": data.n,
            "r": data.r,
            "scenes": data.scenes,
            "mode": data.mode,
            "rule_flags": data.rule_flags,
        })
    except ConfigurationError as exc:
        raise HTTPException(400, "; ".join(exc.messages))


@router.post("/check", response_model=CheckResponse)
def check_parameters(data: ScheduleRequest):
    config = _config(data)
    ok, msgs = check_configuration(config)
    return CheckResponse(ok=ok, messages=msgs, bounds=list(config.bounds) if ok else [])


@router.post("/solve", response_model=SolveResponse)
def solve_schedule(data: SolveRequest):
    config = _config(data)
    try:
        if data.backend == "cpsat":
            result = solve_cpsat(config, time_limit_seconds=data.time_limit,
                                 workers=max(1, data.workers), seed=data.seed)
        else:
            result = solve(config, time_limit_seconds=data.time_limit,
                           node_limit=data.node_limit, workers=max(1, data.workers),
                           seed=data.seed)
    except ConfigurationError as exc:
        raise HTTPException(400, "; ".join(exc.messages))

    rows = []
    if result.found:
        for round_no in range(1, config.r + 1):
            for scene in range(1, config.scenes + 1):
                by_role = result.matrix.scene_members(round_no, scene)
                rows.append(ScheduleRow(
                    round=round_no,
                    scene=f"S{scene}",
                    leader=config.leader(round_no, scene),
                    prosecution=list(by_role[PROSECUTION]),
                    observer=list(by_role[OBSERVER]),
                    public=list(by_role[PUBLIC]),
                ))
    return SolveResponse(
        status=result.status,
        backend=result.backend,
        objective=result.objective,
        nodes=result.nodes,
        elapsed_seconds=result.elapsed_seconds,
        conflicts=result.conflicts,
        rows=rows,
    )
