from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/", summary="Health Check")
async def health_check(request: Request):
    scheduler = getattr(request.app.state, "scheduler", None)
    jobs = {name: {"busy": job.busy} for name, job in scheduler.jobs.items()} if scheduler else {}
    return {"status": "ok", "scheduler": {"running": bool(scheduler and scheduler.running), "jobs": jobs}}
