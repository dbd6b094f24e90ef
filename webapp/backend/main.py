"""FastAPI application for the SceneScheduler."""
import sys
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# scene_scheduler lives at the repository root
sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from routers import schedule  # noqa: E402
from scene_scheduler import __version__  # noqa: E402

app = FastAPI(
    title="SceneScheduler",
    description="Round-robin scene/role assignment with a backtracking engine or OR-Tools CP-SAT",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins in development
    allow_credentials=False,  # Must be False when allow_origins is "*"
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(schedule.router, prefix="/api/schedule", tags=["schedule"])


@app.get("/")
def root():
    return {"message": "SceneScheduler API", "docs": "/docs"}
