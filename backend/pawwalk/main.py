import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pawwalk.api.schedules import router as schedules_router
from pawwalk.api.walks import router as walks_router
from pawwalk.core.config import settings
from pawwalk.core.errors import WalkAppError
from pawwalk.db import Base, engine
from pawwalk.models.walk_schedule import WalkSchedule  # noqa: F401  (import ensures table is registered)
from pawwalk.models.walk_participant import WalkParticipant  # noqa: F401
from pawwalk.models.walk_session import WalkSession  # noqa: F401
from pawwalk.models.user_statistics import UserStatistics  # noqa: F401
from pawwalk.schemas.error import ErrorResponse

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="PawWalk API", version="1.0.0")

# Allow CORS for the mobile/web frontend
origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(WalkAppError)
async def walk_error_handler(request: Request, exc: WalkAppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.reason)
    body = ErrorResponse(
        status=exc.status_code,
        code=exc.code,
        reason=exc.reason,
        timeStamp=datetime.now(timezone.utc).isoformat(),
        path=request.url.path,
    )
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


# Create DB tables on startup
Base.metadata.create_all(bind=engine)

app.include_router(walks_router)
app.include_router(schedules_router)


@app.get("/")
def root():
    return {"message": "PawWalk backend is running"}
