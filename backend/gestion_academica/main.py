from fastapi import FastAPI, Request
from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .db import init_db
from .errors import RulesEngineError
from .logging import configure_logging
from .seed import ensure_default_admin, ensure_demo_data
from .routers import auth, periods, enrollments, grades, attendance, schedules, students


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    init_db()
    if settings.is_production:
        ensure_default_admin()
    else:
        ensure_demo_data()
    yield


app = FastAPI(title="Gestión Académica API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RulesEngineError)
async def rules_engine_error_handler(request: Request, exc: RulesEngineError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(auth.router)
app.include_router(periods.router)
app.include_router(enrollments.router)
app.include_router(grades.router)
app.include_router(attendance.router)
app.include_router(schedules.router)
app.include_router(students.router)


@app.get("/")
def root():
    return {"status": "ok", "service": settings.app_name}
