from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware
from contextlib import asynccontextmanager
from fastapi import Request
from fastapi.responses import JSONResponse
import logging

from copo.database import init_db
from copo.config import Config
from copo.routes import (
    auth, users, departments, subjects, outcomes, course_plans,
    assessments, attainments, activity, settings,
)

logging.basicConfig(
    level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: make sure every table exists
    await init_db()
    yield

app = FastAPI(title="COPO Management Backend", lifespan=lifespan)

origins = [
    Config.FRONTEND_URL,
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

# Malformed bodies are a client error, reported as 400 rather than 422
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"message": "Invalid request data", "errors": jsonable_encoder(exc.errors())},
    )

# Global Exception Handler to ensure CORS headers are present even on 500 errors
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logging.error(f"Global Exception on {request.method} {request.url.path}: {exc}", exc_info=True)
    response = JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error"},
    )
    origin = request.headers.get("origin")
    if origin in origins:
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Credentials"] = "true"
    return response

# 1. Proxy & Session Middleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")

app.add_middleware(
    SessionMiddleware,
    secret_key=Config.SECRET_KEY,
    max_age=Config.SESSION_MAX_AGE,
    https_only=Config.ENV == "PRODUCTION",
    same_site="lax",
    domain=Config.SESSION_COOKIE_DOMAIN
)

# 2. CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True, # Allow Cookies
    allow_methods=["*"],
    allow_headers=["*"],
)

# 3. Routes
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(departments.router)
app.include_router(subjects.router)
app.include_router(subjects.assignment_router)
app.include_router(outcomes.course_outcome_router)
app.include_router(outcomes.program_outcome_router)
app.include_router(outcomes.mapping_router)
app.include_router(course_plans.router)
app.include_router(assessments.direct_router)
app.include_router(assessments.marks_router)
app.include_router(assessments.indirect_router)
app.include_router(assessments.responses_router)
app.include_router(attainments.router)
app.include_router(activity.router)
app.include_router(activity.notification_router)
app.include_router(settings.router)

@app.get("/")
def root():
    return {"message": "COPO Management Backend Online"}
