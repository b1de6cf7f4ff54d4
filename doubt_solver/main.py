import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from doubt_solver.core.config import settings
from doubt_solver.core.errors import InvalidInput, SolveError
from doubt_solver.routers import chat, misc

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("doubts")

app = FastAPI(title="Doubt Solver API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


@app.exception_handler(SolveError)
async def solve_error_handler(request: Request, exc: SolveError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.info("Rejected malformed body on %s", request.url.path)
    err = InvalidInput("Invalid request body")
    return JSONResponse(status_code=err.status_code, content=err.to_payload())


app.include_router(misc.router)
app.include_router(chat.router)

@app.get("/")
def root():
    return {"message": "Doubt Solver API"}
