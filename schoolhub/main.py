import os
import logging
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import uvicorn
from dotenv import load_dotenv
from schoolhub import db
from schoolhub.routes import admin, auth, teacher
from schoolhub.store import StoreError

load_dotenv()
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="SchoolHub API")
app.include_router(auth.router, prefix="/api/v1")
app.include_router(teacher.router, prefix="/api/v1")
app.include_router(admin.router, prefix="/api/v1")
logger = logging.getLogger(__name__)


@app.exception_handler(HTTPException)
async def http_exception_handler(_: Request, exc: HTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(status_code=exc.status_code, content={"message": message})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_: Request, exc: RequestValidationError):
    first_error = exc.errors()[0] if exc.errors() else {}
    message = first_error.get("msg", "Validation error")
    return JSONResponse(status_code=400, content={"message": message})


@app.exception_handler(StoreError)
async def store_exception_handler(_: Request, exc: StoreError):
    logger.error("Storage failure: %s", exc)
    return JSONResponse(status_code=503, content={"message": "Storage unavailable"})


@app.exception_handler(Exception)
async def unhandled_exception_handler(_: Request, exc: Exception):
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(status_code=500, content={"message": "Internal server error"})


@app.on_event("startup")
def startup_event():
    if os.getenv("AUTO_CREATE_TABLES", "false").lower() in {"1", "true", "yes"}:
        db.create_db_and_tables()
    db.seed_default_admin()


@app.get("/api/ping")
async def ping():
    return {"status": "ok"}


def run():
    server_address = os.getenv("SERVER_ADDRESS", "0.0.0.0:8080")
    host, port = server_address.split(":")
    uvicorn.run(app=app, host=host, port=int(port))


if __name__ == "__main__":
    run()
