import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import DuplicateKeyError

import config
from database import ensure_indexes, ping
from routes import (advertisements, ai, auth, billing_cycles, cart, categories, contact, meta, orders, pages,
                    permissions, products, reports, requests, reviews, roles, shares, shops, subscriptions, users,
                    videos)
from seed import seed_defaults

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# App and CORS
app = FastAPI(title="iDream API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for module in (auth, users, roles, permissions, categories, shops, products, reviews, cart, orders, shares,
               reports, subscriptions, billing_cycles, advertisements, videos, pages, requests, contact, ai, meta):
    app.include_router(module.router)


# Errors
@app.exception_handler(RequestValidationError)
def validation_error_handler(request: Request, exc: RequestValidationError):
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"] if part not in ("body", "query", "path"))
        messages.append(f"{field}: {error['msg']}" if field else error["msg"])
    return JSONResponse(status_code=400, content={"detail": ". ".join(messages)})


@app.exception_handler(DuplicateKeyError)
def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
    key_value = (exc.details or {}).get("keyValue") or {}
    field = next(iter(key_value), "Field")
    return JSONResponse(status_code=400, content={"detail": f"{field} already exists"})


@app.exception_handler(Exception)
def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    detail = "Something went wrong!" if config.ENVIRONMENT == "production" else str(exc)
    return JSONResponse(status_code=500, content={"detail": detail})


# Startup
@app.on_event("startup")
def prepare_database():
    ensure_indexes()
    seed_defaults()


@app.get("/api/health")
def health():
    return {
        "status": "OK",
        "message": "iDream API is running",
        "database": "connected" if ping() else "disconnected",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
