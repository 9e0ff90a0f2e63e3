import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from reports_backend.modules.logger import current_user, error, info
from reports_backend.modules.login.fastapi_login import router as auth_router
from reports_backend.modules.reports.fastapi_reports import router as reports_router

API_PREFIX = os.getenv("API_PREFIX", "/api/reportes")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:4200")

app = FastAPI(title="Reportes Backend (FastAPI)", version="1.0.0")

# CORS configuration – must specify exact origins when using credentials
# Cannot use wildcard "*" when allow_credentials=True
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "http://localhost:4200").split(",")
        if origin.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    """
    Browser reloads of SPA routes (GET + Accept: text/html) go back to the
    frontend; every other request runs with the caller's name in the logs.
    """
    accept = request.headers.get("accept", "")
    if request.method == "GET" and "html" in accept and request.url.path not in ("/docs", "/redoc"):
        target = FRONTEND_URL.rstrip("/") + request.url.path
        if request.url.query:
            target += "?" + request.url.query
        info(f"Redirigiendo petición HTML GET {request.url.path} -> {target}")
        return RedirectResponse(url=target, status_code=302)

    token = current_user.set(
        request.headers.get("X-User") or request.headers.get("X-USERNAME") or "system"
    )
    try:
        return await call_next(request)
    finally:
        current_user.reset(token)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """
    Logs the error and returns a generic response.
    """
    error(f"Unhandled exception on {request.url.path}: {str(exc)}")
    return JSONResponse(
        status_code=500,
        content={"error": "An unexpected error occurred"},
    )


@app.get("/health")
async def health_check():
    return {"status": "ok"}


@app.get("/")
async def root():
    return {"status": "ok", "message": "Servidor backend funcionando", "health": "/health"}


app.include_router(auth_router, prefix=API_PREFIX)
app.include_router(reports_router, prefix=API_PREFIX)


def main():
    """Serve the API: uvicorn reports_backend.fastapi_app:app"""
    import uvicorn

    info("Server starting...")
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))


if __name__ == "__main__":
    main()
