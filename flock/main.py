from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from flock.api import auth, feed, messages, notifications, posts, profiles
from flock.core.db import close_db, init_db
from flock.core.exceptions import ServiceError


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the store on startup and close it on shutdown"""
    await init_db()
    yield
    await close_db()


# Create FastAPI application
app = FastAPI(
    title="Flock API",
    description="Social graph and engagement API",
    version="0.1.0",
    lifespan=lifespan,
)

# Set up CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict this to specific domains
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register API routers
app.include_router(auth.router)
app.include_router(profiles.router)
app.include_router(posts.router)
app.include_router(feed.router)
app.include_router(notifications.router)
app.include_router(messages.router)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}


@app.get("/api/version")
async def api_version():
    """API version information"""
    return {
        "version": "1.0.0",
        "name": "Flock API",
        "endpoints": "/api/v1",
    }
