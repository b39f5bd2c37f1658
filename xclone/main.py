from datetime import datetime
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
import logging

from xclone.config import settings
from xclone.db.session import init_db, close_db
from xclone.api import ai, bookmark, community, follow, like, message, notification, retweet, tweet, user
from xclone.services.redis_service import close_redis
from xclone.utils.errors import register_exception_handlers
from xclone.utils.rate_limit import limiter
from xclone.websocket import routes as websocket_routes

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events"""
    logger.info("Starting up...")
    try:
        await init_db()
    except Exception as e:
        logger.error(f"Error creating database tables: {e}")
        raise

    yield

    logger.info("Shutting down...")
    await close_redis()
    await close_db()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description="Backend for a Twitter/X style social network",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan
)

app.state.limiter = limiter
register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Uploaded media; the directory is created on first upload
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="uploads")

prefix = settings.API_V1_PREFIX
app.include_router(user.router, prefix=f"{prefix}/user", tags=["Users"])
app.include_router(tweet.router, prefix=f"{prefix}/tweet", tags=["Tweets"])
app.include_router(like.router, prefix=f"{prefix}/like", tags=["Likes"])
app.include_router(bookmark.router, prefix=f"{prefix}/bookmark", tags=["Bookmarks"])
app.include_router(retweet.router, prefix=f"{prefix}/retweet", tags=["Retweets"])
app.include_router(follow.router, prefix=f"{prefix}/follow", tags=["Follow"])
app.include_router(message.router, prefix=f"{prefix}/message", tags=["Messages"])
app.include_router(notification.router, prefix=f"{prefix}/notification", tags=["Notifications"])
app.include_router(community.router, prefix=f"{prefix}/community", tags=["Communities"])
app.include_router(ai.router, prefix=f"{prefix}/ai", tags=["AI Chat"])
app.include_router(websocket_routes.router, prefix=prefix, tags=["WebSocket"])


@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "message": f"Welcome to {settings.PROJECT_NAME}",
        "version": settings.VERSION,
        "docs": "/api/docs",
        "redoc": "/api/redoc"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat()
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "xclone.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info"
    )
