from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from campus.core.config import settings
from campus.core.database import init_db
from campus.core.limiter import limiter, _rate_limit_exceeded_handler
from campus.academics.router import router as academics_router
from campus.email.queue import EmailQueueService
from campus.email.router import router as email_router

app = FastAPI(title=f"{settings.APP_NAME} API", version="0.1.0")

# Set up SlowAPI limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

@app.on_event("startup")
async def startup():
    # Initialize database
    init_db()

    # One queue connection per process, shared by every request
    email_queue = EmailQueueService()
    await email_queue.connect()
    app.state.email_queue = email_queue

@app.on_event("shutdown")
async def shutdown():
    email_queue = getattr(app.state, "email_queue", None)
    if email_queue is not None:
        await email_queue.disconnect()

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.FRONTEND_URL,
        "http://localhost:3000",  # React frontend
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["*"],
)


# Include all routers

app.include_router(academics_router, prefix="/api/v1/academics", tags=["academics"])
app.include_router(email_router, prefix="/api/v1/email", tags=["email"])
