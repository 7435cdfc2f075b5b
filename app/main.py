import logging
from contextlib import asynccontextmanager
from dotenv import load_dotenv

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .auth import routers as auth_router
from .chat import routers as chat_router
from .locals import routers as locals_router
from .feedback import routers as feedback_router

from .core import config
from .core.errors import register_exception_handlers
from .core.middleware import logging_middleware
from .utils.logging_config import setup_logging

load_dotenv()
setup_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    config.validate_config()
    logger.info(f"LocalGuide API starting env={config.APP_ENV}")
    yield


app = FastAPI(title="LocalGuide API", lifespan=lifespan)
app.include_router(auth_router.router, prefix="/auth", tags=["Authentication"])
app.include_router(chat_router.router, prefix="/chats", tags=["Chats"])
app.include_router(locals_router.router, prefix="/locals", tags=["Local Experts"])
app.include_router(feedback_router.router, prefix="/feedback", tags=["Feedback"])

register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.middleware("http")(logging_middleware)


@app.get("/health")
def health():
    return {"success": True, "data": {"status": "ok", "env": config.APP_ENV}}
