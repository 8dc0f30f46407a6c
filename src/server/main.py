"""
FastAPI 应用入口点。
"""

import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from src.server.ca.router import router as ca_router
from src.server.config import config

logger.remove()
logger.add(sys.stderr, level=config.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"config: {config.model_dump_json(indent=4)}")
    yield
    logger.info("应用关闭")


app = FastAPI(title="MQTT mTLS Certificate Authority Service", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_allow_origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)

# 包含证书签发服务的路由
app.include_router(ca_router, prefix="/api")


@app.get("/api/health")
async def health() -> dict:
    return {"status": "ok"}
