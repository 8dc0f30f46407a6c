#!/usr/bin/env python
import uvicorn
import os
from dotenv import load_dotenv
from pathlib import Path

from loguru import logger

if __name__ == "__main__":
    logger.info("MQTT mTLS CA Service, start running!")
    load_dotenv(Path.cwd() / ".env")
    logger.info(f"当前应用环境：{os.getenv('APP_ENV')}")

    # .env 需在导入配置前加载
    from src.server.config import config

    uvicorn.run(
        "src.server.main:app",
        host=config.host,
        port=config.port,
        reload=os.getenv("APP_ENV") == "development",
        log_level=config.log_level.lower(),
    )
