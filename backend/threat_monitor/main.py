"""FastAPI应用入口"""
import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from threat_monitor.analyzers.classifier import ThreatClassifier
from threat_monitor.analyzers.llm_client import LLMClient
from threat_monitor.analyzers.summary import AlertSummarizer
from threat_monitor.api import alerts, users
from threat_monitor.api.deps import require_api_key
from threat_monitor.bot import ChatStateStore, MenuHandler, TelegramBot
from threat_monitor.collectors import TelegramChannelCollector
from threat_monitor.config import Settings, get_settings, validate_settings
from threat_monitor.database import init_db
from threat_monitor.geo import Geocoder
from threat_monitor.services.dispatcher import ThreatDispatcher
from threat_monitor.services.monitor import ThreatMonitor
from threat_monitor.utils.logger import setup_logging

settings = get_settings()
logger = logging.getLogger(__name__)

setup_logging()


@dataclass
class MonitorRuntime:
    """Running Telegram clients and the pipeline that connects them."""
    bot: TelegramBot
    collector: TelegramChannelCollector
    monitor: ThreatMonitor

    async def stop(self) -> None:
        await self.collector.stop()
        await self.bot.stop()


async def start_monitor(settings: Settings, geocoder: Geocoder) -> MonitorRuntime:
    """Start the bot first so alerts can be delivered, then the channel listener."""
    llm = LLMClient(settings)
    menu = MenuHandler(
        ChatStateStore(ttl_seconds=settings.chat_state_ttl_seconds),
        summarizer=AlertSummarizer(llm),
        default_radius_km=settings.default_proximity_radius_km,
    )
    bot = TelegramBot.from_settings(settings, menu)
    await bot.start()

    dispatcher = ThreatDispatcher(geocoder, default_radius_km=settings.default_proximity_radius_km)
    monitor = ThreatMonitor.from_settings(settings, ThreatClassifier(llm), dispatcher, bot.send)

    collector = TelegramChannelCollector.from_settings(settings)
    try:
        await collector.start(monitor.handle_post)
    except Exception:
        await bot.stop()
        raise
    return MonitorRuntime(bot=bot, collector=collector, monitor=monitor)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    应用生命周期管理

    启动时：
    1. 创建数据表
    2. 加载地理编码表（缓存或远程）
    3. 启动 Telegram bot 与频道监听

    关闭时：
    1. 断开 Telegram 客户端
    """
    logger.info("Starting application...")
    init_db()

    geocoder = Geocoder.from_settings(settings)
    # blocking HTTP fetch on a cold cache
    await asyncio.to_thread(geocoder.initialize)
    app.state.geocoder = geocoder

    runtime: Optional[MonitorRuntime] = None
    if settings.monitor_enabled:
        errors = validate_settings(settings)
        if errors:
            for error in errors:
                logger.error(f"Configuration error: {error}")
            logger.error("Monitor not started; API only")
        else:
            try:
                runtime = await start_monitor(settings, geocoder)
                logger.info(f"Monitoring {len(settings.channel_list)} channels")
            except Exception as e:
                logger.error(f"Failed to start monitor: {e}")
    else:
        logger.info("Monitor disabled by config; skipping Telegram clients")
    app.state.runtime = runtime

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application...")
    if runtime is not None:
        await runtime.stop()
    logger.info("Application shutdown complete")


app = FastAPI(
    title="Telegram Threat Monitor",
    description="Threat classification and personalized alert dispatch for Telegram channels",
    version="1.0.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan,
    dependencies=[Depends(require_api_key)],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    """健康检查接口"""
    runtime = getattr(app.state, "runtime", None)
    geocoder = getattr(app.state, "geocoder", None)
    return {
        "status": "healthy",
        "version": "1.0.0",
        "monitor": {
            "enabled": settings.monitor_enabled,
            "running": runtime is not None,
            "channels": len(runtime.collector.channel_names) if runtime else 0,
        },
        "geocoder": {
            "known_locations": len(geocoder.known_names) if geocoder else 0,
        },
    }


# 注册路由
app.include_router(users.router, prefix="/api/v1/users", tags=["用户管理"])
app.include_router(alerts.router, prefix="/api/v1/users", tags=["告警记录"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("threat_monitor.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
