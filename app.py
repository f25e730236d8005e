#!/usr/bin/env python3
"""私募产品开放日日历 - Web 服务入口

启动 HTTP/JSON 接口服务，提供：
1. 用户注册、登录与管理
2. 产品开放日、预约期维护
3. 休市日维护
4. 按年月聚合的日历数据

使用方式：
    python app.py
    python app.py --port 3001 --db sqlite:///data/fund_calendar.db

首次部署先执行：
    python scripts/setup_env.py   # 生成 .env
    python scripts/init_db.py     # 建表并创建初始管理员

常用环境变量（.env）：
    DATABASE_URL / DB_POOL_SIZE / DB_POOL_TIMEOUT
    JWT_SECRET / JWT_EXPIRES_DAYS
    WEB_HOST / WEB_PORT / CORS_ORIGIN
    LOG_LEVEL
"""
import argparse
import asyncio
import signal
import sys

from loguru import logger

from config.settings import settings


def configure_logging(level: str) -> None:
    """日志统一输出到 stderr"""
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="私募产品开放日日历 Web 服务")
    parser.add_argument("--host", default=settings.web_host,
                        help=f"监听地址 (默认: {settings.web_host})")
    parser.add_argument("--port", type=int, default=settings.web_port,
                        help=f"监听端口 (默认: {settings.web_port})")
    parser.add_argument("--db", default=None,
                        help="数据库 URL (默认取 DATABASE_URL)")
    return parser.parse_args(argv)


async def stop_services(web, db) -> None:
    """依次停止 Web 服务（释放端口）和数据库连接池"""
    if web is not None:
        try:
            await web.shutdown()
        except Exception as e:
            logger.warning(f"Web 服务停止失败: {e}")

    if db is not None:
        try:
            db.close()
        except Exception as e:
            logger.warning(f"数据库连接池释放失败: {e}")

    logger.info("所有服务已停止")


async def wait_for_exit_signal() -> None:
    """阻塞直到收到 SIGINT / SIGTERM"""
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()

    def on_signal(signum):
        logger.info(f"收到退出信号 {signum}")
        stop.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, on_signal, sig)

    await stop.wait()


async def main(argv=None):
    args = parse_args(argv)
    configure_logging(settings.log_level)

    from database import DatabaseManager
    from interface.web.server import WebServer

    web = None
    db = None
    try:
        db = DatabaseManager(args.db)
        db.create_tables()
        if not db.ping():
            logger.error(f"无法连接数据库: {db.database_url}")
            return
        logger.info(f"数据库就绪: {db.database_url}")

        web = WebServer(
            db_manager=db,
            host=args.host,
            port=args.port,
            secret_key=settings.jwt_secret,
            cors_origin=settings.cors_origin,
        )
        await web.startup()

        print()
        print("=" * 60)
        print("  私募产品开放日日历服务已启动")
        print(f"  接口地址: http://localhost:{args.port}/api")
        print(f"  允许跨域: {settings.cors_origin}")
        print("  Ctrl+C 退出")
        print("=" * 60)
        print()

        await wait_for_exit_signal()

    except asyncio.CancelledError:
        logger.info("主任务被取消")
    finally:
        await stop_services(web, db)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        pass
