"""Web API 服务 - 私募产品开放日日历后端

基于 FastAPI 提供 HTTP/JSON 接口：
1. 用户注册、登录（Bearer JWT）
2. 产品开放日/预约期维护（管理员）
3. 休市日维护（管理员）
4. 按年月聚合的日历数据
5. 管理员用户管理

使用方式：
    ```python
    server = WebServer(db_manager=db, port=3001)
    await server.startup()
    ```
"""
import asyncio
import threading
from datetime import date
from typing import Optional

from fastapi import BackgroundTasks, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from business.audit import AuditLogger
from business.auth import AccessGate, AuthService, Identity
from business.calendar import CalendarAggregator
from business.errors import CalendarServiceError
from business.schemas import (
    HolidayRequest, LoginRequest, ProductRequest, RegisterRequest,
    ResetPasswordRequest,
)
from config.settings import settings


def _client_info(request: Request):
    """来源地址与客户端标识（用于审计日志）"""
    host = request.client.host if request.client else None
    return host, request.headers.get("User-Agent")


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "请求参数无效"
    first = errors[0]
    loc = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    return f"{loc}: {first.get('msg')}" if loc else str(first.get("msg"))


class WebServer:
    """日历后端 Web 服务

    路由：
    - POST   /api/auth/register                   → 注册
    - POST   /api/auth/login                      → 登录
    - GET    /api/auth/me                         → 当前用户
    - GET    /api/products                        → 产品列表（分页、搜索）
    - GET    /api/products/{id}                   → 产品详情
    - POST   /api/products                        → 创建/更新产品（管理员）
    - DELETE /api/products/{id}                   → 删除产品（管理员）
    - GET    /api/holidays                        → 休市日列表
    - POST   /api/holidays                        → 添加休市日（管理员）
    - DELETE /api/holidays/{id}                   → 删除休市日（管理员）
    - GET    /api/calendar/{year}/{month}         → 日历数据
    - GET    /api/admin/users                     → 用户列表（管理员）
    - POST   /api/admin/users/{id}/reset-password → 重置密码（管理员）
    - GET    /health                              → 健康检查
    """

    def __init__(
        self,
        db_manager,
        host: str = "0.0.0.0",
        port: int = 3001,
        secret_key: Optional[str] = None,
        cors_origin: Optional[str] = None,
        bcrypt_rounds: Optional[int] = None,
    ):
        self.db_manager = db_manager
        self.host = host
        self.port = port
        self.cors_origin = cors_origin or settings.cors_origin

        self.gate = AccessGate(secret_key=secret_key)
        self.auth = AuthService(db_manager.users, self.gate, bcrypt_rounds)
        self.calendar = CalendarAggregator(db_manager.holidays, db_manager.products)
        self.audit = AuditLogger(db_manager.operation_logs)

        self.app = None
        self.running = False
        self._server_thread: Optional[threading.Thread] = None
        self._server = None  # uvicorn.Server 实例

    def create_app(self) -> FastAPI:
        """创建 FastAPI 应用"""
        app = FastAPI(
            title="私募产品开放日日历",
            description="产品开放日、预约期与休市日管理",
            version="1.0.0",
        )
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[self.cors_origin],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        self._register_error_handlers(app)

        db = self.db_manager

        def current_user(request: Request) -> Identity:
            """从 Authorization 头解析身份"""
            return self.gate.authenticate(request.headers.get("Authorization"))

        def current_admin(identity: Identity = Depends(current_user)) -> Identity:
            return self.gate.require_admin(identity)

        # ==================== 认证 API ====================

        @app.post("/api/auth/register", status_code=201)
        def register(payload: RegisterRequest, request: Request,
                     background: BackgroundTasks):
            """用户注册"""
            user_id = self.auth.register(payload)
            background.add_task(
                self.audit.record, user_id, "用户注册",
                f"注册手机号: {payload.phone}", *_client_info(request),
            )
            return {"message": "注册成功", "userId": user_id}

        @app.post("/api/auth/login")
        def login(payload: LoginRequest, request: Request,
                  background: BackgroundTasks):
            """用户登录"""
            result = self.auth.login(payload)
            background.add_task(
                self.audit.record, result["user"]["id"], "用户登录",
                f"登录手机号: {payload.phone}", *_client_info(request),
            )
            return {"message": "登录成功", **result}

        @app.get("/api/auth/me")
        def me(identity: Identity = Depends(current_user)):
            """当前用户信息"""
            return {"user": self.auth.me(identity)}

        # ==================== 产品 API ====================

        @app.get("/api/products")
        def products_list(
            page: int = Query(1, ge=1),
            limit: int = Query(20, ge=1, le=200),
            search: str = "",
            _: Identity = Depends(current_user),
        ):
            """产品列表"""
            return db.products.list_products(page=page, limit=limit, search=search)

        @app.get("/api/products/{product_id}")
        def product_detail(product_id: int, _: Identity = Depends(current_user)):
            """产品详情"""
            return db.products.get_detail(product_id)

        @app.post("/api/products")
        def save_product(payload: ProductRequest, request: Request,
                         background: BackgroundTasks,
                         identity: Identity = Depends(current_admin)):
            """创建或更新产品（按产品代码）"""
            product_id, created = db.products.upsert(
                payload.to_record(), created_by=identity.id
            )
            background.add_task(
                self.audit.record, identity.id, "产品操作",
                f"操作产品: {payload.productName} ({payload.productCode})",
                *_client_info(request),
            )
            return JSONResponse(
                status_code=201 if created else 200,
                content={
                    "message": "产品创建成功" if created else "产品更新成功",
                    "productId": product_id,
                },
            )

        @app.delete("/api/products/{product_id}")
        def delete_product(product_id: int, request: Request,
                           background: BackgroundTasks,
                           identity: Identity = Depends(current_admin)):
            """软删除产品"""
            product = db.products.soft_delete(product_id)
            background.add_task(
                self.audit.record, identity.id, "删除产品",
                f"删除产品: {product.product_name} ({product.product_code})",
                *_client_info(request),
            )
            return {"message": "产品删除成功"}

        # ==================== 休市日 API ====================

        @app.get("/api/holidays")
        def holidays_list(year: Optional[int] = Query(None, ge=1, le=9999),
                          _: Identity = Depends(current_user)):
            """指定年份的休市日（默认当年）"""
            if year is None:
                year = date.today().year
            holidays = db.holidays.list_by_year(year)
            return {
                "holidays": [
                    {
                        "id": h.id,
                        "holiday_date": h.holiday_date.isoformat(),
                        "holiday_name": h.holiday_name,
                        "holiday_type": h.holiday_type,
                    }
                    for h in holidays
                ]
            }

        @app.post("/api/holidays", status_code=201)
        def add_holiday(payload: HolidayRequest, request: Request,
                        background: BackgroundTasks,
                        identity: Identity = Depends(current_admin)):
            """添加休市日"""
            holiday_id = db.holidays.create(
                payload.to_record(), created_by=identity.id
            )
            background.add_task(
                self.audit.record, identity.id, "添加休市日",
                f"添加休市日: {payload.holidayName} ({payload.holidayDate.isoformat()})",
                *_client_info(request),
            )
            return {"message": "休市日添加成功", "holidayId": holiday_id}

        @app.delete("/api/holidays/{holiday_id}")
        def delete_holiday(holiday_id: int, request: Request,
                           background: BackgroundTasks,
                           identity: Identity = Depends(current_admin)):
            """软删除休市日"""
            holiday = db.holidays.soft_delete(holiday_id)
            background.add_task(
                self.audit.record, identity.id, "删除休市日",
                f"删除休市日: {holiday.holiday_name} ({holiday.holiday_date.isoformat()})",
                *_client_info(request),
            )
            return {"message": "休市日删除成功"}

        # ==================== 日历 API ====================

        @app.get("/api/calendar/{year}/{month}")
        def calendar_month(year: int, month: int,
                           _: Identity = Depends(current_user)):
            """指定年月的日历数据"""
            return self.calendar.get_month(year, month)

        # ==================== 管理员 API ====================

        @app.get("/api/admin/users")
        def users_list(_: Identity = Depends(current_admin)):
            """用户列表"""
            return {"users": self.auth.list_users()}

        @app.post("/api/admin/users/{user_id}/reset-password")
        def reset_password(user_id: int, payload: ResetPasswordRequest,
                           request: Request, background: BackgroundTasks,
                           identity: Identity = Depends(current_admin)):
            """重置用户密码"""
            phone = self.auth.reset_password(user_id, payload.newPassword)
            background.add_task(
                self.audit.record, identity.id, "重置密码",
                f"重置用户密码: {phone}", *_client_info(request),
            )
            return {"message": "密码重置成功"}

        # ==================== 健康检查 ====================

        @app.get("/health")
        def health_check():
            """健康检查"""
            return {
                "status": "ok",
                "running": self.running,
                "db_connected": db.ping(),
            }

        return app

    @staticmethod
    def _register_error_handlers(app: FastAPI) -> None:
        """异常到 HTTP 响应的统一转换"""

        @app.exception_handler(CalendarServiceError)
        async def service_error(request: Request, exc: CalendarServiceError):
            return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

        @app.exception_handler(RequestValidationError)
        async def validation_error(request: Request, exc: RequestValidationError):
            return JSONResponse(
                status_code=400, content={"error": _validation_message(exc)}
            )

        @app.exception_handler(StarletteHTTPException)
        async def http_error(request: Request, exc: StarletteHTTPException):
            message = "接口不存在" if exc.status_code == 404 else str(exc.detail)
            return JSONResponse(status_code=exc.status_code, content={"error": message})

        @app.exception_handler(IntegrityError)
        async def integrity_error(request: Request, exc: IntegrityError):
            logger.warning(f"Integrity error on {request.url.path}: {exc.orig}")
            return JSONResponse(status_code=409, content={"error": "数据重复"})

        @app.exception_handler(Exception)
        async def unhandled_error(request: Request, exc: Exception):
            logger.opt(exception=exc).error(
                f"未处理的错误: {request.method} {request.url.path}"
            )
            return JSONResponse(status_code=500, content={"error": "服务器内部错误"})

    async def startup(self):
        """在独立线程中启动 uvicorn 服务器"""
        import uvicorn

        self.app = self.create_app()
        self.running = True

        config = uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            log_level="warning",
            loop="asyncio",
        )
        self._server = uvicorn.Server(config)
        # 信号由 app.py 统一处理
        self._server.install_signal_handlers = lambda: None

        def run_server():
            loop = asyncio.new_event_loop()
            asyncio.set_event_loop(loop)
            try:
                loop.run_until_complete(self._server.serve())
            except Exception as e:
                logger.error(f"服务器运行出错: {e}")
            finally:
                loop.close()

        self._server_thread = threading.Thread(target=run_server, daemon=True)
        self._server_thread.start()

        # 等待服务器启动
        waited = 0.0
        while not self._server.started and waited < 5:
            await asyncio.sleep(0.1)
            waited += 0.1

        logger.info(f"Web 服务已启动: http://{self.host}:{self.port}")

    async def shutdown(self):
        """停止 Web 服务器，确保端口被释放"""
        self.running = False

        if self._server is not None:
            logger.info("正在停止 Web 服务器...")
            self._server.should_exit = True

            if self._server_thread and self._server_thread.is_alive():
                self._server_thread.join(timeout=3.0)

            if self._server_thread and self._server_thread.is_alive():
                logger.warning("服务器未在 3 秒内优雅停止，强制退出...")
                self._server.force_exit = True
                self._server_thread.join(timeout=2.0)

            self._server = None
            self._server_thread = None

        logger.info("Web 服务已停止")
