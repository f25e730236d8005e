"""用户接口模块

当前只提供 HTTP/JSON 接口：

- WebServer: 基于 FastAPI 的 Web API 服务（认证、产品、休市日、日历、用户管理）

架构设计：
    调用方 ──→ WebServer ──→ AccessGate（认证/鉴权）
                         ──→ CalendarAggregator / 仓库（业务数据）
                         ──→ AuditLogger（后台记录操作日志）

使用示例：
    ```python
    from database import DatabaseManager
    from interface import WebServer

    db = DatabaseManager()
    server = WebServer(db_manager=db, port=3001)
    await server.startup()
    ```
"""
from interface.web.server import WebServer

__all__ = ["WebServer"]
