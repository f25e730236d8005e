"""业务层 - 日历聚合、认证与权限、操作审计

- calendar: 按年月合并休市日、开放日、预约期
- auth: 密码哈希、访问令牌、管理员权限、用户管理
- audit: 尽力而为的操作日志
- errors: 业务异常（带 HTTP 状态码）
- schemas: 请求体校验模型
"""
