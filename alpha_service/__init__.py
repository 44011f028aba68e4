"""
alpha-service 行情统计服务
面向看板前端的美股跨标的统计微服务，提供 HTTP 接口

架构分层：
  数据获取层 (Acquisition)  → Finnhub / Stooq / 维基百科，带重试与失败分类
  缓存层     (Cache)        → 进程内 TTL 缓存（single-flight）
  处理层     (Processing)   → 上游响应解析、校验、过滤
  分析层     (Analysis)     → 收益率、相关性、滞后相关、预期波动
"""

__version__ = "1.0.0"
