"""
数据流分层架构
  Layer 1 – Acquisition  : 上游数据获取（Finnhub → Stooq / 维基百科降级）
  Layer 2 – Cache        : 进程内 TTL 缓存
  Layer 3 – Processing   : 边界解析与校验
  Layer 4 – Analysis     : 统计计算（纯函数）
"""
