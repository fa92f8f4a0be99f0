"""
服務層

這個 package 包含純計算邏輯，不負責 lock、持久化或狀態轉換：
- placement_service：分隊規則
- render_service：session 渲染
- snapshot_service：快照序列化
- state_service：revision 管理
"""
