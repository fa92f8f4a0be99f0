"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- 狀態機：集中管理 session 的狀態轉換
- AssignmentEngine：管理分隊 session 的生命週期
- Session Store：session 的存取（記憶體 / 檔案 / 資料庫）
- Display Synchronizer：把 session 同步到外部顯示面
- Locks：並發控制工具
"""
