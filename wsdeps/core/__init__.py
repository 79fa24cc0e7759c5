"""核心解析引擎：osdeps / 包管理器 / VCS / 选择与排除"""
