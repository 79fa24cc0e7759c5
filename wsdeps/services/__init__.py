"""服务层

拆分说明:
- workspace.py: sources 文件加载
- name_resolver.py: 包名解析（元包 / osdep / 源码包）
- resolution_queue.py: 广度优先解析队列
- container.py: 服务容器
"""
