"""wsdeps - 工作区依赖解析引擎"""

__version__ = "0.1.0"
