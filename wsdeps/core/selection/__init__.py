"""选择与排除模块"""

from wsdeps.core.selection.graph import SelectionGraph
from wsdeps.core.selection.metapackage import Metapackage

__all__ = ["Metapackage", "SelectionGraph"]
