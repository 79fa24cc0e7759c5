"""元包：一组包的命名集合"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Metapackage:
    """元包

    weak_dependencies 为 True 时，选择该元包不要求所有成员都可用：
    被排除的成员直接丢弃，只有全部成员都不可用才报错。
    """

    name: str
    packages: list[str] = field(default_factory=list)
    weak_dependencies: bool = False

    def add(self, package_name: str) -> None:
        if package_name not in self.packages:
            self.packages.append(package_name)

    def __contains__(self, package_name: str) -> bool:
        return package_name in self.packages

    def __len__(self) -> int:
        return len(self.packages)
