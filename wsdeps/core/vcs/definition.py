"""版本控制定义

一个 VCS 片段 (fragment) 是部分字段的映射 {type, url, branch, ...}；
完整的 VcsSpec 必须有 type，除 type=none 外还必须有 url。

片段的三种写法:
    "none"                     → {type: none}
    "git:https://host/x.git"   → {type: git, url: https://host/x.git}
    {type: git, url: ..., branch: main}
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any

from wsdeps.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

KNOWN_VCS_TYPES = frozenset({"git", "svn", "hg", "archive", "cvs", "darcs", "local", "none"})

_TYPE_URL_RE = re.compile(r"^(\w+):(.*)$")
_SCHEME_RE = re.compile(r"^[\w+.-]+://")
_SCP_RE = re.compile(r"^([\w.-]+):(?!//)(.*)$")


def normalize_fragment(raw: Any) -> dict[str, Any]:
    """把原始写法统一成字典；不校验完整性"""
    if raw is None:
        return {}
    if isinstance(raw, str):
        text = raw.strip()
        if text == "none":
            return {"type": "none"}
        m = _TYPE_URL_RE.match(text)
        if m:
            return {"type": m.group(1), "url": m.group(2)}
        # 裸路径视为本地目录
        return {"type": "local", "url": text}
    if isinstance(raw, dict):
        return {str(k): v for k, v in raw.items()}
    raise ConfigError(f"无效的 VCS 定义: {raw!r}（应为字符串或映射）")


def expand_placeholders(fragment: dict[str, Any], package_name: str) -> dict[str, Any]:
    """展开 $PACKAGE / $PACKAGE_BASENAME"""
    expansions = {
        "PACKAGE_BASENAME": PurePosixPath(package_name).name,
        "PACKAGE": package_name,
    }

    def expand(value: Any) -> Any:
        if not isinstance(value, str):
            return value
        # 先替换长的，避免 $PACKAGE 吃掉 $PACKAGE_BASENAME 的前缀
        for key, replacement in expansions.items():
            value = value.replace(f"${key}", replacement)
        return value

    return {k: expand(v) for k, v in fragment.items()}


def describe_fragment(fragment: dict[str, Any]) -> str:
    return "{ " + ", ".join(f"{k}: {v}" for k, v in sorted(fragment.items())) + " }"


@dataclass
class HistoryEntry:
    """VcsSpec 的一层：由哪个来源贡献了哪个片段"""

    source: str | None
    fragment: dict[str, Any]


@dataclass(eq=False)
class VcsSpec:
    """完整的版本控制定义

    相等性比较的是仓库标识 (repository_id)，而不是原始字段：
    https://host/org/repo.git 与 git@host:org/repo 视为同一个仓库。
    """

    type: str
    url: str | None = None
    options: dict[str, Any] = field(default_factory=dict)
    history: list[HistoryEntry] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.type not in KNOWN_VCS_TYPES:
            raise ConfigError(
                f"未知的版本控制类型 {self.type}，可选: {', '.join(sorted(KNOWN_VCS_TYPES))}"
            )

    @classmethod
    def from_raw(
        cls,
        raw: Any,
        source: str | None = None,
        history: list[HistoryEntry] | None = None,
    ) -> VcsSpec:
        fragment = normalize_fragment(raw)
        options = dict(fragment)
        vcs_type = options.pop("type", None)
        url = options.pop("url", None)
        if not vcs_type:
            raise ConfigError(
                f"VCS 定义 {describe_fragment(fragment)} 缺少 type 字段"
            )
        if not url and vcs_type != "none":
            raise ConfigError(
                f"VCS 定义 {describe_fragment(fragment)} 缺少 url 字段，只有 type 为 none 时可以省略"
            )
        return cls(
            str(vcs_type), url, options,
            [*(history or []), HistoryEntry(source, fragment)],
        )

    @classmethod
    def none(cls) -> VcsSpec:
        return cls.from_raw("none")

    @property
    def is_none(self) -> bool:
        return self.type == "none"

    @property
    def is_local(self) -> bool:
        return self.type == "local"

    @property
    def needs_import(self) -> bool:
        return not (self.is_none or self.is_local)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.type}
        if self.url is not None:
            result["url"] = self.url
        result.update(self.options)
        return result

    def update(self, raw: Any, source: str | None = None) -> VcsSpec:
        """叠加一个片段，返回新的 VcsSpec

        片段改变了 type 时整体替换，否则浅合并，片段中的字段优先。
        """
        fragment = normalize_fragment(raw)
        if "type" in fragment and fragment["type"] != self.type:
            return VcsSpec.from_raw(fragment, source=source)
        return VcsSpec.from_raw(
            {**self.to_dict(), **fragment}, source=source, history=self.history,
        )

    @property
    def repository_id(self) -> str:
        """规范化后的仓库标识"""
        if self.is_none:
            return "none"
        url = str(self.url)
        if self.is_local:
            return f"local:{url}"
        if self.type in ("git", "hg"):
            return f"{self.type}:{_normalize_remote(url)}"
        if self.type == "svn":
            return f"svn:{url.rstrip('/')}"
        return f"{self.type}:{url}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VcsSpec):
            return NotImplemented
        return self.repository_id == other.repository_id

    def __hash__(self) -> int:
        return hash(self.repository_id)

    def __str__(self) -> str:
        if self.is_none:
            return "none"
        extra = ", ".join(f"{k}={v}" for k, v in sorted(self.options.items()))
        return f"{self.type}:{self.url}" + (f" ({extra})" if extra else "")


def _normalize_remote(url: str) -> str:
    """去掉协议、用户名，scp 写法转为 host/path，去掉末尾 .git 和 /"""
    url = _SCHEME_RE.sub("", url)
    if "@" in url.split("/", 1)[0]:
        url = url.split("@", 1)[1]
    m = _SCP_RE.match(url)
    # host:port/path 不是 scp 写法
    if m and not re.match(r"\d+(/|$)", m.group(2)):
        url = f"{m.group(1)}/{m.group(2).lstrip('/')}"
    url = url.rstrip("/")
    if url.endswith(".git"):
        url = url[: -len(".git")]
    return url.rstrip("/")
