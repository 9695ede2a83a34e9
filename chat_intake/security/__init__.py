"""Prompt 注入检测。

规则以 (name, pattern, severity) 的形式保存在 YAML 文件中，
进程内只编译一次；测试可以直接构造 InjectionDetector 传入自定义规则。
检测结果只用于告警，不会拦截或修改用户消息。
"""

import re
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import Iterable, List, Optional

import yaml

from chat_intake.config.settings import settings
from chat_intake.domain.exceptions import ValidationError


DEFAULT_PATTERNS_FILE = Path(__file__).resolve().parent / "injection_patterns.yaml"


class Severity(IntEnum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3

    @classmethod
    def parse(cls, value: str) -> "Severity":
        try:
            return cls[str(value).upper()]
        except KeyError:
            raise ValidationError(code="INVALID_SEVERITY", message=f"Unknown severity: {value!r}")


@dataclass(frozen=True)
class InjectionPattern:
    name: str
    regex: "re.Pattern[str]"
    severity: Severity


@dataclass(frozen=True)
class InjectionMatch:
    name: str
    severity: Severity


def compile_patterns(entries: Iterable[dict]) -> List[InjectionPattern]:
    """把配置条目编译为大小写不敏感的多行正则。"""

    compiled: List[InjectionPattern] = []
    for entry in entries:
        try:
            name = entry["name"]
            regex = re.compile(entry["pattern"], re.IGNORECASE | re.MULTILINE)
        except (KeyError, TypeError) as e:
            raise ValidationError(code="INVALID_PATTERN", message=f"Malformed pattern entry: {entry!r}") from e
        except re.error as e:
            raise ValidationError(code="INVALID_PATTERN", message=f"{entry.get('name')}: {e}") from e
        compiled.append(
            InjectionPattern(name=name, regex=regex, severity=Severity.parse(entry.get("severity", "medium")))
        )
    return compiled


def load_patterns(path: Optional[str | Path] = None) -> List[InjectionPattern]:
    p = Path(path) if path else DEFAULT_PATTERNS_FILE
    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ValidationError(code="PATTERN_FILE_ERROR", message=f"{p}: {e}") from e
    return compile_patterns(data.get("patterns") or [])


class InjectionDetector:
    def __init__(self, patterns: Optional[List[InjectionPattern]] = None):
        self._patterns = list(patterns) if patterns is not None else load_patterns(settings.injection_patterns_file)

    @property
    def patterns(self) -> List[InjectionPattern]:
        return list(self._patterns)

    def scan(self, text: str) -> List[InjectionMatch]:
        return [InjectionMatch(p.name, p.severity) for p in self._patterns if p.regex.search(text)]


_default_detector: Optional[InjectionDetector] = None


def get_default_detector() -> InjectionDetector:
    """进程级单例，首次使用时从配置文件加载。"""
    global _default_detector
    if _default_detector is None:
        _default_detector = InjectionDetector()
    return _default_detector
