"""输入清洗。

sanitize() 按固定顺序处理不可信文本：
1. 去除首尾空白；
2. 删除 NUL 字节；
3. 删除控制字符（保留换行和制表符）；
4. 连续空白折叠为一个空格；
5. 同一字符连续超过 5 次时压缩为 5 次。

最后再做一次 strip，保证 sanitize(sanitize(x)) == sanitize(x)。

sanitize_chat_message() 在此基础上做 Prompt 注入检测，命中时只写告警日志。
检测作用于第 3 步之后、折叠空白之前的文本，这样按行的规则才有意义。
"""

import logging
import re
from typing import Optional

from chat_intake.infrastructure.logging.logger import logger, preview, redact_identity
from chat_intake.security import InjectionDetector, get_default_detector

MAX_REPEAT = 5

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_WHITESPACE_RUN = re.compile(r"\s+")
_REPEATED_CHAR = re.compile(r"(.)\1{%d,}" % MAX_REPEAT, re.DOTALL)

_log = logger.getChild("sanitizer")


def _strip_controls(raw: str) -> str:
    """步骤 1-3：保留换行，注入检测需要按行匹配角色标记。"""
    text = raw.strip()
    text = text.replace("\x00", "")
    return _CONTROL_CHARS.sub("", text)


def sanitize(raw: str) -> str:
    if not isinstance(raw, str):
        _log.error("sanitize: input is not a string", extra={"extra": {"input_type": type(raw).__name__}})
        return ""
    text = _strip_controls(raw)
    text = _WHITESPACE_RUN.sub(" ", text)
    text = _REPEATED_CHAR.sub(lambda m: m.group(1) * MAX_REPEAT, text)
    return text.strip()


def sanitize_email(raw: str) -> str:
    return sanitize(raw).lower()


def sanitize_chat_message(
    raw: str,
    identity: Optional[str] = None,
    detector: Optional[InjectionDetector] = None,
) -> str:
    """清洗聊天消息并做注入检测。

    命中任意规则时写一条 WARNING（身份只保留前缀，消息截断到 100 字符），
    返回值与 sanitize(raw) 完全相同。
    """

    text = sanitize(raw)
    if not text:
        return text
    # 按行的规则需要保留原始换行
    matches = (detector or get_default_detector()).scan(_strip_controls(raw))
    if matches:
        _log.log(
            logging.WARNING,
            "Potential prompt injection detected",
            extra={
                "extra": {
                    "identity": redact_identity(identity),
                    "patterns": [m.name for m in matches],
                    "severity": max(m.severity for m in matches).name.lower(),
                    "message": preview(text, 100),
                }
            },
        )
    return text
