"""
Canonical Tool Names

tool_use 이벤트의 toolName과 이벤트 sink 수집기의 tool_name은 아래 상수와 동일해야 합니다.
"""

TOOL_WEB_SEARCH = "web_search"

__all__ = [
    "TOOL_WEB_SEARCH",
]
