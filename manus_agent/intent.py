"""Turn assistant text into tool calls.

The agent loop only depends on the ``IntentExtractor`` interface. The default
``KeywordIntentExtractor`` is a heuristic: it looks for trigger words in the
assistant's reply and synthesizes fixed-template tool calls. It does not read
structured function-call output, so a reply that merely mentions "file" will
trigger a directory listing.
"""

from abc import ABC, abstractmethod

from manus_agent.tools.registry import ToolCall

HELLO_PYTHON_CODE = "print('Hello from Python!')"
SEARCH_RESULT_LIMIT = 3


def extract_search_query(text: str) -> str:
    """Return the words following the first word that contains "search".

    Falls back to the whole text when no such word exists or nothing follows it.
    """
    words = text.split()
    for idx, word in enumerate(words):
        if "search" in word.lower():
            remainder = " ".join(words[idx + 1 :])
            if remainder:
                return remainder
            break
    return text


class IntentExtractor(ABC):
    """Maps one assistant reply to the tool calls it implies."""

    @abstractmethod
    def extract(self, text: str) -> list[ToolCall]:
        pass


class KeywordIntentExtractor(IntentExtractor):
    """Case-insensitive keyword triggers, checked in a fixed order."""

    def extract(self, text: str) -> list[ToolCall]:
        lowered = (text or "").lower()
        calls: list[ToolCall] = []

        if "文件" in lowered or "file" in lowered:
            calls.append(ToolCall(name="file_operation", arguments={"operation": "list", "directory": ""}))

        if "python" in lowered or "代码" in lowered:
            calls.append(ToolCall(name="python_execute", arguments={"code": HELLO_PYTHON_CODE}))

        if "搜索" in lowered or "search" in lowered:
            calls.append(
                ToolCall(
                    name="search",
                    arguments={
                        "query": extract_search_query(text),
                        "max_results": SEARCH_RESULT_LIMIT,
                    },
                )
            )

        return calls
