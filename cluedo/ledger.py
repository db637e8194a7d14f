"""推理事件的只追加记录。"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Tuple, Union

from .models import ManualFact, SuggestionEvent

LedgerEntry = Union[SuggestionEvent, ManualFact]


@dataclass
class SuggestionLedger:
    """按提交顺序保存推理事件与手动录入的事实。

    条目一旦追加便不再修改；撤销通过重放前 N 条实现，而不是删除。
    """

    entries: List[LedgerEntry] = field(default_factory=list)

    def append(self, entry: LedgerEntry) -> int:
        self.entries.append(entry)
        return len(self.entries) - 1

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[LedgerEntry]:
        return iter(self.entries)

    @property
    def suggestions(self) -> Tuple[SuggestionEvent, ...]:
        return tuple(entry for entry in self.entries if isinstance(entry, SuggestionEvent))

    @property
    def facts(self) -> Tuple[ManualFact, ...]:
        return tuple(entry for entry in self.entries if isinstance(entry, ManualFact))

    def last(self) -> LedgerEntry | None:
        return self.entries[-1] if self.entries else None

    def head(self, count: int) -> "SuggestionLedger":
        """前 count 条组成的新账本。"""
        return SuggestionLedger(entries=list(self.entries[:count]))
