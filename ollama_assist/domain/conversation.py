from typing import Iterator, List

from .models import ConversationTurn


class ConversationHistory:
    """有界的对话历史，按时间顺序保存。

    上限为 2 * max_pairs 条（一问一答算一对），超出时从最旧的开始淘汰。
    淘汰只在 evict() 被调用时发生，ChatSession 保证不会在一次问答进行中调用。
    """

    def __init__(self, max_pairs: int = 20):
        self._turns: List[ConversationTurn] = []
        self.max_pairs = max_pairs

    @property
    def max_turns(self) -> int:
        return max(1, self.max_pairs) * 2

    def append(self, turn: ConversationTurn) -> None:
        self._turns.append(turn)

    def remove(self, turn: ConversationTurn) -> bool:
        """按对象身份删除，避免误删内容相同的其他消息。"""

        for idx, existing in enumerate(self._turns):
            if existing is turn:
                del self._turns[idx]
                return True
        return False

    def evict(self, reserve: int = 0) -> int:
        """保留最新的 max_turns - reserve 条，返回被淘汰的条数。"""

        keep = max(0, self.max_turns - reserve)
        overflow = len(self._turns) - keep
        if overflow <= 0:
            return 0
        del self._turns[:overflow]
        return overflow

    def clear(self) -> None:
        self._turns.clear()

    def snapshot(self) -> List[ConversationTurn]:
        return [t.copy() for t in self._turns]

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[ConversationTurn]:
        return iter(list(self._turns))
