"""Budget Manager - Per-turn wall-clock budget

턴 하나(잡 제출 → 폴링 → 결과 조회, 갭 탐지 포함)가 사용할 수 있는 시간을 관리합니다.
"""

from dataclasses import dataclass
from time import monotonic
from typing import Optional


@dataclass
class BudgetConfig:
    """예산 설정"""

    total_budget_ms: int = 60000  # 턴 전체 예산 (ms)
    min_remaining_ms: int = 0  # 새 요청을 시작하기 위한 최소 여유 (ms)

    def __post_init__(self):
        """설정 검증"""
        if self.total_budget_ms <= 0:
            raise ValueError(f"total_budget_ms must be positive (got {self.total_budget_ms})")
        if self.min_remaining_ms < 0 or self.min_remaining_ms > self.total_budget_ms:
            raise ValueError(
                f"min_remaining_ms ({self.min_remaining_ms}) must be within [0, {self.total_budget_ms}]"
            )


class BudgetManager:
    """턴 단위 시간 예산 관리자

    실시간으로 경과 시간을 추적하고 남은 예산을 계산합니다.

    Usage:
        manager = BudgetManager(BudgetConfig(total_budget_ms=60000))
        manager.start()

        manager.checkpoint("probe")
        timeout_s = manager.remaining_s()

        report = manager.get_report()
    """

    def __init__(self, config: Optional[BudgetConfig] = None):
        self.config = config or BudgetConfig()
        self.start_time: Optional[float] = None
        self._checkpoints: dict[str, float] = {}

    def start(self) -> None:
        """예산 측정 시작"""
        self.start_time = monotonic()
        self._checkpoints.clear()

    def checkpoint(self, name: str) -> None:
        """체크포인트 기록 (경과 ms)

        Raises:
            RuntimeError: start()가 호출되지 않은 경우
        """
        if self.start_time is None:
            raise RuntimeError("Budget not started. Call start() first.")
        self._checkpoints[name] = self.elapsed_ms()

    def elapsed_ms(self) -> float:
        """경과 시간 (ms). start() 전에는 0.0"""
        if self.start_time is None:
            return 0.0
        return (monotonic() - self.start_time) * 1000.0

    def remaining_ms(self) -> float:
        """남은 예산 (ms, 음수 없음)"""
        return max(0.0, self.config.total_budget_ms - self.elapsed_ms())

    def remaining_s(self) -> float:
        return self.remaining_ms() / 1000.0

    def is_exhausted(self) -> bool:
        """예산 소진 여부"""
        return self.remaining_ms() <= self.config.min_remaining_ms

    def get_report(self) -> dict:
        """예산 사용 리포트

        Returns:
            dict: total_budget_ms, elapsed_ms, remaining_ms, checkpoints, is_exhausted
        """
        return {
            "total_budget_ms": self.config.total_budget_ms,
            "elapsed_ms": self.elapsed_ms(),
            "remaining_ms": self.remaining_ms(),
            "checkpoints": self._checkpoints.copy(),
            "is_exhausted": self.is_exhausted(),
        }
