"""ロジックゲート (Evaluator)

チェックインの得点と集中時間から合否を判定する純粋関数。
ストアやネットワークには一切触れない。
"""

from __future__ import annotations

from numbers import Real
from typing import Any

from .errors import ValidationError
from .models import Verdict

PASS_QUIZ_SCORE = 7
PASS_FOCUS_MINUTES = 60


def _require_number(name: str, value: Any) -> float:
    if value is None:
        raise ValidationError(f"Missing required field: {name}")
    # bool は int のサブクラスだが数値としては扱わない
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ValidationError(f"Field {name} must be numeric, got {type(value).__name__}")
    return float(value)


def evaluate(
    quiz_score: Any,
    focus_minutes: Any,
    *,
    pass_quiz_score: float = PASS_QUIZ_SCORE,
    pass_focus_minutes: float = PASS_FOCUS_MINUTES,
) -> Verdict:
    """チェックインを判定する

    両方のしきい値を厳密に上回った場合のみ合格。
    境界値（7点、60分）は不合格。

    Args:
        quiz_score: クイズ得点 (0-10)
        focus_minutes: 集中時間（分）
        pass_quiz_score: 得点のしきい値
        pass_focus_minutes: 集中時間のしきい値

    Returns:
        Verdict.PASS または Verdict.FAIL

    Raises:
        ValidationError: 値が欠落している、または数値でない場合
    """
    score = _require_number("quiz_score", quiz_score)
    minutes = _require_number("focus_minutes", focus_minutes)

    if score > pass_quiz_score and minutes > pass_focus_minutes:
        return Verdict.PASS
    return Verdict.FAIL
