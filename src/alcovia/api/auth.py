"""メンター承認オートメーションの共有キー

介入割り当てはメンター承認後のワークフローから呼ばれる。
auth.enabled が true の場合のみ、共有キーを X-Mentor-Key または
Authorization: Bearer で受け取り、auth.api_key_env の環境変数と照合する。
生徒側のエンドポイントには適用しない。
"""

from __future__ import annotations

import logging
import os
import secrets
from typing import Annotated

from fastapi import Header, HTTPException, status

from ..core import get_settings

logger = logging.getLogger(__name__)


def _presented_key(mentor_key: str | None, authorization: str | None) -> str | None:
    if mentor_key:
        return mentor_key
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() == "bearer" and token:
        return token
    return None


async def require_mentor_key(
    x_mentor_key: Annotated[str | None, Header()] = None,
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """割り当て元が共有キーを持っているか確認

    Raises:
        HTTPException: キーがない、一致しない、またはサーバー側に未設定の場合 401
    """
    auth = get_settings().auth
    if not auth.enabled:
        return

    presented = _presented_key(x_mentor_key, authorization)
    if presented is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="Mentor key required")

    # 環境変数が未設定なら全て拒否
    expected = os.environ.get(auth.api_key_env)
    if not expected or not secrets.compare_digest(presented, expected):
        logger.warning("介入割り当てを拒否しました: 共有キーが一致しません")
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="Invalid mentor key")
