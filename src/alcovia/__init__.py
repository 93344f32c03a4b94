"""Alcovia Intervention Engine

生徒の学習コンプライアンスを判定し、メンターの介入をリアルタイムに通知する。
"""

__version__ = "0.1.0"
