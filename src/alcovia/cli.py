"""Alcovia CLI

コマンドラインインターフェース。
"""

import argparse
import asyncio
import logging
import sys


def main():
    """メインエントリーポイント"""
    parser = argparse.ArgumentParser(
        description="Alcovia Intervention Engine - 学習コンプライアンス判定と介入通知",
        prog="alcovia",
    )

    subparsers = parser.add_subparsers(dest="command", help="利用可能なコマンド")

    # server コマンド
    server_parser = subparsers.add_parser("server", help="APIサーバーを起動")
    server_parser.add_argument("--host", default=None, help="バインドするホスト")
    server_parser.add_argument("--port", type=int, default=None, help="ポート番号")
    server_parser.add_argument("--reload", action="store_true", help="ホットリロードを有効化")

    # init コマンド
    subparsers.add_parser("init", help="データディレクトリを初期化")

    # status コマンド
    status_parser = subparsers.add_parser("status", help="生徒の状態を表示")
    status_parser.add_argument("student_id", help="生徒ID")
    status_parser.add_argument("--limit", type=int, default=None, help="表示するログ件数")

    args = parser.parse_args()

    if args.command == "server":
        run_server(args)
    elif args.command == "init":
        run_init(args)
    elif args.command == "status":
        sys.exit(run_status(args))
    else:
        parser.print_help()
        sys.exit(1)


def run_server(args):
    """APIサーバーを起動"""
    import uvicorn

    from .core import get_settings

    settings = get_settings()
    level = settings.logging.level
    logging.getLogger("alcovia").setLevel(level)

    uvicorn.run(
        "alcovia.api:app",
        host=args.host or settings.server.host,
        port=args.port or settings.server.port,
        reload=args.reload,
        log_level=level.lower(),
    )


def run_init(args):
    """データディレクトリを初期化"""
    from .core import get_settings

    settings = get_settings()
    data_path = settings.get_data_path()
    data_path.mkdir(parents=True, exist_ok=True)

    print(f"✓ データディレクトリを作成しました: {data_path}")
    print(f"✓ ストア: {settings.store.backend}")
    print("\nAlcovia の準備ができました！")
    print("\n次のステップ:")
    print("  1. alcovia server            # APIサーバーを起動")
    print("  2. alcovia status <生徒ID>   # 生徒の状態を確認")


def run_status(args) -> int:
    """生徒の状態とチェックインログを表示"""
    from .core import (
        InterventionEngine,
        JsonlStudentStore,
        NotFoundError,
        NotificationChannel,
        get_settings,
    )

    settings = get_settings()
    if settings.store.backend != "jsonl":
        # インメモリストアはサーバープロセスの外から読めない
        print(
            f"status は jsonl ストアのみ対応しています (現在の store.backend: "
            f"{settings.store.backend})。"
        )
        print("  実行中のサーバーには GET /api/student/<生徒ID> で問い合わせてください。")
        return 1

    store = JsonlStudentStore(settings.get_data_path(), log_retention=settings.logs.retention)
    engine = InterventionEngine(store, NotificationChannel())

    async def _load():
        state = await engine.get_state(args.student_id)
        logs = await engine.recent_logs(args.student_id, limit=args.limit)
        return state, logs

    try:
        state, logs = asyncio.run(_load())
    except NotFoundError:
        print(f"生徒 {args.student_id} が見つかりません。")
        return 1

    student = state.student
    print(f"\n=== Student: {student.student_id} ===")
    print(f"名前: {student.name}")
    print(f"状態: {student.status.value}")
    print(f"最終更新: {student.updated_at.isoformat()}")

    pending = state.pending_intervention
    if pending:
        print(f"\n⚠ 保留中の介入: {pending.intervention_id}")
        print(f"  タスク: {pending.task_description}")
        if pending.mentor_notes:
            print(f"  メモ: {pending.mentor_notes}")

    print(f"\nチェックインログ ({len(logs)}件):")
    for entry in logs:
        marker = "" if entry.applied else " (無視)"
        print(
            f"  {entry.logged_at.isoformat()}  score={entry.quiz_score:g} "
            f"focus={entry.focus_minutes:g} {entry.verdict.value}{marker}"
        )
    return 0


if __name__ == "__main__":
    main()
