"""Cluedo 推理助手命令行入口。"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable, List

from .cards import CATEGORY_ORDER
from .config import get_settings
from .models import CardStatus, CluedoError, ContradictoryEvidence
from .session import DeductionSession
from .store import GameNotFoundError, GameStore

logger = logging.getLogger(__name__)

STATUS_MARKS = {
    CardStatus.UNKNOWN: "·",
    CardStatus.MAYBE_HAS: "?",
    CardStatus.HAS: "✓",
    CardStatus.DOES_NOT_HAVE: "✗",
}


def render_board(session: DeductionSession) -> str:
    """状态表、答案与概率的文本视图。"""
    probabilities = {prob.card: prob for prob in session.query_probabilities()}
    width = max(len(card.name) for card in session.catalog)
    header = " " * width + "  " + " ".join(f"{player.position:>3}" for player in session.players) + "   答案%"
    lines = [f"对局：{session.name or '未命名'}", header]
    for category in CATEGORY_ORDER:
        lines.append(f"[{category.value}]")
        for card in session.catalog.by_category(category):
            marks = " ".join(f"{STATUS_MARKS[session.state.get_status(p.position, card)]:>3}" for p in session.players)
            lines.append(f"{card.name:<{width}}  {marks}   {probabilities[card].in_solution * 100:5.1f}")
    solved = [
        f"{category.value}={card.name if card else '?'}" for category, card in session.query_solution().items()
    ]
    lines.append("答案：" + "，".join(solved))
    return "\n".join(lines)


def _cmd_new(store: GameStore, args: argparse.Namespace) -> int:
    session = DeductionSession.create_game(
        args.players,
        args.observer,
        args.hand,
        hand_sizes=args.hand_sizes,
        name=args.name,
    )
    game_id = store.create(session)
    print(f"已创建对局：{game_id}")
    print(render_board(session))
    return 0


def _mutate(store: GameStore, game_id: str, action: Callable[[DeductionSession], object]) -> int:
    session = store.load(game_id)
    with session.transaction():
        action(session)
    store.save(game_id, session)
    print(render_board(session))
    return 0


def _cmd_suggest(store: GameStore, args: argparse.Namespace) -> int:
    return _mutate(
        store,
        args.game_id,
        lambda session: session.record_suggestion(
            args.proposer, args.suspect, args.weapon, args.room, responder=args.responder, revealed=args.revealed
        ),
    )


def _cmd_set(store: GameStore, args: argparse.Namespace) -> int:
    return _mutate(store, args.game_id, lambda session: session.set_card_status(args.player, args.card, args.status))


def _cmd_undo(store: GameStore, args: argparse.Namespace) -> int:
    return _mutate(store, args.game_id, lambda session: session.undo_last())


def _cmd_show(store: GameStore, args: argparse.Namespace) -> int:
    print(render_board(store.load(args.game_id)))
    return 0


def _cmd_list(store: GameStore, args: argparse.Namespace) -> int:
    games = store.list_recent(limit=args.limit)
    if not games:
        print("暂无对局。")
    for game in games:
        print(f"{game['game_id']}  {game['created_at']}  {game['name'] or ''}".rstrip())
    return 0


def _cmd_serve(store: GameStore, args: argparse.Namespace) -> int:
    from .web import run_server

    run_server(host=args.host, port=args.port, debug=args.debug, data_dir=store.root)
    return 0


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Cluedo 推理助手")
    parser.add_argument("--data-dir", type=Path, default=settings.data_dir, help="对局存储目录")
    parser.add_argument("--log-level", default=settings.log_level, help="日志级别")
    sub = parser.add_subparsers(dest="command", required=True)

    new = sub.add_parser("new", help="创建新对局")
    new.add_argument("--players", nargs="+", required=True, help="按座次排列的玩家名")
    new.add_argument("--observer", type=int, required=True, help="观察者（你）的座位号，从 0 开始")
    new.add_argument("--hand", nargs="+", required=True, help="观察者手中的卡牌名称")
    new.add_argument("--hand-sizes", type=int, nargs="+", default=None, help="每位玩家的手牌数")
    new.add_argument("--name", default=None, help="对局名称")
    new.set_defaults(handler=_cmd_new)

    suggest = sub.add_parser("suggest", help="登记一条推理")
    suggest.add_argument("game_id")
    suggest.add_argument("--proposer", type=int, required=True)
    suggest.add_argument("--suspect", required=True)
    suggest.add_argument("--weapon", required=True)
    suggest.add_argument("--room", required=True)
    suggest.add_argument("--responder", type=int, default=None)
    suggest.add_argument("--revealed", default=None, help="亮给你看的牌")
    suggest.set_defaults(handler=_cmd_suggest)

    status = sub.add_parser("set", help="手动录入卡牌状态")
    status.add_argument("game_id")
    status.add_argument("--player", type=int, required=True)
    status.add_argument("--card", required=True)
    status.add_argument("--status", required=True, choices=[s.value for s in CardStatus])
    status.set_defaults(handler=_cmd_set)

    undo = sub.add_parser("undo", help="撤销最新一条记录")
    undo.add_argument("game_id")
    undo.set_defaults(handler=_cmd_undo)

    show = sub.add_parser("show", help="查看状态表与概率")
    show.add_argument("game_id")
    show.set_defaults(handler=_cmd_show)

    listing = sub.add_parser("list", help="列出最近的对局")
    listing.add_argument("--limit", type=int, default=10)
    listing.set_defaults(handler=_cmd_list)

    serve = sub.add_parser("serve", help="启动 Web 服务")
    serve.add_argument("--host", default=settings.host)
    serve.add_argument("--port", type=int, default=settings.port)
    serve.add_argument("--debug", action="store_true", default=settings.debug)
    serve.set_defaults(handler=_cmd_serve)
    return parser


def run_cli(argv: List[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    if hasattr(sys.stdout, "reconfigure"):
        try:
            sys.stdout.reconfigure(encoding="utf-8")
        except ValueError:
            pass

    store = GameStore(args.data_dir)
    try:
        return args.handler(store, args)
    except GameNotFoundError:
        print(f"未找到对局：{getattr(args, 'game_id', '')}", file=sys.stderr)
        return 1
    except ContradictoryEvidence as exc:
        logger.warning("证据矛盾，已回滚：%s", exc)
        print(f"证据矛盾，未保存：{exc}", file=sys.stderr)
        return 2
    except CluedoError as exc:
        print(f"输入错误：{exc}", file=sys.stderr)
        return 1


def main() -> None:
    sys.exit(run_cli())


if __name__ == "__main__":
    main()


__all__ = ["run_cli", "main", "render_board", "build_parser"]
