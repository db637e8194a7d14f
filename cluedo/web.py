"""Web服务器接口。"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Optional

from flask import Flask, jsonify, request

from .config import get_settings
from .models import (
    CardProbability,
    CluedoError,
    ContradictoryEvidence,
    HandOverflow,
)
from .session import DeductionSession, card_to_dict
from .store import GameNotFoundError, GameStore

logger = logging.getLogger(__name__)


@dataclass
class HostedGame:
    """托管中的对局：同一对局上的修改由 lock 串行化。"""

    game_id: str
    session: DeductionSession
    lock: threading.Lock = field(default_factory=threading.Lock)


app = Flask(__name__)
app.json.ensure_ascii = False

_games: Dict[str, HostedGame] = {}
_registry_lock = threading.Lock()


def _store() -> GameStore:
    store = app.config.get("GAME_STORE")
    if store is None:
        store = GameStore(get_settings().data_dir)
        app.config["GAME_STORE"] = store
    return store


def configure(store: GameStore) -> None:
    """切换存储目录并清空内存中的对局缓存。"""
    app.config["GAME_STORE"] = store
    reset_games()


def reset_games() -> None:
    with _registry_lock:
        _games.clear()


def _hosted(game_id: str) -> Optional[HostedGame]:
    with _registry_lock:
        hosted = _games.get(game_id)
        if hosted is None:
            try:
                session = _store().load(game_id)
            except GameNotFoundError:
                return None
            hosted = HostedGame(game_id=game_id, session=session)
            _games[game_id] = hosted
        return hosted


def _not_found():
    return jsonify({"error": "对局不存在"}), 404


def _error_response(exc: CluedoError):
    if isinstance(exc, ContradictoryEvidence):
        payload = {
            "error": str(exc),
            "kind": "hand_overflow" if isinstance(exc, HandOverflow) else "contradictory_evidence",
            "conflict": exc.as_dict(),
        }
        return jsonify(payload), 409
    return jsonify({"error": str(exc), "kind": type(exc).__name__}), 400


def _mutate(game_id: str, action: Callable[[DeductionSession], object], status_code: int = 200):
    hosted = _hosted(game_id)
    if hosted is None:
        return _not_found()
    with hosted.lock:
        try:
            with hosted.session.transaction() as session:
                action(session)
        except ContradictoryEvidence as exc:
            logger.warning("对局 %s 拒绝了矛盾的证据：%s", game_id, exc)
            return _error_response(exc)
        except CluedoError as exc:
            return _error_response(exc)
        _store().save(game_id, hosted.session)
        body = _summary(game_id, hosted.session)
    return jsonify(body), status_code


def _serialize_probability(prob: CardProbability) -> dict:
    return {
        "card": card_to_dict(prob.card),
        "in_solution": prob.in_solution,
        "holders": {str(player): value for player, value in prob.holders.items()},
    }


def _serialize_solution(session: DeductionSession) -> dict:
    return {
        category.value: (card.name if card is not None else None)
        for category, card in session.query_solution().items()
    }


def _summary(game_id: str, session: DeductionSession) -> dict:
    return {
        "game_id": game_id,
        "ledger_size": len(session.ledger),
        "solution": _serialize_solution(session),
        "solved": session.is_solved(),
    }


def _require(data: dict, *keys: str) -> Optional[str]:
    for key in keys:
        if data.get(key) is None:
            return key
    return None


@app.route("/", methods=["GET"])
def index():
    """API首页。"""
    return jsonify({
        "name": "Cluedo 推理服务器",
        "version": "1.0.0",
        "endpoints": {
            "POST /games": "创建新对局",
            "GET /games": "列出最近的对局",
            "GET /games/<game_id>": "获取对局快照",
            "PUT /games/<game_id>": "导入对局快照",
            "POST /games/<game_id>/suggestions": "登记一条推理",
            "POST /games/<game_id>/statuses": "手动录入卡牌状态",
            "POST /games/<game_id>/undo": "撤销最新一条记录",
            "GET /games/<game_id>/probabilities": "获取概率估计",
            "GET /games/<game_id>/solution": "获取已确定的答案",
        },
    })


@app.route("/games", methods=["POST"])
def create_game():
    """创建新对局。"""
    data = request.get_json(silent=True) or {}
    missing = _require(data, "playerNames", "observerPosition", "observerHand")
    if missing:
        return jsonify({"error": f"缺少字段：{missing}"}), 400
    if not isinstance(data["playerNames"], list) or not isinstance(data["observerHand"], list):
        return jsonify({"error": "playerNames 与 observerHand 必须是数组"}), 400
    try:
        session = DeductionSession.create_game(
            data["playerNames"],
            data["observerPosition"],
            data["observerHand"],
            hand_sizes=data.get("handSizes"),
            name=data.get("name"),
        )
    except CluedoError as exc:
        return _error_response(exc)

    game_id = _store().create(session)
    with _registry_lock:
        _games[game_id] = HostedGame(game_id=game_id, session=session)
    logger.info("已创建对局 %s", game_id)
    return jsonify({"game_id": game_id, "message": "对局已创建"}), 201


@app.route("/games", methods=["GET"])
def list_games():
    """列出最近的对局。"""
    limit = request.args.get("limit", default=10, type=int)
    return jsonify({"games": _store().list_recent(limit=limit)})


@app.route("/games/<game_id>", methods=["GET"])
def get_game(game_id: str):
    """获取对局快照。"""
    hosted = _hosted(game_id)
    if hosted is None:
        return _not_found()
    with hosted.lock:
        snapshot = hosted.session.to_snapshot()
    return jsonify({"game_id": game_id, "snapshot": snapshot})


@app.route("/games/<game_id>", methods=["PUT"])
def put_game(game_id: str):
    """用快照整体替换对局。"""
    hosted = _hosted(game_id)
    if hosted is None:
        return _not_found()
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "快照必须是 JSON 对象"}), 400
    try:
        session = DeductionSession.from_snapshot(data)
    except CluedoError as exc:
        return _error_response(exc)
    with hosted.lock:
        hosted.session = session
        _store().save(game_id, session)
    return jsonify(_summary(game_id, session))


@app.route("/games/<game_id>/suggestions", methods=["POST"])
def add_suggestion(game_id: str):
    """登记一条推理。"""
    data = request.get_json(silent=True) or {}
    missing = _require(data, "proposer", "suspect", "weapon", "room")
    if missing:
        return jsonify({"error": f"缺少字段：{missing}"}), 400
    return _mutate(
        game_id,
        lambda session: session.record_suggestion(
            data["proposer"],
            data["suspect"],
            data["weapon"],
            data["room"],
            responder=data.get("responder"),
            revealed=data.get("revealed"),
        ),
        status_code=201,
    )


@app.route("/games/<game_id>/statuses", methods=["POST"])
def set_status(game_id: str):
    """手动录入卡牌状态。"""
    data = request.get_json(silent=True) or {}
    missing = _require(data, "player", "card", "status")
    if missing:
        return jsonify({"error": f"缺少字段：{missing}"}), 400
    return _mutate(game_id, lambda session: session.set_card_status(data["player"], data["card"], data["status"]))


@app.route("/games/<game_id>/undo", methods=["POST"])
def undo(game_id: str):
    """撤销最新一条记录。"""
    return _mutate(game_id, lambda session: session.undo_last())


@app.route("/games/<game_id>/probabilities", methods=["GET"])
def get_probabilities(game_id: str):
    """获取概率估计。"""
    hosted = _hosted(game_id)
    if hosted is None:
        return _not_found()
    with hosted.lock:
        probabilities = [_serialize_probability(prob) for prob in hosted.session.query_probabilities()]
    return jsonify({"game_id": game_id, "probabilities": probabilities})


@app.route("/games/<game_id>/solution", methods=["GET"])
def get_solution(game_id: str):
    """获取已确定的答案。"""
    hosted = _hosted(game_id)
    if hosted is None:
        return _not_found()
    with hosted.lock:
        body = _summary(game_id, hosted.session)
    return jsonify(body)


def run_server(host: str = "127.0.0.1", port: int = 3001, debug: bool = False, data_dir: Optional[Path] = None):
    """启动Web服务器。"""
    if data_dir is not None:
        configure(GameStore(data_dir))
    app.run(host=host, port=port, debug=debug)


if __name__ == "__main__":
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)
    run_server(settings.host, settings.port, settings.debug, settings.data_dir)
