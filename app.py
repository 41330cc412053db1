import os
import threading

from flask import Flask, jsonify, request

from db import postgres as db
from engine.config import GameConfig
from engine.errors import InvalidSnapshotError, InvalidStateError
from engine.events import dispatch, event_to_dict
from engine.game import GameEngine
from engine.snapshot import GameStateDto
from stats.achievements import AchievementTracker
from stats.tracker import StatisticsTracker

app = Flask(__name__)

GAME_SLOT = os.environ.get("GAME_SLOT", db.DEFAULT_SLOT)


class GameSession:
    """One engine plus its collaborators; requests are serialised by a lock."""

    def __init__(self, config, db_url=None, slot=db.DEFAULT_SLOT):
        self.lock = threading.Lock()
        self.slot = slot
        self.engine = GameEngine(config)
        self.achievements = AchievementTracker()
        self.conn = db.open_connection(db_url) if db_url else None
        if self.conn is not None:
            db.ensure_schema(self.conn)
            self.tracker = db.PostgresStatisticsTracker(self.conn)
            self._resume()
        else:
            self.tracker = StatisticsTracker()

    def _resume(self):
        dto = db.load_game_state(self.conn, self.slot)
        if dto is None:
            return
        try:
            outcome = self.engine.restore_from_snapshot(dto)
        except InvalidSnapshotError as exc:
            # A broken save falls back to a fresh game on the next /init.
            app.logger.warning("Discarding saved game in slot %s: %s", self.slot, exc)
            return
        dispatch(outcome.events, self.tracker, self.achievements)

    def publish(self, outcome):
        dispatch(outcome.events, self.tracker, self.achievements)
        if self.conn is None:
            return outcome
        # Finished games have nothing left to resume.
        if outcome.snapshot.ended:
            db.delete_game_state(self.conn, self.slot)
        else:
            db.save_game_state(self.conn, outcome.snapshot, self.slot)
        return outcome


session = GameSession(GameConfig.from_env(), db_url=db.get_db_url(), slot=GAME_SLOT)


def game_payload(outcome=None):
    engine = session.engine
    payload = dict(
        board=engine.grid.to_rows(),
        score=engine.score,
        moves=engine.move_count,
        highest_tile=engine.highest_tile,
        status=engine.status.value,
        won=engine.has_won,
        game_over=engine.is_over,
        can_undo=engine.can_undo,
    )
    if outcome is not None:
        payload["moved"] = outcome.moved
        payload["events"] = [event_to_dict(event) for event in outcome.events]
        winner = outcome.won
        payload["winning_tile"] = None if winner is None else dict(row=winner.row, column=winner.column)
    return payload


@app.errorhandler(InvalidStateError)
def handle_invalid_state(exc):
    return jsonify(error=str(exc)), 409


@app.errorhandler(InvalidSnapshotError)
def handle_invalid_snapshot(exc):
    return jsonify(error=str(exc)), 400


@app.errorhandler(ValueError)
def handle_bad_request(exc):
    return jsonify(error=str(exc)), 400


@app.route('/init', methods=['POST'])
def init_game():
    data = request.get_json(silent=True) or {}
    seed = data.get("seed")
    with session.lock:
        outcome = session.publish(session.engine.new_game(seed=seed))
        app.logger.info("Started game with seed %s", session.engine.seed)
        return jsonify(game_payload(outcome))


@app.route('/move', methods=['POST'])
def move():
    data = request.get_json(silent=True) or {}
    direction = data.get("direction", data.get("action"))
    if direction is None:
        return jsonify(error="Provide a 'direction' or an 'action'."), 400
    with session.lock:
        outcome = session.engine.apply_move(direction)
        if outcome.events:
            session.publish(outcome)
        if session.engine.is_over:
            app.logger.info("Game over with score %s", session.engine.score)
        return jsonify(game_payload(outcome))


@app.route('/undo', methods=['POST'])
def undo():
    with session.lock:
        outcome = session.publish(session.engine.undo())
        return jsonify(game_payload(outcome))


@app.route('/end', methods=['POST'])
def end_game():
    with session.lock:
        outcome = session.publish(session.engine.end_game())
        return jsonify(game_payload(outcome))


@app.route('/snapshot', methods=['GET'])
def snapshot():
    with session.lock:
        return jsonify(session.engine.snapshot().to_dict())


@app.route('/restore', methods=['POST'])
def restore():
    data = request.get_json(silent=True)
    dto = GameStateDto.from_dict(data if data is not None else {})
    with session.lock:
        outcome = session.publish(session.engine.restore_from_snapshot(dto))
        return jsonify(game_payload(outcome))


@app.route('/stats', methods=['GET'])
def stats():
    with session.lock:
        statistics = session.tracker.get_statistics().to_dict()
        statistics["session_seconds"] = session.tracker.session_seconds()
        return jsonify(statistics=statistics, achievements=session.achievements.unlocked())


if __name__ == '__main__':
    app.run(debug=True)
