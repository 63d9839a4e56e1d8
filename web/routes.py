"""
Silver Ravens Engine v1.0 — FastAPI Routes
Sheet-facing endpoints over the RebellionLoop. Every mutation answers
with the engine's result dict and pushes the new state to WebSocket clients.
"""

import asyncio
import json
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field
from typing import Optional

from game_loop import RebellionLoop
from models import PERSISTENT
from web.websocket import ConnectionManager


# ─────────────────────────────────────────────────────
# APP SETUP
# ─────────────────────────────────────────────────────

app = FastAPI(title="Silver Ravens — Rebellion Engine", version="1.0")
manager = ConnectionManager()
game = RebellionLoop()


def _push(event: str, data: dict):
    try:
        loop = asyncio.get_running_loop()
        loop.create_task(manager.broadcast(event, data))
    except RuntimeError:
        pass  # No event loop running (e.g. during init)


def init_game(data_dir: str = None, config=None, lookup=None, rng=None, faction=None):
    """Initialize the rebellion loop. Called from silver_ravens.py and tests."""
    global game
    if config is not None or lookup is not None or rng is not None:
        game = RebellionLoop(config, lookup, rng)
    game.init(data_dir, faction)

    game._on_phase_change = lambda phase, data: _push("phase_change", data)
    game._on_log_entry = lambda entry: _push("log_entry", entry)
    return game


async def _respond(result: dict) -> JSONResponse:
    if result.get("success"):
        await manager.broadcast("state_update", game.get_full_state())
    return JSONResponse(result)


# ─────────────────────────────────────────────────────
# WEBSOCKET
# ─────────────────────────────────────────────────────

@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await manager.connect(ws)
    try:
        # Send initial state on connect
        await ws.send_text(manager.message("state_update", game.get_full_state()))

        # Keep connection alive; clients only send keepalives
        while True:
            await ws.receive_text()
    except WebSocketDisconnect:
        manager.disconnect(ws)


# ─────────────────────────────────────────────────────
# STATE
# ─────────────────────────────────────────────────────

@app.get("/api/state")
async def get_state():
    """Full faction state plus bonuses, phase and recent log."""
    return JSONResponse(json.loads(json.dumps(game.get_full_state(), default=str)))


@app.get("/api/bonuses")
async def get_bonuses():
    return JSONResponse(game.get_bonuses())


class UpdateRequest(BaseModel):
    changes: dict


@app.post("/api/update")
async def update_state(req: UpdateRequest):
    """Manual edit: shallow merge, provided collections replace whole lists."""
    return await _respond(game.update(req.changes))


# ─────────────────────────────────────────────────────
# WEEK
# ─────────────────────────────────────────────────────

@app.post("/api/step/{step}")
async def run_step(step: str):
    """Advance one step of the week (maintenance_start ... archive)."""
    return await _respond(game.step(step))


class ActionRequest(BaseModel):
    action: str
    team_index: Optional[int] = None
    officer_index: Optional[int] = None
    context: dict = Field(default_factory=dict)
    bonus_source: Optional[str] = None


@app.post("/api/action")
async def perform_action(req: ActionRequest):
    result = game.perform_action(req.action, req.team_index, req.officer_index,
                                 req.context, req.bonus_source)
    return await _respond(result)


@app.post("/api/activity/end")
async def end_activity():
    return await _respond(game.end_activity())


class StrategistRequest(BaseModel):
    team_index: int


@app.post("/api/strategist")
async def set_strategist(req: StrategistRequest):
    return await _respond(game.set_strategist_target(req.team_index))


class StatusRequest(BaseModel):
    kind: str                   # team / officer / ally
    key: int | str
    choice: str                 # search / ransom / abandon / recover
    cost: Optional[float] = None


@app.post("/api/status/resolve")
async def resolve_status(req: StatusRequest):
    return await _respond(game.resolve_status(req.kind, req.key, req.choice, req.cost))


# ─────────────────────────────────────────────────────
# EVENTS
# ─────────────────────────────────────────────────────

class MitigateRequest(BaseModel):
    index: int
    skill_bonus: int = 0


@app.post("/api/events/mitigate")
async def mitigate_event(req: MitigateRequest):
    return await _respond(game.mitigate_event(req.index, req.skill_bonus))


class SelectRequest(BaseModel):
    index: int


@app.post("/api/events/select")
async def select_event(req: SelectRequest):
    """Pick one of the two manipulated candidates."""
    return await _respond(game.select_event(req.index))


@app.post("/api/events/cancel")
async def cancel_event():
    return await _respond(game.cancel_event())


class RespondRequest(BaseModel):
    name: str
    choice: str


@app.post("/api/events/respond")
async def respond_to_event(req: RespondRequest):
    return await _respond(game.respond_to_event(req.name, req.choice))


class CustomModifierRequest(BaseModel):
    name: str
    check_bonus: dict = Field(default_factory=dict)
    duration: int = 1           # -1 for persistent
    danger_delta: int = 0
    description: str = ""


@app.post("/api/events/custom")
async def add_custom_modifier(req: CustomModifierRequest):
    duration = PERSISTENT if req.duration < 0 else req.duration
    result = game.add_custom_modifier(req.name, req.check_bonus, duration,
                                      req.danger_delta, req.description)
    return await _respond(result)


# ─────────────────────────────────────────────────────
# SAVE / LOAD / REPORT
# ─────────────────────────────────────────────────────

@app.post("/api/save")
async def save_game():
    return JSONResponse(game.save_game())


class LoadRequest(BaseModel):
    filename: str


@app.post("/api/load")
async def load_game(req: LoadRequest):
    return await _respond(game.load_game(req.filename))


@app.get("/api/saves")
async def list_saves():
    return JSONResponse({"saves": game.list_saves()})


@app.get("/api/report", response_class=PlainTextResponse)
async def get_report(weeks: Optional[int] = None):
    """Markdown journal of the rebellion."""
    return PlainTextResponse(game.report(weeks), media_type="text/markdown")
