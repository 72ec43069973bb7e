"""
arena/server.py - FastAPI server for SABO Arena.

Endpoints:
    Tournament setup wizard
    POST   /workflows                          Open a wizard session
    GET    /workflows/steps                    Step catalog (keys, titles, prerequisites)
    GET    /workflows/{sid}                    Current wizard state
    DELETE /workflows/{sid}                    Close the session
    GET    /workflows/{sid}/steps/{n}/can-proceed
    POST   /workflows/{sid}/steps/{n}/complete Record a step's results
    POST   /workflows/{sid}/goto               Jump to a step (if unlocked)
    POST   /workflows/{sid}/tournament         Select the tournament under test
    PUT    /workflows/{sid}/shared/{slot}      Set a shared data slot
    POST   /workflows/{sid}/reset              Start over

    Ranks and rewards
    GET    /ranks                              Rank table
    GET    /ranks/by-elo/{elo}                 Rank for an ELO
    GET    /rewards/tournament                 ELO/SPA for a finish
    POST   /elo/match                          ELO after a match
    POST   /spa/challenge                      SPA for a challenge match
    POST   /rewards/calculate                  Prize structure for a tournament
    POST   /rewards/validate                   Check a prize structure
    GET    /rewards/templates/{kind}           Item/award presets

    Game config (admin CRUD)
    /config/spa-milestones[/{id}]
    /config/tournament-rewards[/{id}]
    /config/elo-rules[/{id}]

    GET    /health                             Server health check

Realtime:
    WS     /ws/workflows/{sid}                 Wizard state after every change
"""

import logging
from collections.abc import Callable
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any, Literal, TypeVar

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field
from starlette.middleware.cors import CORSMiddleware

from sabo import ranking
from sabo.config import WorkflowConfig, resolve_db_path
from sabo.ranks import (
    FIXED_K_FACTOR,
    RANK_ELO,
    RANK_ORDER,
    parse_position,
    parse_rank,
)
from sabo.rewards import (
    GameFormat,
    RewardPosition,
    SpecialAward,
    TournamentRewards,
    TournamentTier,
    calculate_rewards,
    template_rewards,
    validate_rewards,
)
from tournaments.workflow import (
    SharedSlot,
    StepOutcome,
    TournamentWorkflow,
    step_catalog,
)

from .db import ELO_RULES, SPA_MILESTONES, TOURNAMENT_REWARDS, ArenaDB
from .feed import ConnectionManager
from .sessions import SessionNotFoundError, WorkflowRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Global state — set during lifespan
_db: ArenaDB | None = None
_sessions: WorkflowRegistry | None = None
_manager = ConnectionManager()


def get_db() -> ArenaDB:
    assert _db is not None, "DB not initialized"
    return _db


def get_sessions() -> WorkflowRegistry:
    assert _sessions is not None, "Workflow registry not initialized"
    return _sessions


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _db, _sessions
    db_path = getattr(app.state, "db_path", None) or resolve_db_path()
    workflow_config = getattr(app.state, "workflow_config", None) or WorkflowConfig()

    _db = ArenaDB(db_path)
    _sessions = WorkflowRegistry(
        strict_gating=workflow_config.strict_gating,
        reset_on_tournament_change=workflow_config.reset_on_tournament_change,
    )
    logger.info(f"Arena DB initialized: {db_path}")
    _log_startup_config(workflow_config)

    yield
    _db = None
    _sessions = None


def _log_startup_config(workflow_config: WorkflowConfig):
    """Log arena configuration on startup so operators can verify settings."""
    db = get_db()
    logger.info("=" * 50)
    logger.info("Arena startup config:")
    logger.info(
        f"  Workflow gating: {'strict' if workflow_config.strict_gating else 'trusting'}"
        f" | reset on tournament change: {workflow_config.reset_on_tournament_change}"
    )
    logger.info(
        f"  SPA milestones: {db.count(SPA_MILESTONES)}"
        f" | tournament rewards: {db.count(TOURNAMENT_REWARDS)}"
        f" | ELO rules: {db.count(ELO_RULES)}"
    )
    logger.info("=" * 50)


app = FastAPI(title="SABO Arena", lifespan=lifespan)

# Allow the admin dashboard (and other frontends) to call arena endpoints
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# ======================================================================
# Request/Response Models
# ======================================================================


class WorkflowResponse(BaseModel):
    session_id: str
    current_step: int
    completed_steps: list[int]
    selected_tournament: str | None = None
    test_results: dict[str, Any] = {}
    workflow_status: str
    shared_data: dict[str, Any] = {}


class StepInfo(BaseModel):
    step: int
    key: str
    title: str
    depends_on: list[int]


class CompleteStepRequest(BaseModel):
    results: Any = None


class CompleteStepResponse(BaseModel):
    outcome: str
    state: WorkflowResponse


class GoToRequest(BaseModel):
    step: int


class GoToResponse(BaseModel):
    moved: bool
    state: WorkflowResponse


class CanProceedResponse(BaseModel):
    step: int
    can_proceed: bool
    missing: list[int] = []


class TournamentRequest(BaseModel):
    tournament_id: str | None = None


class SharedDataRequest(BaseModel):
    value: Any = None


class SuccessResponse(BaseModel):
    success: bool


class RankEntry(BaseModel):
    rank: str
    elo: int


class RanksResponse(BaseModel):
    ranks: list[RankEntry]
    k_factor: int


class RankByEloResponse(BaseModel):
    elo: int
    rank: str
    next_rank: str | None = None


class TournamentRewardResponse(BaseModel):
    position: str
    rank: str
    label: str
    elo_points: int
    spa_points: int
    source: str  # "table" or "config"


class MatchEloRequest(BaseModel):
    player_elo: int
    opponent_elo: int
    result: float  # 1 win, 0.5 draw, 0 loss


class MatchEloResponse(BaseModel):
    new_elo: int
    change: int
    rank_before: str
    rank_after: str


class ChallengeSpaRequest(BaseModel):
    won: bool
    win_streak: int = Field(default=0, ge=0)
    comeback: bool = False
    earned_today: int = Field(default=0, ge=0)


class ChallengeSpaResponse(BaseModel):
    spa: int


class RewardsCalculateRequest(BaseModel):
    tier: Literal["K", "I", "H", "G"]
    entry_fee: int = Field(ge=0)
    max_participants: int = Field(ge=2)
    game_format: GameFormat = GameFormat.NINE_BALL


class RewardPositionModel(BaseModel):
    position: int
    name: str
    elo_points: int
    spa_points: int
    cash_prize: int
    items: list[str] = []
    is_visible: bool = True


class SpecialAwardModel(BaseModel):
    id: str
    name: str
    description: str = ""
    cash_prize: int = 0


class TournamentRewardsModel(BaseModel):
    total_prize: int
    show_prizes: bool
    positions: list[RewardPositionModel] = []
    special_awards: list[SpecialAwardModel] = []


class RewardsValidateRequest(BaseModel):
    rewards: TournamentRewardsModel
    max_participants: int = Field(ge=2)


class ValidationResponse(BaseModel):
    is_valid: bool
    errors: list[str]
    warnings: list[str]


class SpaMilestoneCreate(BaseModel):
    milestone_name: str
    milestone_type: str
    requirement_value: int = Field(ge=0)
    spa_reward: int = Field(ge=0)
    bonus_conditions: dict[str, Any] | None = None
    is_active: bool = True
    is_repeatable: bool = False


class SpaMilestoneUpdate(BaseModel):
    milestone_name: str | None = None
    milestone_type: str | None = None
    requirement_value: int | None = Field(default=None, ge=0)
    spa_reward: int | None = Field(default=None, ge=0)
    bonus_conditions: dict[str, Any] | None = None
    is_active: bool | None = None
    is_repeatable: bool | None = None


class TournamentRewardCreate(BaseModel):
    position_name: str
    tournament_type: str
    rank_category: str
    spa_reward: int = Field(ge=0)
    elo_reward: int = Field(ge=0)
    additional_rewards: dict[str, Any] | None = None
    is_active: bool = True


class TournamentRewardUpdate(BaseModel):
    position_name: str | None = None
    tournament_type: str | None = None
    rank_category: str | None = None
    spa_reward: int | None = Field(default=None, ge=0)
    elo_reward: int | None = Field(default=None, ge=0)
    additional_rewards: dict[str, Any] | None = None
    is_active: bool | None = None


class EloRuleCreate(BaseModel):
    rule_name: str
    rule_type: str
    base_value: float
    multiplier: float = 1.0
    value_formula: str
    conditions: dict[str, Any] = {}
    priority: int = 0
    is_active: bool = True


class EloRuleUpdate(BaseModel):
    rule_name: str | None = None
    rule_type: str | None = None
    base_value: float | None = None
    multiplier: float | None = None
    value_formula: str | None = None
    conditions: dict[str, Any] | None = None
    priority: int | None = None
    is_active: bool | None = None


class HealthResponse(BaseModel):
    status: str
    active_workflows: int
    spa_milestones: int
    tournament_rewards: int
    elo_rules: int


# ======================================================================
# Workflow Helpers
# ======================================================================


def _run(session_id: str, operation: Callable[[TournamentWorkflow], T]) -> T:
    """Run a workflow operation, mapping an unknown session to 404."""
    try:
        return get_sessions().run(session_id, operation)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Workflow session not found")


def _state(session_id: str, workflow: TournamentWorkflow) -> dict[str, Any]:
    return {"session_id": session_id, **workflow.snapshot()}


async def _publish(session_id: str, state: dict[str, Any]) -> None:
    await _manager.broadcast(session_id, {"type": "workflow_update", "state": state})


# ======================================================================
# Workflow Endpoints
# ======================================================================


@app.get("/workflows/steps", response_model=list[StepInfo])
def list_steps() -> list[dict[str, Any]]:
    """Step catalog for rendering the wizard."""
    return step_catalog()


@app.post("/workflows", response_model=WorkflowResponse)
def open_workflow() -> dict[str, Any]:
    """Open a new wizard session with default state."""
    session_id = get_sessions().open()
    return _run(session_id, lambda wf: _state(session_id, wf))


@app.get("/workflows/{session_id}", response_model=WorkflowResponse)
def get_workflow(session_id: str) -> dict[str, Any]:
    return _run(session_id, lambda wf: _state(session_id, wf))


@app.delete("/workflows/{session_id}", response_model=SuccessResponse)
async def close_workflow(session_id: str) -> dict[str, Any]:
    """Tear down a wizard session. Its state is discarded."""
    closed = get_sessions().close(session_id)
    if closed:
        await _manager.close_session(session_id)
    return {"success": closed}


@app.get("/workflows/{session_id}/steps/{step}/can-proceed", response_model=CanProceedResponse)
def can_proceed(session_id: str, step: int) -> dict[str, Any]:
    def check(wf: TournamentWorkflow) -> dict[str, Any]:
        allowed = wf.can_proceed_to_step(step)
        return {
            "step": step,
            "can_proceed": allowed,
            "missing": [] if allowed else wf.missing_dependencies(step),
        }

    return _run(session_id, check)


@app.post("/workflows/{session_id}/steps/{step}/complete", response_model=CompleteStepResponse)
async def complete_step(session_id: str, step: int, req: CompleteStepRequest) -> dict[str, Any]:
    """Record a step's results. The wizard advances to the next step."""

    def complete(wf: TournamentWorkflow):
        outcome = wf.complete_step(step, req.results)
        return outcome, wf.missing_dependencies(step), _state(session_id, wf)

    outcome, missing, state = _run(session_id, complete)

    if outcome is StepOutcome.INVALID_STEP:
        raise HTTPException(status_code=422, detail=f"No workflow step {step}")
    if outcome is StepOutcome.BLOCKED:
        raise HTTPException(
            status_code=409,
            detail={"message": f"Step {step} is locked", "missing": missing},
        )

    logger.info(f"Workflow {session_id}: step {step} completed ({state['workflow_status']})")
    await _publish(session_id, state)
    return {"outcome": outcome.value, "state": state}


@app.post("/workflows/{session_id}/goto", response_model=GoToResponse)
async def go_to_step(session_id: str, req: GoToRequest) -> dict[str, Any]:
    """Jump to a step. A locked step leaves the wizard where it is."""

    def goto(wf: TournamentWorkflow):
        return wf.go_to_step(req.step), _state(session_id, wf)

    moved, state = _run(session_id, goto)
    if moved:
        await _publish(session_id, state)
    return {"moved": moved, "state": state}


@app.post("/workflows/{session_id}/tournament", response_model=WorkflowResponse)
async def select_tournament(session_id: str, req: TournamentRequest) -> dict[str, Any]:
    def select(wf: TournamentWorkflow):
        wf.set_selected_tournament(req.tournament_id)
        return _state(session_id, wf)

    state = _run(session_id, select)
    logger.info(f"Workflow {session_id}: tournament -> {req.tournament_id}")
    await _publish(session_id, state)
    return state


@app.put("/workflows/{session_id}/shared/{slot}", response_model=WorkflowResponse)
async def update_shared_data(session_id: str, slot: str, req: SharedDataRequest) -> dict[str, Any]:
    try:
        shared_slot = SharedSlot(slot)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown shared data slot: {slot}")

    def update(wf: TournamentWorkflow):
        wf.update_shared_data(shared_slot, req.value)
        return _state(session_id, wf)

    state = _run(session_id, update)
    await _publish(session_id, state)
    return state


@app.post("/workflows/{session_id}/reset", response_model=WorkflowResponse)
async def reset_workflow(session_id: str) -> dict[str, Any]:
    def reset(wf: TournamentWorkflow):
        wf.reset_workflow()
        return _state(session_id, wf)

    state = _run(session_id, reset)
    logger.info(f"Workflow {session_id}: reset")
    await _publish(session_id, state)
    return state


@app.websocket("/ws/workflows/{session_id}")
async def websocket_workflow(websocket: WebSocket, session_id: str):
    """Realtime wizard feed.

    Sends the current state on connect, then every update until the
    session closes or the client disconnects.
    """
    sessions = get_sessions()
    if session_id not in sessions:
        await websocket.close(code=4004, reason="Workflow session not found")
        return

    def read_state() -> dict[str, Any]:
        return {"session_id": session_id, **sessions.snapshot(session_id)}

    try:
        await _manager.connect(session_id, websocket, read_state)
    except SessionNotFoundError:
        # Closed between the check and the subscription
        await websocket.close(code=4004, reason="Workflow session not found")
        return

    try:
        while True:
            # Subscribers don't send anything, but we need to notice disconnects
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        _manager.disconnect(session_id, websocket)


# ======================================================================
# Rank & Reward Endpoints
# ======================================================================


@app.get("/ranks", response_model=RanksResponse)
def list_ranks() -> dict[str, Any]:
    return {
        "ranks": [{"rank": rank, "elo": RANK_ELO[rank]} for rank in RANK_ORDER],
        "k_factor": FIXED_K_FACTOR,
    }


@app.get("/ranks/by-elo/{elo}", response_model=RankByEloResponse)
def rank_for_elo(elo: int) -> dict[str, Any]:
    rank = ranking.rank_by_elo(elo)
    return {"elo": elo, "rank": rank, "next_rank": ranking.next_rank(rank)}


@app.get("/rewards/tournament", response_model=TournamentRewardResponse)
def tournament_reward(
    position: str, rank: str, tournament_type: str | None = None
) -> dict[str, Any]:
    """ELO/SPA for a finish. An active admin override for the tournament
    type wins over the built-in tables."""
    try:
        position = parse_position(position)
        rank = parse_rank(rank)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    reward = ranking.tournament_rewards(position, rank)
    result = {**asdict(reward), "label": ranking.format_position(position), "source": "table"}

    if tournament_type:
        override = get_db().find_tournament_reward(tournament_type, rank, position)
        if override is not None:
            result.update(
                elo_points=override["elo_reward"],
                spa_points=override["spa_reward"],
                source="config",
            )
    return result


@app.post("/elo/match", response_model=MatchEloResponse)
def match_elo(req: MatchEloRequest) -> dict[str, Any]:
    try:
        new_elo = ranking.calculate_match_elo(req.player_elo, req.opponent_elo, req.result)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {
        "new_elo": new_elo,
        "change": new_elo - req.player_elo,
        "rank_before": ranking.rank_by_elo(req.player_elo),
        "rank_after": ranking.rank_by_elo(new_elo),
    }


@app.post("/spa/challenge", response_model=ChallengeSpaResponse)
def challenge_spa(req: ChallengeSpaRequest) -> dict[str, Any]:
    return {
        "spa": ranking.challenge_spa(
            req.won, req.win_streak, req.comeback, req.earned_today
        )
    }


@app.post("/rewards/calculate", response_model=TournamentRewardsModel)
def rewards_calculate(req: RewardsCalculateRequest) -> dict[str, Any]:
    rewards = calculate_rewards(
        TournamentTier[req.tier], req.entry_fee, req.max_participants, req.game_format
    )
    return asdict(rewards)


@app.post("/rewards/validate", response_model=ValidationResponse)
def rewards_validate(req: RewardsValidateRequest) -> dict[str, Any]:
    rewards = TournamentRewards(
        total_prize=req.rewards.total_prize,
        show_prizes=req.rewards.show_prizes,
        positions=[RewardPosition(**p.model_dump()) for p in req.rewards.positions],
        special_awards=[SpecialAward(**a.model_dump()) for a in req.rewards.special_awards],
    )
    report = validate_rewards(rewards, req.max_participants)
    return {"is_valid": report.is_valid, "errors": report.errors, "warnings": report.warnings}


@app.get("/rewards/templates/{kind}")
def rewards_template(kind: str) -> dict[str, Any]:
    try:
        template = template_rewards(kind)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown reward template: {kind}")
    return {
        "kind": kind,
        "positions": template["positions"],
        "special_awards": [asdict(a) for a in template["special_awards"]],
    }


# ======================================================================
# Game Config Endpoints
# ======================================================================


def _normalize_reward_keys(data: dict[str, Any]) -> dict[str, Any]:
    """Canonical rank/placement codes so overrides match table lookups."""
    try:
        if data.get("rank_category") is not None:
            data["rank_category"] = parse_rank(data["rank_category"])
        if data.get("position_name") is not None:
            data["position_name"] = parse_position(data["position_name"])
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return data


# JSON columns are the only ones a PATCH may clear
_NULLABLE_FIELDS = {"bonus_conditions", "additional_rewards", "conditions"}


def _patch_fields(req: BaseModel) -> dict[str, Any]:
    """Fields the client actually sent. Explicit nulls on required columns are a 422."""
    data = req.model_dump(exclude_unset=True)
    nulls = sorted(k for k, v in data.items() if v is None and k not in _NULLABLE_FIELDS)
    if nulls:
        raise HTTPException(status_code=422, detail=f"Fields cannot be null: {', '.join(nulls)}")
    return data


# --- SPA milestones ---


@app.get("/config/spa-milestones")
def list_spa_milestones(active_only: bool = False) -> list[dict[str, Any]]:
    return get_db().list_spa_milestones(active_only)


@app.post("/config/spa-milestones")
def create_spa_milestone(req: SpaMilestoneCreate) -> dict[str, Any]:
    record = get_db().create_spa_milestone(req.model_dump())
    logger.info(f"SPA milestone created: {record['milestone_name']} ({record['id']})")
    return record


@app.get("/config/spa-milestones/{milestone_id}")
def get_spa_milestone(milestone_id: str) -> dict[str, Any]:
    record = get_db().get_spa_milestone(milestone_id)
    if record is None:
        raise HTTPException(status_code=404, detail="SPA milestone not found")
    return record


@app.patch("/config/spa-milestones/{milestone_id}")
def update_spa_milestone(milestone_id: str, req: SpaMilestoneUpdate) -> dict[str, Any]:
    record = get_db().update_spa_milestone(milestone_id, _patch_fields(req))
    if record is None:
        raise HTTPException(status_code=404, detail="SPA milestone not found")
    logger.info(f"SPA milestone updated: {milestone_id}")
    return record


@app.delete("/config/spa-milestones/{milestone_id}", response_model=SuccessResponse)
def delete_spa_milestone(milestone_id: str) -> dict[str, Any]:
    deleted = get_db().delete_spa_milestone(milestone_id)
    if deleted:
        logger.info(f"SPA milestone deleted: {milestone_id}")
    return {"success": deleted}


# --- Tournament reward structures ---


@app.get("/config/tournament-rewards")
def list_tournament_rewards(active_only: bool = False) -> list[dict[str, Any]]:
    return get_db().list_tournament_rewards(active_only)


@app.post("/config/tournament-rewards")
def create_tournament_reward(req: TournamentRewardCreate) -> dict[str, Any]:
    record = get_db().create_tournament_reward(_normalize_reward_keys(req.model_dump()))
    logger.info(
        f"Tournament reward created: {record['tournament_type']}/{record['rank_category']}"
        f"/{record['position_name']} ({record['id']})"
    )
    return record


@app.get("/config/tournament-rewards/{reward_id}")
def get_tournament_reward(reward_id: str) -> dict[str, Any]:
    record = get_db().get_tournament_reward(reward_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Tournament reward not found")
    return record


@app.patch("/config/tournament-rewards/{reward_id}")
def update_tournament_reward(reward_id: str, req: TournamentRewardUpdate) -> dict[str, Any]:
    data = _normalize_reward_keys(_patch_fields(req))
    record = get_db().update_tournament_reward(reward_id, data)
    if record is None:
        raise HTTPException(status_code=404, detail="Tournament reward not found")
    logger.info(f"Tournament reward updated: {reward_id}")
    return record


@app.delete("/config/tournament-rewards/{reward_id}", response_model=SuccessResponse)
def delete_tournament_reward(reward_id: str) -> dict[str, Any]:
    deleted = get_db().delete_tournament_reward(reward_id)
    if deleted:
        logger.info(f"Tournament reward deleted: {reward_id}")
    return {"success": deleted}


# --- ELO rules ---


@app.get("/config/elo-rules")
def list_elo_rules(active_only: bool = False) -> list[dict[str, Any]]:
    return get_db().list_elo_rules(active_only)


@app.post("/config/elo-rules")
def create_elo_rule(req: EloRuleCreate) -> dict[str, Any]:
    record = get_db().create_elo_rule(req.model_dump())
    logger.info(f"ELO rule created: {record['rule_name']} ({record['id']})")
    return record


@app.get("/config/elo-rules/{rule_id}")
def get_elo_rule(rule_id: str) -> dict[str, Any]:
    record = get_db().get_elo_rule(rule_id)
    if record is None:
        raise HTTPException(status_code=404, detail="ELO rule not found")
    return record


@app.patch("/config/elo-rules/{rule_id}")
def update_elo_rule(rule_id: str, req: EloRuleUpdate) -> dict[str, Any]:
    record = get_db().update_elo_rule(rule_id, _patch_fields(req))
    if record is None:
        raise HTTPException(status_code=404, detail="ELO rule not found")
    logger.info(f"ELO rule updated: {rule_id}")
    return record


@app.delete("/config/elo-rules/{rule_id}", response_model=SuccessResponse)
def delete_elo_rule(rule_id: str) -> dict[str, Any]:
    deleted = get_db().delete_elo_rule(rule_id)
    if deleted:
        logger.info(f"ELO rule deleted: {rule_id}")
    return {"success": deleted}


# ======================================================================
# Health
# ======================================================================


@app.get("/health", response_model=HealthResponse)
def health() -> dict[str, Any]:
    db = get_db()
    return {
        "status": "ok",
        "active_workflows": len(get_sessions()),
        "spa_milestones": db.count(SPA_MILESTONES),
        "tournament_rewards": db.count(TOURNAMENT_REWARDS),
        "elo_rules": db.count(ELO_RULES),
    }
