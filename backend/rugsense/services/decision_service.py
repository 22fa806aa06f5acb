"""
Decision service for RugSense.

PURPOSE: Orchestrate per-tick prediction, policy decisions, side-bet
placement and resolution, and the learning episode that spans each game.
One service instance owns its timing model, prediction engine, learner and
active-bet index; nothing is shared at module level.

CALLED BY: api/routes_qlearning.py
"""

import random
from datetime import datetime
from typing import Callable, Optional

from rugsense.brain.encoder import GameStateFeatures, StateEncoder
from rugsense.brain.learner import QLearner
from rugsense.brain.policy import EpsilonGreedyPolicy, bet_amount, expected_value
from rugsense.config.constants import ActionType, BetOutcome
from rugsense.config.settings import Settings, settings as default_settings
from rugsense.prediction.engine import PredictionEngine
from rugsense.prediction.timing import TimingModel
from rugsense.schemas.game import Decision, GameState, Prediction, TimingData
from rugsense.schemas.records import EpisodeRecord, QActionRecord, SideBetCreate, SideBetRecord, SideBetUpdate
from rugsense.storage.base import QStore
from rugsense.utils.locks import KeyedLocks
from rugsense.utils.logger import get_logger
from rugsense.utils.math_utils import clamp, mean, safe_div

logger = get_logger("services.decision")

RECENT_BETS_WINDOW = 50
ANALYTICS_EPISODES = 100
ANALYTICS_RECENT_EPISODES = 20
ANALYTICS_STATES = 50
HEALTHY_AVG_VISITS = 5


def explain(features: GameStateFeatures, action: QActionRecord, q_value: float) -> str:
    """Human-readable reasoning for a decision."""
    if action.action_type == ActionType.HOLD:
        return (
            f"Holding due to {features.tick_phase.value} phase "
            f"and {features.recent_pattern.value} pattern"
        )
    return f"{action.action_type.value} recommended (Q-value: {q_value:.3f}) in {features.tick_phase.value} phase"


class DecisionService:
    """
    PURPOSE: Entry point for the game feed and the HTTP layer.

    At most one side bet is active per game. A bet is resolved exactly once,
    either by end_game() or by record_tick() once its window has passed.

    Attributes:
        timing: Shared timing model feeding prediction and encoding
        prediction_engine: Per-tick rug prediction
        encoder: Game state discretizer
        policy: Epsilon-greedy selector
        learner: Episode manager and Q-table updater
        is_training: Whether outcomes are fed to the learner
        _active_bets: game id -> pending SideBetRecord
        _placed_probabilities: bet id -> rug probability at placement
        _game_locks: Per-game locks serializing bet placement
        _issued_states: Q-state ids this service has recommended on
    """

    def __init__(
        self,
        store: QStore,
        settings: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._store = store
        self._settings = settings or default_settings

        self.timing = TimingModel(capacity=self._settings.TICK_HISTORY_SIZE, clock=clock)
        self.prediction_engine = PredictionEngine(self.timing)
        self.encoder = StateEncoder(self.timing)
        self.policy = EpsilonGreedyPolicy(rng)
        self.learner = QLearner(store, self._settings)
        self.is_training: bool = self._settings.TRAINING_ENABLED

        self._active_bets: dict[str, SideBetRecord] = {}
        self._placed_probabilities: dict[str, float] = {}
        self._game_locks = KeyedLocks()
        self._issued_states: set[str] = set()

    async def initialize(self) -> None:
        await self.learner.initialize()
        logger.info("decision_service_initialized", is_training=self.is_training)

    @property
    def active_bets(self) -> dict[str, SideBetRecord]:
        return dict(self._active_bets)

    # ══════════════════════════════════════════════════════════════
    # Prediction
    # ══════════════════════════════════════════════════════════════

    async def record_tick(self, game_state: GameState) -> Prediction:
        """
        PURPOSE: Feed one tick to the timing model and refresh the prediction.

        An active bet for the tick's game whose window has passed
        (tick > end_tick) is resolved as a LOSS.

        Args:
            game_state: Current tick of the game feed.

        Returns:
            Prediction: Prediction for this tick.
        """
        prediction = self.prediction_engine.record_tick(game_state)

        game_id = game_state.game_id
        if game_id is not None:
            bet = self._active_bets.get(game_id)
            if bet is not None and game_state.tick_count > bet.end_tick:
                del self._active_bets[game_id]
                logger.info(
                    "side_bet_window_expired",
                    game_id=game_id,
                    bet_id=bet.id,
                    tick=game_state.tick_count,
                    end_tick=bet.end_tick,
                )
                await self._resolve_bet(bet, won=False, rug_tick=None)

        return prediction

    def get_prediction(self) -> Prediction:
        return self.prediction_engine.current_prediction()

    def timing_data(self) -> TimingData:
        return self.prediction_engine.timing_data()

    # ══════════════════════════════════════════════════════════════
    # Decisions and bets
    # ══════════════════════════════════════════════════════════════

    async def get_recommendation(
        self,
        game_state: GameState,
        timing: Optional[TimingData] = None,
        bankroll: float = 1.0,
    ) -> Decision:
        """
        PURPOSE: Run the policy on the current game state.

        Unseen (state, action) pairs count as Q-value 0.

        Args:
            game_state: Current game state.
            timing: Timing summary reported by the caller, logged for context.
            bankroll: Available bankroll for bet sizing.

        Returns:
            Decision: Selected action tagged with the training flag.
        """
        features = self.encoder.encode(game_state)
        state = await self._store.get_or_create_q_state(features)

        actions = self.learner.actions or await self._store.get_q_actions()
        q_values: dict[str, float] = {}
        for action in actions:
            record = await self._store.get_q_value(state.id, action.id)
            q_values[action.id] = record.q_value if record else 0.0

        self._issued_states.add(state.id)
        choice = self.policy.select(state, actions, q_values, self.learner.exploration_rate)
        amount = bet_amount(
            choice.action,
            bankroll,
            base_fraction=self._settings.BASE_BET_FRACTION,
            max_base_bet=self._settings.MAX_BASE_BET,
        )

        logger.debug(
            "recommendation_made",
            state_id=state.id,
            action=choice.action.action_type.value,
            q_value=choice.q_value,
            explored=choice.explored,
            reported_reliability=timing.reliability if timing else None,
        )

        return Decision(
            action=choice.action.action_type,
            confidence=clamp(choice.confidence, 0.0, 1.0),
            expected_value=expected_value(choice.action, choice.q_value),
            q_value=choice.q_value,
            reasoning=explain(features, choice.action, choice.q_value),
            bet_amount=amount,
            is_learning=self.is_training,
            state_id=state.id,
            action_id=choice.action.id,
        )

    async def execute_bet(
        self,
        game_id: str,
        decision: Decision,
        game_state: GameState,
    ) -> Optional[SideBetRecord]:
        """
        PURPOSE: Place a side bet for a non-HOLD decision.

        The bet covers [tick, tick + SIDE_BET_WINDOW_TICKS]. While training
        with an open episode for the game, the decision's (state, action)
        pair is recorded as an episode step when this service issued it.

        Returns:
            SideBetRecord or None: The placed bet, None for HOLD, a zero
            stake, or a game that already has an active bet.
        """
        if decision.action == ActionType.HOLD or not decision.bet_amount:
            return None

        async with self._game_locks.get(game_id):
            if game_id in self._active_bets:
                logger.warning(
                    "side_bet_rejected_active_bet",
                    game_id=game_id,
                    active_bet_id=self._active_bets[game_id].id,
                )
                return None

            start_tick = game_state.tick_count
            bet = await self._store.save_side_bet(
                SideBetCreate(
                    game_id=game_id,
                    start_tick=start_tick,
                    end_tick=start_tick + self._settings.SIDE_BET_WINDOW_TICKS,
                    bet_amount=decision.bet_amount,
                    payout=decision.bet_amount * self._settings.SIDE_BET_PAYOUT_MULTIPLIER,
                    confidence=decision.confidence,
                    recommendation=decision.action.value,
                    game_state=game_state.model_dump(mode="json", by_alias=True),
                )
            )
            self._active_bets[game_id] = bet
            self._placed_probabilities[bet.id] = self.get_prediction().rug_probability

        if self.is_training and self.learner.is_episode_open(game_id):
            self._record_step(game_id, decision)

        logger.info(
            "side_bet_placed",
            game_id=game_id,
            bet_id=bet.id,
            action=decision.action.value,
            bet_amount=bet.bet_amount,
            start_tick=bet.start_tick,
            end_tick=bet.end_tick,
            confidence=round(decision.confidence, 4),
        )
        return bet

    def _record_step(self, game_id: str, decision: Decision) -> bool:
        """
        Append the decision's (state, action) pair to the game's episode.

        Only pairs this service could have recommended are accepted: a state
        id it encoded itself and an action id from the learner's action set.
        """
        if not decision.state_id or not decision.action_id:
            return False
        known_actions = {a.id for a in self.learner.actions}
        if decision.state_id not in self._issued_states or decision.action_id not in known_actions:
            logger.warning(
                "episode_step_rejected_unknown_ids",
                game_id=game_id,
                state_id=decision.state_id,
                action_id=decision.action_id,
            )
            return False
        return self.learner.record_state_action(decision.state_id, decision.action_id)

    async def _resolve_bet(
        self,
        bet: SideBetRecord,
        won: bool,
        rug_tick: Optional[int],
    ) -> SideBetRecord:
        outcome = BetOutcome.WIN if won else BetOutcome.LOSS
        profit = bet.payout - bet.bet_amount if won else -bet.bet_amount

        resolved = await self._store.update_side_bet(
            bet.id,
            SideBetUpdate(
                actual_outcome=outcome,
                rug_tick=rug_tick,
                profit=profit,
                resolved_at=datetime.utcnow(),
            ),
        )

        predicted = self._placed_probabilities.pop(bet.id, None)
        if predicted is not None:
            self.prediction_engine.record_prediction_result(predicted, won)

        if self.learner.is_episode_open(bet.game_id):
            if self.is_training:
                await self.learner.end_episode(outcome, profit)
            else:
                self.learner.discard_episode(reason="training_disabled")

        logger.info(
            "side_bet_resolved",
            game_id=bet.game_id,
            bet_id=bet.id,
            outcome=outcome.value,
            rug_tick=rug_tick,
            profit=round(profit, 6),
        )
        return resolved

    # ══════════════════════════════════════════════════════════════
    # Game lifecycle
    # ══════════════════════════════════════════════════════════════

    async def start_game(self, game_id: str) -> bool:
        """
        PURPOSE: Open a learning episode for a new game.

        Returns:
            bool: True when an episode was opened.
        """
        if not self.is_training:
            logger.info("game_started_without_training", game_id=game_id)
            return False
        return await self.learner.start_episode(game_id)

    async def end_game(self, game_id: str, final_tick: int) -> Optional[SideBetRecord]:
        """
        PURPOSE: Resolve the game's active bet against the final tick.

        The bet wins when start_tick <= final_tick <= end_tick. A game that
        ends without an active bet is a no-op, apart from cancelling its
        empty learning episode.

        Args:
            game_id: Game that ended.
            final_tick: Tick at which the round ended.

        Returns:
            SideBetRecord or None: The resolved bet, None without an active bet.
        """
        bet = self._active_bets.pop(game_id, None)
        if bet is None:
            if self.learner.is_episode_open(game_id):
                self.learner.cancel_episode(reason="no_bet_placed")
            logger.info("game_ended_no_active_bet", game_id=game_id, final_tick=final_tick)
            return None

        won = bet.start_tick <= final_tick <= bet.end_tick
        return await self._resolve_bet(bet, won=won, rug_tick=final_tick)

    def set_training(self, enabled: bool) -> None:
        self.is_training = enabled
        logger.info("training_mode_changed", enabled=enabled)

    async def force_learning(
        self,
        game_id: str,
        outcome: BetOutcome,
        reward: float,
    ) -> Optional[EpisodeRecord]:
        """Close the game's open episode with a manual outcome."""
        if not self.learner.is_episode_open(game_id):
            logger.info("force_learning_ignored", game_id=game_id)
            return None
        logger.info("force_learning", game_id=game_id, outcome=BetOutcome(outcome).value, reward=reward)
        return await self.learner.end_episode(outcome, reward)

    # ══════════════════════════════════════════════════════════════
    # Statistics
    # ══════════════════════════════════════════════════════════════

    async def recent_performance(self) -> dict:
        """
        PURPOSE: Win rate and profit over the last 50 resolved bets.

        Returns:
            dict: win_rate, total_profit, total_bets, avg_profit.
        """
        bets = await self._store.get_side_bets()
        resolved = [b for b in bets if b.actual_outcome != BetOutcome.PENDING][-RECENT_BETS_WINDOW:]
        if not resolved:
            return {"win_rate": 0.0, "total_profit": 0.0, "total_bets": 0, "avg_profit": 0.0}

        wins = sum(1 for b in resolved if b.actual_outcome == BetOutcome.WIN)
        total_profit = sum(b.profit for b in resolved)
        return {
            "win_rate": wins / len(resolved),
            "total_profit": total_profit,
            "total_bets": len(resolved),
            "avg_profit": total_profit / len(resolved),
        }

    async def stats(self) -> dict:
        return {
            "is_training": self.is_training,
            "stats": await self.learner.stats(),
            "active_bets": len(self._active_bets),
            "recent_performance": await self.recent_performance(),
            "prediction": {
                "accuracy": self.prediction_engine.accuracy(),
                "brier_score": self.prediction_engine.brier_score(),
            },
        }

    async def analytics(self) -> dict:
        """
        PURPOSE: Learning progress and state-space exploration summary.

        The reward trend is IMPROVING when the last 20 episodes average a
        higher total reward than the last 100; exploration health is GOOD
        once sampled states average more than 5 visits.
        """
        episodes = await self._store.get_training_episodes(ANALYTICS_EPISODES)
        states = await self._store.get_q_states(ANALYTICS_STATES)

        rewards = [e.total_reward for e in episodes]
        avg_reward = mean(rewards) if rewards else 0.0
        recent = rewards[-ANALYTICS_RECENT_EPISODES:]
        recent_avg_reward = mean(recent) if recent else 0.0
        avg_visits = safe_div(sum(s.visit_count for s in states), len(states))

        return {
            "learning": {
                "total_episodes": len(episodes),
                "avg_episode_reward": round(avg_reward, 4),
                "recent_avg_reward": round(recent_avg_reward, 4),
                "improvement_trend": "IMPROVING" if recent_avg_reward > avg_reward else "STABLE",
            },
            "exploration": {
                "total_states": len(states),
                "avg_visit_count": round(avg_visits, 2),
                "exploration_health": "GOOD" if avg_visits > HEALTHY_AVG_VISITS else "NEEDS_MORE_DATA",
            },
            "performance": await self.recent_performance(),
        }
