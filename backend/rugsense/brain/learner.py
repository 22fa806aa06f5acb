"""
PURPOSE: Episodic Q-learning for the side-bet policy.

QLearner owns the episode lifecycle (Idle -> Open(game_id) -> Closed), turns
a closed trajectory into per-step rewards, applies the Bellman update to the
persisted Q-table, records the immutable episode, and decays the
exploration rate. Hyperparameters and the episode counter are persisted
through the storage contract so training resumes across restarts.

CALLED BY: services/decision_service.py -> start_game(), end_game(), record_tick()
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from rugsense.config.constants import DEFAULT_ACTIONS, BetOutcome, MetricType
from rugsense.config.settings import Settings, settings as default_settings
from rugsense.schemas.records import EpisodeCreate, EpisodeRecord, PerformanceMetricCreate, QActionRecord
from rugsense.storage.base import QStore
from rugsense.utils.logger import get_logger
from rugsense.utils.math_utils import safe_div
from rugsense.utils.ring_buffer import RingBuffer

logger = get_logger("brain.learner")

# Persisted parameter names
PARAM_LEARNING_RATE = "learning_rate"
PARAM_DISCOUNT_FACTOR = "discount_factor"
PARAM_EXPLORATION_RATE = "exploration_rate"
PARAM_EXPLORATION_DECAY = "exploration_decay"
PARAM_MIN_EXPLORATION = "min_exploration"
PARAM_EPISODE_NUMBER = "episode_number"

STEP_PENALTY = -0.01
LOSS_REWARD = -1.0

OUTCOME_HISTORY_SIZE = 100
STATS_WIN_RATE_WINDOW = 50
METRIC_WINDOW = timedelta(hours=24)


@dataclass
class Episode:
    """Trajectory of the currently open episode."""

    game_id: str
    episode_number: int
    exploration_rate: float
    learning_rate: float
    states: list[str] = field(default_factory=list)
    actions: list[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.utcnow)

    def __len__(self) -> int:
        return len(self.states)


def step_rewards(length: int, outcome: BetOutcome, final_reward: float) -> list[float]:
    """
    PURPOSE: Reward vector for an episode of `length` steps.

    The terminal step earns `final_reward` on a WIN and -1 otherwise; every
    earlier step carries a small time-cost penalty.
    """
    if length <= 0:
        return []
    terminal = final_reward if outcome == BetOutcome.WIN else LOSS_REWARD
    return [STEP_PENALTY] * (length - 1) + [terminal]


def decay_exploration(epsilon: float, decay: float, floor: float) -> float:
    """One decay step: max(floor, epsilon * decay)."""
    return max(floor, epsilon * decay)


class QLearner:
    """
    PURPOSE: Episode manager and Bellman updater.

    At most one episode is open at a time. start_episode() while another
    episode is open is rejected and logged; the open episode is kept.

    Attributes:
        _store: Storage backend holding the Q-table and history
        _settings: Source of hyperparameter defaults
        _episode: Open episode, None while idle
        _outcomes: Outcomes of recently closed episodes
    """

    def __init__(self, store: QStore, settings: Optional[Settings] = None) -> None:
        self._store = store
        self._settings = settings or default_settings

        self.learning_rate: float = self._settings.LEARNING_RATE
        self.discount_factor: float = self._settings.DISCOUNT_FACTOR
        self.exploration_rate: float = self._settings.EXPLORATION_RATE
        self.exploration_decay: float = self._settings.EXPLORATION_DECAY
        self.min_exploration: float = self._settings.MIN_EXPLORATION
        self.episode_number: int = 0

        self._episode: Optional[Episode] = None
        self._outcomes: RingBuffer[BetOutcome] = RingBuffer(OUTCOME_HISTORY_SIZE)
        self._actions: list[QActionRecord] = []

    # ══════════════════════════════════════════════════════════════
    # Startup
    # ══════════════════════════════════════════════════════════════

    async def initialize(self) -> None:
        """
        PURPOSE: Seed the action set and load persisted hyperparameters.

        Persisted values override the settings defaults; missing ones keep
        the defaults.
        """
        for action_type, multiplier, description in DEFAULT_ACTIONS:
            await self._store.create_q_action(action_type, multiplier, description)
        self._actions = await self._store.get_q_actions()

        persisted = {p.parameter_name: p.parameter_value for p in await self._store.get_all_model_parameters()}
        if persisted.get(PARAM_LEARNING_RATE) is not None:
            self.learning_rate = persisted[PARAM_LEARNING_RATE]
        if persisted.get(PARAM_DISCOUNT_FACTOR) is not None:
            self.discount_factor = persisted[PARAM_DISCOUNT_FACTOR]
        if persisted.get(PARAM_EXPLORATION_RATE) is not None:
            self.exploration_rate = persisted[PARAM_EXPLORATION_RATE]
        if persisted.get(PARAM_EXPLORATION_DECAY) is not None:
            self.exploration_decay = persisted[PARAM_EXPLORATION_DECAY]
        if persisted.get(PARAM_MIN_EXPLORATION) is not None:
            self.min_exploration = persisted[PARAM_MIN_EXPLORATION]
        if persisted.get(PARAM_EPISODE_NUMBER) is not None:
            self.episode_number = int(persisted[PARAM_EPISODE_NUMBER])

        logger.info(
            "learner_initialized",
            actions=len(self._actions),
            learning_rate=self.learning_rate,
            discount_factor=self.discount_factor,
            exploration_rate=self.exploration_rate,
            episode_number=self.episode_number,
        )

    @property
    def actions(self) -> list[QActionRecord]:
        return list(self._actions)

    # ══════════════════════════════════════════════════════════════
    # Episode lifecycle
    # ══════════════════════════════════════════════════════════════

    @property
    def current_game_id(self) -> Optional[str]:
        return self._episode.game_id if self._episode else None

    def is_episode_open(self, game_id: Optional[str] = None) -> bool:
        """True when an episode is open, for `game_id` if given."""
        if self._episode is None:
            return False
        return game_id is None or self._episode.game_id == game_id

    async def start_episode(self, game_id: str) -> bool:
        """
        PURPOSE: Open a new episode for `game_id`.

        Increments and persists the episode counter.

        Returns:
            bool: False when rejected because an episode is already open.
        """
        if self._episode is not None:
            logger.warning(
                "episode_start_rejected",
                game_id=game_id,
                open_game_id=self._episode.game_id,
                episode_number=self._episode.episode_number,
            )
            return False

        self.episode_number += 1
        await self._store.set_model_parameter(PARAM_EPISODE_NUMBER, float(self.episode_number))
        self._episode = Episode(
            game_id=game_id,
            episode_number=self.episode_number,
            exploration_rate=self.exploration_rate,
            learning_rate=self.learning_rate,
        )
        logger.info("episode_started", game_id=game_id, episode_number=self.episode_number)
        return True

    def record_state_action(self, state_id: str, action_id: str) -> bool:
        """Append one step to the open episode; no-op when idle."""
        if self._episode is None:
            logger.debug("state_action_ignored_no_episode", state_id=state_id, action_id=action_id)
            return False
        self._episode.states.append(state_id)
        self._episode.actions.append(action_id)
        return True

    def cancel_episode(self, reason: str = "cancelled") -> bool:
        """
        PURPOSE: Close an open episode that recorded no steps.

        Q-values, episode history and exploration rate are left untouched.

        Returns:
            bool: True when an episode was cancelled.
        """
        if self._episode is None:
            return False
        if len(self._episode) > 0:
            logger.warning(
                "episode_cancel_refused",
                game_id=self._episode.game_id,
                steps=len(self._episode),
            )
            return False
        logger.info(
            "episode_cancelled",
            game_id=self._episode.game_id,
            episode_number=self._episode.episode_number,
            reason=reason,
        )
        self._episode = None
        return True

    def discard_episode(self, reason: str) -> bool:
        """
        PURPOSE: Drop the open episode together with its recorded steps.

        Used when a game ends while learning is switched off. Nothing is
        persisted and the exploration rate is not decayed.

        Returns:
            bool: True when an episode was dropped.
        """
        if self._episode is None:
            return False
        logger.info(
            "episode_discarded",
            game_id=self._episode.game_id,
            episode_number=self._episode.episode_number,
            steps=len(self._episode),
            reason=reason,
        )
        self._episode = None
        return True

    async def end_episode(self, outcome: BetOutcome, final_reward: float) -> Optional[EpisodeRecord]:
        """
        PURPOSE: Close the open episode and learn from it.

        Steps:
            1. Build per-step rewards.
            2. Apply the Bellman update from the terminal step backwards.
            3. Persist the immutable episode record.
            4. Decay and persist the exploration rate.
            5. Persist win rate and exploration rate metrics.

        Args:
            outcome: WIN or LOSS.
            final_reward: Reward of the terminal step on a WIN.

        The episode stays open until its record is stored, so a storage
        failure leaves it in place for a retry through end_episode().

        Returns:
            EpisodeRecord or None: The stored episode, None when idle.
        """
        if self._episode is None:
            logger.info("episode_end_ignored_no_episode", outcome=BetOutcome(outcome).value)
            return None

        episode = self._episode
        outcome = BetOutcome(outcome)

        rewards = step_rewards(len(episode), outcome, final_reward)
        await self._update_q_values(episode, rewards)

        record = await self._store.save_training_episode(
            EpisodeCreate(
                game_id=episode.game_id,
                episode_number=episode.episode_number,
                state_sequence=list(episode.states),
                action_sequence=list(episode.actions),
                reward_sequence=rewards,
                total_reward=final_reward,
                episode_length=len(episode),
                final_outcome=outcome,
                exploration_rate=episode.exploration_rate,
                learning_rate=episode.learning_rate,
            )
        )
        self._episode = None

        self.exploration_rate = decay_exploration(
            self.exploration_rate, self.exploration_decay, self.min_exploration
        )
        await self._store.set_model_parameter(PARAM_EXPLORATION_RATE, self.exploration_rate)

        self._outcomes.append(outcome)
        await self._save_performance_metrics()

        logger.info(
            "episode_ended",
            game_id=episode.game_id,
            episode_number=episode.episode_number,
            outcome=outcome.value,
            steps=len(episode),
            total_reward=final_reward,
            exploration_rate=round(self.exploration_rate, 6),
        )
        return record

    # ══════════════════════════════════════════════════════════════
    # Bellman update
    # ══════════════════════════════════════════════════════════════

    @staticmethod
    def bellman_update(
        old_value: float,
        reward: float,
        next_max_q: float,
        learning_rate: float,
        discount_factor: float,
    ) -> float:
        """Q + alpha * (r + gamma * maxQ' - Q)."""
        return old_value + learning_rate * (reward + discount_factor * next_max_q - old_value)

    async def max_q_value(self, state_id: str) -> float:
        """Best Q-value over the action set; unseen pairs count as 0."""
        values = []
        for action in self._actions:
            q = await self._store.get_q_value(state_id, action.id)
            values.append(q.q_value if q else 0.0)
        return max(values) if values else 0.0

    async def _update_q_values(self, episode: Episode, rewards: list[float]) -> None:
        last = len(episode) - 1
        for i in range(last, -1, -1):
            state_id = episode.states[i]
            action_id = episode.actions[i]
            next_max_q = 0.0 if i == last else await self.max_q_value(episode.states[i + 1])

            async with self._store.q_lock(state_id, action_id):
                current = await self._store.get_q_value(state_id, action_id)
                old_value = current.q_value if current else 0.0
                new_value = self.bellman_update(
                    old_value,
                    rewards[i],
                    next_max_q,
                    episode.learning_rate,
                    self.discount_factor,
                )
                await self._store.update_q_value(state_id, action_id, new_value, rewards[i])

    # ══════════════════════════════════════════════════════════════
    # Metrics and stats
    # ══════════════════════════════════════════════════════════════

    def recent_win_rate(self, window: int = OUTCOME_HISTORY_SIZE) -> float:
        recent = self._outcomes.last(window)
        wins = sum(1 for o in recent if o == BetOutcome.WIN)
        return safe_div(wins, len(recent))

    async def _save_performance_metrics(self) -> None:
        sample_size = len(self._outcomes)
        if sample_size == 0:
            return

        now = datetime.utcnow()
        window_start = now - METRIC_WINDOW
        await self._store.save_performance_metric(
            PerformanceMetricCreate(
                metric_type=MetricType.WIN_RATE.value,
                value=self.recent_win_rate(),
                window_start=window_start,
                window_end=now,
                sample_size=sample_size,
                model_version=self._settings.MODEL_VERSION,
            )
        )
        await self._store.save_performance_metric(
            PerformanceMetricCreate(
                metric_type=MetricType.EXPLORATION_RATE.value,
                value=self.exploration_rate,
                window_start=window_start,
                window_end=now,
                sample_size=1,
                model_version=self._settings.MODEL_VERSION,
            )
        )

    async def stats(self) -> dict:
        """
        PURPOSE: Learning progress summary.

        Returns:
            dict: episode_number, exploration_rate, recent_win_rate (last 50
            outcomes), total_states, total_q_values.
        """
        states = await self._store.get_q_states()
        return {
            "episode_number": self.episode_number,
            "exploration_rate": self.exploration_rate,
            "recent_win_rate": self.recent_win_rate(STATS_WIN_RATE_WINDOW),
            "total_states": len(states),
            "total_q_values": await self._store.count_q_values(),
        }
