"""Stateful driver tying an environment to an algorithm and an exploration policy.

Usage::

    agent = create_agent(env, AlgorithmType.ACTOR_CRITIC, ExplorationPolicyType.EPSILON_GREEDY,
                         params="gamma = 1, epsilonMin = 0")
    agent.start()
    env.reset()
    agent.start_episode()
    while not env.is_terminal_state():
        agent.new_time_step()
        agent.act().unwrap()
    agent.end_episode()
    agent.stop()
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from stepwise_rl.algorithms import LearningAlgorithm
from stepwise_rl.env import Environment
from stepwise_rl.errors import ConfigurationError, EstimatorError, ProtocolError
from stepwise_rl.observers import EpisodeObserver, EpisodeRecord, StepRecord
from stepwise_rl.policy import ExplorationPolicy
from stepwise_rl.types import ActionError, ActionOutcome, AgentPhase, Transition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgentConfig:
    """Agent scheduling parameters.

    ``agent_update_cycle``: episodes between end-of-episode training
    passes, or steps between training passes on continuing tasks.
    ``0`` picks 1 for episodic and 10 for continuing tasks.
    ``reward_tau``: smoothing of the running average reward subtracted
    from rewards on continuing tasks.
    """

    update_value_per_episode: bool = False
    agent_update_cycle: int = 0
    reward_tau: float = 0.9
    max_action_retries: int = 0

    def __post_init__(self) -> None:
        if self.agent_update_cycle < 0:
            raise ConfigurationError("agent", "agent_update_cycle must be >= 0")
        if not 0.0 <= self.reward_tau <= 1.0:
            raise ConfigurationError("agent", f"reward_tau must be in [0, 1], got {self.reward_tau}")
        if self.max_action_retries < 0:
            raise ConfigurationError("agent", "max_action_retries must be >= 0")


_STEP_READY = (AgentPhase.EPISODE_STARTED, AgentPhase.VALUE_UPDATED)
_IN_EPISODE = (
    AgentPhase.EPISODE_STARTED,
    AgentPhase.TIME_STEP_BEGUN,
    AgentPhase.VALUE_UPDATED,
)


class DeepAgent:
    """Runs the episode state machine for one environment."""

    def __init__(
        self,
        environment: Environment,
        algorithm: LearningAlgorithm,
        policy: ExplorationPolicy,
        config: AgentConfig | None = None,
        observers: Iterable[EpisodeObserver] = (),
    ) -> None:
        self.environment = environment
        self.algorithm = algorithm
        self.policy = policy
        self.config = config or AgentConfig()
        self.observers: list[EpisodeObserver] = list(observers)
        self.phase = AgentPhase.IDLE
        self.learning = True
        self.started = False
        self.episode_id = 0
        self.time_step = 0
        self.total_steps = 0
        self.episodes_completed = 0
        self.updates = 0
        self.average_reward = 0.0
        self.episode_reward = 0.0
        self.last_metrics: dict[str, float] = {}
        self.update_cycle = 1
        self._history: list[StepRecord] = []
        self._reward: float | None = None

    # ---- lifecycle -------------------------------------------------------

    def start(self) -> None:
        env = self.environment
        width = env.get_state().size
        for estimator in self.algorithm.estimators:
            if estimator.input_size != width:
                raise ConfigurationError(
                    "estimator",
                    f"{estimator.name} expects {estimator.input_size} features, "
                    f"environment produces {width}",
                )
        if self.config.agent_update_cycle:
            self.update_cycle = self.config.agent_update_cycle
        else:
            self.update_cycle = 1 if env.is_episodic() else 10
        self.started = True
        self.phase = AgentPhase.IDLE
        logger.info(
            "agent started: %s with %s on %s (update cycle %d)",
            type(self.algorithm).__name__, type(self.policy).__name__,
            type(env).__name__, self.update_cycle,
        )

    def start_episode(self) -> None:
        if not self.started:
            raise ProtocolError("agent", "start_episode() before start()")
        if self.phase is not AgentPhase.IDLE:
            raise ProtocolError("agent", f"start_episode() while {self.phase.value}")
        self.episode_id += 1
        self.time_step = 0
        self.episode_reward = 0.0
        self._history = []
        self.policy.start_episode()
        self.phase = AgentPhase.EPISODE_STARTED

    def new_time_step(self) -> None:
        if self.phase not in _STEP_READY:
            raise ProtocolError("agent", f"new_time_step() while {self.phase.value}")
        self.time_step += 1
        self.phase = AgentPhase.TIME_STEP_BEGUN

    def act(self, action: int | None = None, greedy: bool = False) -> ActionOutcome:
        """Select, commit and learn from one action.

        Failures the caller may want to handle (action rejected, episode
        already over, estimator divergence) come back as a failed
        :class:`ActionOutcome`; lifecycle misuse raises.
        """
        if self.phase is not AgentPhase.TIME_STEP_BEGUN:
            raise ProtocolError("agent", f"act() while {self.phase.value}; call new_time_step() first")
        env = self.environment
        state = env.get_state()
        if state.terminal or env.is_terminal_state():
            self.end_episode()
            return ActionOutcome.failure(ActionError.ENVIRONMENT_TERMINAL)

        try:
            values = self.algorithm.action_values(state)
        except EstimatorError as exc:
            return ActionOutcome.failure(ActionError.ESTIMATOR_DIVERGENCE, exc)

        candidates = set(state.available_actions)
        retries = 0
        while True:
            chosen = action if action is not None else self.policy.select(values, candidates, greedy)
            self.phase = AgentPhase.ACTION_SELECTED
            self._reward = None
            try:
                self.phase = AgentPhase.ACTION_COMMITTED
                env.commit_action(self, chosen)
            except ProtocolError as exc:
                self.phase = AgentPhase.TIME_STEP_BEGUN
                candidates.discard(chosen)
                if retries < self.config.max_action_retries and candidates:
                    retries += 1
                    logger.warning("action %s rejected (%s); retry %d", chosen, exc.message, retries)
                    action = None
                    continue
                return ActionOutcome.failure(ActionError.NOT_AVAILABLE, exc, chosen)
            break

        if self._reward is None:
            raise ProtocolError("environment", f"commit_action({chosen}) delivered no reward")
        reward = self._reward
        self.policy.observe_action(chosen)
        next_state = env.get_state()
        self._history.append(StepRecord(state, chosen, reward))
        self.episode_reward += reward
        self.total_steps += 1

        if self.learning:
            transition = Transition(
                state=state,
                action=chosen,
                reward=self._learning_reward(reward),
                next_state=next_state,
                terminal=next_state.terminal,
            )
            try:
                self.algorithm.observe(transition)
                self._maybe_train_step()
            except EstimatorError as exc:
                self.phase = AgentPhase.VALUE_UPDATED
                return ActionOutcome.failure(ActionError.ESTIMATOR_DIVERGENCE, exc, chosen)
        self.phase = AgentPhase.VALUE_UPDATED
        return ActionOutcome.success(chosen, reward)

    def respond(self, reward: float) -> None:
        if self.phase is not AgentPhase.ACTION_COMMITTED:
            raise ProtocolError("agent", f"respond() while {self.phase.value}")
        self._reward = float(reward)
        self.phase = AgentPhase.REWARD_RECEIVED

    def end_episode(self) -> EpisodeRecord:
        if self.phase not in _IN_EPISODE:
            raise ProtocolError("agent", f"end_episode() while {self.phase.value}")
        if self.learning:
            self.algorithm.end_episode()
            self.episodes_completed += 1
            per_episode = self.config.update_value_per_episode or self.algorithm.episodic_update
            if per_episode and self.episodes_completed % self.update_cycle == 0 and self.algorithm.ready():
                self._train()
        record = EpisodeRecord(self.episode_id, tuple(self._history))
        for observer in self.observers:
            observer.on_episode_end(record)
        logger.info(
            "episode %d finished: %d steps, reward %.4f",
            self.episode_id, len(record.steps), record.total_reward,
        )
        self.phase = AgentPhase.IDLE
        return record

    def stop(self) -> None:
        if self.phase in _IN_EPISODE:
            self.end_episode()
        if self.learning and self.algorithm.ready():
            self._train()
        self.phase = AgentPhase.STOPPED
        self.started = False
        logger.info(
            "agent stopped after %d episodes, %d steps, %d updates",
            self.episodes_completed, self.total_steps, self.updates,
        )

    # ---- learning control ------------------------------------------------

    def enable_learning(self) -> None:
        self.learning = True

    def disable_learning(self) -> None:
        self.learning = False

    def reset(self) -> None:
        """Restart exploration schedules and drop algorithm state."""
        self.policy.reset()
        self.algorithm.reset()
        self.average_reward = 0.0

    def add_observer(self, observer: EpisodeObserver) -> None:
        self.observers.append(observer)

    # ---- internals -------------------------------------------------------

    def _learning_reward(self, reward: float) -> float:
        if self.environment.is_episodic():
            return reward
        tau = self.config.reward_tau
        self.average_reward = tau * self.average_reward + (1.0 - tau) * reward
        return reward - self.average_reward

    def _maybe_train_step(self) -> None:
        if self.config.update_value_per_episode or self.algorithm.episodic_update:
            return
        cycle = 1 if self.environment.is_episodic() else self.update_cycle
        if self.total_steps % cycle == 0 and self.algorithm.ready():
            self._train()

    def _train(self) -> None:
        metrics = self.algorithm.train()
        if not metrics:
            return
        self.updates += 1
        self.last_metrics = metrics
        self.policy.on_update()
        logger.debug("update %d: %s", self.updates, metrics)
