"""Run SARSA with noisy next-best exploration in a 30x30 maze."""

from stepwise_rl.agent import create_agent
from stepwise_rl.algorithms import AlgorithmType
from stepwise_rl.env import Maze
from stepwise_rl.metrics import setup_logging
from stepwise_rl.policy import ExplorationPolicyType
from stepwise_rl.runner import RunnerConfig, train


def main() -> None:
    setup_logging()

    env = Maze(size=30, seed=7)
    agent = create_agent(
        env,
        AlgorithmType.SARSA,
        ExplorationPolicyType.NOISY_NEXT_BEST,
        params="gamma = 0.9, agentUpdateCycle = 10, hiddenSize = 64",
        seed=7,
    )
    train(agent, env, RunnerConfig(episodes=20, steps=500, log_interval=5))
    print(f"Training complete. Escapes: {env.escapes}")


if __name__ == "__main__":
    main()
