"""Train an actor-critic agent on an 8-city travelling-salesman tour."""

from stepwise_rl.agent import create_agent
from stepwise_rl.algorithms import AlgorithmType
from stepwise_rl.env import make
from stepwise_rl.metrics import setup_logging
from stepwise_rl.policy import ExplorationPolicyType
from stepwise_rl.runner import RunnerConfig, train


def main() -> None:
    setup_logging()

    env = make("tsp", number_of_cities=8, seed=42)
    agent = create_agent(
        env,
        AlgorithmType.ACTOR_CRITIC,
        ExplorationPolicyType.EPSILON_GREEDY,
        params="gamma = 1, epsilonInitial = 0.5, epsilonMin = 0, learningRate = 0.001",
        seed=42,
    )
    train(
        agent,
        env,
        RunnerConfig(episodes=500, log_interval=50, metrics_path="runs/tsp_actor_critic/metrics.jsonl"),
    )
    print("Training complete.")
    print(env.render())


if __name__ == "__main__":
    main()
