import argparse
import logging
from pathlib import Path

from gridq_ma_env import (
    ConsoleObserver,
    FrameRecorder,
    MultiAgentQTrainer,
    load_value_tables,
    task_presets,
)


def main():
    parser = argparse.ArgumentParser(description="Train tabular Q-learning agents on a preset grid world.")
    parser.add_argument("--task", type=str, default="open_wall", choices=list(task_presets().keys()))
    parser.add_argument("--episodes", type=int, default=None, help="Override the preset episode count.")
    parser.add_argument("--steps", type=int, default=None, help="Override the preset per-episode step cap.")
    parser.add_argument("--show_after", type=int, default=None, help="First episode handed to the observer.")
    parser.add_argument("--render", action="store_true", help="Print ASCII frames for observed episodes.")
    parser.add_argument("--delay", type=float, default=None, help="Seconds between rendered frames.")
    parser.add_argument("--demo_every", type=int, default=1000, help="Run a greedy demo every N episodes (0 disables).")
    parser.add_argument("--report_every", type=int, default=500, help="Print a progress line every N episodes.")
    parser.add_argument("--qtables", type=str, default=None, help="Optional JSON file with initial value tables per agent.")
    parser.add_argument("--log_path", type=str, default=None, help="Optional JSONL log file.")
    parser.add_argument("--save_animation", type=str, default=None, help="Record the final greedy episode to this GIF.")
    parser.add_argument("--cell_size", type=int, default=16, help="Pixel size per grid cell in the animation.")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    spec = task_presets()[args.task].world
    if args.episodes is not None:
        spec.episodes = args.episodes
    if args.steps is not None:
        spec.step_limit = args.steps
    if args.show_after is not None:
        spec.show_after = args.show_after

    observer = ConsoleObserver(spec, delay=args.delay) if args.render else None
    trainer = MultiAgentQTrainer(spec, observer=observer, log_path=args.log_path)

    if args.qtables:
        results = load_value_tables(Path(args.qtables).read_text(encoding="utf-8"), trainer.learners)
        for aid, result in results.items():
            status = f"loaded {result.loaded} values" if result.ok else f"default init ({result.error})"
            print(f"Agent {aid}: {status}")

    for _ in range(spec.episodes):
        summary = trainer.run_episode()
        if args.report_every and summary.episode % args.report_every == 0:
            print(
                f"Episode {summary.episode}/{spec.episodes}: steps={summary.steps}, done={summary.done}, "
                f"total_reward={summary.total_reward:.2f}, epsilon={trainer.episode_manager.current_epsilon():.3f}, "
                f"per-agent={summary.returns}"
            )
        if args.demo_every and summary.episode % args.demo_every == 0:
            demo = trainer.run_greedy_episode()
            print(f"Greedy demo after episode {summary.episode}: steps={demo.steps}, done={demo.done}")

    if args.save_animation:
        recorder = FrameRecorder(spec, cell_size=args.cell_size)
        trainer.observer = recorder
        trainer.spec.show_after = 0
        trainer.run_greedy_episode()
        save_path = Path(args.save_animation).resolve()
        recorder.save(save_path, delay=0.2)
        print(f"Saved animation to {save_path}")


if __name__ == "__main__":
    main()
