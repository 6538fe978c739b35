import argparse
import asyncio
import logging
import sys

from tqdm import tqdm

from faststart.configs import settings
from faststart.processor import MovieFastStart
from faststart.utils.streams import FileOutputTarget, open_input


class ConsoleNotify:
    """NotificationSink printing to the terminal, with a tqdm bar for copy progress."""

    def __init__(self, verbose: bool = False, stream=None) -> None:
        self.show_verbose = verbose
        self.stream = stream or sys.stdout
        self.progress_bar: tqdm | None = None
        self._label: str | None = None

    def _print(self, text: str) -> None:
        self._close_bar()
        print(text, file=self.stream)

    def message(self, text: str) -> None:
        self._print(f"Info: {text}")

    def error(self, text: str) -> None:
        self._print(f"Error: {text}")

    def warning(self, text: str) -> None:
        self._print(f"Warning: {text}")

    def verbose(self, text: str) -> None:
        if self.show_verbose:
            self._print(f"Verbose: {text}")

    def progress(self, current: int, total: int, label: str | None = None) -> None:
        if total <= 0:
            return
        if self.progress_bar is None or label != self._label or current < self.progress_bar.n:
            self._close_bar()
            self._label = label
            self.progress_bar = tqdm(
                total=total,
                unit="B",
                unit_scale=True,
                unit_divisor=1024,
                desc=label or "Writing",
                ncols=100,
                mininterval=1,
                file=self.stream,
            )
        self.progress_bar.update(current - self.progress_bar.n)
        if current >= total:
            self._close_bar()

    def _close_bar(self) -> None:
        if self.progress_bar is not None:
            self.progress_bar.close()
            self.progress_bar = None
            self._label = None


def build_parser() -> argparse.ArgumentParser:
    arg_parser = argparse.ArgumentParser(
        description="Move the moov atom of an MP4 file in front of its media data (fast start)."
    )
    arg_parser.add_argument("input", help="Path to the source MP4 file")
    arg_parser.add_argument("output", nargs="?", help="Path to the rewritten file. Omit to only check the source.")
    arg_parser.add_argument(
        "--keep-free",
        action="store_true",
        help="Do not rewrite files whose moov is already in front only to drop free atoms",
    )
    arg_parser.add_argument("--task-name", default="", help="Prefix added to every message")
    arg_parser.add_argument("--verbose", action="store_true", help="Print every atom while analyzing and writing")
    return arg_parser


async def run(args: argparse.Namespace, out=None) -> int:
    out = out or sys.stdout
    fast_start = MovieFastStart(
        notify=ConsoleNotify(verbose=args.verbose, stream=out),
        task_name=args.task_name,
        remove_free_atoms=False if args.keep_free else None,
    )

    async with open_input(args.input) as stream:
        if args.output:
            if await fast_start.process(stream, FileOutputTarget(args.output)):
                print("Converted.", file=out)
                return 0
            if fast_start.status.unsupported:
                print("Unsupported file.", file=out)
                return 1
            if fast_start.last_exception is not None:
                print("Failed.", file=out)
                return 1
            print("No conversion needed.", file=out)
            return 0

        if await fast_start.check(stream):
            print(f"SLOW  {fast_start.status.slow_start}", file=out)
            print(f"FREE  {fast_start.status.has_free_atoms}", file=out)
            print(f"ERROR {fast_start.status.unsupported}", file=out)
            return 0
        if fast_start.status.unsupported:
            print("Unsupported file.", file=out)
            return 1
        print("FAST start.", file=out)
        return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level="DEBUG" if args.verbose else settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    try:
        return asyncio.run(run(args))
    except OSError as e:
        print(f"Error: {e}", file=sys.stdout)
        return 1


if __name__ == "__main__":
    sys.exit(main())
