"""
Interactive command shell for the contiguous allocator simulator.

Reads one command per line and prints the outcome:

  RQ <process> <size> <F|B|W>   request memory with first, best or worst fit
  RL <process>                  release the memory held by a process
  C                             compact memory
  STAT                          print the memory status
  X                             exit
"""

import argparse
import logging
import sys
from typing import Callable, Dict, List, Optional, TextIO

from pydantic import ValidationError

from memsim.memory.allocator import ContiguousAllocator
from memsim.memory.conf import AllocatorConfig, ReleaseCommand, RequestCommand

logger = logging.getLogger(__name__)

BANNER = """
Memory Allocator Commands:
RQ <processName> <size> <strategy(F/B/W)>: Request memory allocation
RL <processName>: Release allocated memory
C: Compact memory
STAT: Print memory status
X: Exit the program"""

PROMPT = "allocator> "
INVALID_COMMAND = "Invalid command. Please use one of the listed commands."


class MemoryShell:
    """Parses command lines and dispatches them to a ContiguousAllocator."""

    def __init__(self, allocator: ContiguousAllocator):
        self.allocator = allocator
        self.commands: Dict[str, Callable[[List[str]], Optional[str]]] = {
            "RQ": self.cmd_request,
            "RL": self.cmd_release,
            "C": self.cmd_compact,
            "STAT": self.cmd_status,
            "ST": self.cmd_status,
            "X": self.cmd_exit,
            "EX": self.cmd_exit,
        }

    def execute(self, line: str) -> Optional[str]:
        """Run one command line.

        Returns:
            The reply to print, an empty string for a blank line, or None
            when the command asks the shell to exit.
        """
        tokens = line.split()
        if not tokens:
            return ""
        handler = self.commands.get(tokens[0].upper())
        if handler is None:
            return INVALID_COMMAND
        return handler(tokens[1:])

    def cmd_request(self, args: List[str]) -> str:
        if len(args) != 3:
            return "Invalid input for request command."
        try:
            request = RequestCommand(owner=args[0], size=args[1], strategy=args[2])
        except (ValidationError, ValueError) as e:
            logger.debug(f"Rejected request arguments {args}: {e}")
            return "Invalid input for request command."

        result = self.allocator.allocate(request.owner, request.size, request.strategy)
        if result.success:
            return (
                f"Allocated {request.size} bytes to process '{request.owner}' "
                f"using {request.strategy.value} strategy"
            )
        return f"Error: {result.error_message}"

    def cmd_release(self, args: List[str]) -> str:
        if len(args) != 1:
            return "Invalid input for release command."
        try:
            command = ReleaseCommand(owner=args[0])
        except ValidationError as e:
            logger.debug(f"Rejected release arguments {args}: {e}")
            return "Invalid input for release command."

        result = self.allocator.release(command.owner)
        if result.success:
            return f"Successfully released memory for process '{command.owner}'"
        return f"Error: {result.error_message}"

    def cmd_compact(self, args: List[str]) -> str:
        result = self.allocator.compact()
        if result.success:
            return "Memory compaction completed."
        return f"Error: {result.error_message}"

    def cmd_status(self, args: List[str]) -> str:
        return self.allocator.format_status()

    def cmd_exit(self, args: List[str]) -> None:
        return None

    def loop(
        self,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
        prompt: bool = True,
    ):
        """Read commands until ``X`` or end of input."""
        stdin = stdin or sys.stdin
        stdout = stdout or sys.stdout
        print(BANNER, file=stdout)
        while True:
            if prompt:
                stdout.write(PROMPT)
                stdout.flush()
            line = stdin.readline()
            if not line:
                break
            reply = self.execute(line)
            if reply is None:
                break
            if reply:
                print(reply, file=stdout)


def setup_logging(level: str = "WARNING"):
    """Setup logging configuration."""
    log_level = getattr(logging, level.upper(), logging.WARNING)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="memsim",
        description="Contiguous memory allocator simulator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  memsim 1048576
  printf 'RQ P1 40000 F\\nSTAT\\nX\\n' | memsim 1048576 --no-prompt
            """,
    )
    parser.add_argument("size", help="Initial memory size in bytes, a positive integer")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level",
    )
    parser.add_argument(
        "--trace",
        action="store_true",
        help="Record a trace entry for every split, merge and compaction",
    )
    parser.add_argument(
        "--no-prompt",
        action="store_true",
        help="Do not print the prompt before each command",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = AllocatorConfig(total_size=args.size, capture_trace=args.trace)
    except ValidationError as e:
        logger.debug(f"Invalid configuration: {e}")
        print("Invalid input for memory size.", file=sys.stderr)
        return 1

    shell = MemoryShell(ContiguousAllocator(config=config))
    try:
        shell.loop(prompt=not args.no_prompt)
    except KeyboardInterrupt:
        print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
