from .shell import CommandResult, run_command

__all__ = ["CommandResult", "run_command"]
