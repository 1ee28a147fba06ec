from .dispatcher import CommandDispatcher, format_command_list, parse_command
from .table import MediaCommand, scan_media_commands

__all__ = [
    "CommandDispatcher",
    "MediaCommand",
    "format_command_list",
    "parse_command",
    "scan_media_commands",
]
