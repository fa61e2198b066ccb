"""Default tool catalog.

Arguments reach handlers as strings. Each handler validates them through a
pydantic input model, which converts numeric and boolean values at the tool
boundary.
"""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, Field

from ..schemas.domain import RiskLevel
from .base import RegisteredTool, ToolCategory, parameters_from_model
from .registry import ToolRegistry

logger = logging.getLogger(__name__)


class CommandRunInput(BaseModel):
    """Input schema for command execution."""

    command: str = Field(..., description="Shell command to execute")
    cwd: Optional[str] = Field(None, description="Working directory for command execution")


class FileReadInput(BaseModel):
    """Input schema for file read operation."""

    path: str = Field(..., description="Absolute path to the file to read")
    encoding: str = Field(default="utf-8", description="File encoding (default: utf-8)")
    max_bytes: int = Field(default=1_000_000, ge=1, description="Maximum number of bytes to read")


class DateTimeInput(BaseModel):
    """Input schema for the current date/time lookup."""

    utc: bool = Field(default=False, description="Return UTC instead of local time")


async def execute_command(arguments: Dict[str, str]) -> str:
    args = CommandRunInput.model_validate(arguments)
    process = await asyncio.create_subprocess_shell(
        args.command,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        cwd=args.cwd or None,
    )
    try:
        stdout_bytes, stderr_bytes = await process.communicate()
    except asyncio.CancelledError:
        process.kill()
        raise

    stdout = stdout_bytes.decode("utf-8", errors="replace")
    stderr = stderr_bytes.decode("utf-8", errors="replace")
    logger.info("Command exited with code %s: %s", process.returncode, args.command)
    if process.returncode != 0:
        raise RuntimeError(f"exit code {process.returncode}: {stderr.strip() or stdout.strip()}")
    return stdout


async def read_file(arguments: Dict[str, str]) -> str:
    args = FileReadInput.model_validate(arguments)
    file_path = Path(args.path)
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")
    if not file_path.is_file():
        raise IsADirectoryError(f"Path is not a file: {file_path}")

    with file_path.open("rb") as fh:
        raw = fh.read(args.max_bytes)
    return raw.decode(args.encoding, errors="replace")


async def get_current_datetime(arguments: Dict[str, str]) -> str:
    args = DateTimeInput.model_validate(arguments)
    now = datetime.now(timezone.utc) if args.utc else datetime.now().astimezone()
    return now.isoformat()


execute_command_tool = RegisteredTool(
    name="execute_command",
    description="Execute a shell command and return its standard output.",
    category=ToolCategory.system_commands,
    risk_level=RiskLevel.medium,
    parameters=parameters_from_model(CommandRunInput),
    handler=execute_command,
)

read_file_tool = RegisteredTool(
    name="read_file",
    description="Read the contents of a text file from the filesystem.",
    category=ToolCategory.file_operations,
    risk_level=RiskLevel.low,
    parameters=parameters_from_model(FileReadInput),
    handler=read_file,
)

current_datetime_tool = RegisteredTool(
    name="get_current_datetime",
    description="Return the current date and time in ISO 8601 format.",
    category=ToolCategory.text_data,
    risk_level=RiskLevel.low,
    parameters=parameters_from_model(DateTimeInput),
    handler=get_current_datetime,
)

BUILTIN_TOOLS = (execute_command_tool, read_file_tool, current_datetime_tool)


def build_default_registry() -> ToolRegistry:
    """Create a registry holding the builtin tools."""
    return ToolRegistry(BUILTIN_TOOLS)
