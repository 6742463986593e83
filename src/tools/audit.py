"""Audit trail for tool executions.

Every call the executor handles is recorded: tool, redacted parameters,
outcome and timing. Entries go to the structured log immediately and to a
JSON-lines file in batches.
"""

import asyncio
import json
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import aiofiles

from shared.logging import get_logger
from shared.models import AuditEntry, ErrorKind, ToolCall, ToolDefinition, ToolResult

logger = get_logger(__name__)


class AuditLogger:
    """
    Audit logger for tool executions.

    Writes are buffered and flushed once ``buffer_size`` entries have
    accumulated, and on demand via ``flush()``.
    """

    # Parameters that should be redacted in audit logs
    SENSITIVE_PARAMS = {"password", "token", "secret", "api_key", "apikey", "credential"}

    def __init__(
        self,
        log_path: str = "logs/audit.log",
        enabled: bool = True,
        buffer_size: int = 50
    ) -> None:
        self.log_path = Path(log_path)
        self.enabled = enabled
        self.buffer_size = buffer_size
        self._buffer: list[AuditEntry] = []
        self._lock = asyncio.Lock()

        if self.enabled:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def _redact_sensitive(self, params: Any) -> Any:
        """Redact sensitive keys, descending into nested dicts and lists."""
        if isinstance(params, dict):
            return {
                key: "[REDACTED]" if key.lower() in self.SENSITIVE_PARAMS else self._redact_sensitive(value)
                for key, value in params.items()
            }
        if isinstance(params, list):
            return [self._redact_sensitive(item) for item in params]
        return params

    @staticmethod
    def _error_text(result: ToolResult) -> Optional[str]:
        if result.succeeded:
            return None
        try:
            payload = json.loads(result.content)
        except ValueError:
            return result.content
        if isinstance(payload, dict):
            return payload.get("error")
        return result.content

    def create_entry(
        self,
        call: ToolCall,
        result: ToolResult,
        definition: Optional[ToolDefinition] = None
    ) -> AuditEntry:
        """
        Build the audit record for one executed call.

        Args:
            call: Tool call as issued by the planner
            result: Tool execution result
            definition: Tool definition, None for unknown tools

        Returns:
            Audit entry
        """
        return AuditEntry(
            id=str(uuid.uuid4()),
            call_id=call.call_id,
            tool_name=call.tool_name,
            execution_type=definition.execution_type if definition else None,
            parameters=self._redact_sensitive(call.parameters),
            status="success" if result.succeeded else "error",
            error_kind=result.error_kind,
            error=self._error_text(result),
            execution_time_ms=result.execution_time_ms,
        )

    async def log(
        self,
        call: ToolCall,
        result: ToolResult,
        definition: Optional[ToolDefinition] = None
    ) -> None:
        """Record one tool execution."""
        if not self.enabled:
            return

        entry = self.create_entry(call, result, definition)

        logger.info(
            "Tool executed",
            audit_id=entry.id,
            tool=entry.tool_name,
            call_id=entry.call_id,
            status=entry.status,
            error_kind=entry.error_kind.value if entry.error_kind else None,
            execution_time_ms=round(entry.execution_time_ms, 1)
        )

        async with self._lock:
            self._buffer.append(entry)

            if len(self._buffer) >= self.buffer_size:
                await self._flush()

    async def _flush(self) -> None:
        """Append buffered entries to the JSON-lines file. Caller holds the lock."""
        if not self._buffer:
            return

        entries_to_write = self._buffer.copy()
        self._buffer.clear()

        try:
            async with aiofiles.open(self.log_path, "a") as f:
                for entry in entries_to_write:
                    await f.write(entry.model_dump_json() + "\n")
        except OSError as e:
            logger.error("Failed to write audit log", error=str(e), path=str(self.log_path))
            # Keep entries for the next flush
            self._buffer.extend(entries_to_write)

    async def flush(self) -> None:
        """Write buffered entries now (called on shutdown)."""
        if not self.enabled:
            return
        async with self._lock:
            await self._flush()

    async def query(
        self,
        tool_name: Optional[str] = None,
        status: Optional[str] = None,
        error_kind: Optional[ErrorKind] = None,
        start_time: Optional[datetime] = None,
        limit: int = 100
    ) -> list[AuditEntry]:
        """
        Read back flushed audit entries matching the filters.

        Args:
            tool_name: Filter by tool name
            status: Filter by "success" or "error"
            error_kind: Filter by error kind
            start_time: Only entries at or after this (timezone-aware) time
            limit: Maximum entries to return

        Returns:
            List of matching audit entries, oldest first
        """
        results: list[AuditEntry] = []

        if not self.log_path.exists():
            return results

        try:
            async with aiofiles.open(self.log_path, "r") as f:
                async for line in f:
                    if len(results) >= limit:
                        break

                    try:
                        entry = AuditEntry(**json.loads(line.strip()))
                    except ValueError:
                        continue

                    if tool_name and entry.tool_name != tool_name:
                        continue
                    if status and entry.status != status:
                        continue
                    if error_kind and entry.error_kind != error_kind:
                        continue
                    if start_time and entry.timestamp < start_time:
                        continue

                    results.append(entry)

        except OSError as e:
            logger.error("Failed to query audit log", error=str(e))

        return results
