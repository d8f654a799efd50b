"""Per-run debug sessions for the lesson pipeline.

Each pipeline invocation opens its own ``DebugSession`` and passes it down to
every stage, so concurrent invocations never share state. When the run ends the
session is rendered as a plain-text report and written to the debug directory.

Report format, one block per entry:

    ================================================================================
    [2026-01-01T10:00:00.000000+00:00] UNIT_EXECUTION
    Section: 0
    Unit: 2
    Type: flashcard

    --- PROMPT ---
    ...

    --- PARSED OUTPUT ---
    { ...pretty JSON... }

Writing the report is a diagnostic side channel: failures are logged and never
propagate into the pipeline.
"""

import json
import logging
import traceback
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, List, Optional, Union

from pydantic import BaseModel

from lessongen import constants
from lessongen.models.debug import DebugEntry
from lessongen.utils.file_io import write_text

logger = logging.getLogger(__name__)

SEPARATOR = "=" * 80


# ============================================================================
# Session
# ============================================================================


class DebugSession:
    """Append-only ordered sequence of debug entries for one pipeline run."""

    def __init__(self, session_id: str, instructions: str):
        self.session_id = session_id
        self.instructions = instructions
        self._entries: List[DebugEntry] = []
        self.closed = False
        self.add_entry("SESSION_START", prompt=f"Instructions: {instructions}")

    @property
    def entries(self) -> List[DebugEntry]:
        return list(self._entries)

    def add_entry(
        self,
        stage: str,
        error: Optional[BaseException] = None,
        **fields: Any,
    ) -> DebugEntry:
        """Append an entry; an exception is stored as message + traceback."""
        if error is not None:
            fields["error"] = str(error) or type(error).__name__
            fields["error_stack"] = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            ).rstrip()
        entry = DebugEntry(stage=stage, **fields)
        self._entries.append(entry)
        return entry

    def log_topic_breakdown(
        self,
        prompt: str,
        output: Any = None,
        error: Optional[BaseException] = None,
    ) -> None:
        self.add_entry("TOPIC_BREAKDOWN", prompt=prompt, parsed_output=output, error=error)

    def log_section_generation(
        self,
        section_index: int,
        prompt: str,
        output: Any = None,
        error: Optional[BaseException] = None,
    ) -> None:
        self.add_entry(
            "SECTION_GENERATION",
            section_index=section_index,
            prompt=prompt,
            parsed_output=output,
            error=error,
        )

    def log_lesson_structure(
        self,
        prompt: str,
        raw_response: Optional[str] = None,
        output: Any = None,
        error: Optional[BaseException] = None,
    ) -> None:
        self.add_entry(
            "LESSON_STRUCTURE",
            prompt=prompt,
            raw_response=raw_response,
            parsed_output=output,
            error=error,
        )

    def log_unit_execution(
        self,
        section_index: int,
        unit_index: int,
        unit_type: str,
        prompt: str,
        raw_response: Any = None,
        output: Any = None,
        error: Optional[BaseException] = None,
    ) -> None:
        self.add_entry(
            "UNIT_EXECUTION",
            section_index=section_index,
            unit_index=unit_index,
            unit_type=unit_type,
            prompt=prompt,
            raw_response=raw_response,
            parsed_output=output,
            error=error,
        )
        if error is not None:
            logger.error(
                f"Unit execution failed: Section {section_index}, Unit {unit_index} ({unit_type}): {error}"
            )

    def log_learning_summary(
        self,
        section_index: int,
        prompt: str,
        output: Optional[str] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        self.add_entry(
            "LEARNING_SUMMARY",
            section_index=section_index,
            prompt=prompt,
            parsed_output=output,
            error=error,
        )

    def render(self) -> str:
        """Render all entries as the plain-text report."""
        return "\n\n".join(_render_entry(entry) for entry in self._entries)


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: _to_jsonable(v) for k, v in value.items()}
    return value


def _pretty_json(value: Any) -> str:
    return json.dumps(_to_jsonable(value), indent=2, ensure_ascii=False, default=str)


def _render_entry(entry: DebugEntry) -> str:
    lines = [SEPARATOR, f"[{entry.timestamp.isoformat()}] {entry.stage}"]

    if entry.section_index is not None:
        lines.append(f"Section: {entry.section_index}")
    if entry.unit_index is not None:
        lines.append(f"Unit: {entry.unit_index}")
    if entry.unit_type:
        lines.append(f"Type: {entry.unit_type}")

    if entry.prompt:
        lines.extend(["", "--- PROMPT ---", entry.prompt])
    if entry.raw_response is not None:
        lines.extend(["", "--- RAW RESPONSE ---", _pretty_json(entry.raw_response)])
    if entry.parsed_output is not None:
        lines.extend(["", "--- PARSED OUTPUT ---", _pretty_json(entry.parsed_output)])
    if entry.error:
        lines.extend(["", "--- ERROR ---", entry.error])
    if entry.error_stack:
        lines.extend(["", "--- STACK ---", entry.error_stack])

    return "\n".join(lines)


# ============================================================================
# Recorder
# ============================================================================


class DebugRecorder:
    """Creates debug sessions and flushes them to the debug directory."""

    def __init__(
        self,
        output_dir: Optional[Union[str, Path]] = None,
        enabled: Optional[bool] = None,
    ):
        """Initialize the recorder.

        Args:
            output_dir: Directory for report files (default: LESSON_DEBUG_DIR env var)
            enabled: Write reports at all (default: LESSON_DEBUG_ENABLED env var)
        """
        self.output_dir = Path(output_dir or constants.LESSON_DEBUG_DIR)
        self.enabled = constants.LESSON_DEBUG_ENABLED if enabled is None else enabled

    def start_session(self, instructions: str) -> DebugSession:
        """Begin a new in-memory session keyed by the current UTC timestamp."""
        timestamp = datetime.now(UTC).isoformat().replace(":", "-").replace(".", "-")
        return DebugSession(session_id=timestamp, instructions=instructions)

    def end_session(self, session: DebugSession, success: bool) -> Optional[Path]:
        """Append the terminal marker and write the report.

        Args:
            session: Session to close
            success: Whether the pipeline produced its result

        Returns:
            Path of the written report, or None if disabled or the write failed
        """
        if session.closed:
            logger.warning(f"Debug session {session.session_id} already ended")
            return None

        session.add_entry("SESSION_SUCCESS" if success else "SESSION_FAILED")
        session.closed = True

        if not self.enabled:
            return None

        report_path = self.output_dir / f"lesson-debug_{session.session_id}.txt"
        try:
            write_text(session.render(), report_path, errors="backslashreplace")
        except Exception as e:
            logger.warning(
                f"Failed to write debug report to {report_path}: {e}", exc_info=True
            )
            return None

        logger.info(f"Debug log written to: {report_path}")
        return report_path
