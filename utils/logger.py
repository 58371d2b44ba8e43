"""
Logger utility for the Dining Arbiter simulator.

Provides thread-safe console/file logging with verbosity levels.
"""

import threading
from typing import Optional
from datetime import datetime


class SimulatorLogger:
    """
    Logger for actor transitions and driver decisions.

    Format: "[+0.123s] A3 -> ACTING"
    Many actor threads share one logger, so every write is serialised.
    """

    def __init__(self, verbose: bool = False, log_file: Optional[str] = None):
        """
        Initialize logger.

        Args:
            verbose: Enable debug output (per-actor phase changes)
            log_file: Optional file path for logging
        """
        self.verbose = verbose
        self.log_file = log_file
        self.file_handle = None
        self._lock = threading.Lock()
        self._started = datetime.now()

        if self.log_file:
            self.file_handle = open(self.log_file, 'w', encoding='utf-8')
            self._write_header()

    def _write_header(self) -> None:
        """Write log file header."""
        if self.file_handle:
            timestamp = self._started.strftime("%Y-%m-%d %H:%M:%S")
            self.file_handle.write(f"Simulation Log - {timestamp}\n")
            self.file_handle.write("="*60 + "\n\n")

    def log(self, message: str, level: str = "info") -> None:
        """
        Log a message.

        Args:
            message: Message to log
            level: Log level (info, debug, warning, error)
        """
        if level == "debug" and not self.verbose:
            return

        formatted = self._format_message(message, level)

        with self._lock:
            print(formatted)
            if self.file_handle:
                self.file_handle.write(formatted + "\n")
                self.file_handle.flush()

    def _format_message(self, message: str, level: str) -> str:
        """Format message with level prefix."""
        if level == "error":
            return f"[ERROR] {message}"
        elif level == "warning":
            return f"[WARNING] {message}"
        elif level == "debug":
            elapsed = (datetime.now() - self._started).total_seconds()
            return f"[DEBUG +{elapsed:.3f}s] {message}"
        else:
            return message

    def log_phase(self, actor_id: int, phase_name: str, detail: str = "") -> None:
        """Log an actor phase transition (debug only)."""
        if not self.verbose:
            return
        suffix = f" ({detail})" if detail else ""
        self.log(f"A{actor_id} -> {phase_name}{suffix}", "debug")

    def log_violation(self, error: Exception) -> None:
        """
        Log an invariant violation.

        Args:
            error: The InvariantViolation raised by an actor or the watchdog
        """
        actor_id = getattr(error, "actor_id", None)
        slot_index = getattr(error, "slot_index", None)
        where = []
        if actor_id is not None:
            where.append(f"A{actor_id}")
        if slot_index is not None:
            where.append(f"S{slot_index}")
        location = f" [{', '.join(where)}]" if where else ""
        self.log(f"INVARIANT VIOLATION{location}: {error} - aborting simulation", "error")

    def log_outcome(self, outcome_name: str, total_cycles: int, elapsed: float) -> None:
        """Log how a run ended."""
        self.log(f"SIMULATION {outcome_name.upper()} - {total_cycles} cycles in {elapsed:.3f}s")

    def close(self) -> None:
        """Close log file if open."""
        with self._lock:
            if self.file_handle:
                self.file_handle.close()
                self.file_handle = None

    def __del__(self):
        """Cleanup on destruction."""
        if getattr(self, "file_handle", None):
            self.file_handle.close()
            self.file_handle = None
