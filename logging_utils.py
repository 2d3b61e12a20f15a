"""
Phase Logging for the Suggestion Engine
=======================================

Colored console logging scoped to one engine session. Engine phases run on
every keystroke, so per-phase banners are opt-in (verbose) while phase
timings are always collected and can be summarized on demand.
IMPORTANT: No emojis in console output (Windows encoding issues).
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from colorama import Fore, Style, init

# Initialize colorama for Windows
init(autoreset=True)


class Phase:
    """Phases of the suggestion pipeline"""
    INGEST = "BATCH_INGEST"
    LOCATE = "OFFSET_LOCATE"
    RESOLVE = "CONFLICT_RESOLVE"
    EDIT = "EDIT_RECALCULATION"
    RENDER = "RENDER_MAPPING"
    FETCH = "SOURCE_FETCH"


PHASE_COLORS = {
    Phase.INGEST: Fore.CYAN,
    Phase.LOCATE: Fore.BLUE,
    Phase.RESOLVE: Fore.MAGENTA,
    Phase.EDIT: Fore.YELLOW,
    Phase.RENDER: Fore.GREEN,
    Phase.FETCH: Fore.WHITE + Style.BRIGHT,
}

# Text tags, no emojis
PHASE_TAGS = {
    Phase.INGEST: "[ING]",
    Phase.LOCATE: "[LOC]",
    Phase.RESOLVE: "[RES]",
    Phase.EDIT: "[EDT]",
    Phase.RENDER: "[RND]",
    Phase.FETCH: "[FET]",
}

POSITIVE_DECISIONS = {"ACCEPTED", "MERGED", "APPLIED"}


def _style(phase_name: str):
    return PHASE_COLORS.get(phase_name, Fore.WHITE), PHASE_TAGS.get(phase_name, "[---]")


@dataclass
class PhaseStats:
    """Accumulated timing of one phase across many runs"""
    count: int = 0
    total: float = 0.0
    slowest: float = 0.0

    def add(self, elapsed: float):
        self.count += 1
        self.total += elapsed
        self.slowest = max(self.slowest, elapsed)

    @property
    def average(self) -> float:
        return self.total / self.count if self.count else 0.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "count": self.count,
            "total_ms": round(self.total * 1000, 3),
            "average_ms": round(self.average * 1000, 3),
            "slowest_ms": round(self.slowest * 1000, 3),
        }


class PhaseLogger:
    """
    Logger with phase tracking for one engine session

    Usage:
        phase_logger = PhaseLogger(session_id="doc-42", verbose=True)

        with phase_logger.phase(Phase.INGEST, sub_label="12 records"):
            phase_logger.info("Validating offsets...")
            phase_logger.log_dropped("sugg-1a2b3c4d", "text not found")

        phase_logger.log_timing_summary()
    """

    def __init__(
        self,
        session_id: str,
        verbose: bool = False,
        logger: Optional[logging.Logger] = None
    ):
        self.session_id = session_id
        self.verbose = verbose
        self.logger = logger or logging.getLogger(__name__)
        self.stats: Dict[str, PhaseStats] = {}
        self._stack: List[str] = []

    @property
    def current_phase(self) -> Optional[str]:
        return self._stack[-1] if self._stack else None

    @contextmanager
    def phase(self, phase_name: str, sub_label: Optional[str] = None):
        """
        Time a block of work under a phase name; phases may nest.

        Example:
            with phase_logger.phase(Phase.EDIT, sub_label="removal 10-15"):
                registry.apply_removal(10, 15)
        """
        self._stack.append(phase_name)
        if self.verbose:
            self._banner(phase_name, sub_label)
        started = time.perf_counter()
        try:
            yield self
        finally:
            elapsed = time.perf_counter() - started
            self.stats.setdefault(phase_name, PhaseStats()).add(elapsed)
            self._stack.pop()
            if self.verbose:
                color, tag = _style(phase_name)
                self.logger.info(f"{color}{tag} {phase_name} done in {elapsed * 1000:.1f}ms{Style.RESET_ALL}")

    def _banner(self, phase_name: str, sub_label: Optional[str]):
        color, tag = _style(phase_name)
        label = f" - {sub_label}" if sub_label else ""
        clock = datetime.now().strftime("%H:%M:%S")
        self.logger.info(f"{color}{'-' * 60}{Style.RESET_ALL}")
        self.logger.info(f"{color}{tag} {phase_name} [{self.session_id}]{label} [{clock}]{Style.RESET_ALL}")

    def info(self, message: str):
        """Log info message, tagged with the current phase"""
        phase_name = self.current_phase
        if phase_name is None:
            self.logger.info(message)
            return
        color, tag = _style(phase_name)
        self.logger.info(f"{color}{tag}{Style.RESET_ALL} {message}")

    def debug(self, message: str):
        """Only emitted in verbose mode"""
        if self.verbose:
            self.logger.debug(f"{Style.DIM}[{self.session_id}] {message}{Style.RESET_ALL}")

    def warning(self, message: str):
        self.logger.warning(f"{Fore.YELLOW}[WARN] [{self.session_id}] {message}{Style.RESET_ALL}")

    def error(self, message: str):
        self.logger.error(f"{Fore.RED}{Style.BRIGHT}[ERROR] [{self.session_id}] {message}{Style.RESET_ALL}")

    def log_dropped(self, suggestion_id: str, reason: str):
        """Log a suggestion discarded during validation at debug level"""
        self.logger.debug(f"{Fore.YELLOW}[DROP]{Style.RESET_ALL} [{self.session_id}] {suggestion_id}: {reason}")

    def log_batch_summary(self, received: int, kept: int, active: int):
        """
        Log the outcome of a batch ingestion

        Args:
            received: Records delivered by the source
            kept: Suggestions that survived validation
            active: Size of the active view after filtering
        """
        dropped = received - kept
        color = Fore.GREEN if dropped == 0 else Fore.YELLOW
        self.info(
            f"{color}Batch: {received} received, {kept} kept, "
            f"{dropped} dropped, {active} active{Style.RESET_ALL}"
        )

    def log_decision(self, decision: str, ids: Iterable[str] = (), reason: Optional[str] = None):
        """
        Log a lifecycle decision (ACCEPTED, IGNORED, INVALIDATED, MERGED)

        Args:
            decision: Decision text
            ids: Suggestion ids the decision applies to
            reason: Optional reason
        """
        if decision.upper() in POSITIVE_DECISIONS:
            prefix = f"{Fore.GREEN}{Style.BRIGHT}[OK]"
        else:
            prefix = f"{Fore.YELLOW}{Style.BRIGHT}[--]"

        id_list = list(ids)
        targets = f" ({', '.join(id_list)})" if id_list else ""
        suffix = f" - {reason}" if reason else ""
        self.logger.info(f"{prefix} {decision}{targets}{Style.RESET_ALL}{suffix}")

    def timing_summary(self) -> Dict[str, Dict[str, float]]:
        """Per-phase timing stats, JSON-ready"""
        return {name: stats.to_dict() for name, stats in sorted(self.stats.items())}

    def log_timing_summary(self):
        """Log a table of phase timings for this session"""
        if not self.stats:
            return

        self.logger.info(f"{Style.BRIGHT}TIMING SUMMARY [{self.session_id}]{Style.RESET_ALL}")
        for name, stats in sorted(self.stats.items()):
            color, _ = _style(name)
            self.logger.info(
                f"{color}{name:22s} x{stats.count:<5d} total {stats.total * 1000:8.1f}ms "
                f"avg {stats.average * 1000:6.2f}ms max {stats.slowest * 1000:6.2f}ms{Style.RESET_ALL}"
            )
