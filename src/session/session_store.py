"""
Session persistence.

One learner session per JSON file. load() never fails: a missing,
unreadable, corrupted or out-of-scope blob is replaced with a freshly
bootstrapped session.
"""

from __future__ import annotations

import json
from pathlib import Path

from loguru import logger

from src.adaptive.learner_context import HISTORY_SIZE, LearnerContext
from src.core.mastery import MasteryStateMachine
from src.curriculum.models import ConceptGraph
from src.curriculum.triangles import TRIANGLES_GRADE6
from src.session.learner_session import SESSION_SCHEMA_VERSION, TOPIC_KEY, LearnerSession


class SessionStore:
    """
    Manages learner session persistence.

    Usage:
        store = SessionStore(Path("data/session.json"))
        session = store.load()
        ...
        store.save(session)
    """

    def __init__(
        self,
        path: Path,
        graph: ConceptGraph = TRIANGLES_GRADE6,
        grade: int = 6,
        ceiling: int = 4,
        history_size: int = HISTORY_SIZE,
        machine: MasteryStateMachine | None = None,
    ):
        self.path = Path(path)
        self.graph = graph
        self.grade = grade
        self.ceiling = ceiling
        self.history_size = history_size
        self.machine = machine or MasteryStateMachine()

    def bootstrap(self) -> LearnerSession:
        """Fresh session at the start of the graph."""
        return LearnerSession(
            grade=self.grade,
            topic=TOPIC_KEY,
            progression=self.machine.bootstrap(self.graph, ceiling=self.ceiling),
            learner_context=LearnerContext(size=self.history_size),
        )

    def load(self) -> LearnerSession:
        """Load the stored session, or bootstrap a new one and save it."""
        session = self._read()
        if session is None:
            session = self.bootstrap()
        elif not session.progression.mastery:
            logger.info("Stored session has no mastery records; bootstrapping progression")
            session.progression = self.machine.bootstrap(self.graph, ceiling=self.ceiling)
        session.touch()
        self.save(session)
        return session

    def _read(self) -> LearnerSession | None:
        if not self.path.exists():
            return None
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
            session = LearnerSession.from_dict(data, history_size=self.history_size)
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding unreadable session at {self.path}: {e}")
            return None
        if not self._in_scope(session):
            logger.warning(f"Discarding out-of-scope session at {self.path}")
            return None
        return session

    def _in_scope(self, session: LearnerSession) -> bool:
        return (
            session.schema_version == SESSION_SCHEMA_VERSION
            and session.grade == self.grade
            and session.topic == TOPIC_KEY
            and session.progression.graph_id == self.graph.id
        )

    def save(self, session: LearnerSession) -> Path:
        """Write the session atomically."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(session.to_dict(), f, indent=2)
        tmp_path.replace(self.path)
        return self.path

    def reset(self) -> LearnerSession:
        """Delete the stored session and start over."""
        if self.path.exists():
            self.path.unlink()
        session = self.bootstrap()
        self.save(session)
        return session
