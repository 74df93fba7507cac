"""Fixed deployment environment, for embedding and tests."""

from __future__ import annotations

from records_kernel.domain.approval import EnvironmentState


class StaticEnvironment:
    def __init__(self, read_only: bool = False, mode: str | None = None):
        self._state = EnvironmentState(
            mode=mode or ("READ_ONLY" if read_only else "PRIMARY"),
            read_only=read_only,
            status="succeeded",
        )

    def current(self) -> EnvironmentState:
        return self._state

    def set_read_only(self, read_only: bool) -> None:
        self._state = EnvironmentState(
            mode="READ_ONLY" if read_only else "PRIMARY",
            read_only=read_only,
            status="succeeded",
        )
