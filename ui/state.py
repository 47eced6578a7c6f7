"""Typed Streamlit session state for the bidding workflow UI."""

from __future__ import annotations

from dataclasses import dataclass, field

from power_bidding.api.client import ApiClient
from power_bidding.config import ConfigStore, build_config
from power_bidding.workflow.controller import StageController


@dataclass
class Notice:
    level: str
    message: str


@dataclass
class UIState:
    """Session-backed container; all workflow state lives in the controller."""

    controller: StageController
    notices: list[Notice] = field(default_factory=list)
    uploaded_name: str | None = None

    def notify(self, level: str, message: str) -> None:
        self.notices.append(Notice(level=level, message=message))

    def drain_notices(self) -> list[Notice]:
        pending, self.notices = self.notices, []
        return pending


def new_ui_state(config_path: str | None = None) -> UIState:
    store = ConfigStore(build_config(config_path=config_path))
    client = ApiClient.from_config(store.get().service)
    return UIState(controller=StageController(client, store))
