from dataclasses import dataclass, field
from typing import Optional

from gradecalc.state.store import GradebookStore


@dataclass
class AppState:
    store: GradebookStore = field(default_factory=GradebookStore)

    def reset(self, store: Optional[GradebookStore] = None) -> None:
        self.store = store or GradebookStore()


app_state = AppState()
