"""Quest state store — durable JSON snapshot of every quest.

Each quest is stored as its fixed params, its mutable state and its set
of claimed receipt ids. Every field is written as-is and read back as-is;
nothing is derived on load. Collaborators (token, receipt registry) are
not stored: the caller rebinds them when a quest is restored.

Writes go to a temporary file that replaces the store in one step, so a
crash mid-write leaves the previous snapshot intact.
"""

from __future__ import annotations

import dataclasses
import json
import os
from pathlib import Path
from typing import Dict, List, Tuple

from questledger.models.quest import QuestParams, QuestState


FORMAT_VERSION = 1

StoredQuest = Tuple[QuestParams, QuestState, List[int]]


class QuestStateStore:
    """JSON-file persistence for quest aggregates.

    Usage:
        store = QuestStateStore(data_dir / "quests.json")
        store.save_quests({qid: (params, state, claimed_ids)})
        quests = store.load_quests()
    """

    def __init__(self, storage_path: Path) -> None:
        self._storage_path = storage_path

    @property
    def storage_path(self) -> Path:
        return self._storage_path

    def save_quests(self, quests: Dict[str, StoredQuest]) -> None:
        document = {
            "format_version": FORMAT_VERSION,
            "quests": {
                quest_id: {
                    "params": dataclasses.asdict(params),
                    "state": dataclasses.asdict(state),
                    "claimed_ids": sorted(claimed_ids),
                }
                for quest_id, (params, state, claimed_ids) in quests.items()
            },
        }
        self._storage_path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._storage_path.with_suffix(self._storage_path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(document, f, sort_keys=True, indent=2)
        os.replace(tmp, self._storage_path)

    def load_quests(self) -> Dict[str, StoredQuest]:
        if not self._storage_path.exists():
            return {}
        document = json.loads(self._storage_path.read_text(encoding="utf-8"))
        version = document.get("format_version")
        if version != FORMAT_VERSION:
            raise ValueError(
                f"Unsupported quest store format {version} in {self._storage_path}"
            )

        quests: Dict[str, StoredQuest] = {}
        for quest_id, entry in document["quests"].items():
            params = QuestParams(**entry["params"])
            if params.quest_id != quest_id:
                raise ValueError(
                    f"Quest store key {quest_id} does not match params "
                    f"quest_id {params.quest_id}"
                )
            state = QuestState(**entry["state"])
            claimed_ids = [int(i) for i in entry["claimed_ids"]]
            if len(claimed_ids) != state.claimed_count:
                raise ValueError(
                    f"Quest {quest_id}: {len(claimed_ids)} claimed ids stored "
                    f"but claimed_count is {state.claimed_count}"
                )
            quests[quest_id] = (params, state, claimed_ids)
        return quests

