"""内置提示词预设加载工具。

预设随包分发在 prompts.csv 中（表头 act,prompt），
在 UI 中作为会话的 system 提示词候选列表展示。
"""

import csv
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, Tuple


PROMPTS_DIR = Path(__file__).resolve().parent
PROMPTS_FILE = PROMPTS_DIR / "prompts.csv"


@dataclass(frozen=True)
class PromptPreset:
    act: str
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"act": self.act, "content": self.content}


@lru_cache(maxsize=None)
def load_prompts() -> Tuple[PromptPreset, ...]:
    """读取预设列表，结果是只读的，进程内只解析一次。"""

    with PROMPTS_FILE.open(encoding="utf-8", newline="") as f:
        return tuple(
            PromptPreset(act=row["act"].strip(), content=row["prompt"].strip())
            for row in csv.DictReader(f)
            if row.get("act") and row.get("prompt")
        )
