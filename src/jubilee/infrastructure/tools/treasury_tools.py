"""
Treasury and Communication Tools

Tools with external effects. Nothing here moves funds or sends mail: a
transfer becomes a proposal in a YAML outbox awaiting human signature, and an
email becomes a draft file. Both are meant to be guarded by policies in the
tool profile (allowlist for ``propose_transfer``, confirmation for
``draft_email``).
"""

import asyncio
import re
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
import yaml

from jubilee.core.tools.base import Tool

logger = structlog.get_logger()


class TransferProposalTool(Tool):
    """Queue an asset transfer for multi-sig signing."""

    def __init__(self, outbox_path: str = "~/.jubilee/transfer_outbox.yaml"):
        self.outbox_path = Path(outbox_path).expanduser()
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return "propose_transfer"

    @property
    def description(self) -> str:
        return (
            "Propose a treasury transfer of an asset to a destination address. The proposal "
            "is queued for human signature; destinations must be on the treasury allowlist."
        )

    @property
    def parameters_schema(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "to": {"type": "string", "description": "Destination address"},
                "amount": {"type": "number", "description": "Amount to transfer"},
                "asset": {"type": "string", "description": "Asset symbol, e.g. USDC"},
                "memo": {"type": "string", "description": "Reason for the transfer"},
            },
            "required": ["to", "amount", "asset"],
        }

    async def execute(self, to: str, amount: float, asset: str, memo: str = "", **kwargs) -> Dict[str, Any]:
        if amount <= 0:
            return {"success": False, "error": "Amount must be positive"}

        async with self._lock:
            proposals = []
            if self.outbox_path.exists():
                with open(self.outbox_path, "r", encoding="utf-8") as f:
                    proposals = yaml.safe_load(f) or []
            proposal_id = len(proposals) + 1
            proposals.append({
                "id": proposal_id,
                "to": to,
                "amount": amount,
                "asset": asset,
                "memo": memo,
                "status": "pending_signature",
                "created_at": datetime.now(timezone.utc).isoformat(),
            })
            self.outbox_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.outbox_path, "w", encoding="utf-8") as f:
                yaml.safe_dump(proposals, f, sort_keys=False)

        logger.info("transfer_proposed", proposal_id=proposal_id, to=to, amount=amount, asset=asset)
        return {
            "success": True,
            "output": f"✅ Transfer proposal #{proposal_id} queued: {amount} {asset} → {to}. Awaiting signatures.",
        }


class DraftEmailTool(Tool):
    """Save an email draft for manual review; never sends."""

    ABUSIVE_KEYWORDS = ("hate", "idiot", "stupid", "incompetent", "useless")

    def __init__(self, drafts_dir: str = "drafts", min_interval_seconds: float = 30):
        self.drafts_dir = Path(drafts_dir).expanduser()
        self.min_interval_seconds = min_interval_seconds
        self._last_draft: Optional[float] = None

    @property
    def name(self) -> str:
        return "draft_email"

    @property
    def description(self) -> str:
        return "Draft an email for a member. Does NOT send; saves a draft file for review."

    async def execute(self, recipient: str, subject: str, body: str, tone: str = "neutral", **kwargs) -> Dict[str, Any]:
        now = time.monotonic()
        if self._last_draft is not None and now - self._last_draft < self.min_interval_seconds:
            return {"success": True, "output": "⛔ RATE LIMIT: You are drafting too fast. Please wait."}

        text = f"{subject} {body}".lower()
        if any(keyword in text for keyword in self.ABUSIVE_KEYWORDS):
            return {"success": True, "output": "⛔ CONTENT BLOCKED: Abusive or harmful language detected."}

        self._last_draft = now
        self.drafts_dir.mkdir(parents=True, exist_ok=True)
        filename = f"{re.sub(r'[^a-z0-9]', '_', recipient.lower())}_{int(time.time() * 1000)}.txt"
        (self.drafts_dir / filename).write_text(
            f"TO: {recipient}\nSUBJECT: {subject}\nTONE: {tone}\n"
            f"DATE: {datetime.now(timezone.utc).isoformat()}\n\n{body}\n",
            encoding="utf-8",
        )
        return {"success": True, "output": f"✅ Draft saved to {self.drafts_dir / filename}. Review and send manually."}
