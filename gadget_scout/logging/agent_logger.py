"""
Agent Logger for Markdown Conversation Logs.
Creates a human-readable trace of each session: retrieval context, model
replies, recommendations and voice state changes.
"""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
import json

logger = logging.getLogger(__name__)


class AgentLogger:
    """
    Markdown logger for the shopping assistant.

    Entries are queued and written by a background task when an event loop
    is running, otherwise written synchronously.
    """

    def __init__(self, log_path: str = "logs/agent_log.md"):
        self.log_path = Path(log_path)
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

        self._queue: asyncio.Queue = asyncio.Queue()
        self._writer_task: Optional[asyncio.Task] = None
        self._running = False

        self._start_writer()

    def _start_writer(self):
        """Start the background log writer."""
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No event loop, will write synchronously
            return
        self._writer_task = asyncio.create_task(self._write_loop())
        self._running = True

    async def _write_loop(self):
        """Background loop to write logs asynchronously."""
        while self._running:
            try:
                entry = await asyncio.wait_for(self._queue.get(), timeout=1.0)
                self._sync_write(entry)
            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Log writer error: {e}")

    def _sync_write(self, entry: str):
        try:
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(entry)
                f.write("\n")
        except Exception as e:
            logger.error(f"Failed to write log: {e}")

    async def _log(self, entry: str):
        """Add a log entry to the queue."""
        if self._running and self._writer_task:
            await self._queue.put(entry)
        else:
            self._sync_write(entry)

    # =========================
    # Public Logging Methods
    # =========================

    async def log_session_start(self, session_id: str, catalog_size: int, retrieval: str):
        """Log the start of a new session."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        entry = f"""
---

## 🆕 Session Started: `{session_id}`

**Timestamp:** {timestamp}
**Catalog Size:** {catalog_size}
**Retrieval:** {retrieval}

---
"""
        await self._log(entry)

    async def log_retrieval(
        self,
        session_id: str,
        query: str,
        results: List[Dict[str, Any]],
        latency_ms: Optional[float] = None
    ):
        """Log the products retrieved as context for a user message."""
        timestamp = datetime.now().strftime("%H:%M:%S")

        if results:
            rows = "\n".join(
                f"| {r['rank']} | `{r['product_id']}` | {r['name']} | {r['score']:.3f} |"
                for r in results
            )
            table = f"| Rank | ID | Product | Score |\n|------|----|---------|-------|\n{rows}"
        else:
            table = "_No context retrieved._"

        entry = f"""### 🔎 Retrieval | {timestamp}

**Session:** `{session_id}`
**Query:** "{query}"

{table}
{f'**Retrieval Latency:** {latency_ms:.0f}ms' if latency_ms else ''}
"""
        await self._log(entry)

    async def log_tool_call(
        self,
        session_id: str,
        tool_name: str,
        tool_input: Dict[str, Any],
        tool_output: Dict[str, Any]
    ):
        """Log a tool call and the acknowledgement sent back."""
        timestamp = datetime.now().strftime("%H:%M:%S")

        input_str = json.dumps(tool_input, indent=2, ensure_ascii=False)
        output_str = json.dumps(tool_output, indent=2, ensure_ascii=False)

        entry = f"""#### 🔧 Tool Call: `{tool_name}` | {timestamp}

**Session:** `{session_id}`

**Input:**
```json
{input_str}
```

**Acknowledgement:**
```json
{output_str}
```
"""
        await self._log(entry)

    async def log_llm_response(
        self,
        session_id: str,
        response: str,
        latency_ms: Optional[float] = None
    ):
        """Log model reply text."""
        timestamp = datetime.now().strftime("%H:%M:%S")

        display_response = response
        if len(response) > 500:
            display_response = response[:500] + "..."

        entry = f"""### 🤖 Agent Response | {timestamp}

**Session:** `{session_id}`

> {display_response or '_(no text)_'}

{f'**LLM Latency:** {latency_ms:.0f}ms' if latency_ms else ''}
"""
        await self._log(entry)

    async def log_turn_complete(
        self,
        session_id: str,
        user_text: str,
        recommended: Optional[str],
        metrics: Dict[str, Any]
    ):
        """Log a complete text turn with timings."""
        timestamp = datetime.now().strftime("%H:%M:%S")

        total_latency = metrics.get("total_latency_ms", 0)
        if total_latency < 2000:
            latency_status = "🟢 Fast"
        elif total_latency < 5000:
            latency_status = "🟡 OK"
        else:
            latency_status = "🔴 Slow"

        entry = f"""### ✅ Turn Complete | {timestamp}

**Session:** `{session_id}`
**User:** "{user_text}"
**Recommended:** {f'`{recommended}`' if recommended else 'None'}

| Metric | Value |
|--------|-------|
| Total | {latency_status} ({total_latency:.0f}ms) |
| Retrieval | {metrics.get('retrieval_latency_ms', 0):.0f}ms |
| LLM | {metrics.get('llm_latency_ms', 0):.0f}ms |

---
"""
        await self._log(entry)

    async def log_voice_state(self, session_id: str, old_state: str, new_state: str):
        """Log a voice pipeline state transition."""
        timestamp = datetime.now().strftime("%H:%M:%S")

        entry = f"""#### 🎙️ Voice | {timestamp}

**Session:** `{session_id}`
**State:** {old_state} → {new_state}
"""
        await self._log(entry)

    async def log_error(
        self,
        session_id: str,
        error_type: str,
        error_message: str,
        stack_trace: Optional[str] = None
    ):
        """Log an error."""
        timestamp = datetime.now().strftime("%H:%M:%S")

        entry = f"""### ❌ Error | {timestamp}

**Session:** `{session_id}`
**Type:** `{error_type}`
**Message:** {error_message}
"""

        if stack_trace:
            entry += f"""
<details>
<summary>Stack Trace</summary>

```
{stack_trace}
```

</details>
"""

        await self._log(entry)

    async def log_system_event(self, event: str, details: Dict[str, Any]):
        """Log a system event."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        details_str = ""
        for key, value in details.items():
            details_str += f"- **{key}:** {value}\n"

        entry = f"""### ⚙️ System Event | {timestamp}

**Event:** {event}

{details_str}
---
"""
        await self._log(entry)

    async def initialize_log(self, store_name: str, version: str):
        """Initialize the log file with header."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        header = f"""# 🛍️ {store_name} Assistant Log

**Generated:** {timestamp}
**Version:** {version}

---

## Conversation Flow

**Text:** Message → Retrieval → Augmented Prompt → Model → Recommendation Card
**Voice:** Microphone → Live Model → Scheduled Playback (+ recommendation cards)

---

## Execution Log

"""

        with open(self.log_path, "w", encoding="utf-8") as f:
            f.write(header)

        logger.info(f"Agent log initialized: {self.log_path}")

    async def close(self):
        """Close the logger and flush pending entries."""
        self._running = False

        if self._writer_task:
            self._writer_task.cancel()
            try:
                await self._writer_task
            except asyncio.CancelledError:
                pass

        while not self._queue.empty():
            try:
                self._sync_write(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                break

        logger.info("Agent logger closed")
