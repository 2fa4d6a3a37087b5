"""
Sandboxed execution of rule-authored JavaScript

Every run gets a fresh V8 isolate through mini-racer. The script only sees the
names bound below; timers and network globals are removed. Both the script and
the serialisation of what it leaves behind are cut off after ``timeout_ms`` or
when the heap grows past ``max_memory``.

``console`` offers ``warn`` alongside ``log`` and ``error``; warnings are
forwarded to the logger at WARNING level.
"""
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from py_mini_racer import MiniRacer
from pydantic import BaseModel, Field

from .schema import EvaluationContext

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 1000
DEFAULT_MAX_MEMORY = 64 * 1024 * 1024

_PRELUDE = r"""
['setTimeout', 'setInterval', 'clearTimeout', 'clearInterval', 'queueMicrotask',
 'fetch', 'XMLHttpRequest', 'WebSocket', 'importScripts'].forEach(function (name) {
  try { delete globalThis[name]; } catch (e) {}
});
var __logs = [];
var __opened = [];
function __format(value) {
  if (typeof value === 'string') { return value; }
  try { return JSON.stringify(value); } catch (e) { return String(value); }
}
function __logger(level) {
  return function () {
    __logs.push([level, Array.prototype.map.call(arguments, __format).join(' ')]);
  };
}
var __console = Object.freeze({log: __logger('log'), error: __logger('error'), warn: __logger('warn')});
var __window = Object.freeze({
  open: function (url) { __opened.push(String(url)); return null; }
});
var __utils = Object.freeze({
  extractRegex: function (text, pattern, groupIndex) {
    try {
      var match = new RegExp(pattern).exec(String(text));
      var value = match ? match[groupIndex || 0] : undefined;
      return value === undefined ? null : value;
    } catch (e) {
      return null;
    }
  }
});
"""

_INVOKE_HEAD = """
var __result = (function (email, senderInfo, extractedLinks, senderScore, variables, console, window, utils) {
var setTimeout, setInterval, clearTimeout, clearInterval, queueMicrotask, fetch, XMLHttpRequest, WebSocket;
"""

_INVOKE_TAIL = """
}).call(undefined, __input.email, __input.senderInfo, __input.extractedLinks, __input.senderScore,
        __input.variables, __console, __window, __utils);
"""

_COLLECT = """
JSON.stringify({
  variables: __input.variables,
  logs: __logs,
  opened: __opened,
  result: (function () {
    try { return __result === undefined ? null : JSON.parse(JSON.stringify(__result)); } catch (e) { return null; }
  })()
})
"""


class ScriptOutcome(BaseModel):
    ok: bool
    error: Optional[str] = None
    result: Any = None
    variables: Dict[str, Any] = Field(default_factory=dict)
    logs: List[Tuple[str, str]] = Field(default_factory=list)
    opened_urls: List[str] = Field(default_factory=list)


class ScriptRunner:
    """Runs javascript_code actions in an isolated, resource-limited context"""

    def __init__(self, timeout_ms: int = DEFAULT_TIMEOUT_MS, max_memory: int = DEFAULT_MAX_MEMORY):
        self.timeout_ms = timeout_ms
        self.max_memory = max_memory

    def run(self, code: str, context: EvaluationContext, variables: Optional[Dict[str, Any]] = None) -> ScriptOutcome:
        """Execute ``code``; variable writes are copied back into ``variables`` on success"""
        if variables is None:
            variables = context.variables
        if not code or not code.strip():
            return ScriptOutcome(ok=False, error='No script code provided')

        payload = {
            'email': context.email.model_dump(by_alias=True),
            'senderInfo': context.sender_info.model_dump(by_alias=True),
            'extractedLinks': [link.model_dump(by_alias=True) for link in context.extracted_links],
            'senderScore': context.sender_score,
            'variables': variables,
        }

        try:
            js = MiniRacer()
            js.eval(_PRELUDE)
            js.eval('var __input = ' + json.dumps(payload, default=str) + ';')
            js.eval(_INVOKE_HEAD + code + _INVOKE_TAIL, timeout=self.timeout_ms, max_memory=self.max_memory)
            collected = json.loads(js.eval(_COLLECT, timeout=self.timeout_ms, max_memory=self.max_memory))
        except Exception as e:
            message = str(e).strip() or type(e).__name__
            logger.warning(f"Rule script failed: {message}")
            return ScriptOutcome(ok=False, error=message)

        for level, message in collected['logs']:
            if level == 'error':
                logger.error(f"[rule script] {message}")
            elif level == 'warn':
                logger.warning(f"[rule script] {message}")
            else:
                logger.info(f"[rule script] {message}")

        updated = collected.get('variables')
        if isinstance(updated, dict):
            variables.clear()
            variables.update(updated)

        return ScriptOutcome(
            ok=True,
            result=collected.get('result'),
            variables=dict(variables),
            logs=[(level, message) for level, message in collected['logs']],
            opened_urls=collected['opened'],
        )
