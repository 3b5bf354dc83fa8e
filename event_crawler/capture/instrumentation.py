"""In-page instrumentation for capturing analytics emissions.

This module provides the InstrumentationController, which builds the init
script installed on a page before navigation. The script runs in the page's
own realm ahead of any page script and sets up exactly two interception
points:

- ``queue``: the tag-management queue (``window.dataLayer`` by default).
  Every push is recorded and then forwarded unchanged to the original push.
- ``direct``: the direct analytics function (``window.gtag`` by default).
  ``("event", name, params)`` calls are recorded and then forwarded unchanged
  to the original function.

Both globals are installed as accessor properties so that a page assigning a
new queue or a new function after injection gets it wrapped as well. The
queue hook additionally recognises gtag-style command tuples (``arguments``
objects), which keeps ``event`` commands observable when a page replaces the
function with a global function declaration.

Records are appended to a buffer stored on a non-enumerable window property
and read back once by the EventExtractor.
"""

import json
import logging
import re
from typing import Any, Dict, Union

from playwright.async_api import BrowserContext, Page

logger = logging.getLogger(__name__)


DEFAULT_QUEUE_NAME = "dataLayer"
DEFAULT_FUNCTION_NAME = "gtag"
DEFAULT_BUFFER_NAME = "__eventCrawlerCapture"

INTERCEPTION_POINTS = ("queue", "direct")

_JS_IDENTIFIER = re.compile(r'^[A-Za-z_$][A-Za-z0-9_$]*$')


_INIT_SCRIPT_TEMPLATE = """
(function (options) {
    'use strict';
    if (Object.prototype.hasOwnProperty.call(window, options.bufferName)) {
        return;
    }

    var events = [];
    var lastTimestamp = 0;
    var delegatingDirectCall = 0;
    var HOOK_MARK = '__eventCrawlerHook';

    Object.defineProperty(window, options.bufferName, {
        value: { events: events },
        enumerable: false,
        configurable: false,
        writable: false
    });

    function focusedElementId() {
        try {
            var el = document.activeElement;
            var id = el && typeof el.getAttribute === 'function' ? el.getAttribute('id') : null;
            return id ? String(id) : undefined;
        } catch (e) {
            return undefined;
        }
    }

    function toJsonSafe(value) {
        var seen = [];
        function clone(v, depth) {
            if (v === null || typeof v === 'string' || typeof v === 'boolean') {
                return v;
            }
            if (typeof v === 'number') {
                return isFinite(v) ? v : null;
            }
            if (typeof v === 'undefined' || typeof v === 'function' || typeof v === 'symbol') {
                return undefined;
            }
            if (typeof v === 'bigint') {
                return String(v);
            }
            if (depth > options.maxDepth) {
                return '[Truncated]';
            }
            if (typeof Node !== 'undefined' && v instanceof Node) {
                return '[' + (v.nodeName || 'Node') + (v.id ? '#' + v.id : '') + ']';
            }
            if (v instanceof Date) {
                return isNaN(v.getTime()) ? null : v.toISOString();
            }
            if (seen.indexOf(v) !== -1) {
                return '[Circular]';
            }
            seen.push(v);
            var out;
            if (Array.isArray(v) || Object.prototype.toString.call(v) === '[object Arguments]') {
                out = [];
                for (var i = 0; i < v.length; i++) {
                    var item = clone(v[i], depth + 1);
                    out.push(item === undefined ? null : item);
                }
            } else {
                out = {};
                var keys = Object.keys(v);
                for (var k = 0; k < keys.length; k++) {
                    var prop;
                    try {
                        prop = clone(v[keys[k]], depth + 1);
                    } catch (e) {
                        prop = '[Unreadable]';
                    }
                    if (prop !== undefined) {
                        out[keys[k]] = prop;
                    }
                }
            }
            seen.pop();
            return out;
        }
        var result = clone(value, 0);
        return result !== null && typeof result === 'object' && !Array.isArray(result)
            ? result
            : (result === undefined || result === null ? {} : { value: result });
    }

    function record(name, payload) {
        var now = Date.now();
        if (now < lastTimestamp) {
            now = lastTimestamp;
        }
        lastTimestamp = now;
        var entry = {
            eventName: name ? String(name) : 'unnamed',
            timestamp: now,
            payload: toJsonSafe(payload)
        };
        var selector = focusedElementId();
        if (selector) {
            entry.selector = selector;
        }
        events[events.length] = entry;
    }

    function emitter(point) {
        return {
            point: point,
            onEmit: function (name, payload) {
                try {
                    record(name, payload);
                } catch (e) {
                    // Recording must never break the page
                }
            }
        };
    }

    var points = { queue: emitter('queue'), direct: emitter('direct') };

    function isCommandTuple(item) {
        return Object.prototype.toString.call(item) === '[object Arguments]';
    }

    function observePushed(item) {
        if (isCommandTuple(item)) {
            if (!delegatingDirectCall && item[0] === 'event' && item[1]) {
                points.direct.onEmit(item[1], item.length > 2 && item[2] ? item[2] : {});
            }
            return;
        }
        var name;
        if (item !== null && typeof item === 'object') {
            try {
                name = item.event || item.eventName;
            } catch (e) {
                name = undefined;
            }
        }
        // Primitives become {value: ...}; functions and null an empty payload
        points.queue.onEmit(name, item);
    }

    function hookQueue(queue) {
        if (!queue || typeof queue.push !== 'function' || queue.push[HOOK_MARK]) {
            return queue;
        }
        var originalPush = queue.push;
        var hookedPush = function () {
            if (arguments.length === 0) {
                points.queue.onEmit(undefined, {});
            }
            for (var i = 0; i < arguments.length; i++) {
                try {
                    observePushed(arguments[i]);
                } catch (e) {
                    // Recording must never break the page
                }
            }
            return originalPush.apply(this, arguments);
        };
        Object.defineProperty(hookedPush, HOOK_MARK, { value: true });
        try {
            queue.push = hookedPush;
        } catch (e) {
            // Frozen queue: leave it untouched
        }
        return queue;
    }

    function wrapDirect(fn) {
        if (typeof fn !== 'function' || fn[HOOK_MARK]) {
            return fn;
        }
        var wrapper = function (command, name, params) {
            if (command === 'event' && name) {
                points.direct.onEmit(name, arguments.length > 2 && params ? params : {});
            }
            delegatingDirectCall++;
            try {
                return fn.apply(this, arguments);
            } finally {
                delegatingDirectCall--;
            }
        };
        Object.defineProperty(wrapper, HOOK_MARK, { value: true });
        return wrapper;
    }

    var queue = hookQueue(window[options.queueName] || []);
    Object.defineProperty(window, options.queueName, {
        configurable: true,
        enumerable: true,
        get: function () { return queue; },
        set: function (value) { queue = hookQueue(value); }
    });

    var directFn = window[options.functionName];
    if (typeof directFn !== 'function') {
        // Same shape as the tag platform's own stub: forward the command tuple to the queue
        directFn = function () {
            var q = window[options.queueName];
            if (q && typeof q.push === 'function') {
                q.push(arguments);
            }
        };
    }
    directFn = wrapDirect(directFn);
    Object.defineProperty(window, options.functionName, {
        configurable: true,
        enumerable: true,
        get: function () { return directFn; },
        set: function (value) { directFn = wrapDirect(value); }
    });
})(%(options)s);
"""


class InstrumentationError(Exception):
    """Invalid instrumentation configuration."""
    pass


class InstrumentationController:
    """Builds and installs the capture hooks for a single page session.

    The controller is created per scan; the buffer it installs lives in the
    page realm and is discarded with the page.
    """

    def __init__(
        self,
        queue_name: str = DEFAULT_QUEUE_NAME,
        function_name: str = DEFAULT_FUNCTION_NAME,
        buffer_name: str = DEFAULT_BUFFER_NAME,
        max_payload_depth: int = 10,
    ):
        """Initialize instrumentation controller.

        Args:
            queue_name: Global name of the tag-management queue
            function_name: Global name of the direct analytics function
            buffer_name: Global name of the in-page capture buffer
            max_payload_depth: Nesting depth kept when cloning payloads

        Raises:
            InstrumentationError: If a name is not a plain JS identifier
        """
        self.queue_name = self._sanitize_js_identifier(queue_name)
        self.function_name = self._sanitize_js_identifier(function_name)
        self.buffer_name = self._sanitize_js_identifier(buffer_name)

        if len({self.queue_name, self.function_name, self.buffer_name}) != 3:
            raise InstrumentationError("Queue, function and buffer names must be distinct")

        self.max_payload_depth = max(1, min(max_payload_depth, 50))
        self.installed = False
        self._script = self._build_script()

    @property
    def script(self) -> str:
        """The init script source."""
        return self._script

    def script_options(self) -> Dict[str, Any]:
        """Options embedded into the init script."""
        return {
            'queueName': self.queue_name,
            'functionName': self.function_name,
            'bufferName': self.buffer_name,
            'maxDepth': self.max_payload_depth,
        }

    async def install(self, target: Union[Page, BrowserContext]) -> None:
        """Register the hooks as a pre-navigation init script.

        Must be called before the page navigates; the script then runs in
        every new document ahead of the document's own scripts.

        Args:
            target: Page (or context) to instrument
        """
        if self.installed:
            logger.debug("Instrumentation already installed")
            return

        await target.add_init_script(script=self._script)
        self.installed = True

        logger.debug(
            f"Instrumentation installed: queue={self.queue_name}, "
            f"function={self.function_name}, points={', '.join(INTERCEPTION_POINTS)}"
        )

    def _build_script(self) -> str:
        return _INIT_SCRIPT_TEMPLATE % {'options': json.dumps(self.script_options())}

    @staticmethod
    def _sanitize_js_identifier(name: str) -> str:
        """Validate a global name for use in the init script."""
        if not isinstance(name, str) or not _JS_IDENTIFIER.match(name):
            raise InstrumentationError(f"Invalid JavaScript identifier: {name!r}")
        return name

    def __repr__(self) -> str:
        return (
            f"InstrumentationController(queue={self.queue_name}, "
            f"function={self.function_name}, installed={self.installed})"
        )
