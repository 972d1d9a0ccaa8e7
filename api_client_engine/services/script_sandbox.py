"""
JavaScript script runner using PyMiniRacer (embedded V8).

Scripts see a Postman-like ``pm`` object:

- ``pm.test(name, fn)`` records a named assertion
- ``pm.expect(value).to...`` provides chai-style checks
- ``pm.response`` / ``pm.request`` expose the exchange
- ``pm.environment`` / ``pm.collectionVariables`` read and stage variable changes
- ``console.log/info/warn/error`` are captured

Each run gets a fresh V8 context, so nothing leaks between executions.
"""

import json
from typing import Any, Mapping

from py_mini_racer import MiniRacer

from ..config import get_settings
from ..exceptions import ScriptExecutionError
from ..schemas.execute import ExecutionResult, RequestEcho, ScriptOutcome, ScriptTestResult


_PM_RUNTIME = r"""
var __data = __DATA__;
var __logs = [];
var __tests = [];
var __envUpdates = {};
var __collUpdates = {};
var __error = null;

function __str(a) {
  if (a === undefined) return 'undefined';
  if (a !== null && typeof a === 'object') {
    try { return JSON.stringify(a); } catch (e) { return String(a); }
  }
  return String(a);
}

function __join(args) {
  return Array.prototype.slice.call(args).map(__str).join(' ');
}

function __fmt(v) {
  return v === undefined ? 'undefined' : JSON.stringify(v);
}

function __message(e) {
  return e && e.message ? String(e.message) : String(e);
}

var __console = {
  log: function () { __logs.push(__join(arguments)); },
  info: function () { __logs.push('[INFO] ' + __join(arguments)); },
  warn: function () { __logs.push('[WARN] ' + __join(arguments)); },
  error: function () { __logs.push('[ERROR] ' + __join(arguments)); }
};

function __scope(label, current, updates) {
  return {
    get: function (key) {
      if (Object.prototype.hasOwnProperty.call(updates, key)) {
        return updates[key].unset ? undefined : updates[key].value;
      }
      return current[key];
    },
    has: function (key) {
      return this.get(key) !== undefined;
    },
    set: function (key, value) {
      updates[key] = { value: String(value) };
      __logs.push(label + " variable '" + key + "' set to '" + String(value) + "'");
    },
    unset: function (key) {
      updates[key] = { unset: true };
      __logs.push(label + " variable '" + key + "' unset");
    }
  };
}

function __typeOf(v) {
  if (Array.isArray(v)) return 'array';
  if (v === null) return 'null';
  return typeof v;
}

function __expect(actual) {
  function checkType(type) {
    var t = __typeOf(actual);
    if (t !== type) throw new Error('Expected type ' + type + ' but got ' + t);
  }
  return {
    to: {
      equal: function (expected) {
        if (actual !== expected) {
          throw new Error('Expected ' + __fmt(expected) + ' but got ' + __fmt(actual));
        }
      },
      eql: function (expected) {
        if (JSON.stringify(actual) !== JSON.stringify(expected)) {
          throw new Error('Expected ' + __fmt(expected) + ' but got ' + __fmt(actual));
        }
      },
      include: function (expected) {
        if (actual === null || actual === undefined || actual.indexOf(expected) === -1) {
          throw new Error('Expected ' + __fmt(actual) + ' to include ' + __fmt(expected));
        }
      },
      be: {
        a: checkType,
        an: checkType,
        below: function (value) {
          if (!(actual < value)) throw new Error('Expected ' + actual + ' to be below ' + value);
        },
        above: function (value) {
          if (!(actual > value)) throw new Error('Expected ' + actual + ' to be above ' + value);
        },
        true: function () {
          if (actual !== true) throw new Error('Expected true but got ' + __fmt(actual));
        },
        false: function () {
          if (actual !== false) throw new Error('Expected false but got ' + __fmt(actual));
        }
      },
      have: {
        property: function (prop, value) {
          if (!actual || typeof actual !== 'object') throw new Error('Expected an object');
          if (!(prop in actual)) throw new Error("Expected property '" + prop + "' to exist");
          if (value !== undefined && actual[prop] !== value) {
            throw new Error("Expected property '" + prop + "' to be " + __fmt(value) +
              ' but got ' + __fmt(actual[prop]));
          }
        },
        length: function (expected) {
          var length = actual ? actual.length : undefined;
          if (length !== expected) {
            throw new Error('Expected length ' + expected + ' but got ' + length);
          }
        }
      }
    }
  };
}

function __header(headers, name) {
  var wanted = String(name).toLowerCase();
  for (var key in headers) {
    if (Object.prototype.hasOwnProperty.call(headers, key) && key.toLowerCase() === wanted) {
      return headers[key];
    }
  }
  return undefined;
}

var __res = __data.response;
var __hasJson = __res && __res.body_json !== null && __res.body_json !== undefined;

var pm = {
  request: __data.request,
  response: {
    code: __res ? __res.status : undefined,
    status: __res ? __res.status_text : undefined,
    headers: __res ? __res.headers : {},
    body: __res ? (__hasJson ? __res.body_json : __res.body) : undefined,
    responseTime: __res ? __res.timing.total_ms : 0,
    responseSize: __res ? __res.size.total : 0,
    json: function () {
      if (!__res) throw new Error('No response received');
      if (__hasJson) return __res.body_json;
      try {
        return JSON.parse(__res.body || '{}');
      } catch (e) {
        throw new Error('Response body is not valid JSON');
      }
    },
    text: function () {
      return __res ? (__res.body || '') : '';
    },
    to: {
      have: {
        status: function (expected) {
          var actual = __res ? __res.status : undefined;
          if (actual !== expected) {
            throw new Error('Expected status ' + expected + ' but got ' + actual);
          }
        },
        header: function (name, expected) {
          var value = __header(__res ? __res.headers : {}, name);
          if (value === undefined) throw new Error("Header '" + name + "' not found in response");
          if (expected !== undefined && value !== expected) {
            throw new Error("Expected header '" + name + "' to be '" + expected +
              "' but got '" + value + "'");
          }
        }
      }
    }
  },
  test: function (name, fn) {
    try {
      fn();
      __tests.push({ name: String(name), passed: true });
      __logs.push('✓ ' + name);
    } catch (e) {
      __tests.push({ name: String(name), passed: false, error: __message(e) });
      __logs.push('✗ ' + name);
      __logs.push('  ' + __message(e));
    }
  },
  expect: __expect,
  environment: __scope('Environment', __data.environment, __envUpdates),
  collectionVariables: __scope('Collection', __data.collection, __collUpdates)
};

try {
  var __script = new Function('pm', 'console', __data.script);
  __script(pm, __console);
} catch (e) {
  __error = __message(e);
}

JSON.stringify({
  environment_updates: __envUpdates,
  collection_updates: __collUpdates,
  console_output: __logs,
  tests: __tests,
  error: __error
});
"""


def _updates(staged: Mapping[str, dict]) -> dict[str, str | None]:
    return {key: None if op.get("unset") else op.get("value", "") for key, op in staged.items()}


class JavaScriptSandbox:
    """``ScriptRunner`` that evaluates scripts in an isolated V8 context."""

    def __init__(self, timeout_ms: int | None = None):
        self.timeout_ms = timeout_ms if timeout_ms is not None else get_settings().SCRIPT_TIMEOUT_MS

    def _evaluate(
        self,
        script: str,
        request: dict[str, Any],
        response: dict[str, Any] | None,
        env_vars: Mapping[str, str],
        coll_vars: Mapping[str, str],
    ) -> dict[str, Any]:
        data = {
            "script": script,
            "request": request,
            "response": response,
            "environment": dict(env_vars),
            "collection": dict(coll_vars),
        }
        source = _PM_RUNTIME.replace("__DATA__", json.dumps(data), 1)

        ctx = MiniRacer()
        try:
            raw = ctx.eval(source, timeout=self.timeout_ms)
        except Exception as e:
            raise ScriptExecutionError(f"Script evaluation failed: {e}") from e
        finally:
            ctx.close()
        return json.loads(raw)

    @staticmethod
    def _outcome(envelope: dict[str, Any]) -> ScriptOutcome:
        return ScriptOutcome(
            environment_updates=_updates(envelope.get("environment_updates") or {}),
            collection_updates=_updates(envelope.get("collection_updates") or {}),
            console_output=envelope.get("console_output") or [],
            tests=[ScriptTestResult.model_validate(t) for t in envelope.get("tests") or []],
        )

    def run_pre_request(
        self,
        script: str,
        request: RequestEcho,
        env_vars: Mapping[str, str],
        coll_vars: Mapping[str, str],
    ) -> ScriptOutcome:
        envelope = self._evaluate(script, request.model_dump(mode="json"), None, env_vars, coll_vars)
        if envelope.get("error"):
            raise ScriptExecutionError(envelope["error"])
        return self._outcome(envelope)

    def run_test(
        self,
        script: str,
        result: ExecutionResult,
        env_vars: Mapping[str, str],
        coll_vars: Mapping[str, str],
    ) -> ScriptOutcome:
        response = result.response.model_dump(mode="json") if result.response else None
        envelope = self._evaluate(
            script, result.request.model_dump(mode="json"), response, env_vars, coll_vars
        )
        outcome = self._outcome(envelope)
        if envelope.get("error"):
            outcome.tests.append(
                ScriptTestResult(name="Script Execution", passed=False, error=envelope["error"])
            )
        return outcome
